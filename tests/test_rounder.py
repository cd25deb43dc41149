"""
FormatRounder: round-trip identity, ties-to-even, overflow/underflow, special
values, rounding modes, sign application per sign scheme.
"""

import struct
import warnings
from fractions import Fraction

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from fpverify.Decoder import ExactDecoder, ExactValue
from fpverify.Format import FORMATS, InfScheme, NanScheme, SubnormalMode
from fpverify.Rounder import FormatRounder, RepresentationWarning, RoundingMode, round_shift

decode = ExactDecoder.decode
rnd = FormatRounder.round_to_format


def is_canonical(bits, fmt):
    """Finite, non-zero and stored in the format's canonical form."""
    value = decode(bits, fmt)
    if not value.is_finite:
        return False
    flag = ExactDecoder.classify(bits, fmt)
    if flag == "denormalized":
        return fmt.encoding.subnormal_mode != SubnormalMode.NONE
    return flag == "normalized"


@st.composite
def canonical_patterns(draw, fmt):
    """Finite non-zero patterns built field by field: J set when normal, clear when subnormal."""
    has_subnormals = fmt.encoding.subnormal_mode != SubnormalMode.NONE
    fraction_max = (1 << fmt.rounding_mant_bits) - 1
    exp_field = draw(st.integers(min_value=0 if has_subnormals else 1, max_value=fmt.max_biased_exp))
    if exp_field == 0:
        mant = draw(st.integers(min_value=1, max_value=fraction_max))
    else:
        mant = fmt.j_bit | draw(st.integers(min_value=0, max_value=fraction_max))
    negative = draw(st.booleans())
    bits = FormatRounder.apply_sign(FormatRounder.pack_magnitude(exp_field, mant, fmt), negative, fmt)
    # Integer-extreme formats spend the all-ones magnitude on infinity
    assume(decode(bits, fmt).is_finite)
    return bits


@pytest.mark.parametrize("name", sorted(FORMATS))
@given(data=st.data())
def test_round_trip_canonical_identity(name, data):
    fmt = FORMATS[name]
    bits = data.draw(canonical_patterns(fmt))
    assert is_canonical(bits, fmt)
    assert rnd(decode(bits, fmt), fmt) == bits


@pytest.mark.parametrize("name", ["cdc6600", "pdp10", "extfloat80"])
def test_round_trip_explicit_bit_complement_formats(name):
    fmt = FORMATS[name]
    pm = FormatRounder.pack_magnitude
    j = fmt.j_bit
    for exp_field in (1, fmt.bias, fmt.max_biased_exp):
        for mant in (j, j | 1, j | (j - 1)):
            for negative in (False, True):
                bits = FormatRounder.apply_sign(pm(exp_field, mant, fmt), negative, fmt)
                assert rnd(decode(bits, fmt), fmt) == bits


@pytest.mark.parametrize("name", ["binary16", "extfloat80", "rbj32", "cdc6600", "fp8_e4m3fnuz"])
@given(data=st.data())
def test_sign_symmetry(name, data):
    fmt = FORMATS[name]
    bits = data.draw(st.integers(min_value=0, max_value=fmt.layout.word_mask))
    value = decode(bits, fmt)
    assume(value.is_finite)
    assert decode(FormatRounder.negate_bits(bits, fmt), fmt) == -value


@given(st.integers(min_value=0, max_value=0xFFFF))
def test_sign_symmetry_is_sign_bit_flip_for_sign_magnitude(bits):
    fmt = FORMATS["binary16"]
    value = decode(bits, fmt)
    assume(value.is_finite)
    assert decode(bits ^ 0x8000, fmt) == -value


class TestSpecialClosure:
    @pytest.mark.parametrize("name", [n for n, f in FORMATS.items() if f.encoding.nan_scheme != NanScheme.NONE])
    def test_nan_rounds_to_nan(self, name):
        fmt = FORMATS[name]
        assert decode(rnd(ExactValue.nan(), fmt), fmt).is_nan

    @pytest.mark.parametrize("name", [n for n, f in FORMATS.items() if f.encoding.inf_scheme != InfScheme.NONE])
    @pytest.mark.parametrize("negative", [False, True])
    def test_inf_round_trips(self, name, negative):
        fmt = FORMATS[name]
        assert decode(rnd(ExactValue.inf(negative), fmt), fmt) == ExactValue.inf(negative)

    def test_missing_nan_is_lossy(self):
        with pytest.warns(RepresentationWarning, match="no NaN"):
            assert rnd(ExactValue.nan(), FORMATS["pdp10"]) == 0

    def test_missing_inf_is_lossy(self):
        with pytest.warns(RepresentationWarning, match="no infinity"):
            assert rnd(ExactValue.inf(True), FORMATS["relaxed16"]) == 0

    def test_canonical_patterns(self, binary16, extfloat80, rbj32):
        assert FormatRounder.canonical_nan(binary16) == 0x7E00
        assert FormatRounder.canonical_nan(extfloat80) == (0x7FFF << 64) | (0xC << 60)
        assert FormatRounder.canonical_nan(rbj32) == 0x80000000
        assert FormatRounder.canonical_nan(FORMATS["fp8_e4m3fnuz"]) == 0x80
        assert FormatRounder.canonical_inf(binary16, True) == 0xFC00
        assert FormatRounder.canonical_inf(extfloat80) == (0x7FFF << 64) | (1 << 63)
        assert FormatRounder.canonical_inf(rbj32, True) == 0x80000001


class TestTiesToEven:
    def test_binary16_halfway_above_one(self, binary16):
        # 1 + 2^-11 sits halfway between 0x3C00 (even) and 0x3C01
        assert rnd(ExactValue.finite(False, (1 << 11) + 1, -11), binary16) == 0x3C00
        # 1 + 3 * 2^-11 sits halfway between 0x3C01 and 0x3C02 (even)
        assert rnd(ExactValue.finite(False, (1 << 11) + 3, -11), binary16) == 0x3C02

    def test_just_above_halfway_rounds_up(self, binary16):
        assert rnd(ExactValue.finite(False, (1 << 12) + 3, -12), binary16) == 0x3C01

    @given(st.integers(min_value=1, max_value=253), st.integers(min_value=0, max_value=(1 << 23) - 1))
    def test_binary32_normal_halfway(self, exp_field, mant):
        fmt = FORMATS["binary32"]
        # ((2^23 + mant) + 1/2) * 2^(exp - bias - 23)
        value = ExactValue.finite(False, (((1 << 23) | mant) << 1) | 1, exp_field - 127 - 24)
        expected = (exp_field << 23) + (mant if mant % 2 == 0 else mant + 1)
        assert rnd(value, fmt) == expected

    @given(st.integers(min_value=0, max_value=(1 << 23) - 1))
    def test_binary32_subnormal_halfway(self, mant):
        fmt = FORMATS["binary32"]
        value = ExactValue.finite(False, (mant << 1) | 1, 1 - 127 - 23 - 1)
        expected = mant if mant % 2 == 0 else mant + 1
        assert rnd(value, fmt) == expected

    def test_explicit_bit_halfway(self, extfloat80):
        j = 1 << 63
        # 1 + 2^-64: halfway between 1.0 and 1.0 + 1 ULP
        value = ExactValue.finite(False, (1 << 64) + 1, -64)
        assert rnd(value, extfloat80) == FormatRounder.pack_magnitude(16383, j, extfloat80)
        value = ExactValue.finite(False, (1 << 64) + 3, -64)
        assert rnd(value, extfloat80) == FormatRounder.pack_magnitude(16383, j | 2, extfloat80)


class TestRangeLimits:
    def test_overflow_to_infinity(self, binary16):
        # 65520 = max finite + half ULP, max finite mantissa is odd
        assert rnd(ExactValue.from_fraction(Fraction(65520)), binary16) == 0x7C00
        assert rnd(ExactValue.from_fraction(Fraction(65519)), binary16) == 0x7BFF
        assert rnd(ExactValue.from_fraction(Fraction(-70000)), binary16) == 0xFC00

    def test_carry_into_next_binade(self, binary16):
        # 2 - 2^-12 rounds up to 2.0
        assert rnd(ExactValue.finite(False, (1 << 13) - 1, -12), binary16) == 0x4000

    def test_underflow(self, binary16):
        assert rnd(ExactValue.finite(False, 1, -26), binary16) == 0x0000
        assert rnd(ExactValue.finite(True, 1, -26), binary16) == 0x8000
        # Exactly half the smallest subnormal: ties to even (zero)
        assert rnd(ExactValue.finite(False, 1, -25), binary16) == 0x0000
        assert rnd(ExactValue.finite(False, 3, -26), binary16) == 0x0001

    def test_subnormal_rounds_up_to_min_normal(self, binary16):
        assert rnd(ExactValue.finite(False, (1 << 11) - 1, -25), binary16) == 0x0400

    def test_overflow_without_infinity(self):
        fmt = FORMATS["fp8_e4m3fnuz"]
        assert rnd(ExactValue.from_fraction(Fraction(240)), fmt) == 0x7F
        with pytest.warns(RepresentationWarning):
            assert rnd(ExactValue.from_fraction(Fraction(1000)), fmt) == 0

    def test_max_finite(self, binary16, binary32, rbj32):
        assert FormatRounder.max_finite(binary16) == 0x7BFF
        assert FormatRounder.max_finite(binary32, True) == 0xFF7FFFFF
        assert FormatRounder.max_finite(rbj32) == 0x7FFFFFFE
        assert FormatRounder.max_finite(FORMATS["fp8_e4m3fnuz"]) == 0x7F
        assert decode(FormatRounder.max_finite(rbj32, True), rbj32) == -decode(0x7FFFFFFE, rbj32)

    def test_integer_extreme_is_overflow(self, rbj32):
        max_value = decode(0x7FFFFFFE, rbj32).to_fraction()
        ulp = Fraction(1 << (255 - 128 - 23))
        assert rnd(ExactValue.from_fraction(max_value + ulp), rbj32) == 0x7FFFFFFF
        assert rnd(ExactValue.from_fraction(-(max_value + ulp)), rbj32) == 0x80000001
        assert rnd(ExactValue.from_fraction(max_value + ulp), rbj32, RoundingMode.TOWARD_ZERO) == 0x7FFFFFFE


class TestRoundingModes:
    half_ulp_above_one = ExactValue.finite(False, (1 << 11) + 1, -11)

    @pytest.mark.parametrize("mode, expected", [
        (RoundingMode.NEAREST_EVEN, 0x3C00),
        (RoundingMode.NEAREST_AWAY, 0x3C01),
        (RoundingMode.TOWARD_ZERO, 0x3C00),
        (RoundingMode.TOWARD_POSITIVE, 0x3C01),
        (RoundingMode.TOWARD_NEGATIVE, 0x3C00),
        (RoundingMode.TO_ODD, 0x3C01),
    ])
    def test_positive_tie(self, binary16, mode, expected):
        assert rnd(self.half_ulp_above_one, binary16, mode) == expected

    @pytest.mark.parametrize("mode, expected", [
        (RoundingMode.NEAREST_EVEN, 0xBC00),
        (RoundingMode.TOWARD_ZERO, 0xBC00),
        (RoundingMode.TOWARD_POSITIVE, 0xBC00),
        (RoundingMode.TOWARD_NEGATIVE, 0xBC01),
    ])
    def test_negative_quarter_ulp(self, binary16, mode, expected):
        value = ExactValue.finite(True, (1 << 12) + 1, -12)
        assert rnd(value, binary16, mode) == expected

    @pytest.mark.parametrize("mode, negative, expected", [
        (RoundingMode.TOWARD_ZERO, False, 0x7BFF),
        (RoundingMode.TOWARD_ZERO, True, 0xFBFF),
        (RoundingMode.TOWARD_POSITIVE, False, 0x7C00),
        (RoundingMode.TOWARD_POSITIVE, True, 0xFBFF),
        (RoundingMode.TOWARD_NEGATIVE, False, 0x7BFF),
        (RoundingMode.TOWARD_NEGATIVE, True, 0xFC00),
        (RoundingMode.TO_ODD, False, 0x7BFF),
    ])
    def test_directed_overflow(self, binary16, mode, negative, expected):
        assert rnd(ExactValue.finite(negative, 1, 20), binary16, mode) == expected

    def test_round_shift_exact(self):
        assert round_shift(0b1011, 0, False) == 0b1011
        assert round_shift(0b1011, -2, False) == 0b101100


class TestSignSchemes:
    def test_twos_complement_negative(self, rbj32):
        assert rnd(ExactValue.finite(True, 1, 0), rbj32) == 0xC0000000
        assert rnd(ExactValue.zero(True), rbj32) == 0

    def test_ones_complement_negative_zero(self):
        fmt = FORMATS["cdc6600"]
        assert rnd(ExactValue.zero(True), fmt) == fmt.layout.word_mask

    def test_no_negative_zero(self):
        assert rnd(ExactValue.zero(True), FORMATS["fp8_e4m3fnuz"]) == 0
        assert rnd(ExactValue.zero(True), FORMATS["relaxed16"]) == 0

    def test_apply_sign(self, binary16, rbj32):
        assert FormatRounder.apply_sign(0x3C00, True, binary16) == 0xBC00
        assert FormatRounder.apply_sign(0x3C00, False, binary16) == 0x3C00
        assert FormatRounder.apply_sign(0x40000000, True, rbj32) == 0xC0000000

    def test_unsigned_format_keeps_magnitude(self, unsigned8):
        with pytest.warns(RepresentationWarning, match="no sign bit"):
            assert FormatRounder.apply_sign(0x78, True, unsigned8) == 0x78
        with pytest.warns(RepresentationWarning, match="no sign bit"):
            assert rnd(ExactValue.finite(True, 1, 0), unsigned8) == 0x78
        with pytest.warns(RepresentationWarning, match="no sign bit"):
            assert rnd(ExactValue.inf(True), unsigned8) == 0xF8

    def test_unsigned_format_negative_zero_is_silent(self, unsigned8):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert rnd(ExactValue.zero(True), unsigned8) == 0
            assert rnd(ExactValue.finite(False, 1, 0), unsigned8) == 0x78


class TestSubnormalModes:
    def test_flush_output(self):
        gpu, binary32 = FORMATS["gpu32"], FORMATS["binary32"]
        tiny = ExactValue.finite(False, 1, -140)
        assert rnd(tiny, gpu) == 0x00000200
        assert rnd(tiny, gpu, flush_subnormals=True) == 0
        assert rnd(-tiny, gpu, flush_subnormals=True) == 0x80000000
        assert rnd(tiny, binary32, flush_subnormals=True) == 0x00000200

    def test_no_subnormals_always_flush(self):
        fmt = FORMATS["pdp10"]
        tiny = ExactValue.finite(False, 1, -140)
        assert rnd(tiny, fmt) == 0

    def test_min_normal_not_flushed(self):
        gpu = FORMATS["gpu32"]
        assert rnd(ExactValue.finite(False, 1, -126), gpu, flush_subnormals=True) == 0x00800000


def test_round_of_exact_quotient_matches_python():
    # Cut at 256 bits with round-to-odd, then rounded to binary64
    fmt = FORMATS["binary64"]
    for num, den in [(1, 3), (2, 3), (1, 10), (7, 9)]:
        bits = rnd(ExactValue.from_fraction(Fraction(num, den)), fmt)
        expected = struct.unpack("<Q", struct.pack("<d", num / den))[0]
        assert bits == expected


def test_no_warning_for_representable_values(binary16):
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        rnd(ExactValue.finite(False, 3, 0), binary16)
