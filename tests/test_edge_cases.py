"""
EdgeCaseGenerator: boundary patterns per format and explicit-bit
equivalence pairs.
"""

import warnings

import pytest

from fpverify import EdgeCases
from fpverify.Decoder import ExactDecoder
from fpverify.Format import FORMATS
from fpverify.Rounder import FormatRounder, RepresentationWarning

decode = ExactDecoder.decode
classify = ExactDecoder.classify


def test_deterministic_and_unique(binary16):
    cases = EdgeCases.generate(binary16)
    assert cases == EdgeCases.generate(binary16)
    assert len(cases) == len(set(cases))


@pytest.mark.parametrize("bits", [
    0x0000, 0x8000,                  # signed zeros
    0x7C00, 0xFC00,                  # infinities
    0x7E00, 0xFE00,                  # quiet NaN, both signs
    0x7C01, 0x7DFF, 0x7FFF,          # NaN payload boundaries
    0x0001, 0x8001, 0x03FF, 0x83FF,  # subnormal extremes
    0x0400, 0x8400, 0x0401,          # smallest normals
    0x7BFF, 0xFBFF,                  # largest finite
    0x3C00, 0xBC00, 0x4000, 0x3800,  # 1, -1, 2, 0.5
    0x3C01, 0x3BFF, 0x1400,          # 1 + ULP, 1 - ULP, epsilon
])
def test_binary16_boundaries(binary16, bits):
    assert bits in EdgeCases.generate(binary16)


def test_binary16_starts_with_zeros(binary16):
    assert EdgeCases.generate(binary16)[:2] == [0x0000, 0x8000]


def test_twos_complement_specials(rbj32):
    cases = EdgeCases.generate(rbj32)
    assert 0x80000000 in cases  # trap NaN
    assert 0x7FFFFFFF in cases  # +Inf
    assert 0x80000001 in cases  # -Inf
    assert 0x7FFFFFFE in cases  # max finite
    assert 0xC0000000 in cases  # -1.0


def test_negative_zero_pattern_nan_format():
    fmt = FORMATS["fp8_e4m3fnuz"]
    cases = EdgeCases.generate(fmt)
    assert 0x80 in cases
    assert 0x7F in cases
    assert 0xFF in cases
    # No negative zero: the only zero is 0x00
    assert [b for b in cases if decode(b, fmt).is_zero] == [0x00]


def test_no_subnormals_without_subnormal_support():
    fmt = FORMATS["cdc6600"]
    for bits in EdgeCases.generate(fmt):
        flag = classify(bits, fmt)
        if flag == "denormalized":
            # Only the non-canonical explicit-bit extras may be denormal
            assert bits in EdgeCases._explicit_bit_cases(fmt)


def test_explicit_bit_extras(extfloat80):
    cases = EdgeCases.generate(extfloat80)
    flags = {classify(b, extfloat80) for b in cases}
    assert "unnormal" in flags
    assert "pseudo-denormal" in flags
    j = extfloat80.j_bit
    pm = FormatRounder.pack_magnitude
    assert pm(1, j - 1, extfloat80) in cases       # unnormal at exponent 1
    assert pm(0, j, extfloat80) in cases           # pseudo-denormal
    assert pm(0x7FFF, 0, extfloat80) in cases      # pseudo-infinity


def test_implicit_formats_have_no_explicit_extras(binary32):
    flags = {classify(b, binary32) for b in EdgeCases.generate(binary32)}
    assert flags <= {"zero", "infinity", "NaN", "denormalized", "normalized"}


@pytest.mark.parametrize("name", sorted(FORMATS))
def test_all_patterns_fit_and_decode(name):
    fmt = FORMATS[name]
    cases = EdgeCases.generate(fmt)
    assert cases
    for bits in cases:
        assert 0 <= bits <= fmt.layout.word_mask
        decode(bits, fmt)


@pytest.mark.parametrize("name", ["extfloat80", "pdp10", "cdc6600"])
def test_equivalence_pairs_decode_equal(name):
    fmt = FORMATS[name]
    pairs = EdgeCases.equivalence_pairs(fmt)
    assert pairs
    for desc, noncanonical, canonical in pairs:
        assert noncanonical != canonical, desc
        assert decode(noncanonical, fmt) == decode(canonical, fmt), desc


def test_equivalence_pair_kinds(extfloat80):
    descs = [desc for desc, _, _ in EdgeCases.equivalence_pairs(extfloat80)]
    assert "unnormal exp=1 / denormal" in descs
    assert "pseudo-infinity" in descs
    assert "pseudo-NaN" in descs
    assert "unnormal exp=16383" in descs


def test_no_equivalence_pairs_for_implicit_formats(binary16):
    assert EdgeCases.equivalence_pairs(binary16) == []


def test_unsigned_format_has_no_negative_cases(unsigned8):
    with warnings.catch_warnings():
        warnings.simplefilter("error", RepresentationWarning)
        cases = EdgeCases.generate(unsigned8)
    assert 0xF8 in cases
    assert 0x78 in cases
    assert not any(decode(bits, unsigned8).negative for bits in cases)
