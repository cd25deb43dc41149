import warnings
from enum import Enum

from .BitField import pack, twos_negate
from .Decoder import ExactValue
from .Format import FloatFormat, InfScheme, NanScheme, NegativeZero, SignScheme, SubnormalMode


class RepresentationWarning(UserWarning):
    """A value had no encoding in the target format and was stored lossily."""


class RoundingMode(Enum):
    NEAREST_EVEN = "nearest-even"
    NEAREST_AWAY = "nearest-away"
    TOWARD_ZERO = "toward-zero"
    TOWARD_POSITIVE = "toward-positive"
    TOWARD_NEGATIVE = "toward-negative"
    TO_ODD = "to-odd"


def round_shift(significand: int, shift: int, negative: bool,
                mode: RoundingMode = RoundingMode.NEAREST_EVEN) -> int:
    """
    Integer significand / 2^shift, rounded according to `mode`.

    `negative` is the sign of the value the significand belongs to; the
    directed modes need it. A non-positive shift is an exact left shift.
    """
    if shift <= 0:
        return significand << -shift
    q = significand >> shift
    r = significand & ((1 << shift) - 1)
    if r == 0:
        return q
    half = 1 << (shift - 1)

    if mode == RoundingMode.NEAREST_EVEN:
        up = r > half or (r == half and (q & 1) == 1)
    elif mode == RoundingMode.NEAREST_AWAY:
        up = r >= half
    elif mode == RoundingMode.TOWARD_ZERO:
        up = False
    elif mode == RoundingMode.TOWARD_POSITIVE:
        up = not negative
    elif mode == RoundingMode.TOWARD_NEGATIVE:
        up = negative
    else:
        return q | 1
    return q + 1 if up else q


class FormatRounder:
    """
    Encoder from exact values to correctly rounded format bit patterns.

    Magnitudes are rounded with integer arithmetic only, then the sign is
    applied according to the format's sign scheme.
    """

    @staticmethod
    def pack_magnitude(exp_field: int, mant_field: int, fmt: FloatFormat) -> int:
        lay = fmt.layout
        return pack(mant_field, lay.mant_offset, pack(exp_field, lay.exp_offset))

    @staticmethod
    def negate_bits(bits: int, fmt: FloatFormat) -> int:
        """
        Arithmetic negation of a bit pattern under the format's sign scheme.

        Sign-magnitude flips the sign bit, two's complement negates the whole
        word, one's complement flips the sign bit and inverts the exponent and
        mantissa fields.
        """
        lay = fmt.layout
        scheme = fmt.encoding.sign_scheme
        if scheme == SignScheme.TWOS_COMPLEMENT:
            return twos_negate(bits, lay.total_bits)
        if scheme == SignScheme.ONES_COMPLEMENT:
            return bits ^ (lay.sign_mask | FormatRounder.pack_magnitude(fmt.exp_max, fmt.mant_mask, fmt))
        return bits ^ lay.sign_mask

    @staticmethod
    def apply_sign(magnitude_bits: int, negative: bool, fmt: FloatFormat) -> int:
        """
        Give a non-negative magnitude pattern the requested sign.

        Args:
            magnitude_bits (int): Pattern with the sign bit clear
            negative (bool): Whether the result is negative
            fmt (FloatFormat): Target format

        Returns:
            int: The signed bit pattern; a negative zero collapses to +0 when the
                 format has no negative zero, and a negative value keeps its magnitude
                 (with a RepresentationWarning) when the format has no sign bit
        """
        if not negative:
            return magnitude_bits
        if magnitude_bits == 0 and fmt.encoding.negative_zero != NegativeZero.EXISTS:
            return 0
        if fmt.layout.sign_bits == 0:
            warnings.warn(f"{fmt.name} has no sign bit; negative value stored as its magnitude",
                          RepresentationWarning)
            return magnitude_bits
        return FormatRounder.negate_bits(magnitude_bits, fmt)

    @staticmethod
    def canonical_nan(fmt: FloatFormat) -> int:
        """Canonical (quiet, positive) NaN pattern of the format."""
        lay, enc = fmt.layout, fmt.encoding
        if enc.nan_scheme == NanScheme.RESERVED_EXPONENT:
            if enc.has_implicit_bit:
                mant = 1 << (lay.mant_bits - 1)
            else:
                mant = fmt.j_bit | (1 << (lay.mant_bits - 2))
            return FormatRounder.pack_magnitude(fmt.exp_max, mant, fmt)
        if enc.nan_scheme == NanScheme.TRAP_VALUE:
            return 1 << (lay.total_bits - 1)
        if enc.nan_scheme == NanScheme.NEGATIVE_ZERO_PATTERN:
            return lay.sign_mask
        warnings.warn(f"{fmt.name} has no NaN encoding; NaN stored as zero", RepresentationWarning)
        return 0

    @staticmethod
    def canonical_inf(fmt: FloatFormat, negative: bool = False) -> int:
        """Canonical signed infinity pattern of the format."""
        lay, enc = fmt.layout, fmt.encoding
        if enc.inf_scheme == InfScheme.RESERVED_EXPONENT:
            magnitude = FormatRounder.pack_magnitude(fmt.exp_max, fmt.j_bit, fmt)
            return FormatRounder.apply_sign(magnitude, negative, fmt)
        if enc.inf_scheme == InfScheme.INTEGER_EXTREMES:
            pos_inf = (1 << (lay.total_bits - 1)) - 1
            return twos_negate(pos_inf, lay.total_bits) if negative else pos_inf
        sign = "-" if negative else "+"
        warnings.warn(f"{fmt.name} has no infinity encoding; {sign}Inf stored as zero", RepresentationWarning)
        return 0

    @staticmethod
    def _integer_extreme(fmt: FloatFormat) -> int:
        if fmt.encoding.inf_scheme != InfScheme.INTEGER_EXTREMES:
            return -1
        return (1 << (fmt.total_bits - 1)) - 1

    @staticmethod
    def max_finite(fmt: FloatFormat, negative: bool = False) -> int:
        """Largest finite magnitude of the format, with the requested sign."""
        magnitude = FormatRounder.pack_magnitude(fmt.max_biased_exp, fmt.mant_mask, fmt)
        if magnitude == FormatRounder._integer_extreme(fmt):
            # The all-ones magnitude is +Inf; step one ULP down
            magnitude = FormatRounder.pack_magnitude(fmt.max_biased_exp, fmt.mant_mask - 1, fmt)
        return FormatRounder.apply_sign(magnitude, negative, fmt)

    @staticmethod
    def signed_zero(fmt: FloatFormat, negative: bool = False) -> int:
        bits = FormatRounder.apply_sign(0, negative, fmt)
        if fmt.encoding.nan_scheme == NanScheme.TRAP_VALUE and bits == 1 << (fmt.total_bits - 1):
            # -0 would collide with the trap NaN
            return 0
        return bits

    @staticmethod
    def _overflow(fmt: FloatFormat, negative: bool, mode: RoundingMode) -> int:
        if mode in (RoundingMode.NEAREST_EVEN, RoundingMode.NEAREST_AWAY):
            to_inf = True
        elif mode == RoundingMode.TOWARD_POSITIVE:
            to_inf = not negative
        elif mode == RoundingMode.TOWARD_NEGATIVE:
            to_inf = negative
        else:
            to_inf = False
        if to_inf:
            return FormatRounder.canonical_inf(fmt, negative)
        return FormatRounder.max_finite(fmt, negative)

    @staticmethod
    def round_to_format(value: ExactValue, fmt: FloatFormat,
                        mode: RoundingMode = RoundingMode.NEAREST_EVEN,
                        flush_subnormals: bool = False) -> int:
        """
        Round an exact value to the nearest bit pattern of the target format.

        Two regimes, chosen by the binade E of the value's leading bit:
            - normal (E >= 1 - bias): keep rounding_mant_bits fraction bits below
              the leading bit; a carry out of the significand moves to E + 1;
              E + bias above max_biased_exp overflows.
            - subnormal (E < 1 - bias): fixed scale 2^(1 - bias - rounding_mant_bits);
              rounding may climb to the smallest normal or fall to signed zero.

        Specials map to the canonical NaN / infinity / zero patterns. Formats
        without the needed special get all-zero bits and a RepresentationWarning.

        Args:
            value (ExactValue): Value to encode
            fmt (FloatFormat): Target format
            mode (RoundingMode): Rounding direction, ties-to-even by default
            flush_subnormals (bool): Replace subnormal results with signed zero
                when the format flushes outputs (FLUSH_OUTPUT / FLUSH_BOTH).
                Formats with subnormal mode NONE always flush.

        Returns:
            int: Bit pattern of the rounded value
        """
        if value.is_nan:
            return FormatRounder.canonical_nan(fmt)
        if value.is_inf:
            return FormatRounder.canonical_inf(fmt, value.negative)
        if value.is_zero:
            return FormatRounder.signed_zero(fmt, value.negative)

        negative = value.negative
        sig, exponent = value.significand, value.exponent
        rmb = fmt.rounding_mant_bits
        bias = fmt.bias
        E = value.binade()

        if E >= 1 - bias:
            n = round_shift(sig, (E - rmb) - exponent, negative, mode)
            if n >> (rmb + 1):
                # Carried into the next binade; n is exactly 2^(rmb+1)
                E += 1
                n >>= 1
            biased = E + bias
            mant = n if not fmt.encoding.has_implicit_bit else n - (1 << rmb)
        else:
            n = round_shift(sig, -(exponent + bias - 1 + rmb), negative, mode)
            if n == 0:
                return FormatRounder.signed_zero(fmt, negative)
            if n >> rmb:
                biased, mant = 1, fmt.j_bit
            else:
                flush = (fmt.encoding.subnormal_mode == SubnormalMode.NONE
                         or (flush_subnormals and fmt.encoding.flushes_outputs))
                if flush:
                    return FormatRounder.signed_zero(fmt, negative)
                biased, mant = 0, n

        if biased > fmt.max_biased_exp:
            return FormatRounder._overflow(fmt, negative, mode)
        magnitude = FormatRounder.pack_magnitude(biased, mant, fmt)
        if magnitude == FormatRounder._integer_extreme(fmt):
            return FormatRounder._overflow(fmt, negative, mode)
        return FormatRounder.apply_sign(magnitude, negative, fmt)
