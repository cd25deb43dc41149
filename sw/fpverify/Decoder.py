import math
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction

from .BitField import extract, twos_negate
from .Format import FloatFormat, InfScheme, NanScheme, NegativeZero, SignScheme

# Bits of significand kept when an exact result has to be cut to a dyadic
# value (division, square root). Round-to-odd at this width leaves every
# target format up to 128 bits free of double rounding.
WORKING_PRECISION = 256


class ValueKind(Enum):
    ZERO = "zero"
    INF = "infinity"
    NAN = "NaN"
    FINITE = "finite"


def _floor_log2(num: int, den: int) -> int:
    """floor(log2(num / den)) for positive integers."""
    e = num.bit_length() - den.bit_length()
    if e >= 0:
        if num < (den << e):
            e -= 1
    elif (num << -e) < den:
        e -= 1
    return e


@dataclass(frozen=True)
class ExactValue:
    """
    An exact value: (-1)^negative * significand * 2^exponent, or a special.

    Finite values are stored with an odd significand, so two ExactValues
    compare equal exactly when they denote the same number (or are both NaN).
    """
    kind: ValueKind
    negative: bool = False
    significand: int = 0
    exponent: int = 0

    def __post_init__(self):
        if self.kind == ValueKind.FINITE:
            if self.significand < 0:
                raise ValueError("significand must be non-negative")
            if self.significand == 0:
                object.__setattr__(self, "kind", ValueKind.ZERO)
        if self.kind != ValueKind.FINITE:
            object.__setattr__(self, "significand", 0)
            object.__setattr__(self, "exponent", 0)
            if self.kind == ValueKind.NAN:
                object.__setattr__(self, "negative", False)
            return
        # Strip trailing zero bits
        tz = (self.significand & -self.significand).bit_length() - 1
        if tz:
            object.__setattr__(self, "significand", self.significand >> tz)
            object.__setattr__(self, "exponent", self.exponent + tz)

    @classmethod
    def zero(cls, negative: bool = False) -> "ExactValue":
        return cls(ValueKind.ZERO, negative)

    @classmethod
    def inf(cls, negative: bool = False) -> "ExactValue":
        return cls(ValueKind.INF, negative)

    @classmethod
    def nan(cls) -> "ExactValue":
        return cls(ValueKind.NAN)

    @classmethod
    def finite(cls, negative: bool, significand: int, exponent: int) -> "ExactValue":
        return cls(ValueKind.FINITE, negative, significand, exponent)

    @classmethod
    def from_fraction(cls, q: Fraction, negative_zero: bool = False,
                      precision: int = WORKING_PRECISION) -> "ExactValue":
        """
        Convert a rational to an ExactValue.

        Dyadic values that fit in `precision` bits convert exactly; anything
        else is rounded to odd at `precision` bits, so the sticky information
        survives for a later correctly-rounded narrowing.

        Args:
            q (Fraction): The value
            negative_zero (bool): Sign to give the result when q == 0
            precision (int): Significand bits kept for inexact values

        Returns:
            ExactValue: The converted value
        """
        if q == 0:
            return cls.zero(negative_zero)
        negative = q < 0
        num, den = abs(q.numerator), q.denominator
        e = _floor_log2(num, den)
        shift = precision - 1 - e
        if shift >= 0:
            sig, rem = divmod(num << shift, den)
        else:
            sig, rem = divmod(num, den << -shift)
        if rem:
            sig |= 1
        return cls.finite(negative, sig, -shift)

    @property
    def is_nan(self) -> bool:
        return self.kind == ValueKind.NAN

    @property
    def is_inf(self) -> bool:
        return self.kind == ValueKind.INF

    @property
    def is_zero(self) -> bool:
        return self.kind == ValueKind.ZERO

    @property
    def is_finite(self) -> bool:
        return self.kind == ValueKind.FINITE

    def binade(self) -> int:
        """Exponent E of the leading bit: |value| in [2^E, 2^(E+1))."""
        if self.kind != ValueKind.FINITE:
            raise ValueError(f"binade of a {self.kind.value} value")
        return self.exponent + self.significand.bit_length() - 1

    def to_fraction(self) -> Fraction:
        if self.kind == ValueKind.ZERO:
            return Fraction(0)
        if self.kind != ValueKind.FINITE:
            raise ValueError(f"{self.kind.value} has no rational value")
        if self.exponent >= 0:
            q = Fraction(self.significand << self.exponent)
        else:
            q = Fraction(self.significand, 1 << -self.exponent)
        return -q if self.negative else q

    def to_float(self) -> float:
        """Nearest Python float, for display only."""
        if self.kind == ValueKind.NAN:
            return math.nan
        if self.kind == ValueKind.INF:
            return -math.inf if self.negative else math.inf
        if self.kind == ValueKind.ZERO:
            return -0.0 if self.negative else 0.0
        try:
            return float(self.to_fraction())
        except OverflowError:
            return -math.inf if self.negative else math.inf

    def __neg__(self) -> "ExactValue":
        if self.kind == ValueKind.NAN:
            return self
        return ExactValue(self.kind, not self.negative, self.significand, self.exponent)

    def abs(self) -> "ExactValue":
        if self.kind == ValueKind.NAN:
            return self
        return ExactValue(self.kind, False, self.significand, self.exponent)

    def __str__(self) -> str:
        if self.kind == ValueKind.NAN:
            return "NaN"
        sign = "-" if self.negative else "+"
        if self.kind == ValueKind.INF:
            return f"{sign}Inf"
        if self.kind == ValueKind.ZERO:
            return f"{sign}0"
        return f"{sign}{self.significand:#x}p{self.exponent}"


class ExactDecoder:
    """
    Decoder from format bit patterns to exact values.

    Works for any FloatFormat: IEEE 754 style, two's and one's complement,
    trap-value and negative-zero-pattern NaNs, integer-extreme infinities and
    explicit leading significand bits. Branching happens once per policy axis;
    nothing is specific to a named format.
    """

    @staticmethod
    def magnitude_fields(bits: int, fmt: FloatFormat) -> tuple:
        """
        Split a bit pattern into its sign and magnitude fields.

        Args:
            bits (int): Bit pattern, already masked to the word width
            fmt (FloatFormat): Format of the pattern

        Returns:
            tuple: (negative (bool), exponent_field (int), mantissa_field (int))
        """
        lay = fmt.layout
        negative = extract(bits, lay.sign_offset, lay.sign_bits) != 0
        scheme = fmt.encoding.sign_scheme

        if negative and scheme == SignScheme.TWOS_COMPLEMENT:
            bits = twos_negate(bits, lay.total_bits)

        exp_field = extract(bits, lay.exp_offset, lay.exp_bits)
        mant_field = extract(bits, lay.mant_offset, lay.mant_bits)

        if negative and scheme == SignScheme.ONES_COMPLEMENT:
            exp_field ^= fmt.exp_max
            mant_field ^= fmt.mant_mask

        return negative, exp_field, mant_field

    @staticmethod
    def decode(bits: int, fmt: FloatFormat) -> ExactValue:
        """
        Decode a bit pattern to its exact value.

        Special patterns are recognised in a fixed order: whole-word specials
        (trap NaN, integer-extreme infinities, negative-zero-pattern NaN),
        then reserved-exponent infinity and NaN, then zero. Everything else is
        finite, including non-canonical explicit-bit patterns (unnormals,
        pseudo-denormals), which decode through the same formula as their
        canonical counterparts.

        Args:
            bits (int): Bit pattern; bits above total_bits are ignored
            fmt (FloatFormat): Format of the pattern

        Returns:
            ExactValue: NaN, signed infinity, signed zero or a finite value
        """
        lay, enc = fmt.layout, fmt.encoding
        bits &= lay.word_mask
        top_bit = 1 << (lay.total_bits - 1)

        # Whole-word special patterns
        if enc.nan_scheme == NanScheme.TRAP_VALUE and bits == top_bit:
            return ExactValue.nan()

        if enc.inf_scheme == InfScheme.INTEGER_EXTREMES:
            pos_inf = top_bit - 1
            if bits == pos_inf:
                return ExactValue.inf(False)
            if bits == twos_negate(pos_inf, lay.total_bits):
                return ExactValue.inf(True)

        if enc.nan_scheme == NanScheme.NEGATIVE_ZERO_PATTERN:
            if (extract(bits, lay.sign_offset, lay.sign_bits) != 0
                    and extract(bits, lay.exp_offset, lay.exp_bits) == 0
                    and extract(bits, lay.mant_offset, lay.mant_bits) == 0):
                return ExactValue.nan()

        negative, exp_field, mant_field = ExactDecoder.magnitude_fields(bits, fmt)

        # Reserved-exponent specials. Infinity first: an explicit-bit infinity
        # has a non-zero mantissa field (the J bit).
        if exp_field == fmt.exp_max:
            if enc.inf_scheme == InfScheme.RESERVED_EXPONENT:
                if enc.has_implicit_bit:
                    is_inf = mant_field == 0
                else:
                    # J set (canonical) or clear (pseudo-infinity)
                    is_inf = (mant_field & (fmt.j_bit - 1)) == 0
                if is_inf:
                    return ExactValue.inf(negative)
            if enc.nan_scheme == NanScheme.RESERVED_EXPONENT and mant_field != 0:
                return ExactValue.nan()

        signed_zero = ExactValue.zero(negative and enc.negative_zero == NegativeZero.EXISTS)
        if exp_field == 0 and mant_field == 0:
            return signed_zero

        bias = fmt.bias
        if enc.has_implicit_bit:
            mb = lay.mant_bits
            if exp_field == 0:
                significand = mant_field
                exponent = 1 - bias - mb
            else:
                significand = (1 << mb) | mant_field
                exponent = exp_field - bias - mb
        else:
            # The J bit is part of the stored significand; exponent field 0
            # shares the scale of exponent field 1.
            significand = mant_field
            exponent = max(exp_field, 1) - bias - (lay.mant_bits - 1)

        if significand == 0:
            # Unnormal zero
            return signed_zero
        return ExactValue.finite(negative, significand, exponent)

    @staticmethod
    def classify(bits: int, fmt: FloatFormat) -> str:
        """
        Classification flag of a bit pattern.

        Returns:
            str: 'NaN', 'infinity', 'zero', 'denormalized', 'normalized', and
                 for explicit-bit formats also 'unnormal' or 'pseudo-denormal'
        """
        value = ExactDecoder.decode(bits, fmt)
        if value.is_nan:
            return "NaN"
        if value.is_inf:
            return "infinity"
        if value.is_zero:
            return "zero"

        _, exp_field, mant_field = ExactDecoder.magnitude_fields(bits & fmt.layout.word_mask, fmt)
        if fmt.encoding.has_implicit_bit:
            return "denormalized" if exp_field == 0 else "normalized"
        j_set = (mant_field & fmt.j_bit) != 0
        if exp_field == 0:
            return "pseudo-denormal" if j_set else "denormalized"
        return "normalized" if j_set else "unnormal"

    @staticmethod
    def is_nan(bits: int, fmt: FloatFormat) -> bool:
        return ExactDecoder.decode(bits, fmt).is_nan

    @staticmethod
    def branchless_decode(bits: int, fmt: FloatFormat) -> ExactValue:
        """
        Mathematical-definition decode with no special-value detection.

        value = (-1)^sign * significand * 2^(max(exp, 1) - bias - fraction_bits)

        Only meaningful for finite patterns; used to cross-check decode().
        """
        lay = fmt.layout
        bits &= lay.word_mask
        negative, exp_field, mant_field = ExactDecoder.magnitude_fields(bits, fmt)
        effective_exp = exp_field if exp_field != 0 else 1

        if fmt.encoding.has_implicit_bit:
            significand = mant_field if exp_field == 0 else mant_field | (1 << lay.mant_bits)
        else:
            significand = mant_field
        value = ExactValue.finite(negative, significand,
                                  effective_exp - fmt.bias - fmt.rounding_mant_bits)
        if value.is_zero and fmt.encoding.negative_zero != NegativeZero.EXISTS:
            return ExactValue.zero(False)
        return value

    @staticmethod
    def flush_input(value: ExactValue, fmt: FloatFormat) -> ExactValue:
        """Treat a subnormal input as signed zero when the format flushes inputs."""
        if not fmt.encoding.flushes_inputs or not value.is_finite:
            return value
        if value.binade() < fmt.emin:
            return ExactValue.zero(value.negative and fmt.encoding.negative_zero == NegativeZero.EXISTS)
        return value
