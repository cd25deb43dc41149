from dataclasses import dataclass, field
from enum import Enum


class FormatConfigError(ValueError):
    """Raised when a format layout or encoding policy is internally inconsistent."""


class SignScheme(Enum):
    SIGN_MAGNITUDE = "sign-magnitude"
    TWOS_COMPLEMENT = "twos-complement"
    ONES_COMPLEMENT = "ones-complement"


class NegativeZero(Enum):
    EXISTS = "exists"
    DOES_NOT_EXIST = "does-not-exist"


class NanScheme(Enum):
    RESERVED_EXPONENT = "reserved-exponent"          # all-ones exponent, non-zero mantissa
    TRAP_VALUE = "trap-value"                        # 0x80...0, the most negative integer
    NEGATIVE_ZERO_PATTERN = "negative-zero-pattern"  # sign=1, exp=0, mant=0
    NONE = "none"


class InfScheme(Enum):
    RESERVED_EXPONENT = "reserved-exponent"  # all-ones exponent, zero fraction
    INTEGER_EXTREMES = "integer-extremes"    # max positive integer and its negation
    NONE = "none"


class SubnormalMode(Enum):
    FULL = "full"
    FLUSH_INPUT = "flush-input"
    FLUSH_OUTPUT = "flush-output"
    FLUSH_BOTH = "flush-both"
    NONE = "none"


# Sentinel for "compute bias from exponent width"
AUTO_BIAS = None


@dataclass(frozen=True)
class FormatDescriptor:
    """
    Bit geometry of a floating-point storage word.

    Says where the sign, exponent and mantissa fields live; says nothing about
    what they mean (that is EncodingPolicy's job).
    """
    sign_bits: int
    sign_offset: int
    exp_bits: int
    exp_offset: int
    mant_bits: int
    mant_offset: int
    total_bits: int

    def __post_init__(self):
        if self.sign_bits not in (0, 1):
            raise FormatConfigError("sign field is 0 or 1 bit")
        if self.exp_bits < 1:
            raise FormatConfigError("exponent field must be at least 1 bit")
        if self.mant_bits < 1:
            raise FormatConfigError("mantissa field must be at least 1 bit")
        if min(self.sign_offset, self.exp_offset, self.mant_offset) < 0:
            raise FormatConfigError("field offsets must be non-negative")
        if self.total_bits < self.sign_bits + self.exp_bits + self.mant_bits:
            raise FormatConfigError("total bits must accommodate all fields")
        if self.sign_bits and self.sign_offset + self.sign_bits > self.total_bits:
            raise FormatConfigError("sign field must fit in storage word")
        if self.exp_offset + self.exp_bits > self.total_bits:
            raise FormatConfigError("exponent field must fit in storage word")
        if self.mant_offset + self.mant_bits > self.total_bits:
            raise FormatConfigError("mantissa field must fit in storage word")

        spans = [(self.exp_offset, self.exp_bits), (self.mant_offset, self.mant_bits)]
        if self.sign_bits:
            spans.append((self.sign_offset, self.sign_bits))
        spans.sort()
        for (lo_a, w_a), (lo_b, _) in zip(spans, spans[1:]):
            if lo_a + w_a > lo_b:
                raise FormatConfigError("fields must not overlap")

    @property
    def padding_bits(self) -> int:
        return self.total_bits - self.sign_bits - self.exp_bits - self.mant_bits

    @property
    def word_mask(self) -> int:
        return (1 << self.total_bits) - 1

    @property
    def sign_mask(self) -> int:
        return (1 << self.sign_offset) if self.sign_bits else 0

    @property
    def hex_width(self) -> int:
        return (self.total_bits + 3) // 4

    def is_standard_layout(self) -> bool:
        """True for the IEEE [S][E][M] ordering with no padding."""
        return (self.sign_bits == 1
                and self.sign_offset == self.exp_offset + self.exp_bits
                and self.exp_offset == self.mant_offset + self.mant_bits
                and self.mant_offset == 0
                and self.total_bits == self.sign_bits + self.exp_bits + self.mant_bits)


def ieee_layout(exp_bits: int, mant_bits: int) -> FormatDescriptor:
    """Standard [S][E][M] layout, sign in the most significant bit."""
    return FormatDescriptor(
        sign_bits=1,
        sign_offset=exp_bits + mant_bits,
        exp_bits=exp_bits,
        exp_offset=mant_bits,
        mant_bits=mant_bits,
        mant_offset=0,
        total_bits=1 + exp_bits + mant_bits,
    )


@dataclass(frozen=True)
class EncodingPolicy:
    """
    Meaning of the fields described by a FormatDescriptor.

    The cross-field rules below are checked once, at construction; a policy
    that violates them never reaches the codec.
    """
    sign_scheme: SignScheme = SignScheme.SIGN_MAGNITUDE
    has_implicit_bit: bool = True
    exponent_bias: int | None = AUTO_BIAS
    negative_zero: NegativeZero = NegativeZero.EXISTS
    nan_scheme: NanScheme = NanScheme.RESERVED_EXPONENT
    inf_scheme: InfScheme = InfScheme.RESERVED_EXPONENT
    subnormal_mode: SubnormalMode = SubnormalMode.FULL

    def __post_init__(self):
        if self.sign_scheme == SignScheme.TWOS_COMPLEMENT:
            if self.negative_zero != NegativeZero.DOES_NOT_EXIST:
                raise FormatConfigError("two's complement has no negative zero")
            if self.nan_scheme not in (NanScheme.TRAP_VALUE, NanScheme.NONE):
                raise FormatConfigError("two's complement NaN must be a trap value or absent")
            if self.inf_scheme not in (InfScheme.INTEGER_EXTREMES, InfScheme.NONE):
                raise FormatConfigError("two's complement infinity must be integer extremes or absent")
        if self.sign_scheme == SignScheme.ONES_COMPLEMENT and self.negative_zero != NegativeZero.EXISTS:
            raise FormatConfigError("one's complement always has a negative zero")
        if self.nan_scheme == NanScheme.NEGATIVE_ZERO_PATTERN and self.negative_zero != NegativeZero.DOES_NOT_EXIST:
            raise FormatConfigError("negative-zero-pattern NaN requires that negative zero does not exist")
        if self.inf_scheme == InfScheme.INTEGER_EXTREMES and self.sign_scheme != SignScheme.TWOS_COMPLEMENT:
            raise FormatConfigError("integer-extremes infinity requires two's complement")
        if self.inf_scheme == InfScheme.RESERVED_EXPONENT and self.nan_scheme != NanScheme.RESERVED_EXPONENT:
            raise FormatConfigError("reserved-exponent infinity requires reserved-exponent NaN")

    @property
    def flushes_inputs(self) -> bool:
        return self.subnormal_mode in (SubnormalMode.FLUSH_INPUT, SubnormalMode.FLUSH_BOTH)

    @property
    def flushes_outputs(self) -> bool:
        return self.subnormal_mode in (SubnormalMode.FLUSH_OUTPUT, SubnormalMode.FLUSH_BOTH)


@dataclass(frozen=True)
class FloatFormat:
    """
    A named (layout, encoding) pair plus the constants derived from it.

    Derived constants are resolved once here so decode/round never recompute
    them; instances are immutable and safe to share.
    """
    name: str
    layout: FormatDescriptor
    encoding: EncodingPolicy = field(default_factory=EncodingPolicy)

    def __post_init__(self):
        enc, lay = self.encoding, self.layout
        if not enc.has_implicit_bit and lay.mant_bits < 2:
            raise FormatConfigError("explicit leading bit needs at least 2 mantissa bits")
        if enc.sign_scheme != SignScheme.SIGN_MAGNITUDE and lay.sign_bits == 0:
            raise FormatConfigError(f"{enc.sign_scheme.value} encoding needs a sign bit")
        if enc.negative_zero == NegativeZero.EXISTS and lay.sign_bits == 0:
            raise FormatConfigError("negative zero needs a sign bit")
        if enc.nan_scheme == NanScheme.NEGATIVE_ZERO_PATTERN and lay.sign_bits == 0:
            raise FormatConfigError("negative-zero-pattern NaN needs a sign bit")
        if enc.sign_scheme == SignScheme.TWOS_COMPLEMENT and lay.sign_offset != lay.total_bits - 1:
            raise FormatConfigError("two's complement sign bit must be the top bit of the word")
        if self.bias < 0:
            raise FormatConfigError("exponent bias must be non-negative")

    @property
    def bias(self) -> int:
        if self.encoding.exponent_bias is not AUTO_BIAS:
            return int(self.encoding.exponent_bias)
        if self.encoding.sign_scheme == SignScheme.TWOS_COMPLEMENT:
            return 1 << (self.layout.exp_bits - 1)
        return (1 << (self.layout.exp_bits - 1)) - 1

    @property
    def exp_max(self) -> int:
        return (1 << self.layout.exp_bits) - 1

    @property
    def mant_mask(self) -> int:
        return (1 << self.layout.mant_bits) - 1

    @property
    def reserves_max_exponent(self) -> bool:
        return (self.encoding.nan_scheme == NanScheme.RESERVED_EXPONENT
                or self.encoding.inf_scheme == InfScheme.RESERVED_EXPONENT)

    @property
    def max_biased_exp(self) -> int:
        return self.exp_max - 1 if self.reserves_max_exponent else self.exp_max

    @property
    def rounding_mant_bits(self) -> int:
        """Fraction bits below the leading significand bit."""
        if self.encoding.has_implicit_bit:
            return self.layout.mant_bits
        return self.layout.mant_bits - 1

    @property
    def j_bit(self) -> int:
        """Mask of the explicit leading bit inside the mantissa field (0 if implicit)."""
        if self.encoding.has_implicit_bit:
            return 0
        return 1 << (self.layout.mant_bits - 1)

    @property
    def emin(self) -> int:
        return 1 - self.bias

    @property
    def total_bits(self) -> int:
        return self.layout.total_bits

    @property
    def hex_width(self) -> int:
        return self.layout.hex_width

    def __str__(self) -> str:
        return self.name


# === Encoding presets ===

IEEE754 = EncodingPolicy()

RBJ_TWOS_COMPLEMENT = EncodingPolicy(
    sign_scheme=SignScheme.TWOS_COMPLEMENT,
    negative_zero=NegativeZero.DOES_NOT_EXIST,
    nan_scheme=NanScheme.TRAP_VALUE,
    inf_scheme=InfScheme.INTEGER_EXTREMES,
)

PDP10 = EncodingPolicy(
    sign_scheme=SignScheme.TWOS_COMPLEMENT,
    has_implicit_bit=False,
    exponent_bias=128,
    negative_zero=NegativeZero.DOES_NOT_EXIST,
    nan_scheme=NanScheme.NONE,
    inf_scheme=InfScheme.NONE,
    subnormal_mode=SubnormalMode.NONE,
)

CDC6600 = EncodingPolicy(
    sign_scheme=SignScheme.ONES_COMPLEMENT,
    has_implicit_bit=False,
    exponent_bias=1024,
    negative_zero=NegativeZero.EXISTS,
    nan_scheme=NanScheme.NONE,
    inf_scheme=InfScheme.NONE,
    subnormal_mode=SubnormalMode.NONE,
)

E4M3FNUZ = EncodingPolicy(
    exponent_bias=8,  # non-standard
    negative_zero=NegativeZero.DOES_NOT_EXIST,
    nan_scheme=NanScheme.NEGATIVE_ZERO_PATTERN,
    inf_scheme=InfScheme.NONE,
)

RELAXED = EncodingPolicy(
    negative_zero=NegativeZero.DOES_NOT_EXIST,
    nan_scheme=NanScheme.NONE,
    inf_scheme=InfScheme.NONE,
    subnormal_mode=SubnormalMode.FLUSH_BOTH,
)

GPU_STYLE = EncodingPolicy(subnormal_mode=SubnormalMode.FLUSH_BOTH)

EXPLICIT_IEEE = EncodingPolicy(has_implicit_bit=False)


# Format mapping: format_name -> FloatFormat
FORMATS = {
    "binary16": FloatFormat("binary16", ieee_layout(5, 10)),
    "binary32": FloatFormat("binary32", ieee_layout(8, 23)),
    "binary64": FloatFormat("binary64", ieee_layout(11, 52)),
    "binary128": FloatFormat("binary128", ieee_layout(15, 112)),
    "bfloat16": FloatFormat("bfloat16", ieee_layout(8, 7)),
    "fp8_e5m2": FloatFormat("fp8_e5m2", ieee_layout(5, 2)),
    "fp8_e4m3": FloatFormat("fp8_e4m3", ieee_layout(4, 3)),
    "fp8_e4m3fnuz": FloatFormat("fp8_e4m3fnuz", ieee_layout(4, 3), E4M3FNUZ),
    # x87 extended: 15-bit exponent, 64-bit significand with explicit J bit
    "extfloat80": FloatFormat("extfloat80", ieee_layout(15, 64), EXPLICIT_IEEE),
    "rbj32": FloatFormat("rbj32", ieee_layout(8, 23), RBJ_TWOS_COMPLEMENT),
    "rbj16": FloatFormat("rbj16", ieee_layout(5, 10), RBJ_TWOS_COMPLEMENT),
    "pdp10": FloatFormat("pdp10", ieee_layout(8, 27), PDP10),
    "cdc6600": FloatFormat("cdc6600", ieee_layout(11, 48), CDC6600),
    "relaxed16": FloatFormat("relaxed16", ieee_layout(5, 10), RELAXED),
    "gpu32": FloatFormat("gpu32", ieee_layout(8, 23), GPU_STYLE),
}


def get_format(name: str) -> FloatFormat:
    """
    Look up a registered format by name.

    Args:
        name (str): Format name, e.g. 'binary32' or 'extfloat80'

    Returns:
        FloatFormat: The registered format
    """
    if name not in FORMATS:
        raise ValueError(f'Unsupported format "{name}". Choose from {list(FORMATS.keys())}')
    return FORMATS[name]
