"""
Computation backends behind a single dispatch protocol.

Each backend exposes `name`, `supports(op)` and `dispatch(op, *operands)`,
returning a TestOutcome. None of them inherits from a shared base; the
harness only ever sees the bound `dispatch` callables.
"""
import math
from enum import Enum
from typing import NamedTuple

import numpy as np

from . import ExactMath
from .Adder import Adder
from .BitField import extract
from .Decoder import ExactDecoder
from .Format import FloatFormat, IEEE754, NanScheme, NegativeZero
from .Multiplier import Multiplier
from .Rounder import FormatRounder, RoundingMode
from .SoftCore import SoftCore


class Op(Enum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    REM = "rem"
    EQ = "eq"
    LT = "lt"
    LE = "le"
    SQRT = "sqrt"
    NEG = "neg"
    ABS = "abs"
    MUL_ADD = "mulAdd"

    @property
    def arity(self) -> int:
        if self in (Op.SQRT, Op.NEG, Op.ABS):
            return 1
        if self == Op.MUL_ADD:
            return 3
        return 2

    @property
    def is_comparison(self) -> bool:
        return self in (Op.EQ, Op.LT, Op.LE)


ARITHMETIC_OPS = (Op.ADD, Op.SUB, Op.MUL, Op.DIV, Op.REM)


class TestOutcome(NamedTuple):
    bits: int
    status: int = 0  # flag byte, 0 when the backend reports no flags

    # Not a pytest test class
    __test__ = False


# Returned for operations a backend does not implement. Never a real result:
# callers check supports(op) and exclude the combination.
UNSUPPORTED = TestOutcome(0, 0)


def sign_op(op: Op, bits: int, fmt: FloatFormat) -> int:
    """
    Neg / Abs as pure sign manipulation under the format's sign scheme.

    Whole-word NaN patterns (trap value, negative-zero pattern) and zeros of
    formats without a negative zero are left as they are.
    """
    bits &= fmt.layout.word_mask
    enc = fmt.encoding
    value = ExactDecoder.decode(bits, fmt)
    if value.is_nan and enc.nan_scheme in (NanScheme.TRAP_VALUE, NanScheme.NEGATIVE_ZERO_PATTERN):
        return bits
    if value.is_zero and enc.negative_zero != NegativeZero.EXISTS:
        return FormatRounder.signed_zero(fmt, False)

    lay = fmt.layout
    sign_set = extract(bits, lay.sign_offset, lay.sign_bits) != 0
    if op == Op.ABS and not sign_set:
        return bits
    return FormatRounder.negate_bits(bits, fmt)


class ExactMathBackend:
    """
    Oracle backend: decode -> exact arithmetic -> FormatRounder.

    Supports every operation on every format. Subnormal inputs are flushed
    when the format flushes inputs; results are flushed when it flushes outputs.
    """

    def __init__(self, fmt: FloatFormat, mode: RoundingMode = RoundingMode.NEAREST_EVEN):
        self.fmt = fmt
        self.mode = mode
        self.name = "exact"

    def supports(self, op: Op) -> bool:
        return True

    def _operand(self, bits: int):
        return ExactDecoder.flush_input(ExactDecoder.decode(bits, self.fmt), self.fmt)

    def _encode(self, value) -> int:
        return FormatRounder.round_to_format(value, self.fmt, self.mode, flush_subnormals=True)

    def dispatch(self, op: Op, *operands: int) -> TestOutcome:
        if op in (Op.NEG, Op.ABS):
            return TestOutcome(sign_op(op, operands[0], self.fmt))

        args = [self._operand(b) for b in operands]
        mode = self.mode
        if op == Op.ADD:
            result = ExactMath.add(args[0], args[1], mode)
        elif op == Op.SUB:
            result = ExactMath.sub(args[0], args[1], mode)
        elif op == Op.MUL:
            result = ExactMath.mul(args[0], args[1])
        elif op == Op.DIV:
            result = ExactMath.div(args[0], args[1])
        elif op == Op.REM:
            result = ExactMath.rem(args[0], args[1])
        elif op == Op.SQRT:
            result = ExactMath.sqrt(args[0])
        elif op == Op.MUL_ADD:
            result = ExactMath.mul_add(args[0], args[1], args[2], mode)
        elif op == Op.EQ:
            return TestOutcome(int(ExactMath.eq(args[0], args[1])))
        elif op == Op.LT:
            return TestOutcome(int(ExactMath.lt(args[0], args[1])))
        elif op == Op.LE:
            return TestOutcome(int(ExactMath.le(args[0], args[1])))
        else:
            return UNSUPPORTED
        return TestOutcome(self._encode(result))


class SoftwareEmulationBackend:
    """
    Integer-only IEEE 754 emulator (SoftCore + Adder + Multiplier).

    Raises ValueError at construction for formats outside the IEEE 754 binary
    interchange family. Fused multiply-add is not implemented.
    """

    def __init__(self, fmt: FloatFormat):
        self.fmt = fmt
        self.core = SoftCore(fmt)
        self.adder = Adder(format=fmt)
        self.multiplier = Multiplier(format=fmt)
        self.name = "softfloat"

    def supports(self, op: Op) -> bool:
        return op != Op.MUL_ADD

    def dispatch(self, op: Op, *operands: int) -> TestOutcome:
        core = self.core
        ops = [b & self.fmt.layout.word_mask for b in operands]
        if op == Op.ADD:
            return TestOutcome(self.adder.fp_bin_adder(ops[0], ops[1]))
        if op == Op.SUB:
            return TestOutcome(self.adder.fp_bin_subtractor(ops[0], ops[1]))
        if op == Op.MUL:
            return TestOutcome(self.multiplier.multiply(ops[0], ops[1]))
        if op == Op.DIV:
            return TestOutcome(self.multiplier.divide(ops[0], ops[1]))
        if op == Op.REM:
            return TestOutcome(core.rem(ops[0], ops[1]))
        if op == Op.SQRT:
            return TestOutcome(core.sqrt(ops[0]))
        if op == Op.NEG:
            return TestOutcome(core.neg(ops[0]))
        if op == Op.ABS:
            return TestOutcome(core.abs(ops[0]))
        if op == Op.EQ:
            return TestOutcome(int(core.eq(ops[0], ops[1])))
        if op == Op.LT:
            return TestOutcome(int(core.lt(ops[0], ops[1])))
        if op == Op.LE:
            return TestOutcome(int(core.le(ops[0], ops[1])))
        return UNSUPPORTED


# (exp_bits, mant_bits) -> (float dtype, same-width unsigned dtype)
NATIVE_TYPES = {
    (5, 10): (np.float16, np.uint16),
    (8, 23): (np.float32, np.uint32),
    (11, 52): (np.float64, np.uint64),
}


class NativeHardwareBackend:
    """
    Host floating-point unit through numpy scalars.

    binary16, binary32 and binary64 only. Remainder goes through
    math.remainder (exact, so the narrowing back is exact too); fused
    multiply-add is available for binary64 where math.fma exists.
    """

    def __init__(self, fmt: FloatFormat):
        lay = fmt.layout
        key = (lay.exp_bits, lay.mant_bits)
        if not (lay.is_standard_layout() and fmt.encoding == IEEE754 and key in NATIVE_TYPES):
            raise ValueError(f'Format "{fmt.name}" has no native numpy type. '
                             f'Choose from binary16, binary32, binary64')
        self.fmt = fmt
        self.ftype, self.utype = NATIVE_TYPES[key]
        self.name = "native"

    def supports(self, op: Op) -> bool:
        if op == Op.MUL_ADD:
            return self.ftype is np.float64 and hasattr(math, "fma")
        return True

    def _to_float(self, bits: int):
        return self.utype(bits & self.fmt.layout.word_mask).view(self.ftype)

    def _to_bits(self, value) -> int:
        return int(self.ftype(value).view(self.utype))

    @staticmethod
    def _remainder(x: float, y: float) -> float:
        try:
            return math.remainder(x, y)
        except ValueError:
            # Invalid operation: x infinite or y zero
            return math.nan

    @staticmethod
    def _fma(x: float, y: float, z: float) -> float:
        try:
            return math.fma(x, y, z)
        except ValueError:
            return math.nan
        except OverflowError:
            return math.copysign(math.inf, x * y + z)

    def dispatch(self, op: Op, *operands: int) -> TestOutcome:
        if not self.supports(op):
            return UNSUPPORTED
        args = [self._to_float(b) for b in operands]

        with np.errstate(all="ignore"):
            if op == Op.ADD:
                result = args[0] + args[1]
            elif op == Op.SUB:
                result = args[0] - args[1]
            elif op == Op.MUL:
                result = args[0] * args[1]
            elif op == Op.DIV:
                result = args[0] / args[1]
            elif op == Op.REM:
                result = self._remainder(float(args[0]), float(args[1]))
            elif op == Op.SQRT:
                result = np.sqrt(args[0])
            elif op == Op.NEG:
                result = -args[0]
            elif op == Op.ABS:
                result = np.abs(args[0])
            elif op == Op.MUL_ADD:
                result = self._fma(float(args[0]), float(args[1]), float(args[2]))
            elif op == Op.EQ:
                return TestOutcome(int(bool(args[0] == args[1])))
            elif op == Op.LT:
                return TestOutcome(int(bool(args[0] < args[1])))
            elif op == Op.LE:
                return TestOutcome(int(bool(args[0] <= args[1])))
            else:
                return UNSUPPORTED
            return TestOutcome(self._to_bits(result))


BACKENDS = ("exact", "softfloat", "native")


def make_backend(kind: str, fmt: FloatFormat):
    """
    Build a backend by name.

    Args:
        kind (str): 'exact', 'softfloat' or 'native'
        fmt (FloatFormat): Format the backend computes in

    Returns:
        ExactMathBackend | SoftwareEmulationBackend | NativeHardwareBackend
    """
    if kind == "exact":
        return ExactMathBackend(fmt)
    if kind == "softfloat":
        return SoftwareEmulationBackend(fmt)
    if kind == "native":
        return NativeHardwareBackend(fmt)
    raise ValueError(f'Unsupported backend "{kind}". Choose from {list(BACKENDS)}')
