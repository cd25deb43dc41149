"""
Differential harness: run two opaque implementations on the same inputs,
compare their outcomes, report.

An implementation is any callable taking operand bit patterns and returning
a TestOutcome. The harness never looks behind it.
"""
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, TextIO, Tuple

from .Backends import Op, TestOutcome
from .Decoder import ExactDecoder
from .Format import FloatFormat

MAX_REPORTED_FAILURES = 10

Comparator = Callable[[TestOutcome, TestOutcome], bool]


class Failure(NamedTuple):
    operands: Tuple[int, ...]
    outcome_a: TestOutcome
    outcome_b: TestOutcome


@dataclass
class HarnessResult:
    total: int = 0
    passed: int = 0
    failed: int = 0
    failures: List[Failure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


# === Comparators ===

def bit_exact(a: TestOutcome, b: TestOutcome) -> bool:
    return a.bits == b.bits and a.status == b.status


def bit_exact_ignore_status(a: TestOutcome, b: TestOutcome) -> bool:
    return a.bits == b.bits


class NanAwareBitExact:
    """
    Any two NaN outcomes match regardless of payload or sign; everything else
    is bit-exact. NaN detection goes through the decoder, so trap-value and
    negative-zero-pattern NaNs are recognised too.
    """

    def __init__(self, fmt: FloatFormat):
        self.fmt = fmt

    def __call__(self, a: TestOutcome, b: TestOutcome) -> bool:
        if ExactDecoder.is_nan(a.bits, self.fmt) and ExactDecoder.is_nan(b.bits, self.fmt):
            return True
        return bit_exact(a, b)


# === Reporting ===

def _hex(value: int, width: int) -> str:
    return f"0x{value:0{width}X}"


def format_failure(name: str, failure: Failure, hex_width: int) -> str:
    """
    One report line for a mismatch.

    FAIL <name>: a=0x.. b=0x.. implA=0x.. implB=0x..
    (unary operations print only a=, ternary ones add c=)
    """
    labels = ("a", "b", "c")
    inputs = " ".join(f"{labels[i]}={_hex(v, hex_width)}" for i, v in enumerate(failure.operands))
    return (f"FAIL {name}: {inputs} "
            f"implA={_hex(failure.outcome_a.bits, hex_width)} "
            f"implB={_hex(failure.outcome_b.bits, hex_width)}")


def format_summary(name: str, result: HarnessResult) -> str:
    line = f"{name}: {result.passed}/{result.total} passed"
    if result.failed:
        line += f" ({result.failed} FAILED)"
    return line


def compare(name: str,
            iterate: Iterable[Sequence[int]],
            impl_a: Callable[..., TestOutcome],
            impl_b: Callable[..., TestOutcome],
            comparator: Comparator = bit_exact,
            *,
            hex_width: int,
            max_reported: int = MAX_REPORTED_FAILURES,
            stream: Optional[TextIO] = None) -> HarnessResult:
    """
    Run both implementations on every operand tuple and compare.

    A mismatch never stops the run. The summary line and up to `max_reported`
    failure lines are written to `stream` (stdout by default).

    Args:
        name (str): Test name used in the report
        iterate: Operand tuples, e.g. TargetedPairs / RandomPairs / combined(...)
        impl_a, impl_b: Callables (operands...) -> TestOutcome
        comparator: (TestOutcome, TestOutcome) -> bool
        hex_width (int): Hex digits per value, ceil(total_bits / 4) of the format
            (FloatFormat.hex_width); every value is zero-padded to it
        max_reported (int): Failures kept and printed
        stream: Text stream for the report

    Returns:
        HarnessResult: Counts plus the first `max_reported` failures
    """
    if not isinstance(hex_width, int) or hex_width <= 0:
        raise ValueError("hex_width must be a positive integer.")
    out = sys.stdout if stream is None else stream
    result = HarnessResult()

    for operands in iterate:
        operands = tuple(operands)
        result.total += 1
        outcome_a = impl_a(*operands)
        outcome_b = impl_b(*operands)
        if comparator(outcome_a, outcome_b):
            result.passed += 1
        else:
            result.failed += 1
            if len(result.failures) < max_reported:
                result.failures.append(Failure(operands, outcome_a, outcome_b))

    print(format_summary(name, result), file=out)
    for failure in result.failures:
        print(format_failure(name, failure, hex_width), file=out)
    return result


# === Backend agreement ===

@dataclass
class AgreementReport:
    results: Dict[Op, HarnessResult] = field(default_factory=dict)
    skipped: List[Tuple[Op, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.results.values())

    @property
    def ok(self) -> bool:
        return self.failed == 0


def verify_agreement(fmt: FloatFormat, backend_a, backend_b,
                     ops: Sequence[Op],
                     iterate: Callable[[int], Iterable[Sequence[int]]],
                     stream: Optional[TextIO] = None) -> AgreementReport:
    """
    One harness run per operation between two backends.

    Operations either backend does not support are listed in `skipped` and
    reported as SKIP lines; they never count as agreement.

    Args:
        fmt (FloatFormat): Format both backends compute in
        backend_a, backend_b: Objects with name, supports(op), dispatch(op, *operands)
        ops: Operations to run
        iterate: arity -> operand tuples for that arity
        stream: Text stream for the report

    Returns:
        AgreementReport: Per-operation results and skipped operations
    """
    out = sys.stdout if stream is None else stream
    report = AgreementReport()
    nan_aware = NanAwareBitExact(fmt)

    for op in ops:
        name = f"{fmt.name} {op.value} {backend_a.name} vs {backend_b.name}"
        unsupported = [b.name for b in (backend_a, backend_b) if not b.supports(op)]
        if unsupported:
            reason = f"not supported by {', '.join(unsupported)}"
            report.skipped.append((op, reason))
            print(f"SKIP {name}: {reason}", file=out)
            continue

        comparator = bit_exact if op.is_comparison else nan_aware
        report.results[op] = compare(
            name,
            iterate(op.arity),
            lambda *operands, _op=op: backend_a.dispatch(_op, *operands),
            lambda *operands, _op=op: backend_b.dispatch(_op, *operands),
            comparator,
            hex_width=fmt.hex_width,
            stream=out,
        )
    return report
