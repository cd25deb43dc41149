import argparse
import itertools
import sys

from fpverify.Backends import ARITHMETIC_OPS, BACKENDS, Op, make_backend
from fpverify.EdgeCases import generate
from fpverify.Format import FORMATS, get_format
from fpverify.Harness import verify_agreement
from fpverify.pair_gen import RandomPairs, TargetedPairs, combined

DEFAULT_FORMATS = ("binary16", "binary32", "binary64")


def build_backends(fmt, kinds):
    """Backends that accept `fmt`; the rest are reported and left out."""
    backends = []
    for kind in kinds:
        try:
            backends.append(make_backend(kind, fmt))
        except ValueError as e:
            print(f"SKIP {fmt.name} {kind}: {e}")
    return backends


def verify_format(fmt, kinds, ops, count: int, seed: int) -> bool:
    """
    Run every backend pair on `fmt` over edge cases plus `count` random inputs.

    Returns:
        bool: True when no run reported a failure
    """
    edge_cases = generate(fmt)

    def iterate(arity):
        return combined(TargetedPairs(edge_cases, arity),
                        RandomPairs(fmt.total_bits, count, seed, arity))

    ok = True
    backends = build_backends(fmt, kinds)
    for backend_a, backend_b in itertools.combinations(backends, 2):
        report = verify_agreement(fmt, backend_a, backend_b, ops, iterate)
        ok = ok and report.ok
    return ok


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Differential verification of floating-point backends")
    parser.add_argument("--formats", nargs="+", default=list(DEFAULT_FORMATS),
                        choices=list(FORMATS.keys()), help="formats to verify")
    parser.add_argument("--ops", nargs="+", default=[op.value for op in ARITHMETIC_OPS],
                        choices=[op.value for op in Op], help="operations to run")
    parser.add_argument("--count", type=int, default=10000, help="random operand tuples per operation")
    parser.add_argument("--seed", type=int, default=42, help="random seed")
    parser.add_argument("--backends", nargs="+", default=list(BACKENDS),
                        choices=list(BACKENDS), help="backends to compare pairwise")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    ops = [Op(name) for name in args.ops]

    ok = True
    for name in args.formats:
        fmt = get_format(name)
        print(f"\n=== {fmt.name} ===")
        ok = verify_format(fmt, args.backends, ops, args.count, args.seed) and ok

    print("\nALL PASSED" if ok else "\nFAILURES DETECTED")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
