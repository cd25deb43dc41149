"""
Exact arithmetic on ExactValue, with IEEE 754 special-value rules.

Add, subtract, multiply, fused multiply-add and remainder are exact. Divide and
square root are cut to WORKING_PRECISION bits with round-to-odd, which the
final FormatRounder step turns into a correctly rounded result for every
format narrower than WORKING_PRECISION - 2 bits.
"""
import math
from fractions import Fraction
from typing import Optional

from .Decoder import WORKING_PRECISION, ExactValue
from .Rounder import RoundingMode


def _exact_zero_sum_sign(mode: RoundingMode) -> bool:
    """Sign of an exact zero sum of non-zero operands."""
    return mode == RoundingMode.TOWARD_NEGATIVE


def add(a: ExactValue, b: ExactValue, mode: RoundingMode = RoundingMode.NEAREST_EVEN) -> ExactValue:
    if a.is_nan or b.is_nan:
        return ExactValue.nan()
    if a.is_inf and b.is_inf:
        return a if a.negative == b.negative else ExactValue.nan()
    if a.is_inf:
        return a
    if b.is_inf:
        return b

    if a.is_zero and b.is_zero:
        if a.negative == b.negative:
            return a
        return ExactValue.zero(_exact_zero_sum_sign(mode))
    if a.is_zero:
        return b
    if b.is_zero:
        return a

    # Align to the smaller exponent; Python ints keep every bit
    e = min(a.exponent, b.exponent)
    x = a.significand << (a.exponent - e)
    y = b.significand << (b.exponent - e)
    total = (-x if a.negative else x) + (-y if b.negative else y)
    if total == 0:
        return ExactValue.zero(_exact_zero_sum_sign(mode))
    return ExactValue.finite(total < 0, abs(total), e)


def sub(a: ExactValue, b: ExactValue, mode: RoundingMode = RoundingMode.NEAREST_EVEN) -> ExactValue:
    return add(a, -b, mode)


def mul(a: ExactValue, b: ExactValue) -> ExactValue:
    if a.is_nan or b.is_nan:
        return ExactValue.nan()
    negative = a.negative != b.negative
    if a.is_inf or b.is_inf:
        if a.is_zero or b.is_zero:
            return ExactValue.nan()
        return ExactValue.inf(negative)
    if a.is_zero or b.is_zero:
        return ExactValue.zero(negative)
    return ExactValue.finite(negative, a.significand * b.significand, a.exponent + b.exponent)


def div(a: ExactValue, b: ExactValue, precision: int = WORKING_PRECISION) -> ExactValue:
    if a.is_nan or b.is_nan:
        return ExactValue.nan()
    negative = a.negative != b.negative
    if a.is_inf:
        return ExactValue.nan() if b.is_inf else ExactValue.inf(negative)
    if b.is_inf:
        return ExactValue.zero(negative)
    if b.is_zero:
        return ExactValue.nan() if a.is_zero else ExactValue.inf(negative)
    if a.is_zero:
        return ExactValue.zero(negative)

    shift = a.exponent - b.exponent
    num = a.significand << max(shift, 0)
    den = b.significand << max(-shift, 0)
    q = Fraction(num, den)
    return ExactValue.from_fraction(-q if negative else q, precision=precision)


def rem(a: ExactValue, b: ExactValue) -> ExactValue:
    """IEEE 754 remainder: a - n*b, n = a/b rounded to nearest, ties to even."""
    if a.is_nan or b.is_nan:
        return ExactValue.nan()
    if a.is_inf or b.is_zero:
        return ExactValue.nan()
    if b.is_inf or a.is_zero:
        return a

    x, y = a.to_fraction(), b.to_fraction()
    n = round(x / y)
    r = x - n * y
    return ExactValue.from_fraction(r, negative_zero=a.negative)


def sqrt(a: ExactValue, precision: int = WORKING_PRECISION) -> ExactValue:
    if a.is_nan:
        return a
    if a.is_zero:
        return a
    if a.negative:
        return ExactValue.nan()
    if a.is_inf:
        return a

    sig, e = a.significand, a.exponent
    if e & 1:
        sig <<= 1
        e -= 1
    k = max(0, precision - sig.bit_length() // 2 + 1)
    sig <<= 2 * k
    e -= 2 * k
    root = math.isqrt(sig)
    if root * root != sig:
        root |= 1
    return ExactValue.finite(False, root, e // 2)


def mul_add(a: ExactValue, b: ExactValue, c: ExactValue,
            mode: RoundingMode = RoundingMode.NEAREST_EVEN) -> ExactValue:
    """a * b + c with a single rounding (the caller's)."""
    product = mul(a, b)
    if product.is_nan or c.is_nan:
        return ExactValue.nan()
    return add(product, c, mode)


def compare(a: ExactValue, b: ExactValue) -> Optional[int]:
    """
    Three-way comparison.

    Returns:
        int | None: -1, 0 or 1; None when unordered (either operand NaN)
    """
    if a.is_nan or b.is_nan:
        return None

    def key(v: ExactValue):
        if v.is_inf:
            return (-1 if v.negative else 1), Fraction(0)
        return 0, v.to_fraction()

    ka, kb = key(a), key(b)
    return (ka > kb) - (ka < kb)


def eq(a: ExactValue, b: ExactValue) -> bool:
    return compare(a, b) == 0


def lt(a: ExactValue, b: ExactValue) -> bool:
    return compare(a, b) == -1


def le(a: ExactValue, b: ExactValue) -> bool:
    return compare(a, b) in (-1, 0)
