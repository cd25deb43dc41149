from .Format import FloatFormat
from .SoftCore import SoftCore


class Multiplier:
    def __init__(self, format: FloatFormat):
        self.format = format
        self.core = SoftCore(format)

    def _unpacking(self, value: int) -> tuple:
        """
        Unpack a pattern into sign, integer significand and scale.

        Args:
            value (int): Finite, non-zero bit pattern
        Returns:
            tuple: (sign (int), significand (int), scale (int))
        """
        sign, exp, mant = self.core.unpack(value)
        sig, scale = self.core.significand(exp, mant)
        return sign, sig, scale

    def multiply(self, value_a: int, value_b: int) -> int:
        """
        IEEE 754 multiplication. The integer product is exact, so the only
        rounding happens in round_pack.
        """
        core = self.core
        sign = ((value_a ^ value_b) >> (core.total_bits - 1)) & 0x1

        if core.is_nan(value_a) or core.is_nan(value_b):
            return core.default_nan()
        if core.is_inf(value_a) or core.is_inf(value_b):
            if core.is_zero(value_a) or core.is_zero(value_b):
                return core.default_nan()
            return core.inf(sign)
        if core.is_zero(value_a) or core.is_zero(value_b):
            return core.zero(sign)

        _, sig_a, scale_a = self._unpacking(value_a)
        _, sig_b, scale_b = self._unpacking(value_b)
        return core.round_pack(sign, sig_a * sig_b, scale_a + scale_b)

    def divide(self, value_a: int, value_b: int) -> int:
        """
        IEEE 754 division: quotient with at least m + 3 bits plus a sticky
        remainder flag.
        """
        core = self.core
        sign = ((value_a ^ value_b) >> (core.total_bits - 1)) & 0x1

        if core.is_nan(value_a) or core.is_nan(value_b):
            return core.default_nan()
        if core.is_inf(value_a):
            if core.is_inf(value_b):
                return core.default_nan()
            return core.inf(sign)
        if core.is_inf(value_b):
            return core.zero(sign)
        if core.is_zero(value_b):
            if core.is_zero(value_a):
                return core.default_nan()
            return core.inf(sign)
        if core.is_zero(value_a):
            return core.zero(sign)

        _, sig_a, scale_a = self._unpacking(value_a)
        _, sig_b, scale_b = self._unpacking(value_b)
        k = max(0, core.m_bits + 3 + sig_b.bit_length() - sig_a.bit_length() + 1)
        q, r = divmod(sig_a << k, sig_b)
        return core.round_pack(sign, q, scale_a - scale_b - k, r != 0)
