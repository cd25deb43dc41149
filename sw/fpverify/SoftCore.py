"""
Integer-only emulation of IEEE 754 binary interchange formats.

Independent of ExactDecoder / FormatRounder: operands are unpacked with plain
shifts and masks, results are rounded with a guard/sticky round-and-pack in the
style of Berkeley SoftFloat. Only sign-magnitude, implicit-bit formats with
reserved-exponent NaN/Inf and the standard [S][E][M] layout are accepted.
"""
import math

from .Format import FloatFormat, InfScheme, NanScheme, SignScheme, SubnormalMode


class SoftCore:
    def __init__(self, format: FloatFormat):
        lay, enc = format.layout, format.encoding
        if not (lay.is_standard_layout()
                and enc.sign_scheme == SignScheme.SIGN_MAGNITUDE
                and enc.has_implicit_bit
                and enc.nan_scheme == NanScheme.RESERVED_EXPONENT
                and enc.inf_scheme == InfScheme.RESERVED_EXPONENT
                and enc.subnormal_mode == SubnormalMode.FULL):
            raise ValueError(f'Format "{format.name}" is not an IEEE 754 binary interchange format')

        self.format = format
        self.e_bits = lay.exp_bits
        self.m_bits = lay.mant_bits
        self.bias = format.bias
        self.total_bits = lay.total_bits
        self.exp_all_ones = (1 << self.e_bits) - 1
        self.sign_bit = 1 << (self.total_bits - 1)
        self.mant_mask = (1 << self.m_bits) - 1

    # === Field access ===

    def unpack(self, bits: int) -> tuple:
        """
        Split a pattern into raw fields.

        Returns:
            tuple: (sign (int), exponent (int), mantissa (int))
        """
        sign = (bits >> (self.total_bits - 1)) & 0x1
        exp = (bits >> self.m_bits) & self.exp_all_ones
        mant = bits & self.mant_mask
        return sign, exp, mant

    def significand(self, exp: int, mant: int) -> tuple:
        """
        Integer significand and scale of a finite pattern: value = sig * 2^scale.

        Returns:
            tuple: (sig (int), scale (int))
        """
        if exp == 0:
            return mant, 1 - self.bias - self.m_bits
        return mant | (1 << self.m_bits), exp - self.bias - self.m_bits

    def is_nan(self, bits: int) -> bool:
        _, exp, mant = self.unpack(bits)
        return exp == self.exp_all_ones and mant != 0

    def is_inf(self, bits: int) -> bool:
        _, exp, mant = self.unpack(bits)
        return exp == self.exp_all_ones and mant == 0

    def is_zero(self, bits: int) -> bool:
        return (bits & ~self.sign_bit) == 0

    # === Result construction ===

    def default_nan(self) -> int:
        return (self.exp_all_ones << self.m_bits) | (1 << (self.m_bits - 1))

    def inf(self, sign: int) -> int:
        return (sign << (self.total_bits - 1)) | (self.exp_all_ones << self.m_bits)

    def zero(self, sign: int) -> int:
        return sign << (self.total_bits - 1)

    def round_pack(self, sign: int, sig: int, scale: int, sticky: bool = False) -> int:
        """
        Round sig * 2^scale (plus a sticky remainder) to nearest-even and pack.

        Args:
            sign (int): Result sign, 0 or 1
            sig (int): Non-negative integer significand
            scale (int): Power of two of sig's least significant bit
            sticky (bool): True if the exact value lies strictly above sig * 2^scale
                (by less than 2^scale)

        Returns:
            int: Packed bit pattern
        """
        if sig == 0 and not sticky:
            return self.zero(sign)

        emin = 1 - self.bias
        top = scale + sig.bit_length() - 1
        lsb = max(top, emin) - self.m_bits
        shift = lsb - scale

        if shift > 0:
            q = sig >> shift
            r = sig & ((1 << shift) - 1)
            half = 1 << (shift - 1)
            if r > half or (r == half and (sticky or q & 1)):
                q += 1
        else:
            q = sig << -shift

        # Subnormals have q < 2^m with a zero exponent field; adding q into
        # (biased - 1) << m lets a rounding carry bump the exponent field.
        if top < emin:
            bits = q
        else:
            bits = ((top + self.bias - 1) << self.m_bits) + q

        if bits >= (self.exp_all_ones << self.m_bits):
            return self.inf(sign)
        return (sign << (self.total_bits - 1)) | bits

    # === Operations not covered by Adder / Multiplier ===

    def sqrt(self, a: int) -> int:
        sign, exp, mant = self.unpack(a)
        if self.is_nan(a):
            return self.default_nan()
        if self.is_zero(a):
            return a
        if sign:
            return self.default_nan()
        if exp == self.exp_all_ones:
            return a

        sig, scale = self.significand(exp, mant)
        if scale & 1:
            sig <<= 1
            scale -= 1
        # At least m + 3 root bits
        k = max(0, self.m_bits + 3 - sig.bit_length() // 2 + 1)
        sig <<= 2 * k
        scale -= 2 * k
        root = math.isqrt(sig)
        return self.round_pack(0, root, scale // 2, root * root != sig)

    def rem(self, a: int, b: int) -> int:
        """IEEE 754 remainder: a - n*b with n = a/b rounded to nearest-even."""
        if self.is_nan(a) or self.is_nan(b):
            return self.default_nan()
        if self.is_inf(a) or self.is_zero(b):
            return self.default_nan()
        if self.is_inf(b) or self.is_zero(a):
            return a

        sa, ea, ma = self.unpack(a)
        _, eb, mb = self.unpack(b)
        sig_a, scale_a = self.significand(ea, ma)
        sig_b, scale_b = self.significand(eb, mb)
        scale = min(scale_a, scale_b)
        x = sig_a << (scale_a - scale)
        y = sig_b << (scale_b - scale)

        n, r = divmod(x, y)
        if 2 * r > y or (2 * r == y and n & 1):
            r -= y
        if r == 0:
            return self.zero(sa)
        sign = sa ^ (1 if r < 0 else 0)
        return self.round_pack(sign, abs(r), scale)

    def neg(self, a: int) -> int:
        return a ^ self.sign_bit

    def abs(self, a: int) -> int:
        return a & ~self.sign_bit

    # === Comparisons ===

    def _ordered(self, bits: int) -> int:
        sign, _, _ = self.unpack(bits)
        magnitude = bits & ~self.sign_bit
        return -magnitude if sign else magnitude

    def eq(self, a: int, b: int) -> bool:
        if self.is_nan(a) or self.is_nan(b):
            return False
        return self._ordered(a) == self._ordered(b)

    def lt(self, a: int, b: int) -> bool:
        if self.is_nan(a) or self.is_nan(b):
            return False
        return self._ordered(a) < self._ordered(b)

    def le(self, a: int, b: int) -> bool:
        if self.is_nan(a) or self.is_nan(b):
            return False
        return self._ordered(a) <= self._ordered(b)
