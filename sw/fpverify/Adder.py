from .Format import FloatFormat
from .SoftCore import SoftCore

# Guard bits kept below the larger operand's significand during alignment
GUARD_BITS = 3


class Adder:
    def __init__(self, format: FloatFormat):
        self.format = format
        self.core = SoftCore(format)

    def fp_bin_adder(self, a: int, b: int) -> int:
        """
        IEEE 754 addition fully in the integer domain, round to nearest-even.

        The smaller operand is shifted right into GUARD_BITS guard positions
        with every bit shifted out OR-ed into the lowest one (sticky), so the
        single rounding in round_pack sees the same decision as an exact sum.
        """
        core = self.core
        sa, ea, ma = core.unpack(a)
        sb, eb, mb = core.unpack(b)

        # Special values (Inf/NaN)
        if core.is_nan(a) or core.is_nan(b):
            return core.default_nan()
        if core.is_inf(a) and core.is_inf(b):
            if sa != sb:
                return core.default_nan()
            return a
        if core.is_inf(a):
            return a
        if core.is_inf(b):
            return b

        # Zero shortcuts
        if core.is_zero(a) and core.is_zero(b):
            return core.zero(sa & sb)
        if core.is_zero(a):
            return b
        if core.is_zero(b):
            return a

        sig_a, scale_a = core.significand(ea, ma)
        sig_b, scale_b = core.significand(eb, mb)

        # Make `a` the operand with the larger scale
        if scale_a < scale_b:
            sa, sig_a, scale_a, sb, sig_b, scale_b = sb, sig_b, scale_b, sa, sig_a, scale_a

        sig_a <<= GUARD_BITS
        sig_b <<= GUARD_BITS
        scale = scale_a - GUARD_BITS

        # Exponent alignment with sticky jamming
        d = scale_a - scale_b
        if d > self.core.m_bits + 5:
            sig_b = 1
        elif d > 0:
            lost = sig_b & ((1 << d) - 1)
            sig_b = (sig_b >> d) | (1 if lost else 0)

        # Signed mantissa add
        if sa:
            sig_a = -sig_a
        if sb:
            sig_b = -sig_b
        total = sig_a + sig_b

        if total == 0:
            return core.zero(0)

        sign_res = 1 if total < 0 else 0
        return core.round_pack(sign_res, abs(total), scale)

    def fp_bin_subtractor(self, a: int, b: int) -> int:
        """a - b, as a + (-b); NaN operands stay NaN."""
        return self.fp_bin_adder(a, self.core.neg(b))
