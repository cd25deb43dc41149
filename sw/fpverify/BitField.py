"""
Fixed-width unsigned field extraction and packing.

Bit patterns are plain Python ints, so any storage width (80, 128, ...) works
without truncation. Callers guarantee offset + width fits the storage word;
that is checked once, when the FormatDescriptor is built.
"""


def extract(bits: int, offset: int, width: int) -> int:
    """
    Extract a `width`-bit unsigned field starting at bit `offset`.

    Args:
        bits (int): Bit pattern
        offset (int): Position of the field's least significant bit
        width (int): Field width in bits (0 yields 0)

    Returns:
        int: The field value
    """
    if width == 0:
        return 0
    return (bits >> offset) & ((1 << width) - 1)


def pack(value: int, offset: int, accumulator: int = 0) -> int:
    """OR `value` into `accumulator` at bit `offset`."""
    return accumulator | (value << offset)


def twos_negate(bits: int, total_bits: int) -> int:
    """Two's complement negation of the whole word, modulo 2^total_bits."""
    mask = (1 << total_bits) - 1
    return (mask - (bits & mask) + 1) & mask
