"""Bit-level helpers shared by the decoder and the instruction handlers.

All machine values are unsigned 16-bit words held in Python ints. These
helpers keep them in range and reinterpret fields as two's-complement.
"""

from enum import IntFlag


WORD_BITS = 16
WORD_MASK = 0xFFFF
SIGN_BIT = 1 << (WORD_BITS - 1)


class ConditionFlag(IntFlag):
    """Condition codes. Bit positions match the n/z/p field of BR."""
    POS = 1 << 0
    ZRO = 1 << 1
    NEG = 1 << 2


def to_word(value: int) -> int:
    """Wrap an arbitrary int to an unsigned 16-bit word."""
    return value & WORD_MASK


def sign_extend(value: int, bit_count: int) -> int:
    """Extend the sign of a ``bit_count``-wide field to a full word.

    The field must already be masked to ``bit_count`` bits. If its top bit
    is set, every bit from ``bit_count`` up to 15 is filled with ones.

    Args:
        value: Field value, masked to ``bit_count`` bits
        bit_count: Width of the field (1-16)

    Returns:
        Sign-extended 16-bit word
    """
    if (value >> (bit_count - 1)) & 1:
        value |= (WORD_MASK << bit_count)
    return value & WORD_MASK


def to_signed(word: int) -> int:
    """Interpret a 16-bit word as a two's-complement integer."""
    word &= WORD_MASK
    return word - (1 << WORD_BITS) if word & SIGN_BIT else word


def condition_for(value: int) -> ConditionFlag:
    """Condition flag describing the sign of a 16-bit result."""
    value &= WORD_MASK
    if value == 0:
        return ConditionFlag.ZRO
    if value & SIGN_BIT:
        return ConditionFlag.NEG
    return ConditionFlag.POS
