"""Tests for sign extension and condition flags."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import random

import pytest
from lc3_vm.bits import ConditionFlag, condition_for, sign_extend, to_signed, to_word


def reference_signed(value, bits):
    """Two's-complement value of the low ``bits`` bits."""
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


class TestSignExtend:
    """Test sign_extend against a reference decode."""

    @pytest.mark.parametrize("bits", [1, 2, 5, 6, 9, 11])
    def test_exhaustive_small_widths(self, bits):
        """Every pattern of the field widths the ISA uses."""
        for value in range(1 << bits):
            assert to_signed(sign_extend(value, bits)) == reference_signed(value, bits)

    @pytest.mark.parametrize("bits", range(1, 17))
    def test_randomized_all_widths(self, bits):
        """Random patterns for every width 1..16."""
        rng = random.Random(bits)
        mask = (1 << bits) - 1
        for _ in range(500):
            value = rng.randrange(1 << 16) & mask
            assert to_signed(sign_extend(value, bits)) == reference_signed(value, bits)

    def test_negative_fills_high_bits(self):
        """-3 in five bits becomes 0xFFFD."""
        assert sign_extend(0b11101, 5) == 0xFFFD

    def test_positive_unchanged(self):
        assert sign_extend(0b01111, 5) == 0x000F

    def test_offset9_minus_one(self):
        assert sign_extend(0x1FF, 9) == 0xFFFF

    def test_result_is_a_word(self):
        """Results always fit in 16 bits."""
        assert 0 <= sign_extend(0x400, 11) <= 0xFFFF


class TestConditionFor:
    """Test condition flag computation."""

    def test_zero(self):
        assert condition_for(0) is ConditionFlag.ZRO

    def test_positive(self):
        assert condition_for(1) is ConditionFlag.POS
        assert condition_for(0x7FFF) is ConditionFlag.POS

    def test_negative(self):
        assert condition_for(0x8000) is ConditionFlag.NEG
        assert condition_for(0xFFFF) is ConditionFlag.NEG

    def test_every_word_gets_one_flag(self):
        """Exactly one flag for every 16-bit value, matching its sign."""
        for value in range(0, 1 << 16, 7):
            flag = condition_for(value)
            assert flag in (ConditionFlag.POS, ConditionFlag.ZRO, ConditionFlag.NEG)
            signed = to_signed(value)
            if signed == 0:
                assert flag is ConditionFlag.ZRO
            elif signed < 0:
                assert flag is ConditionFlag.NEG
            else:
                assert flag is ConditionFlag.POS


class TestWordHelpers:

    def test_to_word_wraps(self):
        assert to_word(0x10000) == 0
        assert to_word(-1) == 0xFFFF

    def test_to_signed(self):
        assert to_signed(0xFFFF) == -1
        assert to_signed(0x8000) == -32768
        assert to_signed(0x7FFF) == 32767
