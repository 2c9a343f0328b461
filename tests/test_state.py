"""Tests for Memory, RegisterFile and MachineState."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3_vm.bits import ConditionFlag
from lc3_vm.state import (
    MEMORY_SIZE,
    PC_START,
    MachineState,
    Memory,
    Register,
    RegisterFile,
    create_initial_state,
)


class TestMemory:
    """Test flat word memory."""

    def test_size_and_zeroed(self):
        memory = Memory()
        assert len(memory.cells) == MEMORY_SIZE == 65536
        assert memory.read(0x0000) == 0
        assert memory.read(0xFFFF) == 0

    def test_read_write(self):
        memory = Memory()
        memory.write(0x3000, 0x1234)
        assert memory.read(0x3000) == 0x1234

    def test_address_wraps(self):
        """Addresses are taken modulo 65536."""
        memory = Memory()
        memory.write(0x10005, 7)
        assert memory.read(0x0005) == 7
        assert memory.read(-1) == memory.read(0xFFFF)

    def test_value_wraps(self):
        memory = Memory()
        memory.write(0x4000, 0x12345)
        assert memory.read(0x4000) == 0x2345

    def test_top_address_usable(self):
        memory = Memory()
        memory.write(0xFFFF, 0xBEEF)
        assert memory.read(0xFFFF) == 0xBEEF

    def test_load_wraps_past_end(self):
        memory = Memory()
        written = memory.load(0xFFFE, [1, 2, 3])
        assert written == 3
        assert memory.dump(0xFFFE, 3) == [1, 2, 3]
        assert memory.read(0x0000) == 3


class TestRegisterFile:
    """Test register access."""

    def test_defaults(self):
        regs = RegisterFile()
        for reg in range(8):
            assert regs.get(reg) == 0
        assert regs.pc == 0
        assert regs.cond is ConditionFlag.ZRO

    def test_access_by_enum_index_and_name(self):
        regs = RegisterFile()
        regs.set(Register.R3, 100)
        assert regs.get(3) == 100
        assert regs.get("R3") == 100
        assert regs.get("r3") == 100

    def test_set_wraps(self):
        regs = RegisterFile()
        regs.set("R0", -1)
        assert regs.get("R0") == 0xFFFF
        regs.pc = 0x10000
        assert regs.pc == 0

    def test_invalid_register(self):
        regs = RegisterFile()
        with pytest.raises(KeyError):
            regs.get("R9")
        with pytest.raises(KeyError):
            regs.get(10)

    @pytest.mark.parametrize("value, expected", [
        (0, ConditionFlag.ZRO),
        (1, ConditionFlag.POS),
        (0x7FFF, ConditionFlag.POS),
        (0x8000, ConditionFlag.NEG),
        (0xFFFF, ConditionFlag.NEG),
    ])
    def test_update_condition(self, value, expected):
        """update_condition leaves exactly the matching flag set."""
        regs = RegisterFile()
        regs.set(Register.R5, value)
        regs.update_condition(Register.R5)
        assert regs.cond is expected
        assert bin(int(regs.cond)).count("1") == 1

    def test_update_condition_only_touches_cond(self):
        regs = RegisterFile()
        regs.set("R2", 0x8001)
        regs.pc = 0x3005
        regs.update_condition("R2")
        assert regs.get("R2") == 0x8001
        assert regs.pc == 0x3005

    def test_snapshot(self):
        regs = RegisterFile()
        regs.set("R7", 0x3001)
        snap = regs.snapshot()
        assert snap["R7"] == 0x3001
        assert snap["COND"] == "ZRO"
        assert set(snap) == {"R0", "R1", "R2", "R3", "R4", "R5", "R6", "R7", "PC", "COND"}


class TestMachineState:
    """Test machine state creation and snapshots."""

    def test_initial_state(self):
        state = create_initial_state()
        assert state.registers.pc == PC_START == 0x3000
        assert state.registers.cond is ConditionFlag.ZRO
        assert state.halted is False
        assert state.cycle_count == 0
        assert state.validate() is True

    def test_custom_pc_start(self):
        state = create_initial_state(0x0200)
        assert state.registers.pc == 0x0200

    def test_snapshot_is_independent(self):
        state = create_initial_state()
        state.registers.set("R0", 42)
        snapshot = state.snapshot()

        assert snapshot["registers"]["R0"] == 42
        assert snapshot["pc"] == 0x3000
        assert snapshot["cond"] == "ZRO"
        assert "memory" not in snapshot

        snapshot["registers"]["R0"] = 999
        assert state.registers.get("R0") == 42

    def test_validate_rejects_out_of_range_register(self):
        state = MachineState()
        state.registers.values[0] = 0x10000
        assert state.validate() is False

    def test_validate_rejects_multiple_flags(self):
        state = MachineState()
        state.registers.values[Register.COND] = int(ConditionFlag.POS | ConditionFlag.NEG)
        assert state.validate() is False

    def test_str(self):
        state = create_initial_state()
        state.halted = True
        text = str(state)
        assert "PC=x3000" in text
        assert "HALTED" in text
