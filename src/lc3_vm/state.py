"""Machine state for the LC-3 virtual machine.

This module defines the storage the execution loop owns and hands to each
instruction handler.

State Components:
    - Memory: 65536 unsigned 16-bit words, addresses wrap at 16 bits
    - Registers: R0-R7 (general purpose), PC, COND
    - Halted: set only by the HALT trap
    - Cycle count: total executed instructions

Memory and registers are mutated in place. Use ``snapshot()`` to capture
register state for tracing.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Union

from .bits import ConditionFlag, WORD_MASK, condition_for, to_word


MEMORY_SIZE = 1 << 16
PC_START = 0x3000


class Register(IntEnum):
    """Register file slots."""
    R0 = 0
    R1 = 1
    R2 = 2
    R3 = 3
    R4 = 4
    R5 = 5
    R6 = 6
    R7 = 7
    PC = 8
    COND = 9


GENERAL_REGISTERS = [Register(i) for i in range(8)]

RegisterRef = Union[Register, int, str]


def _resolve(reg: RegisterRef) -> Register:
    if isinstance(reg, str):
        try:
            return Register[reg.upper()]
        except KeyError:
            raise KeyError(f"Invalid register: {reg}") from None
    try:
        return Register(reg)
    except ValueError:
        raise KeyError(f"Invalid register: {reg}") from None


@dataclass
class Memory:
    """Flat word-addressed memory with no protection.

    Attributes:
        cells: MEMORY_SIZE words, zero-initialized
    """
    cells: List[int] = field(default_factory=lambda: [0] * MEMORY_SIZE)

    def read(self, address: int) -> int:
        """Return the word at ``address`` (wrapped to 16 bits)."""
        return self.cells[address & WORD_MASK]

    def write(self, address: int, value: int) -> None:
        """Store ``value`` (wrapped to 16 bits) at ``address``."""
        self.cells[address & WORD_MASK] = to_word(value)

    def load(self, origin: int, words: List[int]) -> int:
        """Copy ``words`` into memory starting at ``origin``.

        Addresses wrap past 0xFFFF back to 0x0000.

        Returns:
            Number of words written
        """
        for offset, word in enumerate(words):
            self.write(origin + offset, word)
        return len(words)

    def dump(self, start: int, count: int) -> List[int]:
        """Return ``count`` words starting at ``start``."""
        return [self.read(start + i) for i in range(count)]


@dataclass
class RegisterFile:
    """Eight general registers plus PC and COND.

    Attributes:
        values: Ten 16-bit slots indexed by ``Register``; COND starts at ZRO
    """
    values: List[int] = field(
        default_factory=lambda: [0] * Register.COND + [int(ConditionFlag.ZRO)]
    )

    def get(self, reg: RegisterRef) -> int:
        """Get value of a register.

        Args:
            reg: Register enum, index, or name (R0-R7, PC, COND; any case)

        Raises:
            KeyError: If register doesn't exist
        """
        return self.values[_resolve(reg)]

    def set(self, reg: RegisterRef, value: int) -> None:
        """Set a register, wrapping the value to 16 bits."""
        self.values[_resolve(reg)] = to_word(value)

    @property
    def pc(self) -> int:
        return self.values[Register.PC]

    @pc.setter
    def pc(self, value: int) -> None:
        self.values[Register.PC] = to_word(value)

    @property
    def cond(self) -> ConditionFlag:
        return ConditionFlag(self.values[Register.COND])

    @cond.setter
    def cond(self, flag: ConditionFlag) -> None:
        self.values[Register.COND] = int(flag)

    def update_condition(self, reg: RegisterRef) -> None:
        """Set COND from the sign of a general register."""
        self.cond = condition_for(self.get(reg))

    def snapshot(self) -> Dict[str, object]:
        regs: Dict[str, object] = {r.name: self.values[r] for r in GENERAL_REGISTERS}
        regs["PC"] = self.pc
        regs["COND"] = self.cond.name
        return regs


@dataclass
class MachineState:
    """Execution context passed to every instruction handler.

    Attributes:
        memory: Main memory
        registers: Register file
        halted: Whether the machine executed TRAP HALT
        cycle_count: Number of executed instructions
    """
    memory: Memory = field(default_factory=Memory)
    registers: RegisterFile = field(default_factory=RegisterFile)
    halted: bool = False
    cycle_count: int = 0

    def snapshot(self) -> dict:
        """Capture registers and control state for tracing.

        Memory is excluded.
        """
        return {
            "registers": self.registers.snapshot(),
            "pc": self.registers.pc,
            "cond": self.registers.cond.name,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Check register-file integrity.

        Checks:
            - Every register holds a 16-bit value
            - COND holds exactly one of POS/ZRO/NEG
            - Cycle count is non-negative
        """
        if len(self.registers.values) != len(Register):
            return False
        for value in self.registers.values:
            if not isinstance(value, int) or not 0 <= value <= WORD_MASK:
                return False
        if self.registers.values[Register.COND] not in (
            ConditionFlag.POS, ConditionFlag.ZRO, ConditionFlag.NEG
        ):
            return False
        return self.cycle_count >= 0

    def __str__(self) -> str:
        regs = " ".join(f"{r.name}=x{self.registers.get(r):04X}" for r in GENERAL_REGISTERS)
        status = " HALTED" if self.halted else ""
        return (
            f"[Cycle {self.cycle_count}] PC=x{self.registers.pc:04X} {regs} "
            f"COND={self.registers.cond.name}{status}"
        )


def create_initial_state(pc_start: int = PC_START) -> MachineState:
    """Create a fresh machine with zeroed memory.

    PC starts at ``pc_start`` and COND at ZRO, so exactly one condition flag
    is set from the first cycle on.
    """
    state = MachineState()
    state.registers.pc = pc_start
    return state
