"""Instruction decoder for the LC-3 VM.

Every 16-bit word decodes to some instruction: the top four bits select one
of sixteen opcodes and the remaining twelve are reinterpreted per opcode.
Decoding never fails; RTI and the reserved opcode simply have no effect
when executed.

Architecture:
    word -> decode() -> DecodeResult(opcode, fields) -> registry -> execute

Field layout (bit ranges inclusive):
    opcode      15:12
    DR / SR     11:9    (also BR's n/z/p mask)
    SR1 / BaseR 8:6
    imm flag    5
    imm5        4:0
    SR2         2:0
    offset6     5:0
    PCoffset9   8:0
    PCoffset11  10:0    (JSR, selected by bit 11)
    trapvect8   7:0
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .bits import WORD_MASK, sign_extend, to_signed


class Opcode(IntEnum):
    """The sixteen LC-3 opcodes, numbered by their 4-bit encoding."""
    BR = 0
    ADD = 1
    LD = 2
    ST = 3
    JSR = 4
    AND = 5
    LDR = 6
    STR = 7
    RTI = 8
    NOT = 9
    LDI = 10
    STI = 11
    JMP = 12
    RES = 13
    LEA = 14
    TRAP = 15


class TrapVector(IntEnum):
    """Built-in trap service routines."""
    GETC = 0x20
    OUT = 0x21
    PUTS = 0x22
    IN = 0x23
    PUTSP = 0x24
    HALT = 0x25


@dataclass(frozen=True)
class DecodeResult:
    """A decoded instruction word.

    Field accessors are valid for any opcode; which ones are meaningful
    depends on ``opcode``. Offsets and immediates come back sign-extended
    to 16 bits.

    Attributes:
        word: The raw 16-bit instruction
    """
    word: int

    @property
    def opcode(self) -> Opcode:
        return Opcode(self.word >> 12)

    @property
    def key(self) -> str:
        """Registry-style name, e.g. ``OP_ADD``."""
        return f"OP_{self.opcode.name}"

    @property
    def dr(self) -> int:
        return (self.word >> 9) & 0x7

    # Stores name the same field SR
    sr = dr

    @property
    def nzp(self) -> int:
        return (self.word >> 9) & 0x7

    @property
    def sr1(self) -> int:
        return (self.word >> 6) & 0x7

    # JMP, JSRR, LDR and STR name the same field BaseR
    base_r = sr1

    @property
    def sr2(self) -> int:
        return self.word & 0x7

    @property
    def imm_flag(self) -> bool:
        return bool((self.word >> 5) & 0x1)

    @property
    def imm5(self) -> int:
        return sign_extend(self.word & 0x1F, 5)

    @property
    def offset6(self) -> int:
        return sign_extend(self.word & 0x3F, 6)

    @property
    def pc_offset9(self) -> int:
        return sign_extend(self.word & 0x1FF, 9)

    @property
    def jsr_flag(self) -> bool:
        return bool((self.word >> 11) & 0x1)

    @property
    def pc_offset11(self) -> int:
        return sign_extend(self.word & 0x7FF, 11)

    @property
    def trap_vector(self) -> int:
        return self.word & 0xFF


def decode(word: int) -> DecodeResult:
    """Decode a 16-bit instruction word."""
    return DecodeResult(word & WORD_MASK)


# =============================================================================
# Disassembly
# =============================================================================

def _target(address: Optional[int], offset: int) -> str:
    """Format a PC-relative operand.

    ``address`` is where the instruction lives; the offset applies to the
    following word. Without an address the raw signed offset is shown.
    """
    if address is None:
        return f"#{to_signed(offset)}"
    return f"x{(address + 1 + offset) & WORD_MASK:04X}"


def disassemble(word: int, address: Optional[int] = None) -> str:
    """Render an instruction word as LC-3 assembly.

    Args:
        word: Instruction word
        address: Location of the instruction, used to resolve PC-relative
            operands to absolute addresses

    Returns:
        Assembly text, e.g. ``ADD R0, R1, #-3``
    """
    inst = decode(word)
    op = inst.opcode

    if op in (Opcode.ADD, Opcode.AND):
        if inst.imm_flag:
            operand = f"#{to_signed(inst.imm5)}"
        else:
            operand = f"R{inst.sr2}"
        return f"{op.name} R{inst.dr}, R{inst.sr1}, {operand}"

    if op == Opcode.NOT:
        return f"NOT R{inst.dr}, R{inst.sr1}"

    if op == Opcode.BR:
        if inst.nzp == 0:
            return "NOP"
        flags = "".join(c for c, bit in (("n", 4), ("z", 2), ("p", 1)) if inst.nzp & bit)
        return f"BR{flags} {_target(address, inst.pc_offset9)}"

    if op == Opcode.JMP:
        return "RET" if inst.base_r == 7 else f"JMP R{inst.base_r}"

    if op == Opcode.JSR:
        if inst.jsr_flag:
            return f"JSR {_target(address, inst.pc_offset11)}"
        return f"JSRR R{inst.base_r}"

    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA):
        return f"{op.name} R{inst.dr}, {_target(address, inst.pc_offset9)}"

    if op in (Opcode.ST, Opcode.STI):
        return f"{op.name} R{inst.sr}, {_target(address, inst.pc_offset9)}"

    if op in (Opcode.LDR, Opcode.STR):
        return f"{op.name} R{inst.dr}, R{inst.base_r}, #{to_signed(inst.offset6)}"

    if op == Opcode.TRAP:
        try:
            return TrapVector(inst.trap_vector).name
        except ValueError:
            return f"TRAP x{inst.trap_vector:02X}"

    if op == Opcode.RTI:
        return "RTI"

    return f".FILL x{inst.word:04X}"
