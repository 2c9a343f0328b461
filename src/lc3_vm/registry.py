"""InstructionRegistry: opcode handlers for the LC-3 VM.

Each opcode maps to exactly one handler. The registry refuses to freeze
until every ``Opcode`` member has a handler, so an opcode can never fall
through to an accidental default.

Registry Keys:
    OP_ADD:  DR = SR1 + (SR2 | imm5)                     sets COND
    OP_AND:  DR = SR1 & (SR2 | imm5)                     sets COND
    OP_NOT:  DR = ~SR                                    sets COND
    OP_BR:   PC += PCoffset9 if nzp & COND
    OP_JMP:  PC = BaseR (RET is JMP R7)
    OP_JSR:  R7 = PC; PC += PCoffset11 or PC = BaseR
    OP_LD:   DR = mem[PC + PCoffset9]                    sets COND
    OP_LDI:  DR = mem[mem[PC + PCoffset9]]               sets COND
    OP_LDR:  DR = mem[BaseR + offset6]                   sets COND
    OP_LEA:  DR = PC + PCoffset9                         sets COND
    OP_ST:   mem[PC + PCoffset9] = SR
    OP_STI:  mem[mem[PC + PCoffset9]] = SR
    OP_STR:  mem[BaseR + offset6] = SR
    OP_TRAP: host trap routine for trapvect8
    OP_RTI:  no-op
    OP_RES:  no-op

Handlers run after the fetch has already advanced PC, so every
PC-relative address is relative to the following instruction. Handlers
mutate the ``MachineState`` in place; the registry itself holds no state.
"""

from typing import Callable, Dict, Optional

from .console import Console
from .decode import DecodeResult, Opcode
from .state import MachineState, Register
from .traps import TrapTable, get_trap_table


Handler = Callable[[MachineState, DecodeResult, Console], None]


class InstructionRegistry:
    """Frozen registry of instruction handlers.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
        traps: Trap table used by OP_TRAP
    """

    def __init__(self, traps: Optional[TrapTable] = None):
        """Initialize registry with all instruction handlers."""
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self.traps = traps if traps is not None else get_trap_table()
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Operate
        self.register(Opcode.ADD, self._op_add)
        self.register(Opcode.AND, self._op_and)
        self.register(Opcode.NOT, self._op_not)

        # Control flow
        self.register(Opcode.BR, self._op_br)
        self.register(Opcode.JMP, self._op_jmp)
        self.register(Opcode.JSR, self._op_jsr)
        self.register(Opcode.TRAP, self._op_trap)

        # Loads
        self.register(Opcode.LD, self._op_ld)
        self.register(Opcode.LDI, self._op_ldi)
        self.register(Opcode.LDR, self._op_ldr)
        self.register(Opcode.LEA, self._op_lea)

        # Stores
        self.register(Opcode.ST, self._op_st)
        self.register(Opcode.STI, self._op_sti)
        self.register(Opcode.STR, self._op_str)

        # Unused in this machine
        self.register(Opcode.RTI, self._op_nop)
        self.register(Opcode.RES, self._op_nop)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register an instruction handler.

        Args:
            opcode: Opcode the handler implements
            handler: Function taking (state, instruction, console)

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: OP_{Opcode(opcode).name}")
        self._handlers[Opcode(opcode)] = handler

    def freeze(self) -> None:
        """Freeze the registry.

        Raises:
            RuntimeError: If any opcode is missing a handler
        """
        missing = [op.name for op in Opcode if op not in self._handlers]
        if missing:
            raise RuntimeError(f"Cannot freeze registry: no handler for {', '.join(missing)}")
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all operation keys (``OP_ADD`` etc.)."""
        return {f"OP_{op.name}" for op in self._handlers}

    def execute(self, state: MachineState, instruction: DecodeResult, console: Console) -> None:
        """Execute one decoded instruction and count the cycle.

        PC must already point past the instruction.
        """
        self._handlers[instruction.opcode](state, instruction, console)
        state.cycle_count += 1

    # =========================================================================
    # Operate Instructions
    # =========================================================================

    @staticmethod
    def _second_operand(state: MachineState, inst: DecodeResult) -> int:
        # Bit 5 selects imm5 over SR2
        if inst.imm_flag:
            return inst.imm5
        return state.registers.get(inst.sr2)

    def _op_add(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """ADD DR, SR1, SR2|imm5 - Add, wrapping modulo 2^16."""
        regs = state.registers
        regs.set(inst.dr, regs.get(inst.sr1) + self._second_operand(state, inst))
        regs.update_condition(inst.dr)

    def _op_and(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """AND DR, SR1, SR2|imm5 - Bitwise and."""
        regs = state.registers
        regs.set(inst.dr, regs.get(inst.sr1) & self._second_operand(state, inst))
        regs.update_condition(inst.dr)

    def _op_not(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """NOT DR, SR - Bitwise complement."""
        regs = state.registers
        regs.set(inst.dr, ~regs.get(inst.sr1))
        regs.update_condition(inst.dr)

    # =========================================================================
    # Control Flow Instructions
    # =========================================================================

    def _op_br(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """BRnzp offset - Branch if any requested flag matches COND."""
        regs = state.registers
        if inst.nzp & regs.cond:
            regs.pc = regs.pc + inst.pc_offset9

    def _op_jmp(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """JMP BaseR - Jump to address in register (RET when BaseR is R7)."""
        regs = state.registers
        regs.pc = regs.get(inst.base_r)

    def _op_jsr(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """JSR offset / JSRR BaseR - Call subroutine, return address in R7.

        BaseR is read before R7 is written so ``JSRR R7`` jumps to the old
        R7.
        """
        regs = state.registers
        return_address = regs.pc
        if inst.jsr_flag:
            target = return_address + inst.pc_offset11
        else:
            target = regs.get(inst.base_r)
        regs.set(Register.R7, return_address)
        regs.pc = target

    def _op_trap(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """TRAP trapvect8 - Run a host trap routine."""
        self.traps.dispatch(state, inst.trap_vector, console)

    # =========================================================================
    # Load Instructions
    # =========================================================================

    def _op_ld(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """LD DR, offset - Load PC-relative."""
        regs = state.registers
        regs.set(inst.dr, state.memory.read(regs.pc + inst.pc_offset9))
        regs.update_condition(inst.dr)

    def _op_ldi(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """LDI DR, offset - Load through a PC-relative pointer."""
        regs = state.registers
        address = state.memory.read(regs.pc + inst.pc_offset9)
        regs.set(inst.dr, state.memory.read(address))
        regs.update_condition(inst.dr)

    def _op_ldr(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """LDR DR, BaseR, offset6 - Load base+offset."""
        regs = state.registers
        regs.set(inst.dr, state.memory.read(regs.get(inst.base_r) + inst.offset6))
        regs.update_condition(inst.dr)

    def _op_lea(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """LEA DR, offset - Load the effective address itself."""
        regs = state.registers
        regs.set(inst.dr, regs.pc + inst.pc_offset9)
        regs.update_condition(inst.dr)

    # =========================================================================
    # Store Instructions
    # =========================================================================

    def _op_st(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """ST SR, offset - Store PC-relative."""
        regs = state.registers
        state.memory.write(regs.pc + inst.pc_offset9, regs.get(inst.sr))

    def _op_sti(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """STI SR, offset - Store through a PC-relative pointer."""
        regs = state.registers
        address = state.memory.read(regs.pc + inst.pc_offset9)
        state.memory.write(address, regs.get(inst.sr))

    def _op_str(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """STR SR, BaseR, offset6 - Store base+offset."""
        regs = state.registers
        state.memory.write(regs.get(inst.base_r) + inst.offset6, regs.get(inst.sr))

    # =========================================================================
    # Unused Opcodes
    # =========================================================================

    def _op_nop(self, state: MachineState, inst: DecodeResult, console: Console) -> None:
        """RTI / reserved - No effect beyond the fetch's PC increment."""


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the singleton instruction registry.

    Returns:
        The frozen InstructionRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
