"""LC3VM: fetch-decode-execute loop for the LC-3 virtual machine.

Each cycle:
    MEMORY[PC] -> FETCH (PC += 1) -> DECODE -> REGISTRY -> EXECUTE -> STATE

The loop owns PC advancement and is the only place that decides to stop:
it runs until the HALT trap marks the state halted, or until an optional
cycle limit is hit.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .bits import WORD_MASK
from .console import Console
from .decode import DecodeResult, decode, disassemble
from .loader import PathLike, load_image_bytes, load_image_file, load_images
from .registry import InstructionRegistry, get_registry
from .state import PC_START, GENERAL_REGISTERS, MachineState, create_initial_state


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        word: Raw instruction word
        text: Disassembly of the instruction
        key: Registry key that executed it
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
    """
    cycle: int
    address: int
    word: int
    text: str
    key: str
    pre_state: dict
    post_state: dict


class LC3VM:
    """LC-3 virtual machine.

    Attributes:
        console: Console used by the trap routines
        registry: InstructionRegistry with all opcode handlers
        state: Current machine state
        trace: Recorded trace entries (only when tracing is enabled)
        trace_enabled: Whether step() records trace entries
        max_cycles: Cycle limit for run(), or None to run until HALT
        pc_start: PC value after reset
    """

    DEFAULT_PC_START = PC_START
    DEFAULT_MAX_CYCLES: Optional[int] = None

    def __init__(
        self,
        console: Optional[Console] = None,
        max_cycles: Optional[int] = DEFAULT_MAX_CYCLES,
        trace: bool = False,
        pc_start: int = DEFAULT_PC_START,
        registry: Optional[InstructionRegistry] = None,
    ):
        """Initialize the VM with zeroed memory.

        Args:
            console: Console for trap I/O (default: stdin/stdout)
            max_cycles: Cycle limit for run(); None runs until HALT
            trace: Record an ExecutionTraceEntry for every cycle
            pc_start: Initial program counter
            registry: Instruction registry (default: shared registry)
        """
        self.console = console if console is not None else Console()
        self.registry = registry if registry is not None else get_registry()
        self.max_cycles = max_cycles
        self.trace_enabled = trace
        self.pc_start = pc_start
        self.state: MachineState = create_initial_state(pc_start)
        self.trace: List[ExecutionTraceEntry] = []

    def reset(self) -> None:
        """Discard memory, registers and trace."""
        self.state = create_initial_state(self.pc_start)
        self.trace = []

    # =========================================================================
    # Loading
    # =========================================================================

    def load_image(self, path: PathLike) -> int:
        """Load one image file. Returns its origin."""
        return load_image_file(self.state.memory, path)

    def load_images(self, paths: Iterable[PathLike]) -> List[int]:
        """Load image files in order; nothing is written if any fails."""
        return load_images(self.state.memory, paths)

    def load_bytes(self, data: bytes) -> int:
        """Load an image from raw bytes. Returns its origin."""
        return load_image_bytes(self.state.memory, data)

    def load_words(self, origin: int, words: Iterable[int]) -> None:
        """Copy words into memory starting at ``origin``."""
        self.state.memory.load(origin, list(words))

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> Optional[ExecutionTraceEntry]:
        """Execute a single instruction cycle.

        Returns:
            The trace entry for this cycle when tracing, otherwise None

        Raises:
            RuntimeError: If the machine is halted
        """
        state = self.state
        if state.halted:
            raise RuntimeError("CPU is halted")

        regs = state.registers
        address = regs.pc
        word = state.memory.read(address)
        regs.pc = address + 1
        instruction: DecodeResult = decode(word)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("x%04X: %04X  %s", address, word, disassemble(word, address))

        if not self.trace_enabled:
            self.registry.execute(state, instruction, self.console)
            if state.halted:
                logger.info("Halted after %d cycles", state.cycle_count)
            return None

        # pre_state shows PC at the fetched instruction
        pre_state = state.snapshot()
        pre_state["pc"] = address
        pre_state["registers"]["PC"] = address
        cycle = state.cycle_count

        self.registry.execute(state, instruction, self.console)
        if state.halted:
            logger.info("Halted after %d cycles", state.cycle_count)

        entry = ExecutionTraceEntry(
            cycle=cycle,
            address=address,
            word=word,
            text=disassemble(word, address),
            key=instruction.key,
            pre_state=pre_state,
            post_state=state.snapshot(),
        )
        self.trace.append(entry)
        return entry

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run until HALT or the cycle limit.

        Args:
            max_cycles: Override the instance cycle limit

        Returns:
            Execution trace (empty unless tracing is enabled)

        Raises:
            RuntimeError: If the cycle limit is reached before HALT
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles

        while not self.state.halted:
            if limit is not None and self.state.cycle_count >= limit:
                raise RuntimeError(f"Max cycles ({limit}) exceeded")
            self.step()

        return self.trace

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, reg) -> int:
        """Get value of a register (R0-R7, PC, COND)."""
        return self.state.registers.get(reg)

    def set_register(self, reg, value: int) -> None:
        self.state.registers.set(reg, value)

    def dump_registers(self) -> Dict[str, int]:
        """Get all general register values."""
        return {r.name: self.state.registers.get(r) for r in GENERAL_REGISTERS}

    def get_condition(self) -> str:
        """Name of the current condition flag (POS, ZRO or NEG)."""
        return self.state.registers.cond.name

    def get_pc(self) -> int:
        return self.state.registers.pc

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def read_memory(self, address: int) -> int:
        return self.state.memory.read(address)

    def write_memory(self, address: int, value: int) -> None:
        self.state.memory.write(address, value)

    def dump_memory(self, start: int, count: int) -> List[int]:
        """Return ``count`` words from ``start``, wrapping past xFFFF."""
        return self.state.memory.dump(start, count)

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return self.trace

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("LC-3 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            print(f"\n[Cycle {entry.cycle}] x{entry.address:04X}: {entry.word:04X}  {entry.text}")

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = []
            for reg in GENERAL_REGISTERS:
                name = reg.name
                if pre_regs[name] != post_regs[name]:
                    changes.append(f"{name}: x{pre_regs[name]:04X} -> x{post_regs[name]:04X}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")
            if pre_regs["COND"] != post_regs["COND"]:
                print(f"  COND: {pre_regs['COND']} -> {post_regs['COND']}")

            # Only report PC when it didn't simply fall through
            if entry.post_state["pc"] != (entry.address + 1) & WORD_MASK:
                print(f"  PC: x{entry.address:04X} -> x{entry.post_state['pc']:04X}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  Registers: {self.format_registers()}")
        print(f"  COND: {self.get_condition()}")
        print(f"  PC: x{self.get_pc():04X}")
        print(f"  Cycles: {self.get_cycle_count()}")
        print(f"  Halted: {self.is_halted()}")

    def format_registers(self) -> str:
        return " ".join(f"{name}=x{value:04X}" for name, value in self.dump_registers().items())

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "condition": self.get_condition(),
            "pc": self.get_pc(),
            "trace_length": len(self.trace),
            "valid": self.state.validate(),
        }
