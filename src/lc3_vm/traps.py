"""Trap service routines for the LC-3 VM.

TRAP x20-x25 are serviced directly by the host rather than by an LC-3
operating system image. Each routine performs one console action, touches
only R0 (and memory, read-only), and returns; PC is left where the fetch
put it.

Vectors:
    GETC  (x20): read one byte into R0, no echo
    OUT   (x21): write low byte of R0
    PUTS  (x22): write the zero-terminated one-char-per-word string at R0
    IN    (x23): prompt, read one byte, echo it, store in R0
    PUTSP (x24): write the zero-terminated two-chars-per-word string at R0
    HALT  (x25): print a notice and stop the machine

Any other vector is a no-op.
"""

import logging
from typing import Callable, Dict, Optional

from .bits import WORD_MASK
from .console import Console
from .decode import TrapVector
from .state import MachineState, Register


logger = logging.getLogger(__name__)

TrapHandler = Callable[[MachineState, Console], None]

IN_PROMPT = "Enter a character: "
HALT_NOTICE = "HALT\n"

# R0 after GETC/IN when the input source is exhausted
EOF_WORD = 0xFFFF


class TrapTable:
    """Frozen table of trap service routines keyed by vector.

    Attributes:
        _routines: Mapping of trap vector to handler
        _frozen: Whether the table is locked against modifications
    """

    def __init__(self):
        self._routines: Dict[int, TrapHandler] = {}
        self._frozen = False
        self._register_all_routines()
        self.freeze()

    def _register_all_routines(self) -> None:
        self.register(TrapVector.GETC, self._trap_getc)
        self.register(TrapVector.OUT, self._trap_out)
        self.register(TrapVector.PUTS, self._trap_puts)
        self.register(TrapVector.IN, self._trap_in)
        self.register(TrapVector.PUTSP, self._trap_putsp)
        self.register(TrapVector.HALT, self._trap_halt)

    def register(self, vector: int, handler: TrapHandler) -> None:
        """Register a trap routine.

        Raises:
            RuntimeError: If table is frozen
            ValueError: If vector already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register trap routines: table is frozen")
        if vector in self._routines:
            raise ValueError(f"Trap vector already registered: x{vector:02X}")
        self._routines[vector] = handler

    def freeze(self) -> None:
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_vectors(self) -> set:
        return set(self._routines.keys())

    def dispatch(self, state: MachineState, vector: int, console: Console) -> None:
        """Run the routine for ``vector``; unknown vectors do nothing."""
        handler = self._routines.get(vector)
        if handler is None:
            logger.debug("Ignoring unknown trap vector x%02X", vector)
            return
        handler(state, console)

    # =========================================================================
    # Input
    # =========================================================================

    @staticmethod
    def _read_char(console: Console) -> int:
        value = console.read_byte()
        return EOF_WORD if value is None else value

    def _trap_getc(self, state: MachineState, console: Console) -> None:
        """GETC - Read a single character, not echoed."""
        state.registers.set(Register.R0, self._read_char(console))

    def _trap_in(self, state: MachineState, console: Console) -> None:
        """IN - Prompt for a character, echo it, store it in R0."""
        console.write_text(IN_PROMPT)
        console.flush()
        value = self._read_char(console)
        if value != EOF_WORD:
            console.write_byte(value)
        console.flush()
        state.registers.set(Register.R0, value)

    # =========================================================================
    # Output
    # =========================================================================

    def _trap_out(self, state: MachineState, console: Console) -> None:
        """OUT - Write the character in R0[7:0]."""
        console.write_byte(state.registers.get(Register.R0))
        console.flush()

    def _trap_puts(self, state: MachineState, console: Console) -> None:
        """PUTS - Write one character per word until a zero word."""
        address = state.registers.get(Register.R0)
        word = state.memory.read(address)
        while word:
            console.write_byte(word)
            address = (address + 1) & WORD_MASK
            word = state.memory.read(address)
        console.flush()

    def _trap_putsp(self, state: MachineState, console: Console) -> None:
        """PUTSP - Write two characters per word, low byte first.

        A zero high byte is skipped, which lets odd-length strings end
        mid-word.
        """
        address = state.registers.get(Register.R0)
        word = state.memory.read(address)
        while word:
            console.write_byte(word & 0xFF)
            high = word >> 8
            if high:
                console.write_byte(high)
            address = (address + 1) & WORD_MASK
            word = state.memory.read(address)
        console.flush()

    # =========================================================================
    # Control
    # =========================================================================

    def _trap_halt(self, state: MachineState, console: Console) -> None:
        """HALT - Stop the execution loop."""
        console.write_text(HALT_NOTICE)
        console.flush()
        state.halted = True


# Singleton trap table instance
_trap_table: Optional[TrapTable] = None


def get_trap_table() -> TrapTable:
    """Get the shared, frozen trap table."""
    global _trap_table
    if _trap_table is None:
        _trap_table = TrapTable()
    return _trap_table
