"""LC3-VM: Emulator for the LC-3 16-bit teaching architecture.

This package loads big-endian LC-3 memory images and runs them through a
fetch-decode-execute loop, servicing the built-in character I/O traps on a
host console.

Architecture:
    MEMORY -> FETCH -> DECODE -> REGISTRY -> EXECUTE -> STATE
               |         |          |           |
            [PC += 1] [Opcode]  [Handlers]  [TrapTable]

Modules:
    bits: Sign extension and condition-flag helpers
    state: Memory, RegisterFile and MachineState
    decode: Opcode enum, DecodeResult and disassembler
    registry: Instruction handlers, one per opcode
    traps: GETC/OUT/PUTS/IN/PUTSP/HALT routines
    console: Byte-oriented console I/O
    loader: Program image loading
    cpu: Main LC3VM execution loop
"""

__version__ = "0.1.0"
__author__ = "LC3-VM Project"

from .bits import ConditionFlag, sign_extend
from .state import MachineState, Memory, Register, RegisterFile
from .decode import DecodeResult, Opcode, TrapVector, decode, disassemble
from .registry import InstructionRegistry
from .traps import TrapTable
from .console import BufferConsole, Console
from .loader import ImageLoadError
from .cpu import LC3VM

__all__ = [
    "ConditionFlag",
    "sign_extend",
    "MachineState",
    "Memory",
    "Register",
    "RegisterFile",
    "DecodeResult",
    "Opcode",
    "TrapVector",
    "decode",
    "disassemble",
    "InstructionRegistry",
    "TrapTable",
    "BufferConsole",
    "Console",
    "ImageLoadError",
    "LC3VM",
]
