"""chip8-vm: CHIP-8 Virtual Machine with a Table-Driven Decode Core.

This package implements the CHIP-8 interpreter: a 4 KiB, register-based
machine that fetches two-byte instructions, decodes them into a closed set
of opcodes, and executes them against registers, memory, a 64x32
monochrome framebuffer, two 60 Hz timers and a call stack.

Pipeline:
    MEMORY -> FETCH -> DECODE -> OPCODE -> REGISTRY -> EXECUTE -> STATE
               |         |         |          |           |
           [PC += 2] [2-level  [key +     [Frozen     [Mutable
                      table]   operands]  primitives]  CPUState]

Modules:
    memory: 12-bit addressed memory with the font table
    keys: 16-key logical keypad state
    opcode: Decoded instruction model
    decoder: Two-level decode table
    state: CPUState (registers, stack, timers, framebuffer)
    registry: Execute primitives
    cpu: Chip8CPU orchestrator
    loader: ROM file loading
    driver: Fixed-cadence frame loop
    render: Framebuffer to image conversion
    repl: Line-oriented debugger
"""

__version__ = "0.1.0"
__author__ = "chip8-vm Project"

from .errors import Chip8Error, DecodeError, ROMLoadError
from .memory import Memory
from .keys import KeyState, NO_KEYS, make_keystate
from .opcode import Opcode
from .decoder import Decoder, DecodeResult
from .state import CPUState
from .registry import InstructionRegistry
from .cpu import Chip8CPU

__all__ = [
    "Chip8Error",
    "DecodeError",
    "ROMLoadError",
    "Memory",
    "KeyState",
    "NO_KEYS",
    "make_keystate",
    "Opcode",
    "Decoder",
    "DecodeResult",
    "CPUState",
    "InstructionRegistry",
    "Chip8CPU",
]
