"""Exception taxonomy for chip8-vm.

Recoverable, caller-visible failures derive from Chip8Error. Invariant
violations inside the engine (bad memory address, oversize program, stack
misuse) are raised as builtin exceptions and are not meant to be recovered.
"""

from typing import Tuple


class Chip8Error(Exception):
    """Base class for reported chip8-vm errors."""


class DecodeError(Chip8Error):
    """Raised when an instruction byte pair matches no instruction shape.

    Attributes:
        instr: The offending (byte_hi, byte_lo) pair
        reason: Human-readable explanation
    """

    def __init__(self, instr: Tuple[int, int], reason: str):
        self.instr = instr
        self.reason = reason
        hi, lo = instr
        super().__init__(f"Could not decode (0x{hi:02X}, 0x{lo:02X}) because {reason}")


class ROMLoadError(Chip8Error):
    """Raised when a ROM file cannot be read or is not a valid program."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Could not load ROM: {reason}")


class CommandParseError(Chip8Error):
    """Raised by the debugger for an unrecognized command word."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Could not parse command: {command}")


class OpcodeParseError(Chip8Error):
    """Raised by the debugger when a hex argument cannot be parsed."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Could not parse hex value: {text}")
