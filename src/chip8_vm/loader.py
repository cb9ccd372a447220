"""ROM loader: reads CHIP-8 program files from disk.

A ROM is a flat sequence of big-endian 16-bit instructions loaded verbatim
at 0x200. I/O failures and malformed files are reported as ROMLoadError
before the engine is ever touched.
"""

import logging
from pathlib import Path
from typing import List, Union

from .cpu import Chip8CPU
from .errors import ROMLoadError
from .memory import MEMORY_SIZE, PROGRAM_START
from .opcode import Opcode


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START


def load_bytes(path: PathLike) -> bytes:
    """Read a binary file.

    Raises:
        ROMLoadError: If the file cannot be read
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ROMLoadError(str(e)) from e


def check_rom(rom: bytes) -> None:
    """Validate ROM length.

    Raises:
        ROMLoadError: If the ROM has an odd length or exceeds program space
    """
    if len(rom) % 2 != 0:
        raise ROMLoadError("ROM could not be parsed into groups of (u8, u8)")
    if len(rom) > MAX_ROM_SIZE:
        raise ROMLoadError(f"ROM of {len(rom)} bytes exceeds {MAX_ROM_SIZE} bytes of program space")


def load_rom(path: PathLike, **cpu_kwargs) -> Chip8CPU:
    """Create a fresh CPU with the ROM at path loaded.

    Args:
        path: ROM file path
        **cpu_kwargs: Passed through to Chip8CPU

    Returns:
        New Chip8CPU ready to execute at 0x200

    Raises:
        ROMLoadError: If the file cannot be read or is malformed
    """
    rom = load_bytes(path)
    check_rom(rom)
    cpu = Chip8CPU(**cpu_kwargs)
    cpu.load_program(rom)
    logger.info("Loaded ROM %s (%d bytes)", path, len(rom))
    return cpu


def load_opcodes(path: PathLike) -> List[Opcode]:
    """Decode every instruction word of a ROM in file order.

    Raises:
        ROMLoadError: If the file cannot be read or has an odd length
        DecodeError: If any word is not an instruction
    """
    rom = load_bytes(path)
    if len(rom) % 2 != 0:
        raise ROMLoadError("ROM could not be parsed into groups of (u8, u8)")

    cpu = Chip8CPU()
    return [cpu.decode((rom[i], rom[i + 1])) for i in range(0, len(rom), 2)]


def disassemble(rom: bytes, start: int = PROGRAM_START) -> List[str]:
    """Render a listing of a ROM image; undecodable words are shown as data.

    Returns:
        One line per word: address, raw word, mnemonic
    """
    cpu = Chip8CPU()
    lines = []
    for offset in range(0, len(rom) - 1, 2):
        instr = (rom[offset], rom[offset + 1])
        result = cpu.try_decode(instr)
        text = str(result.opcode) if result.valid else f"DW {instr[0]:02X}{instr[1]:02X}"
        lines.append(f"{start + offset:03X}: {instr[0]:02X}{instr[1]:02X}  {text}")
    return lines
