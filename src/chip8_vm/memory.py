"""Memory: 4 KiB flat address space for the CHIP-8 machine.

Layout:
    0x000-0x04F: hexadecimal font glyphs (16 glyphs x 5 bytes)
    0x050-0x1FF: unused (historically the interpreter itself)
    0x200-0xFFF: program space

Addresses are 12 bits wide. Direct reads and writes outside 0x000-0xFFF
raise IndexError; computed addresses inside the engine go through
wrap_address() so they can never leave the 12-bit range.
"""

from typing import Iterable


MEMORY_SIZE = 4096
PROGRAM_START = 0x200
ADDRESS_MASK = 0xFFF

FONT_START = 0x000
FONT_GLYPH_SIZE = 5

# Hex digit sprites 0-F, 8 pixels wide (upper nibble used), 5 rows tall
FONT_TABLE = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


def is_twelve_bit(addr: int) -> bool:
    """Check that an address fits in the 12-bit address space."""
    return 0 <= addr <= ADDRESS_MASK


def wrap_address(addr: int) -> int:
    """Reduce a computed address into the 12-bit address space."""
    return addr & ADDRESS_MASK


def font_address(digit: int) -> int:
    """Address of the glyph for a hex digit (only the low nibble is used)."""
    return FONT_START + (digit & 0x0F) * FONT_GLYPH_SIZE


class Memory:
    """Flat byte-addressable memory, preloaded with the font table.

    Attributes:
        _cells: Backing bytearray of MEMORY_SIZE bytes
    """

    def __init__(self):
        self._cells = bytearray(MEMORY_SIZE)
        self._cells[FONT_START:FONT_START + len(FONT_TABLE)] = FONT_TABLE

    def __len__(self) -> int:
        return MEMORY_SIZE

    def _check(self, addr: int, action: str) -> None:
        if not is_twelve_bit(addr):
            raise IndexError(
                f"Tried to {action} memory with an address wider than 12 bits: {addr:#x}"
            )

    def read(self, addr: int) -> int:
        """Read one byte.

        Raises:
            IndexError: If addr is outside 0x000-0xFFF
        """
        self._check(addr, "read")
        return self._cells[addr]

    def write(self, addr: int, value: int) -> None:
        """Write one byte (value is truncated to 8 bits).

        Raises:
            IndexError: If addr is outside 0x000-0xFFF
        """
        self._check(addr, "write")
        self._cells[addr] = value & 0xFF

    def read_word(self, addr: int) -> int:
        """Read the big-endian 16-bit word at addr, addr+1.

        Only used by inspection tooling; fetch reads the two bytes itself.
        """
        return (self.read(addr) << 8) | self.read(addr + 1)

    def load_program(self, data: Iterable[int]) -> None:
        """Copy program bytes into memory starting at PROGRAM_START.

        Raises:
            ValueError: If data does not fit in the program space
        """
        data = bytes(data)
        capacity = MEMORY_SIZE - PROGRAM_START
        if len(data) > capacity:
            raise ValueError(
                f"Program of {len(data)} bytes exceeds the {capacity} bytes of program space"
            )
        self._cells[PROGRAM_START:PROGRAM_START + len(data)] = data

    def dump(self, start: int, length: int) -> bytes:
        """Return a copy of length bytes starting at start."""
        if length < 0:
            raise ValueError("length must be non-negative")
        if length == 0:
            return b""
        self._check(start, "read")
        self._check(start + length - 1, "read")
        return bytes(self._cells[start:start + length])
