"""Opcode: decoded CHIP-8 instruction.

An Opcode is a registry key plus only the operand fields its shape carries:

    x, y: register nibbles (0-F)
    n:    4-bit immediate
    nn:   8-bit immediate
    nnn:  12-bit address

Registry Keys:
    OP_CLS        00E0  clear screen
    OP_RET        00EE  return from subroutine
    OP_JP         1NNN  jump
    OP_CALL       2NNN  call subroutine
    OP_SE_IMM     3XNN  skip if VX == NN
    OP_SNE_IMM    4XNN  skip if VX != NN
    OP_SE_REG     5XY0  skip if VX == VY
    OP_LD_IMM     6XNN  VX = NN
    OP_ADD_IMM    7XNN  VX += NN (no flag)
    OP_LD_REG     8XY0  VX = VY
    OP_OR         8XY1  VX |= VY
    OP_AND        8XY2  VX &= VY
    OP_XOR        8XY3  VX ^= VY
    OP_ADD_REG    8XY4  VX += VY, VF = carry
    OP_SUB        8XY5  VX = VX - VY, VF = not borrow
    OP_SHR        8XY6  VX >>= 1, VF = dropped bit
    OP_SUBN       8XY7  VX = VY - VX, VF = not borrow
    OP_SHL        8XYE  VX <<= 1, VF = dropped bit
    OP_SNE_REG    9XY0  skip if VX != VY
    OP_LD_I       ANNN  I = NNN
    OP_JP_OFFSET  BNNN  jump to NNN + V[NNN >> 8]
    OP_RND        CXNN  VX = random & NN
    OP_DRW        DXYN  draw sprite
    OP_SKP        EX9E  skip if key VX pressed
    OP_SKNP       EXA1  skip if key VX not pressed
    OP_LD_VX_DT   FX07  VX = delay timer
    OP_LD_KEY     FX0A  wait for key, VX = key
    OP_LD_DT_VX   FX15  delay timer = VX
    OP_LD_ST_VX   FX18  sound timer = VX
    OP_ADD_I      FX1E  I += VX
    OP_LD_FONT    FX29  I = glyph address of VX
    OP_LD_BCD     FX33  BCD of VX at I..I+2
    OP_STORE      FX55  store V0..VX at I
    OP_LOAD       FX65  load V0..VX from I
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Tuple


# Assembler-style rendering of each shape
MNEMONICS: Dict[str, str] = {
    "OP_CLS": "CLS",
    "OP_RET": "RET",
    "OP_JP": "JP {nnn:#05x}",
    "OP_CALL": "CALL {nnn:#05x}",
    "OP_SE_IMM": "SE V{x:X}, {nn:#04x}",
    "OP_SNE_IMM": "SNE V{x:X}, {nn:#04x}",
    "OP_SE_REG": "SE V{x:X}, V{y:X}",
    "OP_SNE_REG": "SNE V{x:X}, V{y:X}",
    "OP_LD_IMM": "LD V{x:X}, {nn:#04x}",
    "OP_ADD_IMM": "ADD V{x:X}, {nn:#04x}",
    "OP_LD_REG": "LD V{x:X}, V{y:X}",
    "OP_OR": "OR V{x:X}, V{y:X}",
    "OP_AND": "AND V{x:X}, V{y:X}",
    "OP_XOR": "XOR V{x:X}, V{y:X}",
    "OP_ADD_REG": "ADD V{x:X}, V{y:X}",
    "OP_SUB": "SUB V{x:X}, V{y:X}",
    "OP_SHR": "SHR V{x:X}, V{y:X}",
    "OP_SUBN": "SUBN V{x:X}, V{y:X}",
    "OP_SHL": "SHL V{x:X}, V{y:X}",
    "OP_LD_I": "LD I, {nnn:#05x}",
    "OP_JP_OFFSET": "JP V{x:X}, {nnn:#05x}",
    "OP_RND": "RND V{x:X}, {nn:#04x}",
    "OP_DRW": "DRW V{x:X}, V{y:X}, {n}",
    "OP_SKP": "SKP V{x:X}",
    "OP_SKNP": "SKNP V{x:X}",
    "OP_LD_VX_DT": "LD V{x:X}, DT",
    "OP_LD_KEY": "LD V{x:X}, K",
    "OP_LD_DT_VX": "LD DT, V{x:X}",
    "OP_LD_ST_VX": "LD ST, V{x:X}",
    "OP_ADD_I": "ADD I, V{x:X}",
    "OP_LD_FONT": "LD F, V{x:X}",
    "OP_LD_BCD": "LD B, V{x:X}",
    "OP_STORE": "LD [I], V{x:X}",
    "OP_LOAD": "LD V{x:X}, [I]",
}

VALID_KEYS = frozenset(MNEMONICS)


@dataclass(frozen=True)
class Opcode:
    """A decoded instruction.

    Attributes:
        key: Registry key (e.g., "OP_ADD_REG")
        params: Operand fields for this shape only (read-only view)
        raw: Source (byte_hi, byte_lo) pair, ignored by equality
    """
    key: str
    params: Mapping[str, int] = field(default_factory=dict)
    raw: Tuple[int, int] = field(default=(0, 0), compare=False)

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __hash__(self) -> int:
        return hash((self.key, tuple(sorted(self.params.items()))))

    @property
    def word(self) -> int:
        """Raw instruction as a 16-bit value."""
        return (self.raw[0] << 8) | self.raw[1]

    def mnemonic(self) -> str:
        """Assembler-style text for this instruction."""
        params = dict(self.params)
        if self.key == "OP_JP_OFFSET":
            params["x"] = params["nnn"] >> 8
        return MNEMONICS[self.key].format(**params)

    def __str__(self) -> str:
        return self.mnemonic()
