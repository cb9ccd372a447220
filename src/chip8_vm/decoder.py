"""Decoder: two-level table decode of CHIP-8 instruction words.

Architecture:
    (byte_hi, byte_lo) -> primary table [high nibble of byte_hi]
                              |
            +-----------------+-----------------+
            |                                   |
      operand shape                   family sub-table
    (1,2,3,4,5,6,7,9,A,B,C,D)   0x0: byte_lo    0x8: low nibble of byte_lo
                                0xE: byte_lo    0xF: byte_lo

Any pair that falls through either level is reported as an invalid
DecodeResult; decode never raises and never guesses a default.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .opcode import Opcode


NO_MATCH_REASON = "No decoding implementation found for this hex range"

Instruction = Tuple[int, int]


@dataclass
class DecodeResult:
    """Result of decoding one instruction word.

    Attributes:
        opcode: Decoded Opcode, or None if decode failed
        valid: Whether decode succeeded
        error: Reason string if decode failed
        raw: The (byte_hi, byte_lo) pair that was decoded
    """
    opcode: Optional[Opcode]
    valid: bool
    error: Optional[str] = None
    raw: Instruction = (0, 0)


def upper_nib(byte: int) -> int:
    return (byte & 0xF0) >> 4


def lower_nib(byte: int) -> int:
    return byte & 0x0F


def nibtrio_to_addr(hi: int, lo: int) -> int:
    """Combine the low nibble of hi with all of lo into a 12-bit address."""
    return (lower_nib(hi) << 8) | lo


class Decoder:
    """Table-driven instruction decoder.

    The primary table is keyed by the high nibble of the first byte. The
    0x0, 0x8, 0xE and 0xF families hold secondary tables that map the
    disambiguating bits straight to a registry key.

    Attributes:
        _primary: High nibble -> shape function
        _family_0: byte_lo -> key for 00E0/00EE
        _family_8: low nibble of byte_lo -> key for 8XY_
        _family_e: byte_lo -> key for EX__
        _family_f: byte_lo -> key for FX__
    """

    def __init__(self):
        self._family_0: Dict[int, str] = {
            0xE0: "OP_CLS",
            0xEE: "OP_RET",
        }
        self._family_8: Dict[int, str] = {
            0x0: "OP_LD_REG",
            0x1: "OP_OR",
            0x2: "OP_AND",
            0x3: "OP_XOR",
            0x4: "OP_ADD_REG",
            0x5: "OP_SUB",
            0x6: "OP_SHR",
            0x7: "OP_SUBN",
            0xE: "OP_SHL",
        }
        self._family_e: Dict[int, str] = {
            0x9E: "OP_SKP",
            0xA1: "OP_SKNP",
        }
        self._family_f: Dict[int, str] = {
            0x07: "OP_LD_VX_DT",
            0x0A: "OP_LD_KEY",
            0x15: "OP_LD_DT_VX",
            0x18: "OP_LD_ST_VX",
            0x1E: "OP_ADD_I",
            0x29: "OP_LD_FONT",
            0x33: "OP_LD_BCD",
            0x55: "OP_STORE",
            0x65: "OP_LOAD",
        }
        self._primary: Dict[int, Callable[[int, int], Optional[Opcode]]] = {
            0x0: self._decode_system,
            0x1: self._addr_shape("OP_JP"),
            0x2: self._addr_shape("OP_CALL"),
            0x3: self._imm_shape("OP_SE_IMM"),
            0x4: self._imm_shape("OP_SNE_IMM"),
            0x5: self._reg_pair_shape("OP_SE_REG"),
            0x6: self._imm_shape("OP_LD_IMM"),
            0x7: self._imm_shape("OP_ADD_IMM"),
            0x8: self._decode_logarith,
            0x9: self._reg_pair_shape("OP_SNE_REG"),
            0xA: self._addr_shape("OP_LD_I"),
            0xB: self._addr_shape("OP_JP_OFFSET"),
            0xC: self._imm_shape("OP_RND"),
            0xD: self._decode_draw,
            0xE: self._decode_keys,
            0xF: self._decode_misc,
        }

    def decode(self, instr: Instruction) -> DecodeResult:
        """Decode a (byte_hi, byte_lo) pair.

        Args:
            instr: Two instruction bytes, high byte first

        Returns:
            DecodeResult; valid is False when no instruction shape matches
        """
        hi, lo = instr
        if not (0 <= hi <= 0xFF and 0 <= lo <= 0xFF):
            return DecodeResult(None, False, error="Instruction bytes must be 8-bit values", raw=instr)

        opcode = self._primary[upper_nib(hi)](hi, lo)
        if opcode is None:
            return DecodeResult(None, False, error=NO_MATCH_REASON, raw=instr)
        return DecodeResult(opcode, True, raw=instr)

    # =========================================================================
    # Operand shapes
    # =========================================================================

    @staticmethod
    def _addr_shape(key: str) -> Callable[[int, int], Opcode]:
        def shape(hi: int, lo: int) -> Opcode:
            return Opcode(key, {"nnn": nibtrio_to_addr(hi, lo)}, (hi, lo))
        return shape

    @staticmethod
    def _imm_shape(key: str) -> Callable[[int, int], Opcode]:
        def shape(hi: int, lo: int) -> Opcode:
            return Opcode(key, {"x": lower_nib(hi), "nn": lo}, (hi, lo))
        return shape

    @staticmethod
    def _reg_pair_shape(key: str) -> Callable[[int, int], Optional[Opcode]]:
        # 5XY0 / 9XY0: the trailing nibble must be zero
        def shape(hi: int, lo: int) -> Optional[Opcode]:
            if lower_nib(lo) != 0:
                return None
            return Opcode(key, {"x": lower_nib(hi), "y": upper_nib(lo)}, (hi, lo))
        return shape

    # =========================================================================
    # Families
    # =========================================================================

    def _decode_system(self, hi: int, lo: int) -> Optional[Opcode]:
        if hi != 0x00 or lo not in self._family_0:
            return None
        return Opcode(self._family_0[lo], {}, (hi, lo))

    def _decode_logarith(self, hi: int, lo: int) -> Optional[Opcode]:
        key = self._family_8.get(lower_nib(lo))
        if key is None:
            return None
        return Opcode(key, {"x": lower_nib(hi), "y": upper_nib(lo)}, (hi, lo))

    def _decode_draw(self, hi: int, lo: int) -> Opcode:
        return Opcode(
            "OP_DRW",
            {"x": lower_nib(hi), "y": upper_nib(lo), "n": lower_nib(lo)},
            (hi, lo),
        )

    def _decode_keys(self, hi: int, lo: int) -> Optional[Opcode]:
        key = self._family_e.get(lo)
        if key is None:
            return None
        return Opcode(key, {"x": lower_nib(hi)}, (hi, lo))

    def _decode_misc(self, hi: int, lo: int) -> Optional[Opcode]:
        key = self._family_f.get(lo)
        if key is None:
            return None
        return Opcode(key, {"x": lower_nib(hi)}, (hi, lo))


# Shared decoder instance; the tables are never mutated after construction
_decoder: Optional[Decoder] = None


def get_decoder() -> Decoder:
    """Get the shared Decoder instance."""
    global _decoder
    if _decoder is None:
        _decoder = Decoder()
    return _decoder
