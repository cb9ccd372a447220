"""InstructionRegistry: verified execute primitives for the CHIP-8 engine.

Each decoded Opcode key maps to exactly one primitive. A primitive takes
(CPUState, params, keys) and mutates only the state its instruction names.
The registry is frozen after initialization so the instruction set stays
closed.

Semantics fixed here:
    - Arithmetic wraps modulo 256; VF carries the carry (ADD) or the
      inverted borrow (SUB/SUBN: 1 when no borrow occurred)
    - Shifts use the modern variant: only VX is shifted, VY is ignored
    - Store/Load use the modern variant: the index register is unchanged
    - BNNN jumps to NNN + V[NNN >> 8]
    - FX0A rewinds the PC by 2 while no key is held so it is re-fetched
    - FX1E adds to I without touching VF; computed addresses wrap at 12 bits
"""

import random
from typing import Any, Callable, Dict, Optional

from .keys import KeyState, NO_KEYS, pressed_keys
from .memory import font_address, wrap_address
from .state import CPUState, DISPLAY_HEIGHT, DISPLAY_WIDTH, FLAG_REGISTER


Primitive = Callable[[CPUState, Dict[str, Any], KeyState], None]


class InstructionRegistry:
    """Frozen registry of CHIP-8 execute primitives.

    Attributes:
        _primitives: Dictionary mapping opcode keys to handler functions
        _frozen: Whether the registry is locked against modifications
        _rng: Random source for CXNN
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """Initialize registry with all primitives.

        Args:
            rng: Random source for OP_RND (defaults to a fresh random.Random)
        """
        self._primitives: Dict[str, Primitive] = {}
        self._frozen = False
        self._rng = rng if rng is not None else random.Random()
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all instruction primitives."""
        # Display and flow
        self.register("OP_CLS", self._op_cls)
        self.register("OP_RET", self._op_ret)
        self.register("OP_JP", self._op_jp)
        self.register("OP_CALL", self._op_call)
        self.register("OP_JP_OFFSET", self._op_jp_offset)

        # Conditional skips
        self.register("OP_SE_IMM", self._op_se_imm)
        self.register("OP_SNE_IMM", self._op_sne_imm)
        self.register("OP_SE_REG", self._op_se_reg)
        self.register("OP_SNE_REG", self._op_sne_reg)

        # Immediates
        self.register("OP_LD_IMM", self._op_ld_imm)
        self.register("OP_ADD_IMM", self._op_add_imm)

        # Register ALU
        self.register("OP_LD_REG", self._op_ld_reg)
        self.register("OP_OR", self._op_or)
        self.register("OP_AND", self._op_and)
        self.register("OP_XOR", self._op_xor)
        self.register("OP_ADD_REG", self._op_add_reg)
        self.register("OP_SUB", self._op_sub)
        self.register("OP_SUBN", self._op_subn)
        self.register("OP_SHR", self._op_shr)
        self.register("OP_SHL", self._op_shl)

        # Index, random, draw
        self.register("OP_LD_I", self._op_ld_i)
        self.register("OP_RND", self._op_rnd)
        self.register("OP_DRW", self._op_drw)

        # Input
        self.register("OP_SKP", self._op_skp)
        self.register("OP_SKNP", self._op_sknp)
        self.register("OP_LD_KEY", self._op_ld_key)

        # Timers
        self.register("OP_LD_VX_DT", self._op_ld_vx_dt)
        self.register("OP_LD_DT_VX", self._op_ld_dt_vx)
        self.register("OP_LD_ST_VX", self._op_ld_st_vx)

        # Memory
        self.register("OP_ADD_I", self._op_add_i)
        self.register("OP_LD_FONT", self._op_ld_font)
        self.register("OP_LD_BCD", self._op_ld_bcd)
        self.register("OP_STORE", self._op_store)
        self.register("OP_LOAD", self._op_load)

    def register(self, key: str, handler: Primitive) -> None:
        """Register a primitive operation.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid opcode keys."""
        return set(self._primitives.keys())

    def execute(self, state: CPUState, key: str, params: Dict[str, Any],
                keys: KeyState = NO_KEYS) -> None:
        """Execute a registered primitive against state.

        Args:
            state: CPU state to mutate
            key: Opcode key
            params: Opcode operands
            keys: Current logical key state

        Raises:
            KeyError: If key not in registry
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown opcode key: {key}")

        self._primitives[key](state, params, keys)
        state.cycle_count += 1

    # =========================================================================
    # Display and Flow Primitives
    # =========================================================================

    def _op_cls(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """00E0 - Turn every pixel off."""
        state.clear_screen()

    def _op_ret(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """00EE - Pop the return address into PC."""
        state.set_pc(state.pop())

    def _op_jp(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """1NNN - Jump to NNN."""
        state.set_pc(params["nnn"])

    def _op_call(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """2NNN - Push the (already advanced) PC, then jump to NNN."""
        state.push(state.pc)
        state.set_pc(params["nnn"])

    def _op_jp_offset(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """BNNN - Jump to NNN + VX, where X is the top nibble of NNN."""
        nnn = params["nnn"]
        state.set_pc(nnn + state.registers[nnn >> 8])

    # =========================================================================
    # Skip Primitives
    # =========================================================================

    def _op_se_imm(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        if state.registers[params["x"]] == params["nn"]:
            state.skip()

    def _op_sne_imm(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        if state.registers[params["x"]] != params["nn"]:
            state.skip()

    def _op_se_reg(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        if state.registers[params["x"]] == state.registers[params["y"]]:
            state.skip()

    def _op_sne_reg(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        if state.registers[params["x"]] != state.registers[params["y"]]:
            state.skip()

    # =========================================================================
    # Immediate Primitives
    # =========================================================================

    def _op_ld_imm(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.set_register(params["x"], params["nn"])

    def _op_add_imm(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """7XNN - VX += NN, wrapping; VF is not affected."""
        x = params["x"]
        state.set_register(x, state.registers[x] + params["nn"])

    # =========================================================================
    # Register ALU Primitives
    # =========================================================================

    def _op_ld_reg(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.set_register(params["x"], state.registers[params["y"]])

    def _op_or(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        x = params["x"]
        state.set_register(x, state.registers[x] | state.registers[params["y"]])

    def _op_and(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        x = params["x"]
        state.set_register(x, state.registers[x] & state.registers[params["y"]])

    def _op_xor(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        x = params["x"]
        state.set_register(x, state.registers[x] ^ state.registers[params["y"]])

    def _op_add_reg(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """8XY4 - VX += VY, VF = 1 on carry else 0.

        The flag is written before the result, so with X = F the sum wins.
        """
        x = params["x"]
        total = state.registers[x] + state.registers[params["y"]]
        state.set_flag(total > 0xFF)
        state.set_register(x, total)

    def _op_sub(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """8XY5 - VX = VX - VY, VF = 1 when no borrow occurred."""
        x = params["x"]
        vx, vy = state.registers[x], state.registers[params["y"]]
        state.set_flag(vx >= vy)
        state.set_register(x, vx - vy)

    def _op_subn(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """8XY7 - VX = VY - VX, VF = 1 when no borrow occurred."""
        x = params["x"]
        vx, vy = state.registers[x], state.registers[params["y"]]
        state.set_flag(vy >= vx)
        state.set_register(x, vy - vx)

    def _op_shr(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """8XY6 - VX >>= 1, VF = dropped least significant bit."""
        x = params["x"]
        vx = state.registers[x]
        state.registers[FLAG_REGISTER] = vx & 0x01
        state.set_register(x, vx >> 1)

    def _op_shl(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """8XYE - VX <<= 1, VF = dropped most significant bit."""
        x = params["x"]
        vx = state.registers[x]
        state.registers[FLAG_REGISTER] = (vx >> 7) & 0x01
        state.set_register(x, vx << 1)

    # =========================================================================
    # Index, Random, Draw Primitives
    # =========================================================================

    def _op_ld_i(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.index = params["nnn"]

    def _op_rnd(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """CXNN - VX = uniformly random byte & NN."""
        state.set_register(params["x"], self._rng.getrandbits(8) & params["nn"])

    def _op_drw(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """DXYN - XOR an N-row sprite from memory[I] onto the screen at (VX, VY).

        Only the origin wraps. Columns past the right edge and rows past the
        bottom edge are clipped. VF = 1 if any lit pixel was turned off.
        """
        origin_x = state.registers[params["x"]] % DISPLAY_WIDTH
        origin_y = state.registers[params["y"]] % DISPLAY_HEIGHT
        state.registers[FLAG_REGISTER] = 0

        for row in range(params["n"]):
            y = origin_y + row
            if y >= DISPLAY_HEIGHT:
                break
            sprite_row = state.memory.read(wrap_address(state.index + row))
            for col in range(8):
                x = origin_x + col
                if x >= DISPLAY_WIDTH:
                    break
                if not (sprite_row >> (7 - col)) & 0x01:
                    continue
                column = state.framebuffer[x]
                if column[y]:
                    column[y] = False
                    state.registers[FLAG_REGISTER] = 1
                else:
                    column[y] = True

    # =========================================================================
    # Input Primitives
    # =========================================================================

    def _op_skp(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """EX9E - Skip if the key in VX (low nibble) is held."""
        if keys[state.registers[params["x"]] & 0x0F]:
            state.skip()

    def _op_sknp(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """EXA1 - Skip if the key in VX (low nibble) is not held."""
        if not keys[state.registers[params["x"]] & 0x0F]:
            state.skip()

    def _op_ld_key(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX0A - Store the lowest held key in VX, or replay next cycle.

        The engine is polled rather than blocking, so with no key held the
        PC is rewound onto this instruction.
        """
        held = pressed_keys(keys)
        if held:
            state.set_register(params["x"], held[0])
        else:
            state.advance(-2)

    # =========================================================================
    # Timer Primitives
    # =========================================================================

    def _op_ld_vx_dt(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.set_register(params["x"], state.delay)

    def _op_ld_dt_vx(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.delay = state.registers[params["x"]]

    def _op_ld_st_vx(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        state.sound = state.registers[params["x"]]

    # =========================================================================
    # Memory Primitives
    # =========================================================================

    def _op_add_i(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX1E - I += VX. No carry flag; the result wraps at 12 bits."""
        state.index = wrap_address(state.index + state.registers[params["x"]])

    def _op_ld_font(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX29 - I = address of the font glyph for the low nibble of VX."""
        state.index = font_address(state.registers[params["x"]])

    def _op_ld_bcd(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX33 - Write hundreds, tens and ones of VX at I, I+1, I+2."""
        vx = state.registers[params["x"]]
        digits = (vx // 100, (vx % 100) // 10, vx % 10)
        for offset, digit in enumerate(digits):
            state.memory.write(wrap_address(state.index + offset), digit)

    def _op_store(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX55 - Copy V0..VX to memory at I. I is left unchanged."""
        for reg in range(params["x"] + 1):
            state.memory.write(wrap_address(state.index + reg), state.registers[reg])

    def _op_load(self, state: CPUState, params: Dict[str, Any], keys: KeyState) -> None:
        """FX65 - Copy memory at I into V0..VX. I is left unchanged."""
        for reg in range(params["x"] + 1):
            state.registers[reg] = state.memory.read(wrap_address(state.index + reg))


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the shared registry instance (unseeded random source)."""
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
