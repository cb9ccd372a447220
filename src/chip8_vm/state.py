"""CPUState: mutable machine state for the CHIP-8 engine.

State Components:
    - Memory: 4 KiB, font-seeded (exclusively owned)
    - Registers: V0-VF (16 bytes, VF doubles as carry/borrow/collision flag)
    - Index: 12-bit address register I
    - PC: 12-bit program counter, starts at 0x200
    - Timers: 8-bit delay and sound timers
    - Stack: return addresses, at most STACK_DEPTH deep
    - Framebuffer: 64x32 booleans, addressed framebuffer[x][y]
    - Cycle count: total executed instructions

A fresh CPUState is created per ROM load; afterwards it is only changed by
the registry primitives and the timer operations.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .memory import Memory, PROGRAM_START, is_twelve_bit, wrap_address


NUM_REGISTERS = 16
FLAG_REGISTER = 0xF
STACK_DEPTH = 16

DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32


def blank_framebuffer() -> List[List[bool]]:
    """Column-major 64x32 framebuffer with every pixel off."""
    return [[False] * DISPLAY_HEIGHT for _ in range(DISPLAY_WIDTH)]


@dataclass
class CPUState:
    """CHIP-8 machine state.

    Attributes:
        memory: Owned Memory instance
        registers: V0-VF byte values
        index: Index register I (12-bit)
        pc: Program counter (12-bit)
        delay: Delay timer (8-bit)
        sound: Sound timer (8-bit)
        stack: Return addresses, most recent last
        framebuffer: framebuffer[x][y] pixel values
        cycle_count: Number of executed instructions
    """
    memory: Memory = field(default_factory=Memory)
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    index: int = 0
    pc: int = PROGRAM_START
    delay: int = 0
    sound: int = 0
    stack: List[int] = field(default_factory=list)
    framebuffer: List[List[bool]] = field(default_factory=blank_framebuffer)
    cycle_count: int = 0

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, reg: int) -> int:
        """Get value of register V{reg}.

        Raises:
            IndexError: If reg is not 0x0-0xF
        """
        if not 0 <= reg < NUM_REGISTERS:
            raise IndexError(f"Invalid register: V{reg}")
        return self.registers[reg]

    def set_register(self, reg: int, value: int) -> None:
        """Set register V{reg}, truncating value to 8 bits."""
        if not 0 <= reg < NUM_REGISTERS:
            raise IndexError(f"Invalid register: V{reg}")
        self.registers[reg] = value & 0xFF

    def set_flag(self, value: bool) -> None:
        """Set VF to 1 or 0."""
        self.registers[FLAG_REGISTER] = 1 if value else 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0..VF."""
        return {f"V{i:X}": value for i, value in enumerate(self.registers)}

    # =========================================================================
    # Control flow
    # =========================================================================

    def set_pc(self, addr: int) -> None:
        self.pc = wrap_address(addr)

    def advance(self, amount: int = 2) -> None:
        """Move the PC forward (or back, for negative amounts)."""
        self.pc = wrap_address(self.pc + amount)

    def skip(self) -> None:
        """Skip the next instruction."""
        self.advance(2)

    def push(self, addr: int) -> None:
        """Push a return address.

        Raises:
            RuntimeError: If the stack already holds STACK_DEPTH entries
        """
        if len(self.stack) >= STACK_DEPTH:
            raise RuntimeError(f"Stack overflow: call depth exceeds {STACK_DEPTH}")
        self.stack.append(addr)

    def pop(self) -> int:
        """Pop the most recent return address.

        Raises:
            RuntimeError: If the stack is empty
        """
        if not self.stack:
            raise RuntimeError("Stack underflow: return with an empty call stack")
        return self.stack.pop()

    # =========================================================================
    # Display
    # =========================================================================

    def clear_screen(self) -> None:
        for column in self.framebuffer:
            for y in range(DISPLAY_HEIGHT):
                column[y] = False

    def lit_pixels(self) -> int:
        return sum(sum(column) for column in self.framebuffer)

    def view(self) -> str:
        """Render the framebuffer as text with a row-numbered border."""
        border = "   " + "-" * DISPLAY_WIDTH
        lines = [border]
        for y in range(DISPLAY_HEIGHT):
            row = "".join(
                "■" if self.framebuffer[x][y] else " " for x in range(DISPLAY_WIDTH)
            )
            lines.append(f"{y:02}|{row}|")
        lines.append(border)
        return "\n".join(lines)

    # =========================================================================
    # Inspection
    # =========================================================================

    def snapshot(self) -> dict:
        """Create a copy of the scalar state for tracing.

        Memory and framebuffer are excluded to keep trace entries small.
        """
        return {
            "registers": list(self.registers),
            "index": self.index,
            "pc": self.pc,
            "delay": self.delay,
            "sound": self.sound,
            "stack": list(self.stack),
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Check state integrity.

        Checks:
            - 16 registers, each a byte
            - PC and index within 12 bits
            - Timers within 8 bits
            - Stack within depth, every entry a 12-bit address
            - Framebuffer is 64x32

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != NUM_REGISTERS:
            return False
        if any(not isinstance(v, int) or not 0 <= v <= 0xFF for v in self.registers):
            return False

        if not is_twelve_bit(self.pc) or not is_twelve_bit(self.index):
            return False

        if not 0 <= self.delay <= 0xFF or not 0 <= self.sound <= 0xFF:
            return False

        if len(self.stack) > STACK_DEPTH:
            return False
        if any(not is_twelve_bit(addr) for addr in self.stack):
            return False

        if len(self.framebuffer) != DISPLAY_WIDTH:
            return False
        if any(len(column) != DISPLAY_HEIGHT for column in self.framebuffer):
            return False

        return self.cycle_count >= 0

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(self.registers))
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.index:03X} "
            f"DT={self.delay} ST={self.sound} SP={len(self.stack)} {regs}"
        )
