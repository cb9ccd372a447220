"""Chip8CPU: main orchestrator for the CHIP-8 engine.

This module implements the execution pipeline:
    MEMORY -> FETCH -> DECODE -> OPCODE -> REGISTRY -> EXECUTE -> STATE

The CPU is synchronous and single-threaded: every call runs to completion.
A driver advances it with step() (or fetch/decode/execute directly) and
calls decr_timers() at 60 Hz, independently of the instruction rate.
"""

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from .decoder import DecodeResult, Decoder, get_decoder
from .errors import DecodeError
from .keys import KeyState, NO_KEYS
from .memory import Memory
from .opcode import Opcode
from .registry import InstructionRegistry, get_registry
from .state import CPUState


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        instruction: Raw (byte_hi, byte_lo) pair
        opcode: Decoded Opcode (None if decode failed)
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
        error: Error message if decode failed
    """
    cycle: int
    address: int
    instruction: Tuple[int, int]
    opcode: Optional[Opcode]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class Chip8CPU:
    """CHIP-8 CPU engine.

    Owns a CPUState (memory, registers, stack, timers, framebuffer) and
    drives it through the decoder and the instruction registry.

    Attributes:
        state: Current machine state
        decoder: Decoder used for fetch/decode
        registry: InstructionRegistry with execute primitives
        trace: Bounded execution trace (recorded only when trace_enabled)
        trace_enabled: Whether step() records trace entries
        max_trace: Maximum retained trace entries (oldest dropped first)
    """

    DEFAULT_MAX_TRACE = 10000

    def __init__(
        self,
        seed: Optional[int] = None,
        trace: bool = False,
        max_trace: int = DEFAULT_MAX_TRACE,
        registry: Optional[InstructionRegistry] = None,
    ):
        """Initialize a fresh, font-seeded CPU.

        Args:
            seed: Seed for the CXNN random source (unseeded if None)
            trace: Record an execution trace in step()
            max_trace: Maximum retained trace entries
            registry: Explicit registry (overrides seed)
        """
        self.state = CPUState()
        self.decoder: Decoder = get_decoder()
        if registry is not None:
            self.registry = registry
        elif seed is not None:
            self.registry = InstructionRegistry(rng=random.Random(seed))
        else:
            self.registry = get_registry()
        self.trace: Deque[ExecutionTraceEntry] = deque(maxlen=max_trace)
        self.trace_enabled = trace
        self.max_trace = max_trace

    # =========================================================================
    # Program loading
    # =========================================================================

    def load_program(self, data: Iterable[int]) -> None:
        """Copy program bytes to 0x200.

        Raises:
            ValueError: If the program does not fit
        """
        data = bytes(data)
        self.state.memory.load_program(data)
        logger.debug("Loaded %d program bytes", len(data))

    # =========================================================================
    # Pipeline
    # =========================================================================

    def fetch(self) -> Tuple[int, int]:
        """Read the two bytes at PC and advance PC by 2."""
        pc = self.state.pc
        instr = (self.state.memory.read(pc), self.state.memory.read((pc + 1) & 0xFFF))
        self.state.advance(2)
        return instr

    def try_decode(self, instr: Tuple[int, int]) -> DecodeResult:
        """Decode without raising; failures are reported in the result."""
        return self.decoder.decode(instr)

    def decode(self, instr: Tuple[int, int]) -> Opcode:
        """Decode instr into an Opcode.

        Raises:
            DecodeError: If no instruction shape matches
        """
        result = self.decoder.decode(instr)
        if not result.valid:
            raise DecodeError(instr, result.error)
        return result.opcode

    def execute(self, opcode: Opcode, keys: KeyState = NO_KEYS) -> None:
        """Execute a decoded opcode with the given key state."""
        self.registry.execute(self.state, opcode.key, opcode.params, keys)

    def step(self, keys: KeyState = NO_KEYS) -> Opcode:
        """Run one fetch -> decode -> execute cycle.

        On decode failure the PC is restored before raising, so a failed
        step leaves the machine exactly as it was.

        Args:
            keys: Key state for key-dependent instructions (none held by default)

        Returns:
            The executed Opcode

        Raises:
            DecodeError: If the fetched bytes are not an instruction
        """
        address = self.state.pc
        pre_state = self.state.snapshot() if self.trace_enabled else None

        instr = self.fetch()
        result = self.try_decode(instr)
        if not result.valid:
            self.state.pc = address
            logger.debug("Decode failed at %#05x: %s", address, result.error)
            if self.trace_enabled:
                self._record(address, instr, None, pre_state, result.error)
            raise DecodeError(instr, result.error)

        self.execute(result.opcode, keys)
        if self.trace_enabled:
            self._record(address, instr, result.opcode, pre_state)
        return result.opcode

    def run(self, cycles: int, keys: KeyState = NO_KEYS) -> int:
        """Execute up to cycles steps.

        Returns:
            Number of instructions executed

        Raises:
            DecodeError: If an undecodable instruction is reached
        """
        for _ in range(cycles):
            self.step(keys)
        return cycles

    def _record(self, address: int, instr: Tuple[int, int], opcode: Optional[Opcode],
                pre_state: dict, error: Optional[str] = None) -> None:
        entry = ExecutionTraceEntry(
            cycle=pre_state["cycle_count"],
            address=address,
            instruction=instr,
            opcode=opcode,
            pre_state=pre_state,
            post_state=self.state.snapshot(),
            error=error,
        )
        self.trace.append(entry)

    # =========================================================================
    # Timers
    # =========================================================================

    def decr_delay(self) -> None:
        if self.state.delay > 0:
            self.state.delay -= 1

    def decr_sound(self) -> None:
        if self.state.sound > 0:
            self.state.sound -= 1

    def decr_timers(self) -> None:
        """Decrement both timers once (one 60 Hz tick)."""
        self.decr_delay()
        self.decr_sound()

    # =========================================================================
    # Inspection
    # =========================================================================

    def program_counter(self) -> int:
        return self.state.pc

    @property
    def registers(self) -> List[int]:
        return self.state.registers

    @property
    def index(self) -> int:
        return self.state.index

    @property
    def delay(self) -> int:
        return self.state.delay

    @property
    def sound(self) -> int:
        return self.state.sound

    @property
    def stack(self) -> List[int]:
        return self.state.stack

    @property
    def framebuffer(self) -> List[List[bool]]:
        return self.state.framebuffer

    @property
    def memory(self) -> Memory:
        return self.state.memory

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def view(self) -> str:
        """Text rendering of the framebuffer."""
        return self.state.view()

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP-8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            hi, lo = entry.instruction
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  Address: {entry.address:#05x}  Word: {hi:02X}{lo:02X}")
            if entry.opcode is not None:
                print(f"  Opcode: {entry.opcode.key} {dict(entry.opcode.params)}  ({entry.opcode})")

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"V{i:X}: {pre:#04x} -> {post:#04x}"
                for i, (pre, post) in enumerate(zip(pre_regs, post_regs))
                if pre != post
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            for name in ("index", "pc"):
                if entry.pre_state[name] != entry.post_state[name]:
                    print(f"  {name.upper()}: {entry.pre_state[name]:#05x} -> {entry.post_state[name]:#05x}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  {self.state}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "pc": self.state.pc,
            "index": self.state.index,
            "registers": self.dump_registers(),
            "delay": self.state.delay,
            "sound": self.state.sound,
            "stack_depth": len(self.state.stack),
            "lit_pixels": self.state.lit_pixels(),
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
