"""FrameDriver: fixed-cadence execution loop for a Chip8CPU.

Each frame runs a fixed number of instructions with one key state and then
ticks both timers once, so the timers run at TIMER_FREQUENCY regardless of
how many instructions execute per frame.
"""

import logging
import time
from typing import Callable, Optional

from .cpu import Chip8CPU
from .keys import KeyState, NO_KEYS


logger = logging.getLogger(__name__)

CPU_FREQUENCY = 500
TIMER_FREQUENCY = 60
DEFAULT_CYCLES_PER_FRAME = CPU_FREQUENCY // TIMER_FREQUENCY


class FrameDriver:
    """Advance a CPU frame by frame.

    Attributes:
        cpu: The driven CPU
        cycles_per_frame: Instructions executed per timer tick
        realtime: Sleep so each frame lasts at least 1/TIMER_FREQUENCY s
        frames: Number of completed frames
    """

    def __init__(self, cpu: Chip8CPU, cycles_per_frame: int = DEFAULT_CYCLES_PER_FRAME,
                 realtime: bool = False):
        if cycles_per_frame < 1:
            raise ValueError("cycles_per_frame must be at least 1")
        self.cpu = cpu
        self.cycles_per_frame = cycles_per_frame
        self.realtime = realtime
        self.frames = 0

    def run_frame(self, keys: KeyState = NO_KEYS) -> None:
        """Execute one frame of instructions, then tick the timers.

        Raises:
            DecodeError: Propagated from the CPU; timers are not ticked
        """
        for _ in range(self.cycles_per_frame):
            self.cpu.step(keys)
        self.cpu.decr_timers()
        self.frames += 1

    def run(self, frames: int, keys_source: Optional[Callable[[], KeyState]] = None) -> int:
        """Run a number of frames.

        Args:
            frames: Frames to run
            keys_source: Called once per frame for the current key state

        Returns:
            Number of frames completed
        """
        period = 1.0 / TIMER_FREQUENCY
        for _ in range(frames):
            started = time.monotonic()
            keys = keys_source() if keys_source is not None else NO_KEYS
            self.run_frame(keys)
            if self.realtime:
                remaining = period - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
        logger.debug("Ran %d frames (%d total)", frames, self.frames)
        return frames
