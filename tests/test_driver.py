"""Tests for the frame driver."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.cpu import Chip8CPU
from chip8_vm.driver import DEFAULT_CYCLES_PER_FRAME, FrameDriver
from chip8_vm.errors import DecodeError
from chip8_vm.keys import make_keystate


DELAY_WAIT = bytes([
    0x60, 0x05,  # 200: LD V0, 0x05
    0xF0, 0x15,  # 202: LD DT, V0
    0xF1, 0x07,  # 204: LD V1, DT
    0x31, 0x00,  # 206: SE V1, 0x00
    0x12, 0x04,  # 208: JP 0x204
    0x12, 0x0A,  # 20A: JP 0x20a
])


@pytest.fixture
def cpu():
    cpu = Chip8CPU()
    cpu.load_program(DELAY_WAIT)
    return cpu


class TestFrameDriver:
    """Test frame cadence."""

    def test_default_cycles(self, cpu):
        assert FrameDriver(cpu).cycles_per_frame == DEFAULT_CYCLES_PER_FRAME == 8

    def test_invalid_cycles(self, cpu):
        with pytest.raises(ValueError):
            FrameDriver(cpu, cycles_per_frame=0)

    def test_run_frame(self, cpu):
        driver = FrameDriver(cpu, cycles_per_frame=4)
        driver.run_frame()
        assert cpu.get_cycle_count() == 4
        assert cpu.delay == 4
        assert driver.frames == 1

    def test_delay_loop_finishes(self, cpu):
        """The busy-wait only exits once the timer has ticked down."""
        driver = FrameDriver(cpu, cycles_per_frame=4)
        assert driver.run(10) == 10
        assert cpu.delay == 0
        assert cpu.program_counter() == 0x20A
        assert driver.frames == 10

    def test_keys_source(self):
        cpu = Chip8CPU()
        cpu.load_program([0xF3, 0x0A, 0x12, 0x02])
        calls = []

        def keys_source():
            calls.append(len(calls))
            return make_keystate([0x9]) if len(calls) > 2 else make_keystate([])

        FrameDriver(cpu, cycles_per_frame=2).run(4, keys_source)
        assert len(calls) == 4
        assert cpu.registers[3] == 0x9

    def test_decode_error_skips_timers(self):
        cpu = Chip8CPU()
        cpu.load_program([0x60, 0x03, 0xF0, 0x15, 0xFF, 0xFF])
        driver = FrameDriver(cpu, cycles_per_frame=4)
        with pytest.raises(DecodeError):
            driver.run_frame()
        assert cpu.delay == 3
        assert driver.frames == 0

    def test_realtime_sleeps(self, cpu, monkeypatch):
        sleeps = []
        monkeypatch.setattr("chip8_vm.driver.time.sleep", sleeps.append)
        FrameDriver(cpu, cycles_per_frame=1, realtime=True).run(2)
        assert len(sleeps) == 2
        assert all(0 < s <= 1 / 60 for s in sleeps)
