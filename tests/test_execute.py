"""Tests for instruction execution semantics."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.cpu import Chip8CPU
from chip8_vm.keys import NO_KEYS, make_keystate
from chip8_vm.memory import FONT_START, font_address
from chip8_vm.opcode import Opcode
from chip8_vm.registry import InstructionRegistry


def run(cpu, value, keys=NO_KEYS):
    """Execute a raw instruction word without fetching it."""
    cpu.execute(cpu.decode((value >> 8, value & 0xFF)), keys)


@pytest.fixture
def cpu():
    return Chip8CPU(seed=1234)


class TestRegistry:
    """Test registry structure."""

    def test_frozen(self):
        registry = InstructionRegistry()
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register("OP_NEW", lambda state, params, keys: None)

    def test_unknown_key(self, cpu):
        with pytest.raises(KeyError):
            cpu.execute(Opcode("OP_HALT", {}))

    def test_cycle_count(self, cpu):
        run(cpu, 0x6001)
        run(cpu, 0x6102)
        assert cpu.get_cycle_count() == 2


class TestImmediates:
    """Test 6XNN and 7XNN."""

    def test_set(self, cpu):
        run(cpu, 0x6A42)
        assert cpu.registers[0xA] == 0x42

    def test_add_wraps(self, cpu):
        """VX += NN wraps without a fatal error."""
        cpu.registers[1] = 0xFF
        run(cpu, 0x7102)
        assert cpu.registers[1] == 0x01

    def test_add_leaves_flag(self, cpu):
        cpu.registers[1] = 0xFF
        cpu.registers[0xF] = 0
        run(cpu, 0x7102)
        assert cpu.registers[0xF] == 0


class TestLogical:
    """Test 8XY0-8XY3."""

    @pytest.fixture
    def loaded(self, cpu):
        cpu.registers[1] = 0b1100
        cpu.registers[2] = 0b1010
        return cpu

    def test_copy(self, loaded):
        run(loaded, 0x8120)
        assert loaded.registers[1] == 0b1010

    def test_or(self, loaded):
        run(loaded, 0x8121)
        assert loaded.registers[1] == 0b1110

    def test_and(self, loaded):
        run(loaded, 0x8122)
        assert loaded.registers[1] == 0b1000

    def test_xor(self, loaded):
        run(loaded, 0x8123)
        assert loaded.registers[1] == 0b0110

    def test_source_unchanged(self, loaded):
        run(loaded, 0x8123)
        assert loaded.registers[2] == 0b1010


class TestArithmetic:
    """Test 8XY4, 8XY5, 8XY7."""

    def test_add_with_carry(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0xFF, 0x01
        run(cpu, 0x8124)
        assert cpu.registers[1] == 0x00
        assert cpu.registers[0xF] == 1

    def test_add_without_carry(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x01, 0x01
        cpu.registers[0xF] = 1
        run(cpu, 0x8124)
        assert cpu.registers[1] == 0x02
        assert cpu.registers[0xF] == 0

    def test_sub_no_borrow(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x05, 0x03
        run(cpu, 0x8125)
        assert cpu.registers[1] == 0x02
        assert cpu.registers[0xF] == 1

    def test_sub_borrow(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x03, 0x05
        run(cpu, 0x8125)
        assert cpu.registers[1] == 0xFE
        assert cpu.registers[0xF] == 0

    def test_sub_equal_is_no_borrow(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x07, 0x07
        run(cpu, 0x8125)
        assert cpu.registers[1] == 0x00
        assert cpu.registers[0xF] == 1

    def test_subn_no_borrow(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x03, 0x05
        run(cpu, 0x8127)
        assert cpu.registers[1] == 0x02
        assert cpu.registers[0xF] == 1

    def test_subn_borrow(self, cpu):
        cpu.registers[1], cpu.registers[2] = 0x05, 0x03
        run(cpu, 0x8127)
        assert cpu.registers[1] == 0xFE
        assert cpu.registers[0xF] == 0


class TestShifts:
    """Test modern 8XY6 and 8XYE (VY ignored)."""

    def test_shift_right(self, cpu):
        cpu.registers[1] = 0b0000_0101
        cpu.registers[2] = 0xFF
        run(cpu, 0x8126)
        assert cpu.registers[1] == 0b0000_0010
        assert cpu.registers[0xF] == 1

    def test_shift_right_even(self, cpu):
        cpu.registers[1] = 0b0000_0100
        run(cpu, 0x8126)
        assert cpu.registers[1] == 0b0000_0010
        assert cpu.registers[0xF] == 0

    def test_shift_left_drops_msb(self, cpu):
        cpu.registers[1] = 0b1000_0001
        cpu.registers[2] = 0x00
        run(cpu, 0x812E)
        assert cpu.registers[1] == 0b0000_0010
        assert cpu.registers[0xF] == 1

    def test_shift_left_no_msb(self, cpu):
        cpu.registers[1] = 0b0100_0001
        run(cpu, 0x812E)
        assert cpu.registers[1] == 0b1000_0010
        assert cpu.registers[0xF] == 0

    def test_vy_not_used(self, cpu):
        cpu.registers[1] = 0x10
        cpu.registers[2] = 0x03
        run(cpu, 0x8126)
        assert cpu.registers[1] == 0x08
        assert cpu.registers[2] == 0x03


class TestSkips:
    """Test conditional skips advance PC by an extra 2."""

    def test_skip_eq_imm(self, cpu):
        cpu.registers[3] = 0x42
        run(cpu, 0x3342)
        assert cpu.program_counter() == 0x202

    def test_no_skip_eq_imm(self, cpu):
        run(cpu, 0x3342)
        assert cpu.program_counter() == 0x200

    def test_skip_neq_imm(self, cpu):
        run(cpu, 0x4342)
        assert cpu.program_counter() == 0x202

    def test_skip_eq_reg(self, cpu):
        cpu.registers[1] = cpu.registers[2] = 9
        run(cpu, 0x5120)
        assert cpu.program_counter() == 0x202

    def test_skip_neq_reg(self, cpu):
        cpu.registers[1] = 1
        run(cpu, 0x9120)
        assert cpu.program_counter() == 0x202

    def test_no_skip_neq_reg(self, cpu):
        run(cpu, 0x9120)
        assert cpu.program_counter() == 0x200


class TestJumpsAndCalls:
    """Test 1NNN, 2NNN, 00EE, BNNN."""

    def test_jump(self, cpu):
        run(cpu, 0x1ABC)
        assert cpu.program_counter() == 0xABC

    def test_jump_offset_uses_top_nibble_register(self, cpu):
        cpu.registers[3] = 0x10
        cpu.registers[0] = 0x77
        run(cpu, 0xB345)
        assert cpu.program_counter() == 0x355

    def test_jump_offset_wraps(self, cpu):
        cpu.registers[0xF] = 0xFF
        run(cpu, 0xBFFF)
        assert cpu.program_counter() == (0xFFF + 0xFF) & 0xFFF

    def test_call_then_return(self, cpu):
        """Call pushes the post-fetch PC; return restores it."""
        cpu.load_program([0x23, 0x00])
        cpu.memory.write(0x300, 0x00)
        cpu.memory.write(0x301, 0xEE)
        cpu.step()
        assert cpu.program_counter() == 0x300
        assert cpu.stack == [0x202]
        cpu.step()
        assert cpu.program_counter() == 0x202
        assert cpu.stack == []

    def test_return_on_empty_stack(self, cpu):
        with pytest.raises(RuntimeError, match="underflow"):
            run(cpu, 0x00EE)

    def test_call_overflow(self, cpu):
        for _ in range(16):
            run(cpu, 0x2300)
        with pytest.raises(RuntimeError, match="overflow"):
            run(cpu, 0x2300)


class TestIndexAndMemory:
    """Test ANNN, FX1E, FX29, FX33, FX55, FX65."""

    def test_set_index(self, cpu):
        run(cpu, 0xA22A)
        assert cpu.index == 0x22A

    def test_add_to_index(self, cpu):
        cpu.state.index = 0x300
        cpu.registers[2] = 0x20
        run(cpu, 0xF21E)
        assert cpu.index == 0x320

    def test_add_to_index_no_flag(self, cpu):
        """Overflow past 0xFFF wraps and leaves VF alone."""
        cpu.state.index = 0xFFF
        cpu.registers[2] = 0x02
        cpu.registers[0xF] = 0
        run(cpu, 0xF21E)
        assert cpu.index == 0x001
        assert cpu.registers[0xF] == 0

    def test_font(self, cpu):
        cpu.registers[4] = 0x7
        run(cpu, 0xF429)
        assert cpu.index == FONT_START + 7 * 5

    def test_font_hex_digit(self, cpu):
        cpu.registers[4] = 0xF
        run(cpu, 0xF429)
        assert cpu.index == font_address(0xF)
        assert cpu.memory.dump(cpu.index, 5) == bytes([0xF0, 0x80, 0xF0, 0x80, 0x80])

    def test_bcd(self, cpu):
        cpu.registers[5] = 254
        cpu.state.index = 0x300
        run(cpu, 0xF533)
        assert cpu.memory.dump(0x300, 3) == bytes([2, 5, 4])

    def test_bcd_small(self, cpu):
        cpu.registers[5] = 7
        cpu.state.index = 0x300
        run(cpu, 0xF533)
        assert cpu.memory.dump(0x300, 3) == bytes([0, 0, 7])

    def test_store(self, cpu):
        cpu.state.registers[:4] = [1, 2, 3, 4]
        cpu.state.index = 0x400
        run(cpu, 0xF255)
        assert cpu.memory.dump(0x400, 4) == bytes([1, 2, 3, 0])
        assert cpu.index == 0x400

    def test_load(self, cpu):
        cpu.memory.write(0x400, 9)
        cpu.memory.write(0x401, 8)
        cpu.memory.write(0x402, 7)
        cpu.state.index = 0x400
        run(cpu, 0xF165)
        assert cpu.registers[:3] == [9, 8, 0]
        assert cpu.index == 0x400

    def test_store_all_registers(self, cpu):
        cpu.state.registers[:] = list(range(16))
        cpu.state.index = 0x500
        run(cpu, 0xFF55)
        assert cpu.memory.dump(0x500, 16) == bytes(range(16))


class TestTimers:
    """Test timer instructions and decrement."""

    def test_set_and_get_delay(self, cpu):
        cpu.registers[1] = 30
        run(cpu, 0xF115)
        assert cpu.delay == 30
        run(cpu, 0xF207)
        assert cpu.registers[2] == 30

    def test_set_sound(self, cpu):
        cpu.registers[1] = 5
        run(cpu, 0xF118)
        assert cpu.sound == 5

    def test_decrement(self, cpu):
        cpu.state.delay = 2
        cpu.state.sound = 1
        cpu.decr_timers()
        assert (cpu.delay, cpu.sound) == (1, 0)

    def test_never_below_zero(self, cpu):
        for _ in range(5):
            cpu.decr_delay()
            cpu.decr_sound()
        assert cpu.delay == 0
        assert cpu.sound == 0


class TestRandom:
    """Test CXNN masking (values are not asserted)."""

    def test_masked(self, cpu):
        for _ in range(50):
            run(cpu, 0xC10F)
            assert cpu.registers[1] & 0xF0 == 0

    def test_zero_mask(self, cpu):
        run(cpu, 0xC100)
        assert cpu.registers[1] == 0

    def test_seeded_reproducible(self):
        a, b = Chip8CPU(seed=7), Chip8CPU(seed=7)
        for _ in range(10):
            run(a, 0xC1FF)
            run(b, 0xC1FF)
            assert a.registers[1] == b.registers[1]


class TestKeys:
    """Test EX9E, EXA1 and FX0A."""

    def test_skip_if_pressed(self, cpu):
        cpu.registers[1] = 0xA
        run(cpu, 0xE19E, make_keystate([0xA]))
        assert cpu.program_counter() == 0x202

    def test_no_skip_if_not_pressed(self, cpu):
        cpu.registers[1] = 0xA
        run(cpu, 0xE19E, make_keystate([0xB]))
        assert cpu.program_counter() == 0x200

    def test_skip_if_not_pressed(self, cpu):
        cpu.registers[1] = 0xA
        run(cpu, 0xE1A1)
        assert cpu.program_counter() == 0x202

    def test_get_key_waits(self, cpu):
        """With no key held the instruction is re-fetched next cycle."""
        cpu.load_program([0xF3, 0x0A])
        cpu.step()
        assert cpu.program_counter() == 0x200
        cpu.step()
        assert cpu.program_counter() == 0x200

    def test_get_key_lowest(self, cpu):
        cpu.load_program([0xF3, 0x0A])
        cpu.step(make_keystate([0xC, 0x5, 0x9]))
        assert cpu.registers[3] == 0x5
        assert cpu.program_counter() == 0x202


class TestDraw:
    """Test DXYN sprite drawing."""

    @pytest.fixture
    def sprite_cpu(self, cpu):
        cpu.memory.write(0x300, 0xFF)
        cpu.state.index = 0x300
        return cpu

    def test_draw_and_erase(self, sprite_cpu):
        """Second draw XORs pixels off and reports a collision."""
        cpu = sprite_cpu
        run(cpu, 0xD011)
        assert all(cpu.framebuffer[x][0] for x in range(8))
        assert not cpu.framebuffer[8][0]
        assert cpu.registers[0xF] == 0

        run(cpu, 0xD011)
        assert not any(cpu.framebuffer[x][0] for x in range(8))
        assert cpu.registers[0xF] == 1

    def test_flag_reset_each_draw(self, sprite_cpu):
        cpu = sprite_cpu
        cpu.registers[0xF] = 1
        cpu.registers[1] = 10
        run(cpu, 0xD111)
        assert cpu.registers[0xF] == 0

    def test_clear_bits_leave_screen(self, cpu):
        cpu.memory.write(0x300, 0b1010_0000)
        cpu.state.index = 0x300
        cpu.framebuffer[1][0] = True
        run(cpu, 0xD011)
        assert cpu.framebuffer[0][0] is True
        assert cpu.framebuffer[1][0] is True
        assert cpu.framebuffer[2][0] is True
        assert cpu.registers[0xF] == 0

    def test_origin_wraps(self, sprite_cpu):
        cpu = sprite_cpu
        cpu.registers[1] = 64 + 3
        cpu.registers[2] = 32 + 4
        run(cpu, 0xD121)
        assert cpu.framebuffer[3][4] is True
        assert cpu.framebuffer[10][4] is True

    def test_clips_right_edge(self, sprite_cpu):
        cpu = sprite_cpu
        cpu.registers[1] = 60
        run(cpu, 0xD101)
        assert all(cpu.framebuffer[x][0] for x in range(60, 64))
        assert not any(cpu.framebuffer[x][0] for x in range(0, 4))

    def test_clips_bottom_edge(self, cpu):
        for offset in range(4):
            cpu.memory.write(0x300 + offset, 0x80)
        cpu.state.index = 0x300
        cpu.registers[2] = 30
        run(cpu, 0xD024)
        assert cpu.framebuffer[0][30] is True
        assert cpu.framebuffer[0][31] is True
        assert cpu.framebuffer[0][0] is False
        assert cpu.framebuffer[0][1] is False

    def test_font_glyph(self, cpu):
        cpu.registers[0] = 0x0
        run(cpu, 0xF029)
        run(cpu, 0xD005)
        # glyph 0 is a 4x5 box
        assert [cpu.framebuffer[x][0] for x in range(5)] == [True, True, True, True, False]
        assert [cpu.framebuffer[x][2] for x in range(5)] == [True, False, False, True, False]

    def test_zero_rows(self, sprite_cpu):
        run(sprite_cpu, 0xD010)
        assert sprite_cpu.state.lit_pixels() == 0

    def test_clear_screen(self, sprite_cpu):
        run(sprite_cpu, 0xD011)
        run(sprite_cpu, 0x00E0)
        assert sprite_cpu.state.lit_pixels() == 0
