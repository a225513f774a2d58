"""Tests for MachineState and sign extension."""

import pytest
from lc3_vm.state import (
    FLAG_N,
    FLAG_P,
    FLAG_Z,
    MachineState,
    create_initial_state,
    sign_extend,
    to_signed,
)


class TestSignExtend:
    """Test sign_extend on masked fields."""

    def test_negative_imm5(self):
        """All-ones 5-bit field extends to 0xFFFF."""
        assert sign_extend(0b11111, 5) == 0xFFFF

    def test_positive_imm5(self):
        """Sign bit clear leaves the value unchanged."""
        assert sign_extend(0b01111, 5) == 0x000F

    def test_minus_fifteen(self):
        """0b10001 is -15."""
        assert sign_extend(0b10001, 5) == 0xFFF1
        assert to_signed(sign_extend(0b10001, 5)) == -15

    def test_offset9(self):
        """9-bit offsets extend on bit 8."""
        assert sign_extend(0x1FD, 9) == 0xFFFD
        assert sign_extend(0x0FF, 9) == 0x00FF

    def test_width_one(self):
        """A 1-bit field is 0 or -1."""
        assert sign_extend(1, 1) == 0xFFFF
        assert sign_extend(0, 1) == 0

    def test_width_sixteen_is_identity(self):
        """A full word is returned unchanged."""
        assert sign_extend(0x8000, 16) == 0x8000
        assert sign_extend(0x7FFF, 16) == 0x7FFF

    @pytest.mark.parametrize("bits", range(1, 17))
    def test_low_bits_preserved(self, bits):
        """Low bits survive; high bits become copies of the sign bit."""
        mask = (1 << bits) - 1
        for value in (0, 1, mask, mask >> 1, (mask >> 1) + 1):
            field = value & mask
            result = sign_extend(field, bits)
            assert result & mask == field
            high = result & ~mask & 0xFFFF
            if field >> (bits - 1):
                assert high == (~mask & 0xFFFF)
            else:
                assert high == 0


class TestConditionCodes:
    """Test set_condition_codes sets exactly one of N/Z/P."""

    def test_zero(self):
        """Zero sets Z."""
        state = MachineState()
        state.set_condition_codes(0)
        assert state.psr & 0b111 == FLAG_Z

    def test_negative(self):
        """Bit 15 set sets N."""
        state = MachineState()
        state.set_condition_codes(0x8000)
        assert state.psr & 0b111 == FLAG_N

    def test_positive(self):
        """A non-zero value with bit 15 clear sets P."""
        state = MachineState()
        state.set_condition_codes(0x0001)
        assert state.psr & 0b111 == FLAG_P

    def test_exactly_one_flag_for_every_word(self):
        """Exactly one of N/Z/P is set for every 16-bit value."""
        state = MachineState()
        for value in range(0, 0x10000, 7):
            state.set_condition_codes(value)
            assert bin(state.psr & 0b111).count("1") == 1

    def test_preserves_other_psr_bits(self):
        """Only bits 2-0 change."""
        state = MachineState(psr=0x8000 | FLAG_N)
        state.set_condition_codes(5)
        assert state.psr == 0x8000 | FLAG_P

    def test_condition_codes_string(self):
        """condition_codes shows the set flag, or - when none is."""
        state = MachineState()
        assert state.condition_codes() == "-"
        state.set_condition_codes(0xFFFF)
        assert state.condition_codes() == "n"
        assert state.n and not state.z and not state.p


class TestRegisters:
    """Test register file access."""

    def test_default_state(self):
        """Default state has zeroed registers, PC and PSR."""
        state = MachineState()
        assert state.registers == [0] * 8
        assert state.pc == 0
        assert state.psr == 0
        assert state.cycle_count == 0

    def test_create_initial_state(self):
        """The initial state starts at the origin with cleared registers."""
        state = create_initial_state(0x3000)
        assert state.pc == 0x3000
        assert state.registers == [0] * 8

    def test_write_reg_masks_to_word(self):
        """Register writes keep the low 16 bits."""
        state = MachineState()
        state.write_reg(3, 0x12345)
        assert state.read_reg(3) == 0x2345

    def test_advance_pc_wraps(self):
        """PC xFFFF advances to x0000."""
        state = MachineState(pc=0xFFFF)
        assert state.advance_pc() == 0x0000

    def test_dump_registers(self):
        """dump_registers names R0-R7."""
        state = MachineState()
        state.write_reg(7, 0x3001)
        regs = state.dump_registers()
        assert regs["R7"] == 0x3001
        assert set(regs) == {f"R{i}" for i in range(8)}


class TestValidationAndSnapshot:
    def test_valid_state(self):
        """A fresh state validates."""
        assert MachineState().validate() is True

    def test_register_out_of_range(self):
        """A register value above xFFFF fails validation."""
        state = MachineState()
        state.registers[0] = 0x10000
        assert state.validate() is False

    def test_two_flags_invalid(self):
        """More than one condition flag fails validation."""
        state = MachineState(psr=FLAG_N | FLAG_Z)
        assert state.validate() is False

    def test_snapshot_is_a_copy(self):
        """Later register writes do not change a snapshot."""
        state = MachineState()
        snap = state.snapshot()
        state.write_reg(0, 42)
        assert snap["registers"][0] == 0

    def test_str(self):
        """str shows the PC in LC-3 hex."""
        state = MachineState(pc=0x3000)
        assert "PC=x3000" in str(state)
