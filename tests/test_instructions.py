"""Tests for per-opcode execution semantics."""

import pytest
from lc3_vm.decode import Opcode, decode
from lc3_vm.errors import InvalidOpcodeError, TerminationReason, UnimplementedOpcodeError
from lc3_vm.registry import InstructionRegistry, get_registry
from lc3_vm.state import FLAG_N, FLAG_P, FLAG_Z


def flags(machine):
    return machine.state.psr & 0b111


class TestRegistry:
    """Test the frozen opcode registry."""

    def test_every_opcode_has_a_handler(self):
        """All sixteen opcode patterns have an executor."""
        assert get_registry().get_opcodes() == set(Opcode)

    def test_frozen(self):
        """The registry rejects handlers after construction."""
        registry = InstructionRegistry()
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError):
            registry.register(Opcode.ADD, lambda machine, d: None)

    def test_singleton(self):
        """get_registry returns one shared instance."""
        assert get_registry() is get_registry()

    def test_invalid_handler(self, make_machine):
        """Executing INVALID directly raises the fatal condition."""
        machine = make_machine([0xD000])
        machine.state.advance_pc()
        with pytest.raises(InvalidOpcodeError) as exc_info:
            get_registry().execute(machine, decode(0xD000))
        assert exc_info.value.address == 0x3000


class TestOperate:
    """ADD, AND, NOT."""

    def test_add_register(self, make_machine):
        """ADD R0, R1, R2 with R1=3, R2=4."""
        machine = make_machine([0x1042])
        machine.state.write_reg(1, 3)
        machine.state.write_reg(2, 4)
        machine.step()
        assert machine.get_register(0) == 7
        assert flags(machine) == FLAG_P

    def test_add_negative_immediate(self, make_machine):
        """ADD R0, R1, #-15 with R1=5 gives -10."""
        machine = make_machine([0x1071])
        machine.state.write_reg(1, 5)
        machine.step()
        assert machine.get_register(0) == 0xFFF6
        assert flags(machine) == FLAG_N

    def test_add_wraps_to_zero(self, make_machine):
        """ADD R0, R0, #1 with R0=xFFFF."""
        machine = make_machine([0x1021])
        machine.state.write_reg(0, 0xFFFF)
        machine.step()
        assert machine.get_register(0) == 0
        assert flags(machine) == FLAG_Z

    def test_and_immediate_clears(self, make_machine):
        """AND R0, R1, #0"""
        machine = make_machine([0x5060])
        machine.state.write_reg(1, 0x1234)
        machine.step()
        assert machine.get_register(0) == 0
        assert flags(machine) == FLAG_Z

    def test_and_register(self, make_machine):
        """AND R0, R1, R2"""
        machine = make_machine([0x5042])
        machine.state.write_reg(1, 0xFF0F)
        machine.state.write_reg(2, 0x80FF)
        machine.step()
        assert machine.get_register(0) == 0x800F
        assert flags(machine) == FLAG_N

    def test_and_negative_immediate_keeps_high_bits(self, make_machine):
        """AND R0, R1, #-1 is a copy."""
        machine = make_machine([0x507F])
        machine.state.write_reg(1, 0xABCD)
        machine.step()
        assert machine.get_register(0) == 0xABCD

    def test_not(self, make_machine):
        """NOT R1, R2"""
        machine = make_machine([0x92BF])
        machine.state.write_reg(2, 0x00FF)
        machine.step()
        assert machine.get_register(1) == 0xFF00
        assert flags(machine) == FLAG_N


class TestBranch:
    def test_taken_when_flag_matches(self, make_machine):
        """BRz #2 with Z set."""
        machine = make_machine([0x0402])
        machine.state.set_condition_codes(0)
        machine.step()
        assert machine.get_pc() == 0x3003

    def test_not_taken_when_flag_differs(self, make_machine):
        """BRn #2 with Z set."""
        machine = make_machine([0x0802])
        machine.state.set_condition_codes(0)
        machine.step()
        assert machine.get_pc() == 0x3001

    def test_no_enable_bits_never_branches(self, make_machine):
        """BR with n, z and p all clear falls through."""
        machine = make_machine([0x0005])
        machine.state.set_condition_codes(1)
        machine.step()
        assert machine.get_pc() == 0x3001

    def test_negative_offset(self, make_machine):
        """BRnzp #-1 branches to itself."""
        machine = make_machine([0x0FFF])
        machine.state.set_condition_codes(1)
        machine.step()
        assert machine.get_pc() == 0x3000

    def test_offset_wraps_address_space(self, make_machine):
        """BRnzp #-2 at x0000 lands at xFFFF."""
        machine = make_machine([0x0FFE], origin=0x0000)
        machine.state.set_condition_codes(1)
        machine.step()
        assert machine.get_pc() == 0xFFFF

    def test_branch_leaves_flags(self, make_machine):
        """Taking a branch does not change N/Z/P."""
        machine = make_machine([0x0E01])
        machine.state.set_condition_codes(0x8000)
        machine.step()
        assert flags(machine) == FLAG_N


class TestJumps:
    def test_jmp(self, make_machine):
        """JMP R3"""
        machine = make_machine([0xC0C0])
        machine.state.write_reg(3, 0x4000)
        machine.step()
        assert machine.get_pc() == 0x4000

    def test_ret(self, make_machine):
        """RET jumps to the address in R7."""
        machine = make_machine([0xC1C0])
        machine.state.write_reg(7, 0x3050)
        machine.step()
        assert machine.get_pc() == 0x3050

    def test_jsr_offset(self, make_machine):
        """JSR #5 links R7 and jumps PC-relative."""
        machine = make_machine([0x4805])
        machine.step()
        assert machine.get_register(7) == 0x3001
        assert machine.get_pc() == 0x3006

    def test_jsr_negative_offset(self, make_machine):
        """JSR #-1 jumps back to itself."""
        machine = make_machine([0x4FFF])
        machine.step()
        assert machine.get_pc() == 0x3000

    def test_jsrr(self, make_machine):
        """JSRR R2"""
        machine = make_machine([0x4080])
        machine.state.write_reg(2, 0x5000)
        machine.step()
        assert machine.get_register(7) == 0x3001
        assert machine.get_pc() == 0x5000

    def test_jsr_does_not_touch_flags(self, make_machine):
        """JSR links R7 without setting condition codes."""
        machine = make_machine([0x4805])
        machine.state.set_condition_codes(0)
        machine.step()
        assert flags(machine) == FLAG_Z


class TestLoads:
    def test_ld(self, make_machine):
        """LD R1, #1"""
        machine = make_machine([0x2201, 0x0000, 0x8001])
        machine.step()
        assert machine.get_register(1) == 0x8001
        assert flags(machine) == FLAG_N

    def test_ldi_double_indirection(self, make_machine):
        """LDI R3 with pointer cell x3000 -> x3002 -> x1234."""
        machine = make_machine([0xA600, 0x3002, 0x0000, 0x1234], origin=0x2FFF)
        machine.step()
        assert machine.get_register(3) == 0x1234
        assert flags(machine) == FLAG_P

    def test_ldr(self, make_machine):
        """LDR R4, R5, #-2"""
        machine = make_machine([0x697E])
        machine.memory.write(0x4000, 0)
        machine.state.write_reg(5, 0x4002)
        machine.state.write_reg(4, 99)
        machine.step()
        assert machine.get_register(4) == 0
        assert flags(machine) == FLAG_Z

    def test_lea_loads_address(self, make_machine):
        """LEA R2, #-3 loads the address, not memory."""
        machine = make_machine([0xE5FD])
        machine.memory.write(0x2FFE, 0xBEEF)
        machine.step()
        assert machine.get_register(2) == 0x2FFE
        assert flags(machine) == FLAG_P

    def test_lea_sets_flags_on_address(self, make_machine):
        """LEA R0, #0 at x8000 yields a negative address."""
        machine = make_machine([0xE000], origin=0x8000)
        machine.step()
        assert machine.get_register(0) == 0x8001
        assert flags(machine) == FLAG_N

    def test_lea_wraps_pc(self, make_machine):
        """LEA R0, #-1 at xFFFF: the incremented PC is x0000."""
        machine = make_machine([0xE1FF], origin=0xFFFF)
        machine.step()
        assert machine.get_register(0) == 0xFFFF
        assert machine.get_pc() == 0x0000

    def test_ldi_through_keyboard_data(self, make_machine):
        """LDI R0 through a pointer to KBDR reads a keystroke."""
        machine = make_machine([0xA000, 0xFE02], keyboard=b"k")
        machine.step()
        assert machine.get_register(0) == ord("k")


class TestStores:
    def test_st(self, make_machine):
        """ST R3, #2"""
        machine = make_machine([0x3602])
        machine.state.write_reg(3, 0xCAFE)
        machine.step()
        assert machine.memory.read(0x3003) == 0xCAFE

    def test_sti(self, make_machine):
        """STI R3, #1 writes through the pointer at x3002."""
        machine = make_machine([0xB601, 0x0000, 0x4000])
        machine.state.write_reg(3, 0x00AA)
        machine.step()
        assert machine.memory.read(0x4000) == 0x00AA
        assert machine.memory.read(0x3002) == 0x4000

    def test_str(self, make_machine):
        """STR R3, R4, #3"""
        machine = make_machine([0x7703])
        machine.state.write_reg(3, 0x0102)
        machine.state.write_reg(4, 0x5000)
        machine.step()
        assert machine.memory.read(0x5003) == 0x0102

    def test_stores_leave_flags(self, make_machine):
        """ST does not set condition codes."""
        machine = make_machine([0x3602])
        machine.state.set_condition_codes(0)
        machine.state.write_reg(3, 0x8000)
        machine.step()
        assert flags(machine) == FLAG_Z


class TestFatalOpcodes:
    def test_invalid_opcode_leaves_state(self, make_machine):
        """Reserved opcode stops with exit 1 and mutates nothing."""
        machine = make_machine([0xD000, 0x1234])
        for i in range(8):
            machine.state.write_reg(i, i + 1)
        before = machine.state.snapshot()

        with pytest.raises(InvalidOpcodeError):
            machine.step()

        after = machine.state.snapshot()
        assert after["registers"] == before["registers"]
        assert after["pc"] == 0x3000
        assert machine.memory.dump(0x3000, 2) == [0xD000, 0x1234]
        assert machine.termination.reason is TerminationReason.INVALID_OPCODE
        assert machine.termination.exit_code == 1

    def test_rti_is_fatal(self, make_machine):
        """RTI stops the machine as unimplemented."""
        machine = make_machine([0x8000])
        with pytest.raises(UnimplementedOpcodeError):
            machine.step()
        assert machine.termination.reason is TerminationReason.UNIMPLEMENTED
        assert machine.termination.exit_code != 0
