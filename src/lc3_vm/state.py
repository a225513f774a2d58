"""MachineState: Register file and processor status for the LC-3 VM.

This module defines the processor state owned by one emulator instance,
plus the sign-extension helper used by every PC-relative and immediate
instruction field.

State Components:
    - Registers: R0-R7 (8 general-purpose 16-bit words, R7 is the link register)
    - PC: Program counter (address of the next instruction, wraps at 0xFFFF)
    - PSR: Processor status register, bits 2/1/0 hold the N/Z/P condition codes
    - Cycle count: Total executed instructions

Unlike memory, which lives on the bus, everything here is small enough to
snapshot on every cycle for tracing.
"""

from dataclasses import dataclass, field
from typing import Dict, List


WORD_MASK = 0xFFFF
SIGN_BIT = 0x8000
NUM_REGISTERS = 8
LINK_REGISTER = 7

# Condition code bits in the PSR
FLAG_P = 1 << 0
FLAG_Z = 1 << 1
FLAG_N = 1 << 2
CC_MASK = FLAG_N | FLAG_Z | FLAG_P


def sign_extend(value: int, bits: int) -> int:
    """Sign-extend the low ``bits`` of ``value`` to a full 16-bit word.

    The caller must mask the field first; any bits above ``bits`` are kept
    as-is.

    Args:
        value: Field value, already masked to ``bits`` wide
        bits: Field width (1-16)

    Returns:
        16-bit word with bit ``bits-1`` replicated into all higher bits
    """
    if (value >> (bits - 1)) & 1:
        return (value | (WORD_MASK << bits)) & WORD_MASK
    return value


def to_signed(word: int) -> int:
    """Interpret a 16-bit word as a two's-complement integer."""
    word &= WORD_MASK
    return word - 0x10000 if word & SIGN_BIT else word


@dataclass
class MachineState:
    """Mutable processor state for one LC-3 machine.

    Attributes:
        registers: General-purpose registers R0-R7 as unsigned 16-bit words
        pc: Program counter
        psr: Processor status register (only the condition code bits are used)
        cycle_count: Number of instructions executed
    """
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    pc: int = 0
    psr: int = 0
    cycle_count: int = 0

    def read_reg(self, index: int) -> int:
        return self.registers[index]

    def write_reg(self, index: int, value: int) -> None:
        self.registers[index] = value & WORD_MASK

    def set_condition_codes(self, value: int) -> None:
        """Set exactly one of N/Z/P from a result value.

        Args:
            value: 16-bit result the flags are derived from
        """
        value &= WORD_MASK
        if value == 0:
            flag = FLAG_Z
        elif value & SIGN_BIT:
            flag = FLAG_N
        else:
            flag = FLAG_P
        self.psr = (self.psr & ~CC_MASK & WORD_MASK) | flag

    def advance_pc(self) -> int:
        """Increment the PC past the current instruction.

        Returns:
            The new PC value
        """
        self.pc = (self.pc + 1) & WORD_MASK
        return self.pc

    @property
    def n(self) -> bool:
        return bool(self.psr & FLAG_N)

    @property
    def z(self) -> bool:
        return bool(self.psr & FLAG_Z)

    @property
    def p(self) -> bool:
        return bool(self.psr & FLAG_P)

    def condition_codes(self) -> str:
        """Condition codes as a short string such as ``"z"`` or ``"-"``."""
        return "".join(name for name, on in (("n", self.n), ("z", self.z), ("p", self.p)) if on) or "-"

    def snapshot(self) -> dict:
        """Create a copy of the current state for tracing.

        Returns:
            Dictionary with registers, pc, psr and cycle count
        """
        return {
            "registers": list(self.registers),
            "pc": self.pc,
            "psr": self.psr,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Exactly eight registers, each a 16-bit word
            - PC and PSR are 16-bit words
            - At most one condition code bit is set

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != NUM_REGISTERS:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= WORD_MASK:
                return False

        if not 0 <= self.pc <= WORD_MASK:
            return False
        if not 0 <= self.psr <= WORD_MASK:
            return False

        # Fresh state has no flags; after any flag-setting op exactly one is set
        if bin(self.psr & CC_MASK).count("1") > 1:
            return False

        return self.cycle_count >= 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed by name (R0-R7)."""
        return {f"R{i}": value for i, value in enumerate(self.registers)}

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"R{i}=x{v:04X}" for i, v in enumerate(self.registers))
        return f"[Cycle {self.cycle_count}] PC=x{self.pc:04X} {regs} CC={self.condition_codes()}"


def create_initial_state(origin: int) -> MachineState:
    """Create a zeroed machine state with the PC at the image origin.

    Args:
        origin: Load address of the image

    Returns:
        Fresh MachineState
    """
    return MachineState(pc=origin & WORD_MASK)
