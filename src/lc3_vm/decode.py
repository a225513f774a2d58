"""Instruction decoder for the LC-3 VM.

Every 16-bit word decodes to one of sixteen opcodes. The top four bits pick
the opcode; the two register fields used by most instructions are pulled out
up front:

    15  12 11   9 8    6 5             0
    [ op ] [ a  ] [ b  ] [ op-specific ]

Opcode-specific fields (immediates, offsets, branch flags, trap vectors) are
read from the raw word by the executor.

The pattern 0b1101 is reserved. It still decodes (to ``Opcode.INVALID``) but
the result is marked invalid so the machine can stop before touching state.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .state import sign_extend, to_signed


class Opcode(IntEnum):
    BR = 0b0000
    ADD = 0b0001
    LD = 0b0010
    ST = 0b0011
    JSR = 0b0100
    AND = 0b0101
    LDR = 0b0110
    STR = 0b0111
    RTI = 0b1000
    NOT = 0b1001
    LDI = 0b1010
    STI = 0b1011
    JMP = 0b1100
    INVALID = 0b1101
    LEA = 0b1110
    TRAP = 0b1111


# Field masks
IMM5 = 0x1F
OFFSET6 = 0x3F
OFFSET9 = 0x1FF
OFFSET11 = 0x7FF
TRAPVECT8 = 0xFF
IMM_FLAG = 1 << 5
JSR_FLAG = 1 << 11


@dataclass
class DecodeResult:
    """Result of decoding one instruction word.

    Attributes:
        opcode: Decoded opcode
        a: Bits 11-9 (DR for loads/ALU, SR for stores, nzp for BR)
        b: Bits 8-6 (SR1 / BaseR)
        instruction: Raw instruction word
        valid: False only for the reserved opcode
        error: Error message if decode failed
    """
    opcode: Opcode
    a: int
    b: int
    instruction: int
    valid: bool = True
    error: Optional[str] = None

    @property
    def imm5(self) -> int:
        return sign_extend(self.instruction & IMM5, 5)

    @property
    def offset6(self) -> int:
        return sign_extend(self.instruction & OFFSET6, 6)

    @property
    def pc_offset9(self) -> int:
        return sign_extend(self.instruction & OFFSET9, 9)

    @property
    def pc_offset11(self) -> int:
        return sign_extend(self.instruction & OFFSET11, 11)

    @property
    def immediate_mode(self) -> bool:
        return bool(self.instruction & IMM_FLAG)

    @property
    def sr2(self) -> int:
        return self.instruction & 0b111

    @property
    def trap_vector(self) -> int:
        return self.instruction & TRAPVECT8


def decode(instruction: int) -> DecodeResult:
    """Decode a 16-bit instruction word.

    Args:
        instruction: Word fetched from memory

    Returns:
        DecodeResult; ``valid`` is False for opcode 0b1101
    """
    instruction &= 0xFFFF
    opcode = Opcode(instruction >> 12)
    a = (instruction >> 9) & 0b111
    b = (instruction >> 6) & 0b111

    if opcode is Opcode.INVALID:
        return DecodeResult(opcode, a, b, instruction, valid=False,
                            error=f"Invalid opcode: {opcode.name} (x{instruction:04X})")

    return DecodeResult(opcode, a, b, instruction)


def _target(pc: int, offset: int) -> str:
    return f"x{(pc + offset) & 0xFFFF:04X}"


def disassemble(instruction: int, pc: Optional[int] = None) -> str:
    """Render one instruction word as assembly text.

    Args:
        instruction: Instruction word
        pc: Incremented PC (address after the instruction). When given,
            PC-relative operands are shown as absolute addresses.

    Returns:
        Assembly text such as ``"ADD R0, R1, #-15"``
    """
    d = decode(instruction)
    op = d.opcode

    def rel(offset: int) -> str:
        if pc is None:
            return f"#{to_signed(offset)}"
        return _target(pc, offset)

    if op in (Opcode.ADD, Opcode.AND):
        src2 = f"#{to_signed(d.imm5)}" if d.immediate_mode else f"R{d.sr2}"
        return f"{op.name} R{d.a}, R{d.b}, {src2}"
    if op is Opcode.BR:
        flags = "".join(f for f, bit in (("n", 4), ("z", 2), ("p", 1)) if d.a & bit)
        if not flags:
            return "NOP"
        return f"BR{flags} {rel(d.pc_offset9)}"
    if op is Opcode.JMP:
        return "RET" if d.b == 7 else f"JMP R{d.b}"
    if op is Opcode.JSR:
        if instruction & JSR_FLAG:
            return f"JSR {rel(d.pc_offset11)}"
        return f"JSRR R{d.b}"
    if op in (Opcode.LD, Opcode.LDI, Opcode.LEA, Opcode.ST, Opcode.STI):
        return f"{op.name} R{d.a}, {rel(d.pc_offset9)}"
    if op in (Opcode.LDR, Opcode.STR):
        return f"{op.name} R{d.a}, R{d.b}, #{to_signed(d.offset6)}"
    if op is Opcode.NOT:
        return f"NOT R{d.a}, R{d.b}"
    if op is Opcode.TRAP:
        return f"TRAP x{d.trap_vector:02X}"
    if op is Opcode.RTI:
        return "RTI"
    return f".FILL x{instruction:04X}"
