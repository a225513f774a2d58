"""InstructionRegistry: Per-opcode executors for the LC-3 VM.

Each opcode maps to exactly one handler. Handlers receive the machine and
the decoded instruction, and mutate the machine's register file and memory
in place. The PC has already been advanced past the instruction when a
handler runs, so every PC-relative offset is taken from the next address.

Registry Keys:
    ADD, AND: Register or sign-extended imm5 operand, sets condition codes
    NOT: Bitwise complement, sets condition codes
    BR: Conditional PC-relative branch on N/Z/P
    JMP: Jump to register (RET when BaseR is R7)
    JSR: Save PC in R7, jump to PC+offset11 (JSR) or register (JSRR)
    LD, LDI, LDR, LEA: Loads, set condition codes
    ST, STI, STR: Stores
    TRAP: System call through the trap dispatcher
    RTI: Not supported, stops the machine
    INVALID: Reserved opcode, stops the machine

The registry is frozen after initialization to ensure no runtime
modifications can occur.
"""

from typing import TYPE_CHECKING, Callable, Dict, Optional

from .decode import DecodeResult, Opcode, JSR_FLAG
from .errors import InvalidOpcodeError, UnimplementedOpcodeError
from .state import LINK_REGISTER, WORD_MASK

if TYPE_CHECKING:
    from .cpu import LC3


Handler = Callable[["LC3", DecodeResult], None]


class InstructionRegistry:
    """Frozen mapping from opcode to executor.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with a handler for every opcode."""
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Operate
        self.register(Opcode.ADD, self._op_add)
        self.register(Opcode.AND, self._op_and)
        self.register(Opcode.NOT, self._op_not)

        # Control flow
        self.register(Opcode.BR, self._op_br)
        self.register(Opcode.JMP, self._op_jmp)
        self.register(Opcode.JSR, self._op_jsr)
        self.register(Opcode.TRAP, self._op_trap)
        self.register(Opcode.RTI, self._op_rti)

        # Data movement
        self.register(Opcode.LD, self._op_ld)
        self.register(Opcode.LDI, self._op_ldi)
        self.register(Opcode.LDR, self._op_ldr)
        self.register(Opcode.LEA, self._op_lea)
        self.register(Opcode.ST, self._op_st)
        self.register(Opcode.STI, self._op_sti)
        self.register(Opcode.STR, self._op_str)

        self.register(Opcode.INVALID, self._op_invalid)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register an opcode handler.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.name}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_opcodes(self) -> set:
        return set(self._handlers)

    def execute(self, machine: "LC3", decoded: DecodeResult) -> None:
        """Execute one decoded instruction against the machine.

        The cycle count is incremented even when the handler stops the
        machine (HALT counts as an executed instruction).

        Raises:
            KeyError: If opcode not in registry
            MachineTermination: If the instruction ends the run
        """
        if decoded.opcode not in self._handlers:
            raise KeyError(f"Unknown opcode: {decoded.opcode!r}")

        handler = self._handlers[decoded.opcode]
        try:
            handler(machine, decoded)
        finally:
            machine.state.cycle_count += 1

    # =========================================================================
    # Operate
    # =========================================================================

    def _op_add(self, machine: "LC3", d: DecodeResult) -> None:
        """ADD DR, SR1, SR2 / ADD DR, SR1, #imm5"""
        state = machine.state
        operand = d.imm5 if d.immediate_mode else state.read_reg(d.sr2)
        value = (state.read_reg(d.b) + operand) & WORD_MASK
        state.write_reg(d.a, value)
        state.set_condition_codes(value)

    def _op_and(self, machine: "LC3", d: DecodeResult) -> None:
        """AND DR, SR1, SR2 / AND DR, SR1, #imm5"""
        state = machine.state
        operand = d.imm5 if d.immediate_mode else state.read_reg(d.sr2)
        value = state.read_reg(d.b) & operand
        state.write_reg(d.a, value)
        state.set_condition_codes(value)

    def _op_not(self, machine: "LC3", d: DecodeResult) -> None:
        state = machine.state
        value = ~state.read_reg(d.b) & WORD_MASK
        state.write_reg(d.a, value)
        state.set_condition_codes(value)

    # =========================================================================
    # Control flow
    # =========================================================================

    def _op_br(self, machine: "LC3", d: DecodeResult) -> None:
        """BR[n][z][p] PCoffset9

        Bits 11-9 are the n/z/p enables; they line up with PSR bits 2-0.
        """
        state = machine.state
        if d.a & state.psr & 0b111:
            state.pc = (state.pc + d.pc_offset9) & WORD_MASK

    def _op_jmp(self, machine: "LC3", d: DecodeResult) -> None:
        machine.state.pc = machine.state.read_reg(d.b)

    def _op_jsr(self, machine: "LC3", d: DecodeResult) -> None:
        """JSR PCoffset11 / JSRR BaseR

        BaseR is read before R7 is overwritten so JSRR R7 jumps to the
        old R7.
        """
        state = machine.state
        if d.instruction & JSR_FLAG:
            target = (state.pc + d.pc_offset11) & WORD_MASK
        else:
            target = state.read_reg(d.b)
        state.write_reg(LINK_REGISTER, state.pc)
        state.pc = target

    def _op_trap(self, machine: "LC3", d: DecodeResult) -> None:
        machine.traps.dispatch(machine, d.trap_vector)

    def _op_rti(self, machine: "LC3", d: DecodeResult) -> None:
        raise UnimplementedOpcodeError(d.opcode.name, (machine.state.pc - 1) & WORD_MASK)

    # =========================================================================
    # Data movement
    # =========================================================================

    def _load(self, machine: "LC3", dr: int, address: int) -> None:
        value = machine.memory.read(address)
        machine.state.write_reg(dr, value)
        machine.state.set_condition_codes(value)

    def _op_ld(self, machine: "LC3", d: DecodeResult) -> None:
        self._load(machine, d.a, machine.state.pc + d.pc_offset9)

    def _op_ldi(self, machine: "LC3", d: DecodeResult) -> None:
        pointer = machine.memory.read(machine.state.pc + d.pc_offset9)
        self._load(machine, d.a, pointer)

    def _op_ldr(self, machine: "LC3", d: DecodeResult) -> None:
        self._load(machine, d.a, machine.state.read_reg(d.b) + d.offset6)

    def _op_lea(self, machine: "LC3", d: DecodeResult) -> None:
        """LEA DR, PCoffset9 - loads the address itself, not memory."""
        state = machine.state
        value = (state.pc + d.pc_offset9) & WORD_MASK
        state.write_reg(d.a, value)
        state.set_condition_codes(value)

    def _op_st(self, machine: "LC3", d: DecodeResult) -> None:
        machine.memory.write(machine.state.pc + d.pc_offset9, machine.state.read_reg(d.a))

    def _op_sti(self, machine: "LC3", d: DecodeResult) -> None:
        pointer = machine.memory.read(machine.state.pc + d.pc_offset9)
        machine.memory.write(pointer, machine.state.read_reg(d.a))

    def _op_str(self, machine: "LC3", d: DecodeResult) -> None:
        machine.memory.write(machine.state.read_reg(d.b) + d.offset6, machine.state.read_reg(d.a))

    # =========================================================================
    # Reserved
    # =========================================================================

    def _op_invalid(self, machine: "LC3", d: DecodeResult) -> None:
        raise InvalidOpcodeError(d.instruction, (machine.state.pc - 1) & WORD_MASK)


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the singleton instruction registry instance.

    Returns:
        The frozen InstructionRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
