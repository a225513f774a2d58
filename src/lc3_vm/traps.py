"""TrapDispatcher: System calls reached through the TRAP instruction.

Trap Vectors:
    x20 GETC: Read one character into R0 (no echo)
    x21 OUT: Write the low byte of R0
    x22 PUTS: Write the one-char-per-word string at R0
    x23 IN: Prompt, read one character into R0 and echo it
    x24 PUTSP: Write the two-chars-per-word string at R0
    x25 HALT: Print a notice and stop the machine

Any other vector is ignored. R7 always receives the return address before
the vector is looked up, as with JSR.
"""

import logging
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, Dict, Optional

from .errors import HaltRequested
from .state import LINK_REGISTER, WORD_MASK

if TYPE_CHECKING:
    from .cpu import LC3

logger = logging.getLogger(__name__)

IN_PROMPT = "\n> "
HALT_NOTICE = "\nHALT\n"


class TrapVector(IntEnum):
    GETC = 0x20
    OUT = 0x21
    PUTS = 0x22
    IN = 0x23
    PUTSP = 0x24
    HALT = 0x25


TrapHandler = Callable[["LC3"], None]


class TrapDispatcher:
    """Frozen mapping from trap vector to service routine."""

    def __init__(self):
        self._handlers: Dict[int, TrapHandler] = {}
        self._frozen = False

        self.register(TrapVector.GETC, self._trap_getc)
        self.register(TrapVector.OUT, self._trap_out)
        self.register(TrapVector.PUTS, self._trap_puts)
        self.register(TrapVector.IN, self._trap_in)
        self.register(TrapVector.PUTSP, self._trap_putsp)
        self.register(TrapVector.HALT, self._trap_halt)
        self._frozen = True

    def register(self, vector: int, handler: TrapHandler) -> None:
        if self._frozen:
            raise RuntimeError("Cannot register traps: dispatcher is frozen")
        if vector in self._handlers:
            raise ValueError(f"Trap already registered: x{vector:02X}")
        self._handlers[int(vector)] = handler

    def get_vectors(self) -> set:
        return set(self._handlers)

    def dispatch(self, machine: "LC3", vector: int) -> None:
        """Save the return address in R7 and run the service routine.

        Args:
            machine: Machine issuing the TRAP
            vector: 8-bit trap vector
        """
        machine.state.write_reg(LINK_REGISTER, machine.state.pc)

        handler = self._handlers.get(vector)
        if handler is None:
            logger.debug("Ignoring unknown trap vector x%02X", vector)
            return
        handler(machine)

    # =========================================================================
    # Service routines
    # =========================================================================

    def _read_char(self, machine: "LC3") -> int:
        c = machine.memory.read_keyboard()
        machine.state.write_reg(0, c)
        machine.state.set_condition_codes(c)
        return c

    def _trap_getc(self, machine: "LC3") -> None:
        self._read_char(machine)

    def _trap_out(self, machine: "LC3") -> None:
        machine.write_output(chr(machine.state.read_reg(0) & 0xFF))

    def _trap_puts(self, machine: "LC3") -> None:
        address = machine.state.read_reg(0)
        while True:
            c = machine.memory.read(address)
            if c == 0:
                break
            machine.write_output(chr(c & 0xFF))
            address = (address + 1) & WORD_MASK

    def _trap_in(self, machine: "LC3") -> None:
        machine.write_output(IN_PROMPT)
        c = self._read_char(machine)
        machine.write_output(chr(c & 0xFF))

    def _trap_putsp(self, machine: "LC3") -> None:
        """Low byte first, then high byte; a zero byte is skipped, a zero word ends."""
        address = machine.state.read_reg(0)
        while True:
            word = machine.memory.read(address)
            if word == 0:
                break
            low, high = word & 0xFF, word >> 8
            if low:
                machine.write_output(chr(low))
            if high:
                machine.write_output(chr(high))
            address = (address + 1) & WORD_MASK

    def _trap_halt(self, machine: "LC3") -> None:
        machine.write_output(HALT_NOTICE)
        logger.info("HALT at x%04X", (machine.state.pc - 1) & WORD_MASK)
        raise HaltRequested("HALT")


_dispatcher: Optional[TrapDispatcher] = None


def get_dispatcher() -> TrapDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TrapDispatcher()
    return _dispatcher
