"""Termination conditions for the LC-3 VM.

The engine never exits the process itself. Every way a run can end is raised
as a ``MachineTermination`` subclass and caught once by ``LC3.run()``, which
turns it into a ``Termination`` result. The CLI maps that result to the
process exit status.
"""

from dataclasses import dataclass
from enum import Enum


class TerminationReason(Enum):
    HALT = "halt"
    INTERRUPT = "interrupt"
    INVALID_OPCODE = "invalid_opcode"
    UNIMPLEMENTED = "unimplemented"
    TERMINAL_UNAVAILABLE = "terminal_unavailable"
    CYCLE_LIMIT = "cycle_limit"


class MachineTermination(Exception):
    """Base class for conditions that end a run.

    Attributes:
        reason: Why the machine stopped
        exit_code: Process exit status the CLI should use
    """

    reason: TerminationReason
    exit_code: int = 1

    @property
    def fatal(self) -> bool:
        return self.exit_code != 0


class HaltRequested(MachineTermination):
    """TRAP x25 was executed."""

    reason = TerminationReason.HALT
    exit_code = 0


class InterruptRequested(MachineTermination):
    """The interrupt byte (0x03) was read from the keyboard."""

    reason = TerminationReason.INTERRUPT
    exit_code = 0


class InvalidOpcodeError(MachineTermination):
    """An instruction with the reserved opcode 0b1101 was executed."""

    reason = TerminationReason.INVALID_OPCODE
    exit_code = 1

    def __init__(self, instruction: int, address: int):
        self.instruction = instruction
        self.address = address
        super().__init__(f"Invalid opcode: x{instruction:04X} at x{address:04X}")


class UnimplementedOpcodeError(MachineTermination):
    """A decoded opcode has no executor (RTI)."""

    reason = TerminationReason.UNIMPLEMENTED
    exit_code = 2

    def __init__(self, opcode_name: str, address: int):
        self.opcode_name = opcode_name
        self.address = address
        super().__init__(f"{opcode_name} not implemented (at x{address:04X})")


class TerminalUnavailableError(MachineTermination):
    """The keyboard input source could not be opened."""

    reason = TerminationReason.TERMINAL_UNAVAILABLE
    exit_code = 2


class CycleLimitReached(MachineTermination):
    reason = TerminationReason.CYCLE_LIMIT
    exit_code = 1


@dataclass
class Termination:
    """Outcome of ``LC3.run()``.

    Attributes:
        reason: Why the machine stopped
        exit_code: Process exit status to report
        message: Diagnostic text (empty for a clean halt)
        cycles: Instructions executed before stopping
    """
    reason: TerminationReason
    exit_code: int
    message: str = ""
    cycles: int = 0

    @classmethod
    def from_exception(cls, exc: MachineTermination, cycles: int) -> "Termination":
        return cls(
            reason=exc.reason,
            exit_code=exc.exit_code,
            message=str(exc),
            cycles=cycles,
        )
