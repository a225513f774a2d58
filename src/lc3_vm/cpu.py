"""LC3: Main orchestrator for the LC-3 virtual machine.

This module implements the fetch-decode-execute loop:
    MEMORY -> FETCH -> DECODE -> REGISTRY -> EXECUTE -> STATE

A machine is RUNNING until some instruction (or the keyboard) ends the run,
after which it is TERMINATED for good. Termination is reported as a
``Termination`` value from ``run()``; the machine never exits the process.
"""

import logging
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from .decode import DecodeResult, decode, disassemble
from .errors import (
    CycleLimitReached,
    InvalidOpcodeError,
    MachineTermination,
    Termination,
)
from .loader import Image
from .memory import KBSR, KBSR_READY, Memory
from .registry import InstructionRegistry, get_registry
from .state import MachineState, WORD_MASK, create_initial_state
from .terminal import InputSource, RawTerminalInput
from .traps import TrapDispatcher, get_dispatcher

logger = logging.getLogger(__name__)


@dataclass
class TraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        instruction: Raw instruction word
        decode_result: Result from the decoder
        text: Disassembled instruction
        pre_state: State before execution
        post_state: State after execution
        error: Termination message if this instruction ended the run
    """
    cycle: int
    address: int
    instruction: int
    decode_result: DecodeResult
    text: str
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class LC3:
    """LC-3 virtual machine.

    Attributes:
        state: Register file, PC and PSR
        memory: 64K-word memory bus with the keyboard mapped in
        registry: Frozen opcode executors
        traps: Frozen trap service routines
        output: Text stream program output is written to
        trace: Recorded trace entries (only when record_trace is set)
        termination: Why the machine stopped, or None while running
    """

    def __init__(
        self,
        input_source: Optional[InputSource] = None,
        output: Optional[TextIO] = None,
        trace_stream: Optional[TextIO] = None,
        verbose: bool = False,
        trace_delay: float = 0.0,
        max_cycles: Optional[int] = None,
        record_trace: bool = False,
    ):
        """Initialize the machine.

        Args:
            input_source: Keyboard byte source (defaults to the raw terminal)
            output: Stream for program output (defaults to stdout)
            trace_stream: Stream for the verbose trace (defaults to stderr)
            verbose: Print registers and the next opcode before every instruction
            trace_delay: Seconds to sleep after each verbose trace line
            max_cycles: Stop with CYCLE_LIMIT after this many instructions (None = never)
            record_trace: Keep a TraceEntry per executed instruction
        """
        if input_source is None:
            input_source = RawTerminalInput()
        self.memory = Memory(input_source)
        self.state = MachineState()
        self.registry: InstructionRegistry = get_registry()
        self.traps: TrapDispatcher = get_dispatcher()
        self.output = output if output is not None else sys.stdout
        self.trace_stream = trace_stream if trace_stream is not None else sys.stderr
        self.verbose = verbose
        self.trace_delay = trace_delay
        self.max_cycles = max_cycles
        self.record_trace = record_trace
        self.trace: List[TraceEntry] = []
        self.termination: Optional[Termination] = None
        self.origin: Optional[int] = None

    # =========================================================================
    # Loading
    # =========================================================================

    def load_image(self, image: Image) -> None:
        """Place an image in memory and point the PC at its origin."""
        self.load_words(image.origin, image.words)

    def load_words(self, origin: int, words: List[int]) -> None:
        """Load raw words at origin and reset the processor state.

        Args:
            origin: Load address and initial PC
            words: Program words
        """
        count = self.memory.load(origin, words)
        self.state = create_initial_state(origin)
        self.origin = origin & WORD_MASK
        self.trace = []
        self.termination = None
        logger.info("Loaded %d words at x%04X", count, self.origin)

    # =========================================================================
    # Execution
    # =========================================================================

    def write_output(self, text: str) -> None:
        """Write program output and flush.

        Characters the stream's encoding cannot represent are written as
        that encoding's replacement character.
        """
        try:
            self.output.write(text)
        except UnicodeEncodeError:
            encoding = getattr(self.output, "encoding", None) or "ascii"
            self.output.write(text.encode(encoding, "replace").decode(encoding))
        self.output.flush()

    def _debug(self, decoded: DecodeResult) -> None:
        state = self.state
        print(f"\nRegisters: {state.registers}", file=self.trace_stream)
        print(
            f"PSR: {state.psr:#x} PC: {state.pc:#x} a: {decoded.a:#x} b: {decoded.b:#x} "
            f"Opcode: {decoded.opcode.name}",
            file=self.trace_stream,
        )
        self.trace_stream.flush()
        if self.trace_delay:
            time.sleep(self.trace_delay)

    def _terminate(self, exc: MachineTermination) -> Termination:
        self.termination = Termination.from_exception(exc, self.state.cycle_count)
        if exc.fatal:
            logger.error("Machine stopped: %s", exc)
        else:
            logger.info("Machine stopped: %s", exc.reason.value)
        return self.termination

    def step(self) -> TraceEntry:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> advance PC -> EXECUTE

        Returns:
            TraceEntry for the executed instruction

        Raises:
            RuntimeError: If no image is loaded or the machine has terminated
            MachineTermination: If this instruction ended the run
        """
        if self.origin is None:
            raise RuntimeError("No image loaded")
        if self.termination is not None:
            raise RuntimeError(f"Machine has terminated ({self.termination.reason.value})")
        return self._cycle(build_entry=True)

    def _cycle(self, build_entry: bool) -> Optional[TraceEntry]:
        """Fetch, decode and execute one instruction.

        A TraceEntry is only built when ``build_entry`` or ``record_trace``
        is set.
        """
        state = self.state
        address = state.pc
        instruction = self.memory.peek(address)
        decoded = decode(instruction)

        if self.verbose:
            self._debug(decoded)

        entry = None
        if build_entry or self.record_trace:
            entry = TraceEntry(
                cycle=state.cycle_count,
                address=address,
                instruction=instruction,
                decode_result=decoded,
                text=disassemble(instruction, (address + 1) & WORD_MASK),
                pre_state=state.snapshot(),
                post_state={},
            )

        try:
            if not decoded.valid:
                raise InvalidOpcodeError(instruction, address)
            state.advance_pc()
            self.registry.execute(self, decoded)
        except MachineTermination as e:
            if entry is not None:
                entry.error = str(e)
            self._terminate(e)
            raise
        finally:
            if entry is not None:
                entry.post_state = state.snapshot()
                if self.record_trace:
                    self.trace.append(entry)

        return entry

    def run(self, max_cycles: Optional[int] = None) -> Termination:
        """Run until the machine terminates.

        Args:
            max_cycles: Override the instance cycle limit

        Returns:
            Termination describing why execution stopped

        Raises:
            RuntimeError: If no image is loaded or the machine has terminated
        """
        if self.origin is None:
            raise RuntimeError("No image loaded")
        if self.termination is not None:
            raise RuntimeError(f"Machine has terminated ({self.termination.reason.value})")

        limit = max_cycles if max_cycles is not None else self.max_cycles
        self.memory.write(KBSR, KBSR_READY)

        try:
            while True:
                if limit is not None and self.state.cycle_count >= limit:
                    raise CycleLimitReached(f"Max cycles ({limit}) exceeded")
                self._cycle(build_entry=False)
        except MachineTermination as e:
            if self.termination is None:
                self._terminate(e)

        return self.termination

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, index: int) -> int:
        return self.state.read_reg(index)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_terminated(self) -> bool:
        return self.termination is not None

    def print_trace(self, file: Optional[TextIO] = None) -> None:
        """Print recorded trace entries in human-readable format."""
        out = file if file is not None else self.trace_stream
        print("=" * 70, file=out)
        print("LC-3 EXECUTION TRACE", file=out)
        print("=" * 70, file=out)

        for entry in self.trace:
            status = "OK" if not entry.error else f"STOP: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] x{entry.address:04X}: x{entry.instruction:04X}  {entry.text}  {status}",
                  file=out)

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"R{i}: x{old:04X} -> x{new:04X}"
                for i, (old, new) in enumerate(zip(pre_regs, post_regs))
                if old != new
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}", file=out)

            if entry.pre_state["psr"] != entry.post_state["psr"]:
                print(f"  PSR: {entry.pre_state['psr']:#x} -> {entry.post_state['psr']:#x}", file=out)

        print("\n" + "=" * 70, file=out)
        print("FINAL STATE", file=out)
        print("=" * 70, file=out)
        print(f"  {self.state}", file=out)
        if self.termination:
            print(f"  Terminated: {self.termination.reason.value} (exit {self.termination.exit_code})", file=out)

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "terminated": self.is_terminated(),
            "reason": self.termination.reason.value if self.termination else None,
            "exit_code": self.termination.exit_code if self.termination else None,
            "message": self.termination.message if self.termination else "",
            "registers": self.dump_registers(),
            "pc": self.get_pc(),
            "psr": self.state.psr,
            "condition_codes": self.state.condition_codes(),
            "trace_length": len(self.trace),
        }
