"""LC3-VM: A virtual machine for the LC-3 16-bit instruction set.

Loads a big-endian object image at its origin address and runs it until a
HALT trap, a keyboard interrupt (Ctrl-C byte 0x03) or a fatal instruction.

Architecture:
    MEMORY -> FETCH -> DECODE -> REGISTRY -> EXECUTE -> STATE
                                    |
                                  TRAP -> TrapDispatcher -> keyboard / output

Modules:
    state: MachineState register file, PSR condition codes, sign extension
    memory: 64K-word Memory bus with the memory-mapped keyboard
    terminal: Keyboard input sources (raw terminal, scripted bytes)
    decode: Opcode enum and instruction decoder
    registry: Frozen per-opcode executors
    traps: Frozen trap service routines
    loader: Object image parsing
    cpu: Main LC3 orchestrator
"""

__version__ = "0.1.0"

from .state import MachineState, sign_extend
from .memory import Memory
from .decode import Opcode, DecodeResult, decode, disassemble
from .errors import MachineTermination, Termination, TerminationReason
from .loader import Image, ImageFormatError, ImageReadError, load_image, load_image_file
from .terminal import RawTerminalInput, ScriptedInput
from .cpu import LC3

__all__ = [
    "MachineState",
    "sign_extend",
    "Memory",
    "Opcode",
    "DecodeResult",
    "decode",
    "disassemble",
    "MachineTermination",
    "Termination",
    "TerminationReason",
    "Image",
    "ImageFormatError",
    "ImageReadError",
    "load_image",
    "load_image_file",
    "RawTerminalInput",
    "ScriptedInput",
    "LC3",
]
