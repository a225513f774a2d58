"""Memory bus for the LC-3 VM.

65536 16-bit words, addressed 0x0000-0xFFFF. Two cells are device
registers:

    KBSR (0xFE00): keyboard status, bit 15 set means a key is ready
    KBDR (0xFE02): keyboard data, reading it blocks for one keystroke

Addresses are masked to 16 bits on every access, so no access can fall
outside the array.
"""

import logging
from array import array
from typing import Iterable, Optional

from .errors import InterruptRequested
from .state import WORD_MASK
from .terminal import InputSource

logger = logging.getLogger(__name__)

MEMORY_SIZE = 0x10000
KBSR = 0xFE00
KBDR = 0xFE02
KBSR_READY = 0x8000

CR = 0x0D
LF = 0x0A
ETX = 0x03


class Memory:
    """Flat 16-bit address space with a memory-mapped keyboard.

    Attributes:
        input_source: Where keyboard bytes come from (None means no keyboard,
            reads of KBDR return 0)
    """

    def __init__(self, input_source: Optional[InputSource] = None):
        self._cells = array("H", bytes(2 * MEMORY_SIZE))
        self.input_source = input_source

    def __len__(self) -> int:
        return MEMORY_SIZE

    def read(self, address: int) -> int:
        """Read a word, performing a keyboard read for KBDR."""
        address &= WORD_MASK
        if address == KBDR:
            return self.read_keyboard()
        return self._cells[address]

    def write(self, address: int, value: int) -> None:
        self._cells[address & WORD_MASK] = value & WORD_MASK

    def peek(self, address: int) -> int:
        """Read a word without device side effects (used for instruction fetch)."""
        return self._cells[address & WORD_MASK]

    def load(self, origin: int, words: Iterable[int]) -> int:
        """Copy words into memory starting at origin, wrapping at 0xFFFF.

        Returns:
            Number of words written
        """
        count = 0
        for offset, word in enumerate(words):
            self.write(origin + offset, word)
            count += 1
        return count

    def read_keyboard(self) -> int:
        """Block for one keystroke.

        CR is translated to LF. A failed read yields 0.

        Raises:
            InterruptRequested: If the byte read is 0x03
        """
        if self.input_source is None:
            return 0
        byte = self.input_source.read_byte()
        c = 0 if byte is None else byte
        if c == CR:
            c = LF
        if c == ETX:
            logger.info("Interrupt received from keyboard")
            raise InterruptRequested("Interrupted")
        return c

    def dump(self, start: int, count: int) -> list:
        """Return ``count`` words from ``start`` without side effects."""
        return [self.peek(start + i) for i in range(count)]
