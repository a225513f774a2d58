"""Keyboard input sources for the LC-3 VM.

The machine reads characters through anything with a ``read_byte()`` method
returning an int in 0-255, or None when no byte could be acquired. Carriage
return translation and the 0x03 interrupt byte are handled by the caller.
"""

import logging
import os
import sys
from typing import Iterable, Iterator, Optional, Protocol, TextIO

from .errors import TerminalUnavailableError

logger = logging.getLogger(__name__)


class InputSource(Protocol):
    def read_byte(self) -> Optional[int]:
        ...


class RawTerminalInput:
    """Blocking single-byte reader on stdin.

    When stdin is a TTY it is switched to raw mode (no line buffering, no
    echo) for the duration of each read and restored afterwards, so single
    keystrokes are delivered immediately. A redirected stdin is read
    directly.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdin

    def _fileno(self) -> int:
        try:
            return self.stream.fileno()
        except (AttributeError, ValueError, OSError) as e:
            raise TerminalUnavailableError(f"failed to open stdin reader: {e}") from e

    def read_byte(self) -> Optional[int]:
        fd = self._fileno()
        if not os.isatty(fd):
            return self._read(fd)

        try:
            import termios
            import tty
        except ImportError as e:
            raise TerminalUnavailableError("raw terminal mode is not supported on this platform") from e

        try:
            saved = termios.tcgetattr(fd)
        except termios.error as e:
            raise TerminalUnavailableError(f"failed to open stdin reader: {e}") from e

        try:
            tty.setraw(fd, termios.TCSANOW)
            return self._read(fd)
        finally:
            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, saved)
            except termios.error as e:
                raise TerminalUnavailableError(f"failed to restore terminal: {e}") from e

    @staticmethod
    def _read(fd: int) -> Optional[int]:
        try:
            data = os.read(fd, 1)
        except OSError as e:
            logger.warning("Keyboard read failed: %s", e)
            return None
        if not data:
            return None
        return data[0]


class ScriptedInput:
    """Input source that replays a fixed byte sequence, then reports EOF.

    Args:
        data: Bytes, a str (encoded as latin-1) or any iterable of ints
    """

    def __init__(self, data: Iterable[int] = b""):
        if isinstance(data, str):
            data = data.encode("latin-1")
        self._bytes: Iterator[int] = iter(data)
        self.reads = 0

    def read_byte(self) -> Optional[int]:
        self.reads += 1
        value = next(self._bytes, None)
        return None if value is None else value & 0xFF
