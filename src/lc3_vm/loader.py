"""Object image loader.

An image is a sequence of big-endian 16-bit words. The first word is the
origin: the load address of the second word and the initial PC.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)


class ImageFormatError(ValueError):
    """Image bytes do not form a valid object file."""


class ImageReadError(OSError):
    """Image file could not be opened or read."""


@dataclass
class Image:
    """A parsed object image.

    Attributes:
        origin: Load address and initial PC
        words: Program words, placed from origin upward
    """
    origin: int
    words: List[int]

    def __len__(self) -> int:
        return len(self.words)


def parse_words(data: bytes) -> List[int]:
    """Split bytes into big-endian 16-bit words.

    Raises:
        ImageFormatError: If the byte length is odd
    """
    if len(data) % 2 != 0:
        raise ImageFormatError(f"Invalid file size: {len(data)} bytes is not a whole number of words")
    return [(data[i] << 8) | data[i + 1] for i in range(0, len(data), 2)]


def load_image(data: bytes) -> Image:
    """Parse an object image from raw bytes.

    Raises:
        ImageFormatError: If the data is empty or has odd length
    """
    words = parse_words(data)
    if not words:
        raise ImageFormatError("Invalid file size: image has no origin word")
    image = Image(origin=words[0], words=words[1:])
    logger.debug("Parsed image: origin=x%04X, %d words", image.origin, len(image))
    return image


def load_image_file(path: Union[str, Path]) -> Image:
    """Read and parse an object image file.

    Raises:
        ImageReadError: If the file cannot be opened or read
        ImageFormatError: If the contents are malformed
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ImageReadError(f"Unable to read file {path}: {e.strerror or e}") from e
    return load_image(data)
