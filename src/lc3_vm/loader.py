"""Program image loading.

An image file is a sequence of big-endian 16-bit words. The first word is
the origin address; the rest are copied into memory starting there,
wrapping past xFFFF to x0000.
"""

import logging
import struct
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .state import Memory


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ImageLoadError(Exception):
    """An image could not be read or is malformed.

    Attributes:
        path: Path of the failing image, if it came from a file
    """

    def __init__(self, message: str, path: Optional[PathLike] = None):
        super().__init__(message)
        self.path = path


def parse_image(data: bytes) -> Tuple[int, List[int]]:
    """Split raw image bytes into origin and contents.

    A trailing odd byte cannot form a word and is ignored.

    Args:
        data: Raw image bytes

    Returns:
        Tuple of (origin address, list of content words)

    Raises:
        ImageLoadError: If the image is too short to hold an origin
    """
    if len(data) < 2:
        raise ImageLoadError(f"Image too short: {len(data)} bytes, need an origin word")
    if len(data) % 2:
        logger.warning("Ignoring trailing odd byte in %d-byte image", len(data))
        data = data[:-1]
    words = list(struct.unpack(f">{len(data) // 2}H", data))
    return words[0], words[1:]


def load_image_bytes(memory: Memory, data: bytes) -> int:
    """Parse an image and copy it into memory.

    Returns:
        The image origin
    """
    origin, words = parse_image(data)
    memory.load(origin, words)
    logger.info("Loaded %d words at x%04X", len(words), origin)
    return origin


def read_image_file(path: PathLike) -> Tuple[int, List[int]]:
    """Read and parse an image file without touching memory.

    Raises:
        ImageLoadError: If the file can't be read or is malformed
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ImageLoadError(f"failed to load image: {path} ({e.strerror})", path) from e
    try:
        return parse_image(data)
    except ImageLoadError as e:
        raise ImageLoadError(f"failed to load image: {path} ({e})", path) from e


def load_image_file(memory: Memory, path: PathLike) -> int:
    """Load one image file into memory.

    Returns:
        The image origin
    """
    origin, words = read_image_file(path)
    memory.load(origin, words)
    logger.info("Loaded %s: %d words at x%04X", path, len(words), origin)
    return origin


def load_images(memory: Memory, paths: Iterable[PathLike]) -> List[int]:
    """Load several images in order; later images overwrite earlier ones.

    Every file is read and validated before any is copied, so a failure
    leaves memory untouched.

    Returns:
        Origins of the loaded images, in order
    """
    images = [(path, read_image_file(path)) for path in paths]
    origins = []
    for path, (origin, words) in images:
        memory.load(origin, words)
        logger.info("Loaded %s: %d words at x%04X", path, len(words), origin)
        origins.append(origin)
    return origins
