"""PNG header inspection."""

import struct
from dataclasses import dataclass
from typing import Optional

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_IHDR = b"IHDR"


@dataclass(frozen=True)
class ImageSize:
    """Pixel dimensions of a transmitted image. Both sides are > 0."""
    width: int
    height: int


def png_dimensions(data: bytes) -> Optional[ImageSize]:
    """Read width/height from the IHDR chunk of a PNG.

    Only the fixed header layout is checked: the 8-byte signature, the
    ``IHDR`` tag at offset 12, and the big-endian width/height at offsets
    16 and 20.

    Returns:
        The image size, or None when the data is too short, is not a PNG,
        or declares a zero dimension.
    """
    if len(data) < 24:
        return None
    if data[:8] != PNG_SIGNATURE or data[12:16] != _IHDR:
        return None
    width, height = struct.unpack(">II", data[16:24])
    if width <= 0 or height <= 0:
        return None
    return ImageSize(width, height)
