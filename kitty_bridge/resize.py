"""Downsizing of oversized PNG transmissions.

A resize capability has the signature::

    resize_png(path: str, data: bytes, max_dimension: int) -> Optional[bytes]

and returns PNG bytes whose longest side is ``max_dimension``, or None
when it cannot resize. Capabilities never raise: the rewriter falls back
to the original bytes.

Two capabilities are provided:
1. pillow - in-process, works everywhere Pillow is installed
2. sips - the macOS image tool, run as a subprocess on the source path
"""

import logging
import os
import shutil
import subprocess
import tempfile
from io import BytesIO
from typing import Callable, Optional

from PIL import Image

logger = logging.getLogger(__name__)

ResizeFn = Callable[[str, bytes, int], Optional[bytes]]

SIPS_TIMEOUT = 30


def _fit(width: int, height: int, max_dimension: int):
    ratio = max_dimension / max(width, height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def pillow_resize(path: str, data: bytes, max_dimension: int) -> Optional[bytes]:
    """Resize with Pillow, preserving aspect ratio (LANCZOS)."""
    try:
        with Image.open(BytesIO(data)) as img:
            if max(img.width, img.height) <= max_dimension:
                return None
            size = _fit(img.width, img.height, max_dimension)
            resized = img.resize(size, Image.Resampling.LANCZOS)
        buf = BytesIO()
        resized.save(buf, format="PNG")
        return buf.getvalue()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug("pillow resize of %s failed: %s", path, e)
        return None


def sips_resize(path: str, data: bytes, max_dimension: int) -> Optional[bytes]:
    """Resize by running ``sips -Z`` on the source file.

    Returns None when sips is not installed, exits non-zero, or times out.
    """
    sips = shutil.which("sips")
    if sips is None:
        return None

    with tempfile.TemporaryDirectory(prefix="kitty_bridge_resize_") as tmpdir:
        output_path = os.path.join(tmpdir, "resized.png")
        cmd = [
            sips,
            "-s", "format", "png",
            "-Z", str(max_dimension),
            path,
            "--out", output_path,
        ]
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=SIPS_TIMEOUT)
            if proc.returncode != 0:
                logger.debug("sips failed: %s", proc.stderr.decode(errors="replace"))
                return None
            with open(output_path, "rb") as f:
                return f.read()
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug("sips execution error: %s", e)
            return None


def select_resizer(name: Optional[str]) -> Optional[ResizeFn]:
    """Map a resizer name (``pillow``, ``sips``, ``off``) to a capability.

    Unknown names fall back to pillow.
    """
    choice = (name or "pillow").lower()
    if choice == "off":
        return None
    if choice == "sips":
        return sips_resize
    if choice != "pillow":
        logger.warning("unknown resizer %r, using pillow", name)
    return pillow_resize
