"""Rewriting of a single Kitty graphics command body.

The downstream renderer runs in a browser and cannot see the PTY host's
filesystem, so transmissions that reference a file (``t=f``) or a temp
file (``t=t``) are replaced by a direct transmission (``t=d``) carrying
the file's bytes. Every command, rewritten or not, also goes through
parameter sanitation (see :mod:`kitty_bridge.params`).

Failures never propagate: a command whose file cannot be decoded, read
or resized is emitted in its sanitized form and the renderer simply
fails to show that one image.
"""

import base64
import logging
import math
import os
from typing import Callable, List, Optional

from .cache import ImageSizeCache
from .errors import MediaReadError, PayloadDecodeError
from .media import Medium, decode_file_path
from .params import (
    MAX_CELLS,
    KittyParam,
    clamp_dimensions,
    dedupe_params_last_wins,
    get_param,
    parse_params,
    parse_unsigned,
    sanitize_params,
    serialize_params,
    set_param,
)
from .png import ImageSize, png_dimensions
from .resize import ResizeFn
from .trace import trace as write_trace

logger = logging.getLogger(__name__)

ReadFileFn = Callable[[str], bytes]
RemoveFileFn = Callable[[str], None]

DEFAULT_MAX_DIMENSION = 10000

PNG_FORMAT = "100"

# Kitty only deletes temp files whose path carries this marker.
TEMP_FILE_MARKER = "tty-graphics-protocol"

# Keys summarized in trace lines, in this order.
TRACE_KEYS = (
    "a", "U", "C", "i", "I", "p", "f", "t", "s", "v",
    "x", "y", "X", "Y", "w", "h", "c", "r", "z", "m", "q",
)


def read_host_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CommandRewriter:
    """Sanitizes command bodies and inlines file-medium transmissions.

    One instance serves one bridge; ``image_sizes`` is shared with the
    bridge state so placement repairs see sizes from earlier commands.
    """

    def __init__(
        self,
        image_sizes: ImageSizeCache,
        read_file: Optional[ReadFileFn] = None,
        resize_png: Optional[ResizeFn] = None,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
        trace: bool = False,
        delete_temp_files: bool = False,
        remove_file: Optional[RemoveFileFn] = None,
    ):
        self.image_sizes = image_sizes
        self._read_file = read_file or read_host_file
        self._resize_png = resize_png
        self.max_dimension = max_dimension
        self.trace_enabled = trace
        self.delete_temp_files = delete_temp_files
        self._remove_file = remove_file or os.remove

    def rewrite(self, body: str) -> str:
        """Return the replacement for one APC body (``G<control>[;<payload>]``).

        The body is returned unchanged (same string) when nothing needed
        fixing; otherwise the control data is re-serialized.
        """
        if not body.startswith("G"):
            return body

        control, sep, payload = body[1:].partition(";")
        has_payload = bool(sep)
        raw_params = parse_params(control)

        params, changed = sanitize_params(raw_params)
        params, deduped = dedupe_params_last_wins(params)
        changed = deduped or changed
        changed = clamp_dimensions(params, self.max_dimension) or changed
        changed = self._repair_virtual_placement(raw_params, params) or changed

        def sanitized_only(label: str) -> str:
            if not changed:
                return body
            self._trace(label, params, len(payload))
            suffix = f";{payload}" if has_payload else ""
            return f"G{serialize_params(params)}{suffix}"

        if not has_payload:
            return sanitized_only("sanitize-nopayload")

        medium = Medium.from_param(get_param(params, "t"))
        if not medium.reads_host_file:
            return sanitized_only("sanitize")

        try:
            path = decode_file_path(payload)
        except PayloadDecodeError as e:
            logger.debug("Not rewriting graphics command: %s", e)
            return sanitized_only("sanitize-badpath")

        try:
            data = self._read(path)
        except MediaReadError as e:
            logger.debug("Not rewriting graphics command: %s", e)
            return sanitized_only("sanitize-readfail")

        # The resizer may still need the file on disk.
        try:
            data, dims = self._measure(path, data, params)
        finally:
            if medium is Medium.TEMP_FILE:
                self._discard_temp_file(path)

        encoded = base64.standard_b64encode(data).decode("ascii")
        set_param(params, "t", Medium.DIRECT.value)
        if get_param(params, "m") is not None:
            set_param(params, "m", "0")

        image_id = parse_unsigned(get_param(params, "i"))
        if image_id and dims:
            self.image_sizes.put(image_id, dims)

        self._trace("rewrite", params, len(encoded))
        return f"G{serialize_params(params)};{encoded}"

    def _read(self, path: str) -> bytes:
        # read_file is injected; whatever it raises counts as a failed read.
        try:
            return self._read_file(path)
        except Exception as e:
            raise MediaReadError(path, e) from e

    def _discard_temp_file(self, path: str) -> None:
        if not self.delete_temp_files or TEMP_FILE_MARKER not in path:
            return
        try:
            self._remove_file(path)
        except OSError as e:
            logger.debug("Could not delete temp file %s: %s", path, e)

    def _measure(self, path: str, data: bytes, params: List[KittyParam]):
        """Determine the pixel size, downsizing oversized PNGs.

        Returns:
            ``(data, dims)`` where ``data`` may be the resized bytes and
            ``dims`` is None when the size is unknown.
        """
        if get_param(params, "f") != PNG_FORMAT:
            width = parse_unsigned(get_param(params, "s"))
            height = parse_unsigned(get_param(params, "v"))
            if width and height:
                return data, ImageSize(width, height)
            return data, None

        dims = png_dimensions(data)
        if dims is None:
            return data, None
        if max(dims.width, dims.height) <= self.max_dimension:
            return data, dims
        if self._resize_png is None:
            return data, dims

        resized = self._resize_png(path, data, self.max_dimension)
        if not resized:
            logger.debug(
                "Sending %dx%d PNG %s unresized", dims.width, dims.height, path
            )
            return data, dims

        self._trace("resize", params, len(resized))
        return resized, png_dimensions(resized)

    def _repair_virtual_placement(
        self, raw_params: List[KittyParam], params: List[KittyParam]
    ) -> bool:
        """Infer a missing column or row span of a virtual placement.

        Placements driven by Unicode placeholders (``a=p,U=1``) are
        sometimes sent with one span as a non-numeric placeholder, which
        sanitation has dropped. With the image size known from an earlier
        transmission the span follows from the aspect ratio.
        """
        if (get_param(params, "a") or "").lower() != "p":
            return False
        if get_param(params, "U") != "1":
            return False

        image_id = parse_unsigned(get_param(params, "i"))
        size = self.image_sizes.get(image_id) if image_id else None
        if size is None or size.width <= 0 or size.height <= 0:
            return False

        had_raw_c = any(p.key == "c" for p in raw_params)
        had_raw_r = any(p.key == "r" for p in raw_params)
        cols = parse_unsigned(get_param(params, "c"))
        rows = parse_unsigned(get_param(params, "r"))
        changed = False

        if had_raw_c and cols is None and rows:
            guessed = _round_half_up(rows * size.width / size.height)
            set_param(params, "c", str(max(1, min(MAX_CELLS, guessed))))
            changed = True

        if had_raw_r and rows is None:
            cols = parse_unsigned(get_param(params, "c"))
            if cols:
                guessed = _round_half_up(cols * size.height / size.width)
                set_param(params, "r", str(max(1, min(MAX_CELLS, guessed))))
                changed = True

        return changed

    def _trace(self, label: str, params: List[KittyParam], payload_length: int) -> None:
        if not self.trace_enabled:
            return
        summary = " ".join(
            f"{key}={value}"
            for key in TRACE_KEYS
            for value in [get_param(params, key)]
            if value is not None
        )
        write_trace("kitty", f"{label} {summary} payload={payload_length}")
