"""Kitty graphics bridge between a PTY and a browser terminal.

Sits on the PTY output stream and rewrites Kitty graphics commands that
reference host files into self-contained direct transmissions, leaving
all other output untouched.

Stages, applied to every chunk:
1. assemble - prepend held-back input, hold a trailing high surrogate
2. unwrap   - strip tmux passthrough envelopes
3. scan     - find ``ESC _ G ... (BEL | ESC \\)`` commands
4. rewrite  - sanitize control data, inline file media

Usage:
    from kitty_bridge import create_bridge

    bridge = create_bridge(trace=True)
    for chunk in pty_output:
        websocket.send(bridge.transform(chunk))
    websocket.send(bridge.flush())

One bridge per PTY session; ``transform`` is not reentrant.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from .apc import scan
from .assembler import BridgeState, assemble
from .cache import DEFAULT_IMAGE_CACHE_SIZE, ImageSizeCache
from .resize import ResizeFn, pillow_resize
from .rewriter import (
    DEFAULT_MAX_DIMENSION,
    CommandRewriter,
    ReadFileFn,
    RemoveFileFn,
)
from .tmux import unwrap

logger = logging.getLogger(__name__)


@dataclass
class BridgeOptions:
    """Options for :func:`create_bridge`.

    Attributes:
        read_file: Reads a host path into bytes; raises OSError on failure.
            Defaults to reading the file from disk.
        trace: Write one trace line per rewritten or sanitized command.
        resize_png: Capability used for PNGs larger than max_dimension;
            None sends them unresized.
        max_dimension: Pixel limit for size clamps and resizing.
        image_cache_size: Capacity of the image-size cache.
        delete_temp_files: Delete ``t=t`` files after reading them.
        remove_file: Deletes a host path. Defaults to os.remove.
    """
    read_file: Optional[ReadFileFn] = None
    trace: bool = False
    resize_png: Optional[ResizeFn] = pillow_resize
    max_dimension: int = DEFAULT_MAX_DIMENSION
    image_cache_size: int = DEFAULT_IMAGE_CACHE_SIZE
    delete_temp_files: bool = False
    remove_file: Optional[RemoveFileFn] = None


class KittyGraphicsBridge:
    """Stateful stream transformer for one PTY session."""

    def __init__(
        self,
        options: Optional[BridgeOptions] = None,
        state: Optional[BridgeState] = None,
    ):
        options = options or BridgeOptions()
        if state is None:
            state = BridgeState(image_sizes=ImageSizeCache(options.image_cache_size))
        self.state = state
        self.rewriter = CommandRewriter(
            state.image_sizes,
            read_file=options.read_file,
            resize_png=options.resize_png,
            max_dimension=options.max_dimension,
            trace=options.trace,
            delete_temp_files=options.delete_temp_files,
            remove_file=options.remove_file,
        )

    def transform(self, chunk: str) -> str:
        """Process one chunk of PTY output.

        Returns:
            The text to forward now. Incomplete sequences at the end of the
            chunk are held back and emitted by a later call.
        """
        if not chunk:
            return ""
        text = assemble(self.state, chunk)
        if not text:
            return ""
        data = unwrap(self.state, text)
        return scan(self.state, data, self._rewrite)

    def flush(self) -> str:
        """Return and clear whatever input is still held back, unprocessed.

        For the end of a stream, when a pending sequence can no longer be
        completed. A chunk ending in the first bytes of ``ESC _ G`` or
        ``ESC P tmux;`` is held until the next chunk, so without a final
        flush those bytes would be lost.
        """
        held = self.state.remainder + self.state.utf16_carry
        self.state.remainder = ""
        self.state.utf16_carry = ""
        return held

    def _rewrite(self, body: str) -> str:
        try:
            return self.rewriter.rewrite(body)
        except Exception:
            logger.exception("Graphics command rewrite failed, passing it through")
            return body


def create_bridge(options: Optional[BridgeOptions] = None, **overrides) -> KittyGraphicsBridge:
    """Create a bridge for one PTY session.

    Keyword arguments override fields of ``options``::

        create_bridge(read_file=fake_fs.__getitem__, resize_png=None)
    """
    if overrides:
        options = dataclasses.replace(options or BridgeOptions(), **overrides)
    return KittyGraphicsBridge(options)


def rewrite_file_media_to_direct(
    chunk: str, state: BridgeState, read_file: ReadFileFn
) -> str:
    """Inline file-medium transmissions in ``chunk``, without resizing.

    Stateless entry point for callers that keep only a
    :class:`BridgeState` between chunks.
    """
    bridge = KittyGraphicsBridge(BridgeOptions(read_file=read_file, resize_png=None), state=state)
    return bridge.transform(chunk)
