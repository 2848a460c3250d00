"""Per-session stream state and chunk assembly."""

from dataclasses import dataclass, field

from .cache import DEFAULT_IMAGE_CACHE_SIZE, ImageSizeCache

_HIGH_SURROGATES = range(0xD800, 0xDC00)


@dataclass
class BridgeState:
    """Everything a bridge carries between two ``transform`` calls.

    Attributes:
        remainder: Input held back because it starts a sequence whose
            terminator has not arrived (a passthrough envelope or an APC
            command). Replayed in front of the next chunk.
        utf16_carry: A dangling high surrogate from the end of the last
            chunk, at most one code unit.
        image_sizes: Pixel sizes of transmitted images, by image id.
    """
    remainder: str = ""
    utf16_carry: str = ""
    image_sizes: ImageSizeCache = field(
        default_factory=lambda: ImageSizeCache(DEFAULT_IMAGE_CACHE_SIZE)
    )

    @property
    def pending(self) -> bool:
        """True while input is buffered waiting for more data."""
        return bool(self.remainder or self.utf16_carry)


def _join_surrogates(text: str) -> str:
    # Valid pairs become one code point; lone surrogates are kept as-is.
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


def assemble(state: BridgeState, chunk: str) -> str:
    """Merge ``chunk`` with the carried state and return the text to scan.

    Producers that hand over UTF-16 string data can split a surrogate pair
    exactly at a chunk edge. A trailing high surrogate is held back in
    ``utf16_carry`` and rejoined with its low half on the next call.
    ``remainder`` is consumed (cleared) here.
    """
    text = chunk
    if state.utf16_carry:
        text = _join_surrogates(state.utf16_carry + text)
        state.utf16_carry = ""

    if text and ord(text[-1]) in _HIGH_SURROGATES:
        state.utf16_carry = text[-1]
        text = text[:-1]

    text = state.remainder + text
    state.remainder = ""
    return text


def partial_prefix_length(text: str, prefix: str) -> int:
    """Length of the longest tail of ``text`` that is a proper prefix of ``prefix``.

    A marker such as ``ESC _ G`` can be cut by a chunk edge; the cut-off
    start has to be held back until the rest arrives.
    """
    for size in range(min(len(prefix) - 1, len(text)), 0, -1):
        if text.endswith(prefix[:size]):
            return size
    return 0
