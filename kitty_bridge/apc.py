"""Locating Kitty graphics APC commands in terminal output."""

from typing import Callable, NamedTuple, Optional

from .assembler import BridgeState, partial_prefix_length

ESC = "\x1b"
BEL = "\x07"
ST = "\x1b\\"
KITTY_APC_PREFIX = "\x1b_G"


class Terminator(NamedTuple):
    """Position and length (1 for BEL, 2 for ST) of an APC terminator."""
    index: int
    length: int


def find_terminator(data: str, start: int) -> Optional[Terminator]:
    """Find whichever of BEL or ST comes first at or after ``start``."""
    bel = data.find(BEL, start)
    st = data.find(ST, start)
    if bel < 0 and st < 0:
        return None
    if st < 0 or (0 <= bel < st):
        return Terminator(bel, 1)
    return Terminator(st, 2)


def scan(state: BridgeState, text: str, rewrite: Callable[[str], str]) -> str:
    """Pass ``text`` through, rewriting the body of every graphics command.

    ``rewrite`` receives the body starting with ``G`` (without ``ESC _``
    and without the terminator) and returns the replacement body. The
    terminator the producer used is kept. An unterminated command at the
    end of ``text`` is appended to ``state.remainder``, ahead of anything
    the passthrough unwrapper already left there, as is a tail that could
    be the start of ``ESC _ G``.
    """
    out = []
    cursor = 0
    length = len(text)

    while cursor < length:
        start = text.find(KITTY_APC_PREFIX, cursor)
        if start < 0:
            tail = text[cursor:]
            held = partial_prefix_length(tail, KITTY_APC_PREFIX)
            if held:
                state.remainder = tail[-held:] + state.remainder
                tail = tail[:-held]
            out.append(tail)
            break

        out.append(text[cursor:start])
        term = find_terminator(text, start + len(KITTY_APC_PREFIX))
        if term is None:
            state.remainder = text[start:] + state.remainder
            break

        body = text[start + 2:term.index]
        out.append(ESC + "_")
        out.append(rewrite(body))
        out.append(text[term.index:term.index + term.length])
        cursor = term.index + term.length

    return "".join(out)
