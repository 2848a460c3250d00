"""tmux passthrough envelopes.

With ``allow-passthrough`` enabled, tmux forwards an escape sequence to
the outer terminal when it is wrapped as::

    ESC P tmux; <sequence with every ESC doubled> ESC \\

The bridge strips one layer of that wrapping so the inner Kitty command
becomes visible to the APC scanner.
"""

from .assembler import BridgeState, partial_prefix_length

ESC = "\x1b"
ST = "\x1b\\"
TMUX_DCS_PREFIX = "\x1bPtmux;"


def wrap(sequence: str) -> str:
    """Wrap an escape sequence in a tmux passthrough envelope."""
    return TMUX_DCS_PREFIX + sequence.replace(ESC, ESC + ESC) + ST


def unwrap(state: BridgeState, text: str) -> str:
    """Strip every passthrough envelope from ``text``.

    Inside an envelope ``ESC ESC`` collapses to ``ESC`` and a lone
    ``ESC \\`` ends the envelope. An ``ESC`` followed by anything else is
    kept verbatim. When ``text`` ends inside an envelope, the raw bytes
    from the envelope start on are stored in ``state.remainder`` and only
    the text before it is returned. A tail that could be the start of
    ``ESC P tmux;`` is held back the same way.
    """
    out = []
    cursor = 0
    length = len(text)

    while cursor < length:
        start = text.find(TMUX_DCS_PREFIX, cursor)
        if start < 0:
            tail = text[cursor:]
            held = partial_prefix_length(tail, TMUX_DCS_PREFIX)
            if held:
                state.remainder = tail[-held:]
                tail = tail[:-held]
            out.append(tail)
            break

        out.append(text[cursor:start])
        inner = []
        j = start + len(TMUX_DCS_PREFIX)
        closed = False
        while j < length:
            ch = text[j]
            if ch != ESC:
                inner.append(ch)
                j += 1
                continue
            if j + 1 >= length:
                break
            following = text[j + 1]
            if following == ESC:
                inner.append(ESC)
                j += 2
            elif following == "\\":
                closed = True
                j += 2
                break
            else:
                inner.append(ESC)
                j += 1

        if not closed:
            state.remainder = text[start:]
            return "".join(out)

        out.append("".join(inner))
        cursor = j

    return "".join(out)
