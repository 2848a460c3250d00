"""Kitty graphics control-data parsing and sanitation.

The control data of a graphics command is a comma separated list of
``key=value`` pairs, e.g. ``a=T,f=100,i=7``. Producers in the wild emit
garbage here (float-formatted numbers, duplicated keys, absurd sizes,
non-numeric placeholders), and a strict downstream parser rejects the
whole command on the first bad value. Everything in this module repairs
or drops such values so the command stays acceptable.

The sanitizing functions return ``(params, changed)`` so the caller can
emit the original body byte-for-byte when nothing was touched.
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

# Keys whose value is a single character rather than a number:
# action, transmission medium, compression, delete target.
CHAR_VALUE_KEYS = frozenset("atod")

# Numeric keys that are signed 32-bit: z-index and the cell offsets
# of relative placements.
SIGNED_INT_KEYS = frozenset("zHV")

U32_MAX = 0xFFFF_FFFF
I32_MIN = -0x8000_0000
I32_MAX = 0x7FFF_FFFF

# Cell span of a placement (columns, rows).
CELL_KEYS = ("c", "r")
MAX_CELLS = 1000

# Pixel sizes and offsets: source size, source rectangle, cell offsets.
PIXEL_KEYS = ("s", "v", "w", "h", "x", "y", "X", "Y")

_INT_RE = re.compile(r"[+-]?\d+\Z")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\Z")


@dataclass
class KittyParam:
    """One control-data entry. ``value`` is None for a bare key without ``=``."""
    key: str
    value: Optional[str] = None


def parse_params(raw: str) -> List[KittyParam]:
    """Split control data on ``,`` then on the first ``=``.

    Empty parts (``a=T,,f=100``) are skipped. Duplicated keys are kept
    in order; see :func:`dedupe_params_last_wins`.
    """
    params = []
    for part in raw.split(","):
        if not part:
            continue
        key, sep, value = part.partition("=")
        params.append(KittyParam(key, value if sep else None))
    return params


def serialize_params(params: Iterable[KittyParam]) -> str:
    return ",".join(
        p.key if p.value is None else f"{p.key}={p.value}" for p in params
    )


def get_param(params: Iterable[KittyParam], key: str) -> Optional[str]:
    """Value of the first entry for ``key``.

    Returns:
        The value, ``""`` for a bare key, or None when the key is absent.
    """
    for param in params:
        if param.key == key:
            return "" if param.value is None else param.value
    return None


def set_param(params: List[KittyParam], key: str, value: str) -> None:
    """Set every entry for ``key`` to ``value``, appending one if absent."""
    found = False
    for param in params:
        if param.key == key:
            param.value = value
            found = True
    if not found:
        params.append(KittyParam(key, value))


def parse_number(value: str) -> Optional[int]:
    """Parse an integer, or a float-looking string truncated toward zero.

    Some producers format every number as a float (``c=61.0``), so
    ``"61.0"`` parses to 61 and ``"-2.7"`` to -2. Non-finite results
    (``1e999``) and anything non-numeric (``inf``, ``nan``, ``0x10``)
    yield None.
    """
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        number = float(value)
        if math.isfinite(number):
            return math.trunc(number)
    return None


def parse_unsigned(value: Optional[str]) -> Optional[int]:
    """Parse a non-negative number; None for missing, invalid or negative."""
    if value is None:
        return None
    number = parse_number(value)
    if number is None or number < 0:
        return None
    return number


def _clamp(number: int, low: int, high: int) -> int:
    return max(low, min(high, number))


def sanitize_params(params: Iterable[KittyParam]) -> Tuple[List[KittyParam], bool]:
    """Drop or normalize every entry the downstream parser would reject.

    - keys longer than one character, bare keys and empty values are dropped;
    - character-valued keys (``a t o d``) keep only their first character;
    - every other key must be numeric: integers pass, float-looking values
      are truncated, anything else is dropped;
    - ``z H V`` are clamped to signed 32-bit, all other numeric keys to
      unsigned 32-bit.
    """
    out: List[KittyParam] = []
    changed = False

    for param in params:
        key, value = param.key, param.value
        if len(key) != 1 or not value:
            changed = True
            continue

        if key in CHAR_VALUE_KEYS:
            if len(value) > 1:
                value = value[0]
                changed = True
            out.append(KittyParam(key, value))
            continue

        number = parse_number(value)
        if number is None:
            changed = True
            continue

        if key in SIGNED_INT_KEYS:
            normalized = str(_clamp(number, I32_MIN, I32_MAX))
        else:
            normalized = str(_clamp(number, 0, U32_MAX))
        if normalized != value:
            changed = True
        out.append(KittyParam(key, normalized))

    return out, changed


def dedupe_params_last_wins(params: List[KittyParam]) -> Tuple[List[KittyParam], bool]:
    """Collapse repeated keys.

    The last occurrence supplies the value, the first occurrence keeps
    the position: ``U=0,c=40,U=1`` becomes ``U=1,c=40``.
    """
    if len(params) <= 1:
        return params, False

    positions: Dict[str, int] = {}
    out: List[KittyParam] = []
    for param in params:
        at = positions.get(param.key)
        if at is None:
            positions[param.key] = len(out)
            out.append(KittyParam(param.key, param.value))
        else:
            out[at].value = param.value
    return out, len(out) != len(params)


def clamp_param(params: List[KittyParam], key: str, high: int) -> bool:
    """Clamp a numeric entry into ``[0, high]``. Returns True if it changed."""
    current = get_param(params, key)
    if current is None:
        return False
    number = parse_number(current)
    if number is None:
        return False
    normalized = str(_clamp(number, 0, high))
    if normalized == current:
        return False
    set_param(params, key, normalized)
    return True


def clamp_dimensions(params: List[KittyParam], max_dimension: int) -> bool:
    """Apply the application limits on cell spans and pixel sizes."""
    changed = False
    for key in CELL_KEYS:
        changed = clamp_param(params, key, MAX_CELLS) or changed
    for key in PIXEL_KEYS:
        changed = clamp_param(params, key, max_dimension) or changed
    return changed
