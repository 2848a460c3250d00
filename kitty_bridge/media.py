"""Transmission media and file-path payloads."""

import base64
import binascii
import re
from enum import Enum
from typing import Optional

from .errors import PayloadDecodeError

_WHITESPACE_RE = re.compile(r"\s+")


class Medium(Enum):
    """Value of the ``t`` key: where the image bytes come from."""
    DIRECT = "d"
    FILE = "f"
    TEMP_FILE = "t"
    SHARED_MEMORY = "s"
    OTHER = ""

    @classmethod
    def from_param(cls, value: Optional[str]) -> "Medium":
        """Map a ``t`` value (case-insensitive) to a medium.

        A missing key means direct transmission, the protocol default.
        """
        if value is None:
            return cls.DIRECT
        try:
            return cls(value.lower())
        except ValueError:
            return cls.OTHER

    @property
    def reads_host_file(self) -> bool:
        return self in (Medium.FILE, Medium.TEMP_FILE)


def decode_file_path(payload: str) -> str:
    """Decode the base64 payload of a file-medium command into a path.

    Whitespace is ignored and missing padding is tolerated.

    Raises:
        PayloadDecodeError: Invalid base64, invalid UTF-8, or a path with
            an embedded NUL.
    """
    cleaned = _WHITESPACE_RE.sub("", payload)
    if not cleaned:
        return ""
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(cleaned, validate=True)
        path = raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise PayloadDecodeError(f"payload is not a base64 path: {e}") from e
    if "\0" in path:
        raise PayloadDecodeError("path contains NUL")
    return path
