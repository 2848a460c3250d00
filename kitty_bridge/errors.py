"""Exceptions raised inside the command rewrite path.

None of these escape ``KittyGraphicsBridge.transform``: the rewriter
catches them and falls back to emitting the sanitized command.
"""


class BridgeError(Exception):
    """Base class for recoverable rewrite failures."""


class PayloadDecodeError(BridgeError):
    """The payload of a file-medium command is not a usable path."""


class MediaReadError(BridgeError):
    """The file referenced by a command could not be read."""

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"cannot read {path!r}: {cause}")
        self.path = path
        self.cause = cause
