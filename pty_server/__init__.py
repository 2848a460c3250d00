"""WebSocket PTY server with the Kitty graphics bridge on its output."""

from .session import PtySession, spawn_with_fallbacks
from .shells import ShellSpec, build_shell_candidates
from .websocket import PtyWSServer

__all__ = [
    'PtySession',
    'PtyWSServer',
    'ShellSpec',
    'build_shell_candidates',
    'spawn_with_fallbacks',
]
