"""PTY-backed shell session built on pexpect.

Output is decoded incrementally as UTF-8 by pexpect, so a multi-byte
character split across two reads arrives whole in the second read.
Malformed bytes become U+FFFD rather than raising.
"""

import logging
import os
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pexpect

from .shells import ShellSpec

logger = logging.getLogger(__name__)

DEFAULT_COLS = 80
DEFAULT_ROWS = 24

# Multiplexer variables are dropped so programs in the PTY talk to the
# browser terminal directly instead of wrapping output for tmux/zellij.
_REMOVED_ENV = ("TMUX", "ZELLIJ", "ZELLIJ_SESSION_NAME", "ZELLIJ_PANE_ID")

_TERMINAL_ENV = {
    "TERM": "xterm-256color",
    "COLORTERM": "truecolor",
    "TERM_PROGRAM": "ghostty",
    "TERM_PROGRAM_VERSION": "1.0",
    # Image-aware editor plugins (snacks.nvim) pick their protocol from these.
    "SNACKS_GHOSTTY": "1",
    "SNACKS_TMUX": "0",
    "SNACKS_ZELLIJ": "0",
    "SNACKS_SSH": "0",
}


def build_child_env(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Environment for the spawned shell."""
    env = dict(os.environ if base is None else base)
    env.update(_TERMINAL_ENV)
    for name in _REMOVED_ENV:
        env.pop(name, None)
    return env


class PtySession:
    """One shell process attached to a pseudo-terminal."""

    def __init__(
        self,
        spec: ShellSpec,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self.spec = spec
        self._process = pexpect.spawn(
            spec.cmd,
            list(spec.args),
            encoding="utf-8",
            codec_errors="replace",
            dimensions=(rows, cols),
            env=env,
            cwd=cwd,
        )

    @property
    def label(self) -> str:
        return self.spec.label

    @property
    def is_alive(self) -> bool:
        return self._process.isalive()

    def read(self, size: int = 4096, timeout: float = 0.1) -> Optional[str]:
        """Read whatever output is available.

        Returns:
            The text read, ``""`` if nothing arrived within ``timeout``,
            or None once the process has closed the PTY.
        """
        try:
            return self._process.read_nonblocking(size, timeout)
        except pexpect.TIMEOUT:
            return ""
        except pexpect.EOF:
            return None

    def write(self, text: str) -> None:
        self._process.send(text)

    def resize(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def close(self) -> int:
        """Close the PTY and reap the process; returns its exit code."""
        try:
            self._process.close(force=True)
        except (pexpect.ExceptionPexpect, OSError) as e:
            logger.debug("Error closing %s: %s", self.label, e)
        if self._process.exitstatus is not None:
            return self._process.exitstatus
        return 1

    def kill(self) -> None:
        if self._process.isalive():
            try:
                self._process.terminate(force=True)
            except (pexpect.ExceptionPexpect, OSError) as e:
                logger.debug("Error killing %s: %s", self.label, e)


def spawn_with_fallbacks(
    candidates: Sequence[ShellSpec],
    cols: int,
    rows: int,
    cwd: Optional[str],
    env: Dict[str, str],
) -> Tuple[Optional[PtySession], List[str]]:
    """Spawn the first candidate that starts.

    Returns:
        ``(session, errors)``; session is None when every candidate failed,
        and errors holds one ``"label: reason"`` line per failure.
    """
    errors: List[str] = []
    for spec in candidates:
        try:
            session = PtySession(spec, cols=cols, rows=rows, cwd=cwd, env=env)
        except (pexpect.ExceptionPexpect, OSError) as e:
            errors.append(f"{spec.label}: {e}")
            continue
        logger.info("Spawned %s (%dx%d)", spec.label, cols, rows)
        return session, errors
    return None, errors
