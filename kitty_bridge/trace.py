"""Trace-file writer for the graphics bridge.

Trace lines go to a plain file rather than the logging tree so a busy
shell session can be followed with ``tail -f`` without raising the log
level of the whole server.

The file is KITTY_BRIDGE_TRACE_LOG; an empty value disables tracing and
an unset one means ``kitty_bridge_trace.log`` in the temp directory.

Usage:
    from kitty_bridge.trace import trace

    trace("kitty", "rewrite a=T i=7 t=d payload=1024")
"""

import os
import tempfile
from datetime import datetime
from typing import Optional

TRACE_LOG_ENV = "KITTY_BRIDGE_TRACE_LOG"
DEFAULT_TRACE_FILENAME = "kitty_bridge_trace.log"


def trace_path() -> Optional[str]:
    """Current trace file, or None when tracing is switched off."""
    value = os.environ.get(TRACE_LOG_ENV)
    if value is None:
        return os.path.join(tempfile.gettempdir(), DEFAULT_TRACE_FILENAME)
    return value or None


def trace(component: str, msg: str) -> None:
    """Append ``[time] [component] msg`` to the trace file.

    Never raises; a broken trace file must not break the terminal stream.
    """
    path = trace_path()
    if not path:
        return
    ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "a", encoding="utf-8", errors="replace") as f:
            f.write(f"[{ts}] [{component}] {msg}\n")
    except OSError:
        pass
