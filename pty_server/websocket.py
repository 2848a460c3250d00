"""WebSocket PTY server.

Each connection to ``/pty`` gets its own shell in a pseudo-terminal and
its own Kitty graphics bridge. Shell output is passed through the bridge
and sent as text frames; client frames become keyboard input or resize
requests.

Client -> server frames:
    {"type": "input", "data": "ls\\r"}
    {"type": "resize", "cols": 120, "rows": 40}
    any other text is written to the PTY as-is

Server -> client frames:
    {"type": "status", "shell": "/bin/zsh"}
    {"type": "exit", "code": 0}
    {"type": "error", "message": "...", "errors": [...]}
    plain text - terminal output

Usage:
    from pty_server.websocket import PtyWSServer

    server = PtyWSServer(host="localhost", port=8787)
    asyncio.run(server.start())
"""

import asyncio
import json
import logging
import math
import os
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Optional, Union
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from kitty_bridge import BridgeSettings, KittyGraphicsBridge, create_bridge

from .session import (
    DEFAULT_COLS,
    DEFAULT_ROWS,
    PtySession,
    build_child_env,
    spawn_with_fallbacks,
)
from .shells import build_shell_candidates

logger = logging.getLogger(__name__)

PTY_PATH = "/pty"
READ_SIZE = 4096
READ_TIMEOUT = 0.1


@dataclass
class ConnectParams:
    """Query parameters of a ``/pty`` connection."""
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    shell: Optional[str] = None
    cwd: Optional[str] = None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def parse_connect_params(path: str) -> ConnectParams:
    """Read ``cols``, ``rows``, ``shell`` and ``cwd`` from a request path."""
    query = parse_qs(urlsplit(path).query)

    def first(name: str) -> Optional[str]:
        values = query.get(name)
        return values[0] if values else None

    cols = _as_int(first("cols"))
    rows = _as_int(first("rows"))
    return ConnectParams(
        cols=cols if cols and cols > 0 else DEFAULT_COLS,
        rows=rows if rows and rows > 0 else DEFAULT_ROWS,
        shell=first("shell"),
        cwd=first("cwd"),
    )


def dispatch_message(session: PtySession, message: Union[str, bytes]) -> None:
    """Apply one client frame to the PTY."""
    if isinstance(message, bytes):
        session.write(message.decode("utf-8", errors="replace"))
        return

    try:
        msg = json.loads(message)
    except json.JSONDecodeError:
        session.write(message)
        return

    if not isinstance(msg, dict):
        session.write(message)
        return

    kind = msg.get("type")
    if kind == "input" and isinstance(msg.get("data"), str):
        session.write(msg["data"])
    elif kind == "resize":
        cols = _as_int(msg.get("cols"))
        rows = _as_int(msg.get("rows"))
        if cols and rows and cols > 0 and rows > 0:
            session.resize(cols, rows)
    else:
        logger.debug("Ignoring client message of type %r", kind)


class OutputRelay:
    """Runs PTY output through a bridge, counting rewrites in debug mode."""

    def __init__(self, bridge: KittyGraphicsBridge, debug: bool = False):
        self.bridge = bridge
        self.debug = debug
        self.rewrites = 0

    def feed(self, text: str) -> str:
        if not text:
            return ""
        out = self.bridge.transform(text)
        if self.debug and out != text:
            self.rewrites += 1
            logger.info("kitty bridge rewrite #%d", self.rewrites)
        return out

    def flush(self) -> str:
        return self.bridge.flush()


class PtyWSServer:
    """WebSocket server handing every client its own shell."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8787,
        settings: Optional[BridgeSettings] = None,
    ):
        self.host = host
        self.port = port
        self.settings = settings or BridgeSettings.from_env()
        self._server: Optional[Any] = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Serve until :meth:`stop` is called."""
        async with serve(
            self._handle_client,
            self.host,
            self.port,
            process_request=self._process_request,
        ) as server:
            self._server = server
            logger.info(f"PTY server listening on ws://{self.host}:{self.port}{PTY_PATH}")
            await self._shutdown_event.wait()
        self._server = None
        logger.info("Server stopped")

    async def stop(self) -> None:
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return self._server is not None and not self._shutdown_event.is_set()

    def _process_request(self, connection: ServerConnection, request):
        if urlsplit(request.path).path != PTY_PATH:
            return connection.respond(HTTPStatus.OK, "kitty bridge pty server\n")
        return None

    def create_relay(self) -> OutputRelay:
        bridge = create_bridge(self.settings.to_options())
        return OutputRelay(bridge, debug=self.settings.debug)

    async def _handle_client(self, websocket: ServerConnection) -> None:
        params = parse_connect_params(websocket.request.path)
        candidates = build_shell_candidates(params.shell)
        cwd = params.cwd or os.getcwd()
        loop = asyncio.get_running_loop()

        session, errors = await loop.run_in_executor(
            None,
            spawn_with_fallbacks,
            candidates,
            params.cols,
            params.rows,
            cwd,
            build_child_env(),
        )
        if session is None:
            logger.error("Failed to spawn shell: %s", "; ".join(errors))
            await websocket.send(json.dumps({
                "type": "error",
                "message": "Failed to spawn shell",
                "errors": errors,
            }))
            await websocket.close()
            return

        await websocket.send(json.dumps({"type": "status", "shell": session.label}))
        pump = asyncio.create_task(self._pump_output(websocket, session))

        try:
            async for message in websocket:
                dispatch_message(session, message)
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.error(f"Client error: {e}")
        finally:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            await loop.run_in_executor(None, session.kill)
            logger.info("Client disconnected, %s terminated", session.label)

    async def _pump_output(self, websocket: ServerConnection, session: PtySession) -> None:
        """Forward PTY output until the shell exits, then report the exit code."""
        relay = self.create_relay()
        loop = asyncio.get_running_loop()

        while True:
            data = await loop.run_in_executor(None, session.read, READ_SIZE, READ_TIMEOUT)
            if data is None:
                break
            # File reads and resizing happen inside the bridge.
            out = await loop.run_in_executor(None, relay.feed, data)
            if out:
                try:
                    await websocket.send(out)
                except ConnectionClosed:
                    return

        code = await loop.run_in_executor(None, session.close)
        try:
            held = relay.flush()
            if held:
                await websocket.send(held)
            await websocket.send(json.dumps({"type": "exit", "code": code}))
            await websocket.close()
        except ConnectionClosed:
            pass
