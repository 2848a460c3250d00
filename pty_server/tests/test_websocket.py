"""Tests for the WebSocket PTY server."""

import asyncio
import base64
import json
import logging
import threading
from http import HTTPStatus
from unittest.mock import MagicMock, patch

import pytest

from kitty_bridge import BridgeSettings, create_bridge
from pty_server.websocket import (
    OutputRelay,
    PtyWSServer,
    dispatch_message,
    parse_connect_params,
)

APC_FILE = "\x1b_Ga=T,t=f,f=100;L3RtcC9pbWcucG5n\x1b\\"


class FakeSession:
    """Stands in for PtySession; replays canned output then reports EOF."""

    def __init__(self, output=(), label="/bin/fake", exit_code=0):
        self.label = label
        self.output = list(output)
        self.exit_code = exit_code
        self.written = []
        self.sizes = []
        self.killed = False

    def read(self, size=4096, timeout=0.1):
        if self.output:
            return self.output.pop(0)
        return None

    def write(self, text):
        self.written.append(text)

    def resize(self, cols, rows):
        self.sizes.append((cols, rows))

    def close(self):
        return self.exit_code

    def kill(self):
        self.killed = True


class FakeWebSocket:
    """Minimal ServerConnection: yields inbound frames until closed."""

    def __init__(self, path="/pty", messages=()):
        self.request = MagicMock(path=path)
        self.messages = list(messages)
        self.sent = []
        self.closed = asyncio.Event()

    async def send(self, message):
        self.sent.append(message)

    async def close(self):
        self.closed.set()

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for message in self.messages:
            await asyncio.sleep(0)
            yield message
        await self.closed.wait()


def _server(**settings):
    return PtyWSServer(settings=BridgeSettings(**settings))


class TestParseConnectParams:

    def test_defaults(self):
        params = parse_connect_params("/pty")
        assert (params.cols, params.rows) == (80, 24)
        assert params.shell is None
        assert params.cwd is None

    def test_query(self):
        params = parse_connect_params("/pty?cols=132&rows=43&shell=/bin/bash%20-l&cwd=/tmp")
        assert (params.cols, params.rows) == (132, 43)
        assert params.shell == "/bin/bash -l"
        assert params.cwd == "/tmp"

    def test_invalid_sizes_fall_back(self):
        params = parse_connect_params("/pty?cols=wide&rows=0")
        assert (params.cols, params.rows) == (80, 24)


class TestDispatchMessage:

    def test_input(self):
        session = FakeSession()
        dispatch_message(session, json.dumps({"type": "input", "data": "ls\r"}))
        assert session.written == ["ls\r"]

    def test_resize(self):
        session = FakeSession()
        dispatch_message(session, json.dumps({"type": "resize", "cols": 120, "rows": 40}))
        assert session.sizes == [(120, 40)]

    def test_resize_ignores_bad_sizes(self):
        session = FakeSession()
        dispatch_message(session, json.dumps({"type": "resize", "cols": "x", "rows": 40}))
        dispatch_message(session, json.dumps({"type": "resize", "cols": 0, "rows": 40}))
        assert session.sizes == []

    def test_raw_text(self):
        session = FakeSession()
        dispatch_message(session, "echo hi\r")
        assert session.written == ["echo hi\r"]

    def test_non_object_json_written_raw(self):
        session = FakeSession()
        dispatch_message(session, "42")
        assert session.written == ["42"]

    def test_binary_decoded(self):
        session = FakeSession()
        dispatch_message(session, "héllo".encode("utf-8") + b"\xff")
        assert session.written == ["héllo�"]

    def test_unknown_type_ignored(self):
        session = FakeSession()
        dispatch_message(session, json.dumps({"type": "ping"}))
        assert session.written == []
        assert session.sizes == []


class TestOutputRelay:

    def test_plain_text_passes_through(self):
        relay = OutputRelay(create_bridge(resize_png=None), debug=True)
        assert relay.feed("hello") == "hello"
        assert relay.feed("") == ""
        assert relay.rewrites == 0

    def test_counts_rewrites_in_debug(self, caplog):
        files = {"/tmp/img.png": b"\x89PNG"}
        bridge = create_bridge(read_file=files.__getitem__, resize_png=None)
        relay = OutputRelay(bridge, debug=True)
        with caplog.at_level(logging.INFO, logger="pty_server.websocket"):
            out = relay.feed(APC_FILE)
        assert "t=d" in out
        assert relay.rewrites == 1
        assert "kitty bridge rewrite #1" in caplog.text


class TestProcessRequest:

    def test_other_paths_get_plain_response(self):
        server = _server()
        connection = MagicMock()
        response = server._process_request(connection, MagicMock(path="/"))
        connection.respond.assert_called_once_with(HTTPStatus.OK, "kitty bridge pty server\n")
        assert response is connection.respond.return_value

    def test_pty_path_upgrades(self):
        server = _server()
        connection = MagicMock()
        assert server._process_request(connection, MagicMock(path="/pty?cols=10")) is None
        connection.respond.assert_not_called()


class TestHandleClient:

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        session = FakeSession(output=["hello ", "world"], exit_code=7)
        websocket = FakeWebSocket(
            path="/pty?cols=100&rows=30",
            messages=[json.dumps({"type": "input", "data": "x"})],
        )
        server = _server()

        with patch("pty_server.websocket.spawn_with_fallbacks", return_value=(session, [])) as spawn:
            await asyncio.wait_for(server._handle_client(websocket), timeout=5.0)

        args = spawn.call_args[0]
        assert (args[1], args[2]) == (100, 30)
        assert json.loads(websocket.sent[0]) == {"type": "status", "shell": "/bin/fake"}
        assert "".join(websocket.sent[1:-1]) == "hello world"
        assert json.loads(websocket.sent[-1]) == {"type": "exit", "code": 7}
        assert session.written == ["x"]
        assert session.killed

    @pytest.mark.asyncio
    async def test_output_goes_through_bridge(self, tmp_path):
        image = tmp_path / "img.png"
        image.write_bytes(b"not really a png")
        encoded = base64.b64encode(str(image).encode()).decode()
        session = FakeSession(output=[f"\x1b_Ga=T,t=f;{encoded}\x1b\\"])
        websocket = FakeWebSocket()
        server = _server(resizer="off")

        with patch("pty_server.websocket.spawn_with_fallbacks", return_value=(session, [])):
            await asyncio.wait_for(server._handle_client(websocket), timeout=5.0)

        expected = base64.b64encode(b"not really a png").decode()
        assert websocket.sent[1] == f"\x1b_Ga=T,t=d;{expected}\x1b\\"

    @pytest.mark.asyncio
    async def test_spawn_failure_reports_error(self):
        websocket = FakeWebSocket()
        server = _server()
        failure = (None, ["/bin/zsh: not found", "/bin/sh: not found"])

        with patch("pty_server.websocket.spawn_with_fallbacks", return_value=failure):
            await asyncio.wait_for(server._handle_client(websocket), timeout=5.0)

        assert len(websocket.sent) == 1
        msg = json.loads(websocket.sent[0])
        assert msg["type"] == "error"
        assert msg["errors"] == failure[1]
        assert websocket.closed.is_set()

    @pytest.mark.asyncio
    async def test_held_output_flushed_on_exit(self):
        session = FakeSession(output=["abc\x1b"], exit_code=0)
        websocket = FakeWebSocket()
        server = _server()

        with patch("pty_server.websocket.spawn_with_fallbacks", return_value=(session, [])):
            await asyncio.wait_for(server._handle_client(websocket), timeout=5.0)

        assert websocket.sent[1:3] == ["abc", "\x1b"]
        assert json.loads(websocket.sent[-1]) == {"type": "exit", "code": 0}

    @pytest.mark.asyncio
    async def test_bridge_runs_off_event_loop(self):
        loop_thread = threading.get_ident()
        threads = []

        def transform(text):
            threads.append(threading.get_ident())
            return text

        bridge = MagicMock()
        bridge.transform.side_effect = transform
        bridge.flush.return_value = ""
        session = FakeSession(output=["one", "two"])
        websocket = FakeWebSocket()
        server = _server()

        with patch("pty_server.websocket.spawn_with_fallbacks", return_value=(session, [])), \
                patch.object(server, "create_relay", return_value=OutputRelay(bridge)):
            await asyncio.wait_for(server._handle_client(websocket), timeout=5.0)

        assert len(threads) == 2
        assert loop_thread not in threads
        assert websocket.sent[1:3] == ["one", "two"]
