"""Tests for the trace-file writer."""

from kitty_bridge.trace import trace, trace_path


class TestTracePath:

    def test_env_value(self, monkeypatch):
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", "/var/log/bridge.log")
        assert trace_path() == "/var/log/bridge.log"

    def test_empty_disables(self, monkeypatch):
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", "")
        assert trace_path() is None

    def test_default_in_temp_dir(self, monkeypatch):
        monkeypatch.delenv("KITTY_BRIDGE_TRACE_LOG", raising=False)
        assert trace_path().endswith("kitty_bridge_trace.log")


class TestTrace:

    def test_appends_lines(self, tmp_path, monkeypatch):
        path = tmp_path / "nested" / "trace.log"
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", str(path))
        trace("kitty", "first")
        trace("kitty", "rewrite a=T")
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("[kitty] first")
        assert lines[1].endswith("[kitty] rewrite a=T")

    def test_disabled_writes_nothing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", "")
        monkeypatch.chdir(tmp_path)
        trace("kitty", "dropped")
        assert list(tmp_path.iterdir()) == []

    def test_unwritable_path_never_raises(self, tmp_path, monkeypatch):
        blocker = tmp_path / "file"
        blocker.write_text("")
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", str(blocker / "trace.log"))
        trace("kitty", "msg")

    def test_lone_surrogate_never_raises(self, tmp_path, monkeypatch):
        path = tmp_path / "trace.log"
        monkeypatch.setenv("KITTY_BRIDGE_TRACE_LOG", str(path))
        trace("kitty", "sanitize a=\ud800")
        assert "[kitty] sanitize a=" in path.read_text()
