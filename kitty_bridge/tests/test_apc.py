"""Tests for the APC scanner."""

from kitty_bridge.apc import Terminator, find_terminator, scan
from kitty_bridge.assembler import BridgeState


def _upper(body):
    return body.upper()


class TestFindTerminator:

    def test_st(self):
        assert find_terminator("\x1b_Ga=T\x1b\\", 3) == Terminator(6, 2)

    def test_bel(self):
        assert find_terminator("\x1b_Ga=T\x07", 3) == Terminator(6, 1)

    def test_nearer_wins(self):
        assert find_terminator("\x1b_Ga\x07b\x1b\\", 3) == Terminator(4, 1)
        assert find_terminator("\x1b_Ga\x1b\\b\x07", 3) == Terminator(4, 2)

    def test_missing(self):
        assert find_terminator("\x1b_Ga=T;AAA", 3) is None

    def test_starts_at_offset(self):
        assert find_terminator("\x07\x1b_Ga", 1) is None


class TestScan:

    def test_text_without_commands(self):
        state = BridgeState()
        text = "\x1b[1mbold\x1b[0m \x1b]0;title\x07"
        assert scan(state, text, _upper) == text

    def test_body_passed_to_rewrite(self):
        seen = []

        def record(body):
            seen.append(body)
            return body

        scan(BridgeState(), "x\x1b_Ga=T;QUJD\x1b\\y", record)
        assert seen == ["Ga=T;QUJD"]

    def test_terminator_form_preserved(self):
        state = BridgeState()
        assert scan(state, "\x1b_Ga=t\x07", _upper) == "\x1b_GA=T\x07"
        assert scan(state, "\x1b_Ga=t\x1b\\", _upper) == "\x1b_GA=T\x1b\\"

    def test_multiple_commands(self):
        out = scan(BridgeState(), "a\x1b_Gi=1\x1b\\b\x1b_Gi=2\x07c", _upper)
        assert out == "a\x1b_GI=1\x1b\\b\x1b_GI=2\x07c"

    def test_unterminated_command_deferred(self):
        state = BridgeState()
        assert scan(state, "pre\x1b_Ga=T;AAAA", _upper) == "pre"
        assert state.remainder == "\x1b_Ga=T;AAAA"

    def test_deferred_command_goes_before_existing_remainder(self):
        state = BridgeState(remainder="\x1bPtmux;")
        scan(state, "\x1b_Ga=T", _upper)
        assert state.remainder == "\x1b_Ga=T\x1bPtmux;"

    def test_partial_marker_held(self):
        state = BridgeState()
        assert scan(state, "abc\x1b_", _upper) == "abc"
        assert state.remainder == "\x1b_"

    def test_other_apc_untouched(self):
        text = "\x1b_Xsomething\x1b\\"
        assert scan(BridgeState(), text, _upper) == text
