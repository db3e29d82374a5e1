"""Tests for readline history and completion."""

import pytest
from unittest.mock import patch

from pm2_pilot.interactive.readline_handler import ReadlineHandler


@pytest.fixture
def handler(tmp_path):
    with patch("pm2_pilot.interactive.readline_handler.HAS_READLINE", False):
        yield ReadlineHandler(str(tmp_path / "history"))


class TestCompletion:

    def test_candidates_by_prefix(self, handler):
        handler.set_completions(["/status", "/stop", "/start", "api-server", "/stop"])

        assert handler.complete("/st", 0) == "/start"
        assert handler.complete("/st", 1) == "/status"
        assert handler.complete("/st", 2) == "/stop"
        assert handler.complete("/st", 3) is None

    def test_process_names(self, handler):
        handler.set_completions(["api-server", "api-worker", "scheduler"])
        assert [handler.complete("api", i) for i in range(3)] == ["api-server", "api-worker", None]

    def test_without_readline_history_is_noop(self, handler):
        handler.add_history("status")
        handler.save_history()
        assert handler.has_readline is False
