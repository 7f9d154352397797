"""Tests for logger.py — setup_logging() and JsonFormatter.

Strategy: mock logging.basicConfig and inspect the handlers it receives,
since pytest's log capture plugin interferes with real basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from command_tracker.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    setup_logging,
)


@pytest.fixture
def mock_basic(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    with patch("command_tracker.logger.logging.basicConfig") as mock:
        yield mock
        for call in mock.call_args_list:
            for handler in call.kwargs.get("handlers", []):
                handler.close()


def _handlers(mock_basic):
    mock_basic.assert_called_once()
    return mock_basic.call_args.kwargs["handlers"]


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")

        handlers = _handlers(mock_basic)
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr

    def test_mcp_mode_logs_to_file_only(self, mock_basic, tmp_path):
        """stdout carries JSON-RPC, so MCP mode never logs to a stream."""
        log_file = tmp_path / "mcp.log"
        setup_logging(mode="mcp", log_file=str(log_file))

        handlers = _handlers(mock_basic)
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert handlers[0].baseFilename == str(log_file)

    def test_mcp_log_file_from_env(self, mock_basic, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))

        setup_logging(mode="mcp")

        assert _handlers(mock_basic)[0].baseFilename == str(log_file)

    def test_mcp_mode_default_log_file(self, mock_basic):
        setup_logging(mode="mcp")
        assert _handlers(mock_basic)[0].baseFilename == DEFAULT_MCP_LOG_FILE

    def test_cli_mode_with_log_file(self, mock_basic, tmp_path):
        log_file = tmp_path / "cli.log"
        setup_logging(mode="cli", log_file=str(log_file))

        handlers = _handlers(mock_basic)
        assert len(handlers) == 2
        assert handlers[1].baseFilename == str(log_file)
        assert "%(name)s" in handlers[1].formatter._fmt

    def test_default_levels(self, mock_basic):
        setup_logging(mode="cli")
        assert mock_basic.call_args.kwargs["level"] == logging.INFO
        mock_basic.reset_mock()
        setup_logging(mode="mcp", log_file="/dev/null")
        assert mock_basic.call_args.kwargs["level"] == logging.WARNING

    def test_config_level_used_when_env_unset(self, mock_basic):
        setup_logging(mode="cli", level="error")
        assert mock_basic.call_args.kwargs["level"] == logging.ERROR

    def test_env_log_level_beats_config(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging(mode="cli", level="ERROR")
        assert mock_basic.call_args.kwargs["level"] == logging.WARNING

    def test_debug_beats_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        setup_logging(mode="cli")
        assert mock_basic.call_args.kwargs["level"] == logging.INFO

    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        assert isinstance(_handlers(mock_basic)[0].formatter, JsonFormatter)

    def test_third_party_silenced(self, mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("charset_normalizer").level == logging.WARNING


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


def _record(msg, args=(), level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="command_tracker.sync.driver",
        level=level,
        pathname="driver.py",
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_output(self):
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")

        data = json.loads(formatter.format(_record("%s: %s", ("sync", "done"))))

        assert set(data) == {"ts", "level", "logger", "msg"}
        assert data["level"] == "INFO"
        assert data["logger"] == "command_tracker.sync.driver"
        assert data["msg"] == "sync: done"

    def test_includes_exception(self):
        formatter = JsonFormatter()
        try:
            raise RuntimeError("push rejected")
        except RuntimeError:
            exc_info = sys.exc_info()

        output = formatter.format(
            _record("Sync failed", level=logging.ERROR, exc_info=exc_info)
        )

        assert "\n" not in output
        data = json.loads(output)
        assert "RuntimeError" in data["exc"]
        assert "push rejected" in data["exc"]
