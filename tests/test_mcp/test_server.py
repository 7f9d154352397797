"""Tests for mcp/server.py — protocol handlers and CLI argument parsing."""

import sys
from unittest.mock import MagicMock, patch

import mcp.types as types
import pytest

from command_tracker.mcp import server
from command_tracker.mcp.tools import ALL_SPECS, ToolRegistry
from command_tracker.workspace import Workspace


@pytest.fixture
def installed(config):
    """Install a registry and workspace as main() would."""
    workspace = Workspace(config)
    server.set_registry(ToolRegistry(ALL_SPECS, read_only=True))
    server.set_workspace(workspace)
    yield workspace
    server.set_registry(None)
    server.set_workspace(None)


class TestAccessors:
    def test_uninitialized_workspace_raises(self):
        server.set_workspace(None)
        with pytest.raises(RuntimeError, match="Workspace not initialized"):
            server.get_workspace()

    def test_uninitialized_registry_raises(self):
        server.set_registry(None)
        with pytest.raises(RuntimeError, match="ToolRegistry not initialized"):
            server.get_registry()


class TestHandlers:
    async def test_list_tools_uses_registry(self, installed):
        tools = await server.handle_list_tools()
        assert {t.name for t in tools} == {
            "document_load",
            "missing_repositories",
            "sync_status",
        }

    async def test_call_tool(self, installed):
        result = await server.handle_call_tool("sync_status", {})
        assert result.structuredContent["configured"] is False

    async def test_filtered_tool_is_unknown(self, installed):
        result = await server.handle_call_tool("document_save", {"items": []})
        assert result.isError is True
        content = result.content[0]
        assert isinstance(content, types.TextContent)
        assert content.text.startswith("Error (unknown_tool)")


class TestRun:
    """Tests for run() CLI parsing."""

    def _run(self, argv):
        with (
            patch.object(sys, "argv", ["command-tracker-mcp", *argv]),
            patch(
                "command_tracker.mcp.server.main", new_callable=MagicMock
            ) as mock_main,
            patch("command_tracker.mcp.server.asyncio.run") as mock_run,
        ):
            server.run()
        mock_run.assert_called_once()
        return mock_main.call_args.kwargs["config_overrides"]

    def test_no_arguments(self):
        assert self._run([]) is None

    def test_all_flags(self):
        overrides = self._run(
            [
                "--storage-dir",
                "/tmp/cmds",
                "--no-auto-sync",
                "--read-only",
                "--debug",
                "--log-file",
                "/tmp/x.log",
            ]
        )
        assert overrides == {
            "storage_dir": "/tmp/cmds",
            "auto_sync": False,
            "read_only": True,
            "debug": True,
            "log_file": "/tmp/x.log",
        }

    def test_runtime_error_exits_1(self):
        with (
            patch.object(sys, "argv", ["command-tracker-mcp"]),
            patch("command_tracker.mcp.server.main", new_callable=MagicMock),
            patch(
                "command_tracker.mcp.server.asyncio.run",
                side_effect=RuntimeError("Configuration error"),
            ),
        ):
            with pytest.raises(SystemExit) as exc_info:
                server.run()
        assert exc_info.value.code == 1
