"""Tests for the document, subscription and sync tool handlers.

Handlers run against a real Workspace rooted in a temp directory with a
fake peer fetcher; git is never initialized, so sync tools exercise the
"not configured" paths or a patched driver.
"""

from unittest.mock import patch

import mcp.types as types
import pytest

from command_tracker.mcp.tools import ALL_SPECS, ToolRegistry
from command_tracker.sync.models import (
    Document,
    Subscription,
    SubscriptionStatus,
    SyncOutcome,
    SyncStatus,
)
from command_tracker.sync.peers import PeerHTTPError
from command_tracker.sync.prompts import DivergenceChoice, ResetChoice
from command_tracker.workspace import Workspace


class FakeFetcher:
    def __init__(self, documents=None, errors=None):
        self.documents = documents or {}
        self.errors = errors or {}

    def fetch_repository(self, repository):
        if repository.username in self.errors:
            raise self.errors[repository.username]
        return self.documents[repository.username]


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def workspace(config, fetcher):
    ws = Workspace(config, fetcher=fetcher)
    ws.store.ensure_exists()
    return ws


@pytest.fixture
def registry():
    return ToolRegistry(ALL_SPECS)


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocumentTools:
    """document_load / document_save."""

    async def test_load_empty(self, registry, workspace):
        result = await registry.call_tool("document_load", {}, workspace)

        assert not result.isError
        assert _text(result).startswith("Loaded 0 entries")
        assert result.structuredContent["username"] is None
        assert result.structuredContent["document"] == {
            "version": 1,
            "items": [],
            "subscriptions": [],
        }

    async def test_save_then_load(self, registry, workspace):
        items = [
            {"id": "1", "name": "ls", "content": "ls -la"},
            {"id": "2", "type": "prompts", "name": "review", "content": "Review this"},
            {"id": "1", "name": "dup", "content": "x"},
        ]

        saved = await registry.call_tool("document_save", {"items": items}, workspace)

        assert not saved.isError
        assert _text(saved) == "Saved 2 entries (1 commands, 1 prompts), 0 subscriptions"
        assert "sync" not in saved.structuredContent

        loaded = await registry.call_tool("document_load", {}, workspace)
        names = [i["name"] for i in loaded.structuredContent["document"]["items"]]
        assert names == ["ls", "review"]

    async def test_load_fills_display_defaults(self, registry, workspace, make_entry):
        workspace.store.save(
            Document(
                items=[
                    make_entry("1"),
                    make_entry("2", type="prompts"),
                    make_entry("3", icon="rocket", color="red"),
                ]
            )
        )

        result = await registry.call_tool("document_load", {}, workspace)

        items = result.structuredContent["document"]["items"]
        assert [(i["icon"], i["color"]) for i in items] == [
            ("symbol-folder", "var(--vscode-charts-blue)"),
            ("terminal", "var(--vscode-charts-blue)"),
            ("rocket", "red"),
        ]
        stored = workspace.store.path.read_text(encoding="utf-8")
        assert "symbol-folder" not in stored

    async def test_save_rejects_invalid_entry(self, registry, workspace):
        result = await registry.call_tool(
            "document_save",
            {"items": [{"id": "1", "name": "", "content": "x"}]},
            workspace,
        )
        assert result.isError is True
        assert "Entry #0 name cannot be empty" in _text(result)

    async def test_save_requires_items_array(self, registry, workspace):
        result = await registry.call_tool("document_save", {}, workspace)
        assert result.isError is True
        assert "Items must be an array" in _text(result)

    async def test_save_with_subscriptions(self, registry, workspace):
        result = await registry.call_tool(
            "document_save",
            {
                "items": [],
                "subscriptions": [
                    {"id": "s1", "username": "bob", "url": "https://github.com/bob/c"}
                ],
            },
            workspace,
        )
        assert result.structuredContent["subscriptions"] == 1
        assert workspace.store.load().subscriptions[0].username == "bob"

    async def test_save_rejects_non_array_subscriptions(self, registry, workspace):
        result = await registry.call_tool(
            "document_save", {"items": [], "subscriptions": "bob"}, workspace
        )
        assert result.isError is True

    async def test_save_reports_auto_sync(self, registry, workspace):
        workspace.config.auto_sync = True
        outcome = SyncOutcome(
            operation="auto_sync", status=SyncStatus.COMPLETE, message="Auto-sync complete."
        )
        with patch.object(workspace.driver, "auto_sync", return_value=outcome):
            result = await registry.call_tool(
                "document_save",
                {"items": [{"id": "1", "name": "n", "content": "c"}]},
                workspace,
            )
        assert "Auto-sync: Auto-sync complete." in _text(result)
        assert result.structuredContent["sync"]["status"] == "complete"


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class TestSubscriptionTools:
    """subscription_add / subscription_remove / refresh / missing."""

    async def test_add(self, registry, workspace, fetcher, make_entry):
        fetcher.documents["alice"] = Document(items=[make_entry("1")])

        result = await registry.call_tool(
            "subscription_add", {"url": "https://github.com/alice/cmds"}, workspace
        )

        assert not result.isError
        assert _text(result) == "Subscribed. @alice: 1 new, 0 updated"
        assert result.structuredContent["added"] == 1

    async def test_add_requires_url(self, registry, workspace):
        result = await registry.call_tool("subscription_add", {"url": " "}, workspace)
        assert result.isError is True
        assert "url is required" in _text(result)

    async def test_add_invalid_url(self, registry, workspace):
        result = await registry.call_tool(
            "subscription_add", {"url": "https://example.com/x"}, workspace
        )
        assert _text(result).startswith("Error (validation_error)")

    async def test_add_missing_repository(self, registry, workspace, fetcher):
        fetcher.errors["alice"] = PeerHTTPError("u", 404)

        result = await registry.call_tool(
            "subscription_add", {"url": "https://github.com/alice/cmds"}, workspace
        )

        assert _text(result).startswith("Error (not_found)")
        assert workspace.store.load().subscriptions == []

    async def test_remove(self, registry, workspace, make_entry):
        workspace.store.save(
            Document(
                items=[make_entry("1", source="alice", originalId="9")],
                subscriptions=[
                    Subscription(id="s1", username="alice", url="https://github.com/alice/c")
                ],
            )
        )

        result = await registry.call_tool(
            "subscription_remove",
            {"subscription_id": "s1", "disposition": "archive"},
            workspace,
        )

        assert _text(result) == "Subscription removed; its entries were archived."
        assert workspace.store.load().items[0].source == "alice (Archived)"

    async def test_remove_unknown(self, registry, workspace):
        result = await registry.call_tool(
            "subscription_remove",
            {"subscription_id": "nope", "disposition": "remove_items"},
            workspace,
        )
        assert _text(result).startswith("Error (not_found)")

    async def test_remove_invalid_disposition(self, registry, workspace):
        result = await registry.call_tool(
            "subscription_remove",
            {"subscription_id": "s1", "disposition": "shred"},
            workspace,
        )
        assert "Invalid disposition" in _text(result)

    async def test_refresh_and_missing(self, registry, workspace, fetcher):
        workspace.store.save(
            Document(
                subscriptions=[
                    Subscription(id="s1", username="alice", url="https://github.com/alice/c")
                ]
            )
        )
        fetcher.errors["alice"] = PeerHTTPError("u", 500)

        refreshed = await registry.call_tool("subscriptions_refresh", {}, workspace)
        assert "1 unreachable" in _text(refreshed)
        assert refreshed.structuredContent["counts"]["unreachable"] == 1
        assert (
            workspace.store.load().subscriptions[0].status
            == SubscriptionStatus.UNREACHABLE
        )

        missing = await registry.call_tool("missing_repositories", {}, workspace)
        assert missing.structuredContent["repositories"][0]["full_name"] == "alice/c"
        assert "alice/c" in _text(missing)

    async def test_missing_none(self, registry, workspace):
        result = await registry.call_tool("missing_repositories", {}, workspace)
        assert _text(result) == "All subscribed repositories were reachable."


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class TestSyncTools:
    """sync_now / sync_pull / sync_status / sync_reset."""

    async def test_sync_not_configured(self, registry, workspace):
        result = await registry.call_tool("sync_now", {}, workspace)

        assert not result.isError
        assert "Git is not configured" in _text(result)
        assert "Action:" in _text(result)
        assert result.structuredContent["status"] == "not_configured"

    async def test_sync_passes_answers_to_driver(self, registry, workspace):
        outcome = SyncOutcome(operation="sync", status=SyncStatus.COMPLETE, message="Sync complete!")
        with patch.object(workspace.driver, "sync_now", return_value=outcome) as sync:
            await registry.call_tool(
                "sync_now",
                {
                    "remote_url": "https://github.com/a/b.git",
                    "abort_interrupted": True,
                    "on_divergence": "overwrite_remote",
                },
                workspace,
            )

        prompter = sync.call_args.args[0]
        assert prompter.remote_url() == "https://github.com/a/b.git"
        assert prompter.abort_interrupted() is True
        assert prompter.resolve_divergence() == DivergenceChoice.OVERWRITE_REMOTE

    async def test_sync_invalid_divergence(self, registry, workspace):
        result = await registry.call_tool(
            "sync_now", {"on_divergence": "merge"}, workspace
        )
        assert "Invalid on_divergence" in _text(result)

    async def test_sync_failure_is_error(self, registry, workspace):
        outcome = SyncOutcome(
            operation="sync", status=SyncStatus.FAILED, message="Pull failed: offline"
        )
        with patch.object(workspace.driver, "sync_now", return_value=outcome):
            result = await registry.call_tool("sync_now", {}, workspace)
        assert result.isError is True
        assert "Pull failed: offline" in _text(result)

    async def test_pull_not_configured(self, registry, workspace):
        result = await registry.call_tool("sync_pull", {}, workspace)
        assert result.structuredContent["status"] == "not_configured"

    async def test_status_not_configured(self, registry, workspace):
        result = await registry.call_tool("sync_status", {}, workspace)
        assert _text(result) == "Git is not configured."
        assert result.structuredContent["configured"] is False

    async def test_reset_requires_new_url(self, registry, workspace):
        result = await registry.call_tool(
            "sync_reset", {"action": "change_remote"}, workspace
        )
        assert "new_remote_url is required" in _text(result)

    async def test_reset_invalid_action(self, registry, workspace):
        result = await registry.call_tool("sync_reset", {"action": "nuke"}, workspace)
        assert "Invalid action" in _text(result)

    async def test_reset_passes_answers(self, registry, workspace):
        outcome = SyncOutcome(operation="reset", status=SyncStatus.COMPLETE, message="done")
        with patch.object(
            workspace.driver, "reset_configuration", return_value=outcome
        ) as reset:
            await registry.call_tool(
                "sync_reset", {"action": "remove", "confirm": True}, workspace
            )
        prompter = reset.call_args.args[0]
        assert prompter.reset_action() == ResetChoice.REMOVE
        assert prompter.confirm_remove_vcs() is True
