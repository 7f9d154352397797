"""MCP tool handlers for Git sync.

Defines four tools:

- ``sync_now`` -- commit, pull (auto-resolving conflicts) and push.
- ``sync_pull`` -- bring in remote changes without pushing.
- ``sync_status`` -- ahead/behind counts against the remote.
- ``sync_reset`` -- change the remote URL or remove Git entirely.

Every decision the sync may need (remote URL for first-time setup,
aborting an interrupted rebase, diverged histories) is passed up front
as an argument.  Omitted answers default to the safe choice.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.prompts import DivergenceChoice, PresetPrompter, ResetChoice
from ...sync.reporter import format_status_report, status_to_json
from ...workspace import Workspace
from .errors import build_error_response, build_result, outcome_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_now",
        description=(
            "Sync the document with its Git remote: commit local changes, "
            "pull with rebase (conflicts are merged entry by entry), and push."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "remote_url": {
                    "type": "string",
                    "description": "Remote to set up if Git is not configured yet",
                },
                "abort_interrupted": {
                    "type": "boolean",
                    "default": False,
                    "description": "Abort a merge/rebase left over from an earlier sync",
                },
                "on_divergence": {
                    "type": "string",
                    "enum": [c.value for c in DivergenceChoice],
                    "default": DivergenceChoice.CANCEL.value,
                    "description": (
                        "If the push is rejected: overwrite_local (take the remote), "
                        "overwrite_remote (force push), or cancel"
                    ),
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="sync_pull",
        description="Pull remote changes into the document without pushing.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_status",
        description="Fetch and report how many commits the local copy is ahead of / behind the remote.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_reset",
        description="Reconfigure Git sync: change the remote URL, or remove the Git metadata (the document itself is kept).",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": [c.value for c in ResetChoice],
                    "description": "change_remote, remove, or cancel (required)",
                },
                "new_remote_url": {
                    "type": "string",
                    "description": "New remote URL (for change_remote)",
                },
                "confirm": {
                    "type": "boolean",
                    "default": False,
                    "description": "Must be true to remove Git",
                },
            },
            "required": ["action"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_sync_now(
    workspace: Workspace, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_now`` tool."""
    try:
        divergence = DivergenceChoice(
            args.get("on_divergence") or DivergenceChoice.CANCEL.value
        )
    except ValueError:
        return build_error_response(
            "validation_error",
            f"Invalid on_divergence: {args.get('on_divergence')!r}",
            "Use one of: overwrite_local, overwrite_remote, cancel.",
        )

    prompter = PresetPrompter(
        remote=args.get("remote_url"),
        abort=bool(args.get("abort_interrupted", False)),
        divergence=divergence,
    )
    outcome = await run_sync(workspace.sync_now, prompter)
    return outcome_result(outcome)


async def _handle_sync_pull(
    workspace: Workspace, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_pull`` tool."""
    outcome = await run_sync(workspace.pull)
    return outcome_result(outcome)


async def _handle_sync_status(
    workspace: Workspace, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_status`` tool."""
    report = await run_sync(workspace.status)
    return build_result(format_status_report(report), status_to_json(report))


async def _handle_sync_reset(
    workspace: Workspace, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_reset`` tool."""
    try:
        action = ResetChoice(args.get("action"))
    except ValueError:
        return build_error_response(
            "validation_error",
            f"Invalid action: {args.get('action')!r}",
            "Use one of: change_remote, remove, cancel.",
        )
    if action == ResetChoice.CHANGE_REMOTE and not args.get("new_remote_url"):
        return build_error_response(
            "validation_error",
            "new_remote_url is required for change_remote",
            "Provide the new remote URL.",
        )

    prompter = PresetPrompter(
        reset=action,
        new_remote=args.get("new_remote_url"),
        confirm_remove=bool(args.get("confirm", False)),
    )
    outcome = await run_sync(workspace.reset, prompter)
    return outcome_result(outcome)


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], mutating=True, handler=_handle_sync_now),
    ToolSpec(tool=SYNC_TOOLS[1], mutating=True, handler=_handle_sync_pull),
    ToolSpec(tool=SYNC_TOOLS[2], mutating=False, handler=_handle_sync_status),
    ToolSpec(tool=SYNC_TOOLS[3], mutating=True, handler=_handle_sync_reset),
]
