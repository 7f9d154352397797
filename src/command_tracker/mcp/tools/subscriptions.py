"""Subscription tool handlers for MCP server.

This module implements subscription_add, subscription_remove,
subscriptions_refresh and missing_repositories.  Peer documents are
fetched over HTTPS in a worker thread; the document is only locked for
the merge itself.
"""

import logging

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.prompts import PresetPrompter, RemovalChoice
from ...sync.reporter import (
    format_merge_result,
    format_refresh_report,
    merge_result_to_json,
    refresh_report_to_json,
)
from ...workspace import Workspace
from .errors import build_error_response, build_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# Tool definitions for list_tools()
SUBSCRIPTION_TOOLS = [
    types.Tool(
        name="subscription_add",
        description="Subscribe to a peer's published commands. Fetches data.json from the main branch of the GitHub repository and merges its entries (entries whose name matches one of your own are skipped).",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Repository URL, e.g. https://github.com/alice/commands (required)",
                },
            },
            "required": ["url"],
        },
    ),
    types.Tool(
        name="subscription_remove",
        description="Unsubscribe from a peer. The peer's entries are either deleted or kept as archived copies.",
        inputSchema={
            "type": "object",
            "properties": {
                "subscription_id": {
                    "type": "string",
                    "description": "Subscription id from document_load (required)",
                },
                "disposition": {
                    "type": "string",
                    "enum": [c.value for c in RemovalChoice],
                    "description": "remove_items deletes the peer's entries, archive relabels them '<user> (Archived)', cancel does nothing (required)",
                },
            },
            "required": ["subscription_id", "disposition"],
        },
    ),
    types.Tool(
        name="subscriptions_refresh",
        description="Re-fetch every subscribed peer and merge new or changed entries. Unreachable peers are marked and reported; the rest still refresh.",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="missing_repositories",
        description="List subscribed repositories that were unreachable at the last refresh.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


async def _handle_add(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle subscription_add."""
    url = args.get("url")
    if not url or not str(url).strip():
        return build_error_response(
            "validation_error",
            "url is required",
            "Provide the repository URL, e.g. https://github.com/<user>/<repo>.",
        )

    result = await run_sync(workspace.add_subscription, str(url))
    return build_result(
        f"Subscribed. {format_merge_result(result)}",
        merge_result_to_json(result),
    )


async def _handle_remove(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle subscription_remove."""
    subscription_id = args.get("subscription_id")
    if subscription_id is None or not str(subscription_id).strip():
        return build_error_response(
            "validation_error",
            "subscription_id is required",
            "Use document_load to list subscriptions and their ids.",
        )
    try:
        disposition = RemovalChoice(args.get("disposition"))
    except ValueError:
        return build_error_response(
            "validation_error",
            f"Invalid disposition: {args.get('disposition')!r}",
            "Use one of: remove_items, archive, cancel.",
        )

    choice = await run_sync(
        workspace.remove_subscription,
        str(subscription_id),
        PresetPrompter(removal=disposition),
    )
    if choice is None:
        return build_error_response(
            "not_found",
            f"No subscription with id {subscription_id}",
            "Use document_load to list subscriptions and their ids.",
        )
    if choice == RemovalChoice.CANCEL:
        text = "Removal cancelled."
    elif choice == RemovalChoice.ARCHIVE:
        text = "Subscription removed; its entries were archived."
    else:
        text = "Subscription and its entries removed."
    return build_result(text, {"disposition": choice.value})


async def _handle_refresh(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle subscriptions_refresh."""
    report = await run_sync(workspace.refresh_subscriptions)
    return build_result(
        format_refresh_report(report), refresh_report_to_json(report)
    )


async def _handle_missing(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle missing_repositories."""
    repos = await run_sync(workspace.missing_repositories)
    if not repos:
        text = "All subscribed repositories were reachable."
    else:
        lines = ["Unreachable repositories:"]
        lines.extend(f"  {r['full_name']} ({r['url']})" for r in repos)
        text = "\n".join(lines)
    return build_result(text, {"repositories": repos})


# ToolSpec list for registry-based dispatch
SUBSCRIPTION_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SUBSCRIPTION_TOOLS[0],
        mutating=True,
        handler=_handle_add,
    ),
    ToolSpec(
        tool=SUBSCRIPTION_TOOLS[1],
        mutating=True,
        handler=_handle_remove,
    ),
    ToolSpec(
        tool=SUBSCRIPTION_TOOLS[2],
        mutating=True,
        handler=_handle_refresh,
    ),
    ToolSpec(
        tool=SUBSCRIPTION_TOOLS[3],
        mutating=False,
        handler=_handle_missing,
    ),
]
