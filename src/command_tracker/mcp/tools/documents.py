"""Document tool handlers for MCP server.

This module implements document_load and document_save.  Loading first
merges in the remote's copy of the document (best effort); saving
deduplicates, writes atomically and then auto-syncs.
"""

import logging

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import Document, Entry, Subscription
from ...sync.reporter import outcome_to_json
from ...validators import validate_entries
from ...workspace import Workspace
from .errors import build_error_response, build_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# Tool definitions for list_tools()
DOCUMENT_TOOLS = [
    types.Tool(
        name="document_load",
        description="Load the command/prompt document. Merges the remote copy in first when Git sync is configured (skipped in read-only mode). Returns every entry, the subscriptions, and the username derived from the Git remote.",
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
        name="document_save",
        description="Replace the stored entries (and optionally subscriptions). Duplicates are dropped; when auto-sync is enabled the change is committed, pulled and pushed.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Complete entry list (required). Each entry needs id, name and content.",
                },
                "subscriptions": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Complete subscription list (optional). Omit to keep the stored subscriptions.",
                },
            },
            "required": ["items"],
        },
    ),
]


def _document_json(document: Document) -> dict:
    """Document JSON with presentation defaults filled in for each entry."""
    data = document.to_json()
    data["items"] = [
        {**item.to_json(), "icon": item.display_icon, "color": item.display_color}
        for item in document.items
    ]
    return data


def _summary(document: Document) -> str:
    prompts = sum(1 for item in document.items if item.type == "prompts")
    return (
        f"{len(document.items)} entries "
        f"({len(document.items) - prompts} commands, {prompts} prompts), "
        f"{len(document.subscriptions)} subscriptions"
    )


async def _handle_load(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle document_load."""
    loaded = await run_sync(workspace.load)
    lines = [f"Loaded {_summary(loaded.document)}"]
    if loaded.merged_remote:
        lines.append("Merged changes from the remote copy.")
    if loaded.username:
        lines.append(f"Username: {loaded.username}")

    structured = {
        "username": loaded.username,
        "merged_remote": loaded.merged_remote,
        "document": _document_json(loaded.document),
    }
    return build_result("\n".join(lines), structured)


async def _handle_save(
    workspace: Workspace, args: dict
) -> types.CallToolResult:
    """Handle document_save."""
    raw_items = args.get("items")
    is_valid, message = validate_entries(raw_items)
    if not is_valid:
        return build_error_response(
            "validation_error",
            message,
            "Fix the entry and resend the complete items list.",
        )

    items = [Entry.model_validate(raw) for raw in raw_items]
    raw_subs = args.get("subscriptions")
    if raw_subs is None:
        payload: Document | list[Entry] = items
    else:
        if not isinstance(raw_subs, list):
            return build_error_response(
                "validation_error",
                "Subscriptions must be an array",
                "Send subscriptions as an array, or omit it.",
            )
        payload = Document(
            items=items,
            subscriptions=[Subscription.model_validate(s) for s in raw_subs],
        )

    saved = await run_sync(workspace.save, payload)
    text = f"Saved {_summary(saved.document)}"
    structured: dict = {
        "items": len(saved.document.items),
        "subscriptions": len(saved.document.subscriptions),
    }
    if saved.sync is not None:
        structured["sync"] = outcome_to_json(saved.sync)
        text += f"\nAuto-sync: {saved.sync.message}"
    return build_result(text, structured)


# ToolSpec list for registry-based dispatch
DOCUMENT_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=DOCUMENT_TOOLS[0],
        mutating=False,
        handler=_handle_load,
    ),
    ToolSpec(
        tool=DOCUMENT_TOOLS[1],
        mutating=True,
        handler=_handle_save,
    ),
]
