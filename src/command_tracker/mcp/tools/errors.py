"""Error response builders and shared utilities for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention, plus
shared result builders used across tool modules.
"""

from typing import Any

import mcp.types as types

from ...sync.git import GitCommandError
from ...sync.models import SyncOutcome, SyncStatus
from ...sync.peers import PeerFetchError, PeerHTTPError, PeerPayloadError
from ...sync.reporter import format_sync_outcome, outcome_to_json


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (validation_error, git_error,
            peer_unreachable, not_found, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "No subscription with id 42", "Use document_load to list subscriptions.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Shared result builders
# ---------------------------------------------------------------------------


def build_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


_OUTCOME_ACTIONS: dict[SyncStatus, str] = {
    SyncStatus.NOT_CONFIGURED: (
        "Call sync_now with remote_url set to the repository to sync with."
    ),
    SyncStatus.FAILED: (
        "Check the git remote and credentials, or use sync_reset to "
        "change or remove the Git configuration."
    ),
}


def outcome_result(outcome: SyncOutcome) -> types.CallToolResult:
    """Turn a sync outcome into a tool result.

    Failed outcomes become error responses; everything else (including a
    cancellation) is a normal result whose text is the user message.
    """
    if outcome.status == SyncStatus.FAILED:
        return build_error_response(
            "sync_failed",
            format_sync_outcome(outcome),
            _OUTCOME_ACTIONS[SyncStatus.FAILED],
        )
    text = format_sync_outcome(outcome)
    action = _OUTCOME_ACTIONS.get(outcome.status)
    if action:
        text = f"{text}\n\nAction: {action}"
    return build_result(text, outcome_to_json(outcome))


# ---------------------------------------------------------------------------
# Domain-specific translation
# ---------------------------------------------------------------------------


def translate_git_error(error: GitCommandError) -> types.CallToolResult:
    """Translate a git failure into a structured error response.

    The git diagnostic text is passed through unchanged.
    """
    output = error.output.lower()
    match output:
        case s if "authentication failed" in s or "permission denied" in s:
            action = "Check the credentials configured for the git remote."
        case s if "could not read from remote" in s or "could not resolve host" in s:
            action = "Check network connectivity and the remote URL (sync_reset can change it)."
        case s if "not a git repository" in s:
            action = "Call sync_now with remote_url to set up Git."
        case _:
            action = "Resolve the git problem manually or use sync_reset."
    return build_error_response("git_error", str(error), action)


def translate_peer_error(error: PeerFetchError) -> types.CallToolResult:
    """Translate a peer fetch failure into a structured error response."""
    match error:
        case PeerHTTPError(status_code=404):
            return build_error_response(
                "not_found",
                str(error),
                "Check that the repository exists, is public, and has a "
                "data.json on its main branch.",
            )
        case PeerPayloadError():
            return build_error_response(
                "peer_invalid",
                str(error),
                "The peer's document is malformed; ask them to re-publish it.",
            )
        case _:
            return build_error_response(
                "peer_unreachable",
                str(error),
                "Retry later; the peer will be marked unreachable until then.",
            )
