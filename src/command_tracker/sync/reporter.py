"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_outcome`` -- one-line notification for a git operation.
- ``format_refresh_report`` -- per-peer summary of a subscription refresh.
- ``format_status_report`` -- ahead/behind summary.
- ``*_to_json`` -- structured dicts for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import (
        PeerMergeResult,
        RefreshReport,
        SyncOutcome,
        SyncStatusReport,
    )

# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_sync_outcome(outcome: SyncOutcome) -> str:
    """Format a sync outcome as the message shown to the user."""
    text = outcome.message
    if outcome.conflict_resolved:
        text += " (conflicts were auto-resolved with a JSON merge)"
    return text


def format_merge_result(result: PeerMergeResult) -> str:
    if not result.reachable:
        return f"@{result.username}: unreachable ({result.error})"
    return (
        f"@{result.username}: {result.added} new, "
        f"{result.updated} updated"
    )


def format_refresh_report(report: RefreshReport) -> str:
    """Format a subscription refresh as human-readable text.

    Args:
        report: The completed refresh report.

    Returns:
        Multi-line formatted string.
    """
    if not report.results:
        return "No subscriptions to refresh."

    lines: list[str] = []
    lines.append(f"Refreshed {len(report.results)} subscriptions")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")
    lines.append(
        f"{report.added} new, {report.updated} updated, "
        f"{len(report.unreachable)} unreachable"
    )
    lines.append("")

    for result in report.results:
        lines.append(f"  {format_merge_result(result)}")

    return "\n".join(lines).rstrip()


def format_status_report(report: SyncStatusReport) -> str:
    if not report.configured:
        return "Git is not configured."
    if report.error:
        return f"Sync status unavailable: {report.error}"
    text = f"{report.ahead} commits ahead, {report.behind} behind remote"
    if report.conflicted:
        text += " (merge/rebase in progress)"
    return text


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def outcome_to_json(outcome: SyncOutcome) -> dict:
    """Convert a sync outcome to a dict for ``structuredContent``.

    The reloaded document is summarised by counts, not embedded.
    """
    data: dict = {
        "operation": outcome.operation,
        "status": outcome.status.value,
        "success": outcome.success,
        "message": outcome.message,
        "conflict_resolved": outcome.conflict_resolved,
    }
    if outcome.document is not None:
        data["items"] = len(outcome.document.items)
        data["subscriptions"] = len(outcome.document.subscriptions)
    return data


def merge_result_to_json(result: PeerMergeResult) -> dict:
    data: dict = {
        "username": result.username,
        "added": result.added,
        "updated": result.updated,
        "reachable": result.reachable,
    }
    if result.error:
        data["error"] = result.error
    return data


def refresh_report_to_json(report: RefreshReport) -> dict:
    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "subscriptions": len(report.results),
            "added": report.added,
            "updated": report.updated,
            "unreachable": len(report.unreachable),
        },
        "results": [merge_result_to_json(r) for r in report.results],
    }


def status_to_json(report: SyncStatusReport) -> dict:
    return report.model_dump()
