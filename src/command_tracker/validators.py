"""
Input validation functions for the command tracker.

Checks document payloads received through the MCP tools before they
reach the store.
"""

from typing import Any

from command_tracker.sync.models import ENTRY_TYPES

MAX_CONTENT_SIZE = 1_000_000


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Entry #3 name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_entry(entry: Any, index: int = 0) -> tuple[bool, str]:
    """
    Validate one raw entry object from a save payload.

    Args:
        entry: Decoded JSON value for the entry
        index: Position in the payload, used in messages

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Must be an object with a non-empty ``id``
        - ``name`` and ``content`` must be non-empty strings
        - ``type``, when given, must be a known view type
        - ``content`` cannot exceed MAX_CONTENT_SIZE bytes
    """
    label = f"Entry #{index}"
    if not isinstance(entry, dict):
        return (False, format_validation_error(label, "must be an object"))

    entry_id = entry.get("id")
    if entry_id is None or (isinstance(entry_id, str) and not entry_id.strip()):
        return (False, format_validation_error(f"{label} id", "cannot be empty"))

    for field in ("name", "content"):
        value = entry.get(field)
        if not isinstance(value, str) or not value.strip():
            return (
                False,
                format_validation_error(f"{label} {field}", "cannot be empty"),
            )

    entry_type = entry.get("type")
    if entry_type is not None and entry_type not in ENTRY_TYPES:
        return (
            False,
            format_validation_error(
                f"{label} type",
                f"must be one of {', '.join(sorted(ENTRY_TYPES))}",
            ),
        )

    if len(entry["content"].encode("utf-8")) > MAX_CONTENT_SIZE:
        return (
            False,
            format_validation_error(
                f"{label} content",
                f"exceeds maximum size of {MAX_CONTENT_SIZE} bytes",
            ),
        )

    return (True, "")


def validate_entries(entries: Any) -> tuple[bool, str]:
    """
    Validate a list of raw entries.

    Returns:
        Tuple of (is_valid, error_message) for the first failure found.
    """
    if not isinstance(entries, list):
        return (False, format_validation_error("Items", "must be an array"))
    for index, entry in enumerate(entries):
        ok, message = validate_entry(entry, index)
        if not ok:
            return (False, message)
    return (True, "")
