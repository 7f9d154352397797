"""Identity-key deduplication for document entries."""

from __future__ import annotations

from collections.abc import Iterable

from command_tracker.sync.models import Entry


def deduplicate(items: Iterable[Entry]) -> list[Entry]:
    """Keep the first entry for each identity key, preserving order.

    Idempotent: a list whose keys are already unique is returned with the
    same entries in the same order.
    """
    seen: set[tuple[str, str]] = set()
    unique: list[Entry] = []
    for item in items:
        key = item.identity_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique
