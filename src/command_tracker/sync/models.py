"""Pydantic models for the document sync engine.

Defines the data contracts shared by every sync module:

- ``Entry``: one user-visible command or prompt.
- ``Subscription``: a pointer to a peer's published document.
- ``Document``: the unit of persistence and of merging.
- ``SyncOutcome``: result of one version-control operation.
- ``PeerMergeResult`` / ``RefreshReport``: results of peer merges.

All models are frozen (immutable); callers derive modified copies with
``model_copy(update=...)``.  JSON field names stay camelCase through
aliases so documents written by older clients load unchanged.
"""

from __future__ import annotations

import random
import re
import string
import time
from enum import Enum

from pydantic import BaseModel, Field, field_validator

SCHEMA_VERSION = 1

LOCAL_SOURCE = "local"
ARCHIVED_SUFFIX = " (Archived)"

ENTRY_TYPES = frozenset({"commands", "prompts"})

DEFAULT_COLOR = "var(--vscode-charts-blue)"
_DEFAULT_ICONS = {"prompts": "terminal"}
_FALLBACK_ICON = "symbol-folder"

_LEADING_DIGITS = re.compile(r"^(\d+)")
_ID_ALPHABET = string.digits + string.ascii_lowercase


class SubscriptionStatus(str, Enum):
    """Reachability of a subscribed peer at its last refresh."""

    ACTIVE = "active"
    UNREACHABLE = "unreachable"


def _coerce_id(value: object) -> object:
    # Legacy documents store Date.now() ids as JSON numbers.
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value))
    return value


class Entry(BaseModel):
    """A single command or prompt record.

    Attributes:
        id: Unique within a document.  Locally created ids start with the
            creation time in epoch milliseconds.
        type: View category (``commands`` or ``prompts``).
        name: Display name (required).
        content: The command or prompt text (required).
        notes: Optional free text.
        icon: Presentation hint; see ``display_icon`` for the default.
        color: Presentation hint; see ``display_color`` for the default.
        pinned: Whether the entry is pinned.
        source: ``None``/``"local"`` for user-authored entries, otherwise
            the username of the peer that published it.
        original_id: Id the entry holds in the peer's own document.
        created_at: Creation time in epoch milliseconds, when known.
    """

    id: str
    type: str = "commands"
    name: str
    content: str
    notes: str | None = None
    icon: str | None = None
    color: str | None = None
    pinned: bool = False
    source: str | None = None
    original_id: str | None = Field(default=None, alias="originalId")
    created_at: int | None = Field(default=None, alias="createdAt")

    model_config = {
        "frozen": True,
        "extra": "allow",
        "populate_by_name": True,
    }

    @field_validator("id", "original_id", mode="before")
    @classmethod
    def _normalise_ids(cls, value: object) -> object:
        return _coerce_id(value)

    @property
    def is_local(self) -> bool:
        """True for user-authored entries."""
        return not self.source or self.source == LOCAL_SOURCE

    @property
    def identity_key(self) -> tuple[str, str]:
        """``(source-or-local, originalId-or-id)``; unique per document."""
        source = self.source.lower() if self.source else LOCAL_SOURCE
        return source, self.original_id or self.id

    @property
    def recency(self) -> int:
        """Recency score used to break ties between two revisions."""
        if self.created_at is not None:
            return self.created_at
        match = _LEADING_DIGITS.match(self.id)
        return int(match.group(1)) if match else 0

    @property
    def display_icon(self) -> str:
        return self.icon or _DEFAULT_ICONS.get(self.type, _FALLBACK_ICON)

    @property
    def display_color(self) -> str:
        return self.color or DEFAULT_COLOR

    def to_json(self) -> dict:
        """Serialise with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Subscription(BaseModel):
    """A subscription to a peer's published document.

    Attributes:
        id: Unique identifier.
        username: Peer identity (lowercase).
        url: Browsable repository URL, unique case-insensitively.
        status: ``active`` or ``unreachable``.
        last_synced: ISO 8601 timestamp of the last successful fetch.
    """

    id: str
    username: str
    url: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    last_synced: str | None = Field(default=None, alias="lastSynced")

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value: object) -> object:
        return _coerce_id(value)

    @property
    def url_key(self) -> str:
        return self.url.lower()

    def to_json(self) -> dict:
        return self.model_dump(
            by_alias=True, exclude_none=True, mode="json"
        )


class Document(BaseModel):
    """Entries plus peer subscriptions: the unit of persistence."""

    version: int = SCHEMA_VERSION
    items: list[Entry] = []
    subscriptions: list[Subscription] = []

    model_config = {"frozen": True}

    def to_json(self) -> dict:
        return {
            "version": self.version,
            "items": [item.to_json() for item in self.items],
            "subscriptions": [sub.to_json() for sub in self.subscriptions],
        }


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class SyncStatus(str, Enum):
    """Terminal state of a version-control operation."""

    COMPLETE = "complete"
    NOTHING_TO_DO = "nothing_to_do"
    NOT_CONFIGURED = "not_configured"
    CANCELLED = "cancelled"
    OVERWROTE_LOCAL = "overwrote_local"
    OVERWROTE_REMOTE = "overwrote_remote"
    FAILED = "failed"


class SyncOutcome(BaseModel):
    """Result of a Sync Driver operation.

    Attributes:
        operation: Which operation produced this outcome.
        status: Terminal state.
        message: The single human-readable notification for the user.
        conflict_resolved: True if a textual conflict was auto-resolved.
        document: The reloaded document, when the operation changed it.
    """

    operation: str
    status: SyncStatus
    message: str
    conflict_resolved: bool = False
    document: Document | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return self.status not in (SyncStatus.FAILED, SyncStatus.CANCELLED)


class SyncStatusReport(BaseModel):
    """Ahead/behind counts of the local branch vs its remote."""

    configured: bool
    ahead: int = 0
    behind: int = 0
    conflicted: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class PeerMergeResult(BaseModel):
    """Counts from merging one peer document into the local one."""

    username: str
    added: int = 0
    updated: int = 0
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def reachable(self) -> bool:
        return self.error is None


class RefreshReport(BaseModel):
    """Aggregate result of refreshing every subscription."""

    results: list[PeerMergeResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def unreachable(self) -> list[PeerMergeResult]:
        return [r for r in self.results if not r.reachable]

    @property
    def added(self) -> int:
        return sum(r.added for r in self.results)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in self.results)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def new_entry_id(now_ms: int | None = None) -> tuple[str, int]:
    """Generate a fresh local id and its creation timestamp.

    The id is the epoch-millisecond timestamp followed by nine random
    base-36 characters, so ``Entry.recency`` still works for readers that
    only look at the id.
    """
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{stamp}{suffix}", stamp


def archived_source(username: str) -> str:
    return f"{username}{ARCHIVED_SUFFIX}"
