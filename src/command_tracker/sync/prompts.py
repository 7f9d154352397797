"""Decision points that need an answer from the user.

The sync engine never talks to a UI directly.  Whenever the workflow
has to stop and ask (which remote to use, what to do with diverged
histories, ...) it calls a ``Prompter``.  The MCP layer answers
from tool arguments via ``PresetPrompter``; the default answers are the
safe choice (cancel / do nothing).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class DivergenceChoice(str, Enum):
    """How to settle a non-fast-forward push."""

    OVERWRITE_LOCAL = "overwrite_local"
    OVERWRITE_REMOTE = "overwrite_remote"
    CANCEL = "cancel"


class RemovalChoice(str, Enum):
    """What happens to a peer's entries when unsubscribing."""

    REMOVE_ITEMS = "remove_items"
    ARCHIVE = "archive"
    CANCEL = "cancel"


class ResetChoice(str, Enum):
    """Version-control reconfiguration options."""

    CHANGE_REMOTE = "change_remote"
    REMOVE = "remove"
    CANCEL = "cancel"


class Prompter(Protocol):
    """Protocol for answering sync decision points."""

    def remote_url(self) -> str | None:
        """Remote URL for first-time setup, or ``None`` to skip setup."""
        ...  # pragma: no cover

    def abort_interrupted(self) -> bool:
        """Whether to abort a merge/rebase left over from an earlier sync."""
        ...  # pragma: no cover

    def resolve_divergence(self) -> DivergenceChoice:
        """Choice for a push rejected as non-fast-forward."""
        ...  # pragma: no cover

    def removal_disposition(self, username: str) -> RemovalChoice:
        """What to do with *username*'s entries on unsubscribe."""
        ...  # pragma: no cover

    def reset_action(self) -> ResetChoice:
        """Which reconfiguration to perform."""
        ...  # pragma: no cover

    def new_remote_url(self) -> str | None:
        """Replacement remote URL, or ``None`` to keep the current one."""
        ...  # pragma: no cover

    def confirm_remove_vcs(self) -> bool:
        """Confirm deleting the version-control metadata."""
        ...  # pragma: no cover


@dataclass(frozen=True)
class PresetPrompter:
    """Prompter whose answers are fixed up front."""

    remote: str | None = None
    abort: bool = False
    divergence: DivergenceChoice = DivergenceChoice.CANCEL
    removal: RemovalChoice = RemovalChoice.CANCEL
    reset: ResetChoice = ResetChoice.CANCEL
    new_remote: str | None = None
    confirm_remove: bool = False

    def remote_url(self) -> str | None:
        return self.remote

    def abort_interrupted(self) -> bool:
        return self.abort

    def resolve_divergence(self) -> DivergenceChoice:
        return self.divergence

    def removal_disposition(self, username: str) -> RemovalChoice:
        return self.removal

    def reset_action(self) -> ResetChoice:
        return self.reset

    def new_remote_url(self) -> str | None:
        return self.new_remote

    def confirm_remove_vcs(self) -> bool:
        return self.confirm_remove
