"""Document sync engine.

Public API for keeping the personal command/prompt document in sync with
a git remote and with documents published by peers.

Architecture
------------
The document is a single JSON file tracked by git.  Instead of letting
git merge it line by line, every conflict is resolved **semantically**:
both revisions are parsed and merged entry by entry, keyed on
``(source, originalId or id)``.  The same merge is used for the pre-load
merge with the remote and for textual conflicts during a pull.

Modules:

- ``models``        -- ``Entry``, ``Subscription``, ``Document``,
  ``SyncOutcome``, ``RefreshReport``: core data contracts.
- ``store``         -- ``DocumentStore``: load/save the document file.
- ``dedup``         -- one entry per identity key.
- ``merger``        -- semantic merge of two documents.
- ``peers``         -- ``PeerFetcher``: download peer documents.
- ``subscriptions`` -- ``SubscriptionManager``: add/remove/refresh peers.
- ``git``           -- ``GitRunner``: subprocess wrapper around git.
- ``resolver``      -- ``ConflictResolver``: JSON merge of conflicts.
- ``driver``        -- ``SyncDriver``: commit/pull/push workflow.
- ``prompts``       -- ``Prompter``: user decision points.
- ``locks``         -- per-directory storage lock.
- ``reporter``      -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from command_tracker.sync import (
        DocumentStore, GitRunner, PresetPrompter, SyncDriver, storage_lock,
    )

    root = Path("~/.command_tracker").expanduser()
    store = DocumentStore(root)
    driver = SyncDriver(store, GitRunner(root), storage_lock(root))

    outcome = driver.sync_now(
        PresetPrompter(remote="https://github.com/alice/commands.git")
    )
    print(outcome.message)
"""

from .dedup import deduplicate
from .driver import SyncDriver
from .git import GitCommandError, GitRunner
from .locks import storage_lock
from .merger import merge_documents, merge_entries, merge_subscriptions
from .models import (
    Document,
    Entry,
    PeerMergeResult,
    RefreshReport,
    Subscription,
    SubscriptionStatus,
    SyncOutcome,
    SyncStatus,
    SyncStatusReport,
)
from .peers import (
    PeerFetcher,
    PeerFetchError,
    PeerHTTPError,
    PeerPayloadError,
    PeerUnavailableError,
)
from .prompts import (
    DivergenceChoice,
    PresetPrompter,
    Prompter,
    RemovalChoice,
    ResetChoice,
)
from .reporter import (
    format_refresh_report,
    format_sync_outcome,
    outcome_to_json,
    refresh_report_to_json,
)
from .resolver import ConflictResolver
from .store import DocumentFormatError, DocumentStore
from .subscriptions import SubscriptionManager

__all__ = [
    "ConflictResolver",
    "DivergenceChoice",
    "Document",
    "DocumentFormatError",
    "DocumentStore",
    "Entry",
    "GitCommandError",
    "GitRunner",
    "PeerFetchError",
    "PeerFetcher",
    "PeerHTTPError",
    "PeerMergeResult",
    "PeerPayloadError",
    "PeerUnavailableError",
    "PresetPrompter",
    "Prompter",
    "RefreshReport",
    "RemovalChoice",
    "ResetChoice",
    "Subscription",
    "SubscriptionManager",
    "SubscriptionStatus",
    "SyncDriver",
    "SyncOutcome",
    "SyncStatus",
    "SyncStatusReport",
    "deduplicate",
    "format_refresh_report",
    "format_sync_outcome",
    "merge_documents",
    "merge_entries",
    "merge_subscriptions",
    "outcome_to_json",
    "refresh_report_to_json",
    "storage_lock",
]
