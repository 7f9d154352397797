"""The command tracker workspace: one storage directory and its services.

``Workspace`` wires the document store, git driver, conflict resolver,
peer fetcher and subscription manager around a single storage lock, and
exposes the commands a client can issue (load, save, subscribe, sync...).
It is created once per process and passed explicitly to every handler;
there is no module-level document state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from command_tracker.config import Config
from command_tracker.sync.driver import SyncDriver
from command_tracker.sync.git import GitRunner
from command_tracker.sync.locks import storage_lock
from command_tracker.sync.models import (
    Document,
    Entry,
    PeerMergeResult,
    RefreshReport,
    SyncOutcome,
    SyncStatusReport,
)
from command_tracker.sync.peers import PeerFetcher
from command_tracker.sync.prompts import Prompter, RemovalChoice
from command_tracker.sync.resolver import ConflictResolver
from command_tracker.sync.store import DocumentStore
from command_tracker.sync.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)


def keep_peer_fields(items: list[Entry], stored: list[Entry]) -> list[Entry]:
    """Restore ``source``/``originalId`` on edited copies of peer mirrors.

    Matching is by local ``id``.  User edits never detach a mirror from
    the peer it came from.
    """
    mirrors = {e.id: e for e in stored if not e.is_local}
    kept: list[Entry] = []
    for item in items:
        twin = mirrors.get(item.id)
        if twin is not None and (
            item.source != twin.source or item.original_id != twin.original_id
        ):
            logger.debug("Keeping peer fields on edited entry %s", item.id)
            item = item.model_copy(
                update={"source": twin.source, "original_id": twin.original_id}
            )
        kept.append(item)
    return kept


@dataclass(frozen=True)
class LoadResult:
    """Document as loaded, plus the user's username when derivable."""

    document: Document
    username: str | None
    merged_remote: bool = False


@dataclass(frozen=True)
class SaveResult:
    """Document as written, plus the auto-sync outcome if one ran."""

    document: Document
    sync: SyncOutcome | None = None


class Workspace:
    """Services bound to one storage directory.

    Args:
        config: Validated runtime configuration.
        fetcher: Peer fetcher override (tests pass a fake).
        git: Git runner override.
        read_only: Never write; loading skips the merge with the remote.
    """

    def __init__(
        self,
        config: Config,
        fetcher: PeerFetcher | None = None,
        git: GitRunner | None = None,
        read_only: bool = False,
    ) -> None:
        self.config = config
        self.read_only = read_only
        self.lock = storage_lock(config.storage_dir)
        self.store = DocumentStore(config.storage_dir, config.document_name)
        self.git = git or GitRunner(
            config.storage_dir, timeout=config.git_timeout
        )
        self.resolver = ConflictResolver(self.git, self.store)
        self.driver = SyncDriver(
            self.store,
            self.git,
            self.lock,
            branch=config.branch,
            remote=config.remote,
            resolver=self.resolver,
        )
        self.fetcher = fetcher or PeerFetcher(
            timeout=config.fetch_timeout,
            base_url=config.raw_base_url,
            document_name=config.document_name,
        )
        self.subscriptions = SubscriptionManager(
            self.store, self.fetcher, self.lock, persist=self._persist
        )

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def load(self) -> LoadResult:
        """Merge in the remote's document (best effort) and load."""
        merged = False if self.read_only else self.driver.prefetch_and_merge()
        document = self.store.load()
        return LoadResult(
            document=document,
            username=self.driver.remote_username(),
            merged_remote=merged,
        )

    def save(self, payload: Document | list[Entry]) -> SaveResult:
        """Persist a full document or a bare entry list, then auto-sync.

        A bare list keeps the subscriptions already on disk.  Entries that
        mirror a peer keep their ``source``/``originalId`` even when the
        client resends them without those fields.
        """
        with self.lock:
            stored = self.store.load().items
            if isinstance(payload, Document):
                items = keep_peer_fields(payload.items, stored)
                saved = self.store.save(payload.model_copy(update={"items": items}))
            else:
                saved = self.store.save_entries(keep_peer_fields(payload, stored))
            outcome = self._auto_sync()
        return SaveResult(document=saved, sync=outcome)

    def _persist(self, document: Document) -> Document:
        with self.lock:
            saved = self.store.save(document)
            self._auto_sync()
            return saved

    def _auto_sync(self) -> SyncOutcome | None:
        if not self.config.auto_sync:
            return None
        return self.driver.auto_sync()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def add_subscription(self, url: str) -> PeerMergeResult:
        return self.subscriptions.add(url)

    def remove_subscription(
        self, subscription_id: str, prompter: Prompter
    ) -> RemovalChoice | None:
        return self.subscriptions.remove(subscription_id, prompter)

    def refresh_subscriptions(self) -> RefreshReport:
        return self.subscriptions.refresh_all()

    def missing_repositories(self) -> list[dict[str, str]]:
        return self.subscriptions.missing_repositories()

    # ------------------------------------------------------------------
    # Version control
    # ------------------------------------------------------------------

    def sync_now(self, prompter: Prompter) -> SyncOutcome:
        return self.driver.sync_now(prompter)

    def pull(self) -> SyncOutcome:
        return self.driver.pull()

    def status(self) -> SyncStatusReport:
        return self.driver.status()

    def reset(self, prompter: Prompter) -> SyncOutcome:
        return self.driver.reset_configuration(prompter)
