"""Peer subscriptions: add, remove and refresh.

Entries published by a peer are mirrored into the local document with
``source`` set to the peer's username and ``originalId`` set to the id
the entry has in the peer's document.  That pair is the anchor used to
refresh the mirror later.

Merge rules for each published entry:

1. An existing mirror with the same anchor is refreshed in place.  The
   local ``id``, ``pinned`` flag and ``createdAt`` are kept.
2. Otherwise, if a local-only entry already has the same ``name``, the
   published entry is skipped: local authorship wins name collisions for
   new peer items.
3. Otherwise a new mirror is inserted with a fresh local id, unpinned.

Network fetches run outside the storage lock; only the
read-modify-write of the document happens under it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from command_tracker.sync.models import (
    Document,
    Entry,
    PeerMergeResult,
    RefreshReport,
    Subscription,
    SubscriptionStatus,
    archived_source,
    new_entry_id,
)
from command_tracker.sync.peers import (
    PeerFetcher,
    PeerFetchError,
    PeerRepository,
    parse_repo_url,
)
from command_tracker.sync.prompts import Prompter, RemovalChoice
from command_tracker.sync.store import DocumentStore

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def apply_peer_document(
    items: list[Entry], username: str, peer: Document
) -> tuple[list[Entry], int, int]:
    """Merge a peer's published entries into *items*.

    Args:
        items: Current local entries (not modified).
        username: Lowercase peer username used as ``source``.
        peer: The peer's published document.

    Returns:
        ``(new_items, added, updated)``.
    """
    merged = list(items)
    added = 0
    updated = 0

    for published in peer.items:
        index = _find_mirror(merged, username, published.id)
        if index is not None:
            mirror = merged[index]
            merged[index] = published.model_copy(
                update={
                    "id": mirror.id,
                    "source": username,
                    "original_id": published.id,
                    "pinned": mirror.pinned,
                    "created_at": mirror.created_at,
                }
            )
            updated += 1
            continue

        if any(i.is_local and i.name == published.name for i in merged):
            logger.debug(
                "Skipping %s's '%s': a local entry has that name",
                username,
                published.name,
            )
            continue

        local_id, created_at = new_entry_id()
        merged.append(
            published.model_copy(
                update={
                    "id": local_id,
                    "source": username,
                    "original_id": published.id,
                    "pinned": False,
                    "created_at": created_at,
                }
            )
        )
        added += 1

    return merged, added, updated


def _find_mirror(
    items: list[Entry], username: str, published_id: str
) -> int | None:
    for index, item in enumerate(items):
        if not item.source or item.source.lower() != username:
            continue
        if item.original_id == published_id or item.id == published_id:
            return index
    return None


class SubscriptionManager:
    """Orchestrate peer subscriptions for one document store.

    Args:
        store: The document store to read and write.
        fetcher: Retrieves peer documents.
        lock: Storage lock guarding read-modify-write of the document.
        persist: Callable that saves a document and returns it as
            written.  Defaults to ``store.save``; the workspace passes a
            callable that also triggers an auto-sync.
    """

    def __init__(
        self,
        store: DocumentStore,
        fetcher: PeerFetcher,
        lock: threading.RLock,
        persist: Callable[[Document], Document] | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.lock = lock
        self.persist = persist or store.save

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    def add(self, url: str) -> PeerMergeResult:
        """Subscribe to the peer repository at *url*.

        Raises:
            ValueError: If the URL is invalid or already subscribed.
            PeerFetchError: If the peer document cannot be retrieved.
        """
        repository = parse_repo_url(url)
        self._check_not_subscribed(self.store.load(), repository)

        peer = self.fetcher.fetch_repository(repository)

        with self.lock:
            document = self.store.load()
            self._check_not_subscribed(document, repository)
            items, added, updated = apply_peer_document(
                document.items, repository.username, peer
            )
            subscription_id, _ = new_entry_id()
            subscription = Subscription(
                id=subscription_id,
                username=repository.username,
                url=repository.url,
                status=SubscriptionStatus.ACTIVE,
                last_synced=_utc_now(),
            )
            self.persist(
                Document(
                    items=items,
                    subscriptions=[*document.subscriptions, subscription],
                )
            )

        logger.info(
            "Added %s: %d new, %d updated",
            repository.username,
            added,
            updated,
        )
        return PeerMergeResult(
            username=repository.username, added=added, updated=updated
        )

    @staticmethod
    def _check_not_subscribed(
        document: Document, repository: PeerRepository
    ) -> None:
        for sub in document.subscriptions:
            if sub.url_key == repository.url.lower():
                raise ValueError(
                    f"This repository is already added: {repository.url}"
                )
            if sub.username.lower() == repository.username:
                raise ValueError(
                    f"Already subscribed to @{repository.username} via {sub.url}"
                )

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(
        self, subscription_id: str, prompter: Prompter
    ) -> RemovalChoice | None:
        """Unsubscribe, removing or archiving the peer's entries.

        Returns:
            The disposition applied, ``RemovalChoice.CANCEL`` if the user
            cancelled, or ``None`` if no such subscription exists.
        """
        with self.lock:
            document = self.store.load()
            subscription = next(
                (s for s in document.subscriptions if s.id == subscription_id),
                None,
            )
            if subscription is None:
                logger.warning("No subscription with id %s", subscription_id)
                return None

            username = subscription.username
            choice = prompter.removal_disposition(username)
            if choice == RemovalChoice.CANCEL:
                return choice

            if choice == RemovalChoice.REMOVE_ITEMS:
                items = [i for i in document.items if i.source != username]
            else:
                items = [
                    i.model_copy(update={"source": archived_source(username)})
                    if i.source == username
                    else i
                    for i in document.items
                ]

            removed = len(document.items) - len(items)
            self.persist(
                Document(
                    items=items,
                    subscriptions=[
                        s for s in document.subscriptions if s.id != subscription_id
                    ],
                )
            )

        logger.info(
            "Removed subscription @%s (%s, %d entries dropped)",
            username,
            choice.value,
            removed,
        )
        return choice

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_all(self) -> RefreshReport:
        """Re-fetch every subscription and merge its entries.

        A peer that cannot be fetched is marked ``unreachable`` and the
        batch continues.  The document is persisted once at the end.
        """
        started_at = _utc_now()
        subscriptions = self.store.load().subscriptions
        if not subscriptions:
            return RefreshReport(started_at=started_at, completed_at=_utc_now())

        fetched: dict[str, Document | PeerFetchError] = {}
        for sub in subscriptions:
            try:
                repository = parse_repo_url(sub.url)
            except ValueError as exc:
                logger.warning("Skipping subscription %s: %s", sub.id, exc)
                continue
            try:
                fetched[sub.id] = self.fetcher.fetch_repository(repository)
            except PeerFetchError as exc:
                logger.warning("Peer @%s unreachable: %s", sub.username, exc)
                fetched[sub.id] = exc

        results: list[PeerMergeResult] = []
        with self.lock:
            document = self.store.load()
            items = document.items
            updated_subs: list[Subscription] = []
            for sub in document.subscriptions:
                outcome = fetched.get(sub.id)
                if outcome is None:
                    updated_subs.append(sub)
                    continue
                if isinstance(outcome, PeerFetchError):
                    updated_subs.append(
                        sub.model_copy(
                            update={"status": SubscriptionStatus.UNREACHABLE}
                        )
                    )
                    results.append(
                        PeerMergeResult(username=sub.username, error=str(outcome))
                    )
                    continue

                username = sub.username.lower()
                items, added, updated = apply_peer_document(
                    items, username, outcome
                )
                updated_subs.append(
                    sub.model_copy(
                        update={
                            "status": SubscriptionStatus.ACTIVE,
                            "last_synced": _utc_now(),
                        }
                    )
                )
                results.append(
                    PeerMergeResult(
                        username=sub.username, added=added, updated=updated
                    )
                )

            self.persist(Document(items=items, subscriptions=updated_subs))

        report = RefreshReport(
            results=results, started_at=started_at, completed_at=_utc_now()
        )
        logger.info(
            "Refreshed %d subscriptions: %d new, %d updated, %d unreachable",
            len(results),
            report.added,
            report.updated,
            len(report.unreachable),
        )
        return report

    def missing_repositories(self) -> list[dict[str, str]]:
        """Repositories of subscriptions that were unreachable last time."""
        repos: list[dict[str, str]] = []
        for sub in self.store.load().subscriptions:
            if sub.status != SubscriptionStatus.UNREACHABLE:
                continue
            try:
                repository = parse_repo_url(sub.url)
            except ValueError:
                continue
            repos.append(
                {
                    "name": repository.repo,
                    "full_name": repository.full_name,
                    "url": repository.url,
                }
            )
        return repos
