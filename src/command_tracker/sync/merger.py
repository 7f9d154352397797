"""Semantic merge of two document revisions.

``merge_documents`` is a pure function used wherever two versions of the
document meet: conflict resolution after a pull, and the pre-fetch merge
on load.

Key design choices:

* Entries are matched by **identity key** ``(source-or-local,
  originalId-or-id)``, never by position, so concurrent additions on both
  sides are both kept.
* For a key present on both sides the revision with the higher recency
  score is the base record; ties keep the local revision.
* ``pinned`` is OR-ed across both revisions so a pin is never dropped.
* Subscriptions are unioned by lowercased URL, keeping the most recently
  synced record.
"""

from __future__ import annotations

from command_tracker.sync.models import Document, Entry, Subscription


def merge_entries(
    local_items: list[Entry], remote_items: list[Entry]
) -> list[Entry]:
    """Merge two entry lists by identity key.

    Output order is remote-first, with local-only entries appended in
    their local order.  Deterministic for identical inputs.
    """
    merged: dict[tuple[str, str], Entry] = {}

    for item in remote_items:
        merged[item.identity_key] = item

    for item in local_items:
        key = item.identity_key
        existing = merged.get(key)
        if existing is None:
            merged[key] = item
            continue
        merged[key] = _pick_revision(item, existing)

    return list(merged.values())


def _pick_revision(local: Entry, remote: Entry) -> Entry:
    winner = local if local.recency >= remote.recency else remote
    pinned = local.pinned or remote.pinned
    if winner.pinned == pinned:
        return winner
    return winner.model_copy(update={"pinned": pinned})


def merge_subscriptions(
    local_subs: list[Subscription], remote_subs: list[Subscription]
) -> list[Subscription]:
    """Union subscriptions by lowercased URL.

    On a duplicate URL the record with the later ``lastSynced`` wins;
    equal or missing timestamps keep the first one seen (remote).
    """
    merged: dict[str, Subscription] = {}
    for sub in [*remote_subs, *local_subs]:
        existing = merged.get(sub.url_key)
        if existing is None or (sub.last_synced or "") > (
            existing.last_synced or ""
        ):
            merged[sub.url_key] = sub
    return list(merged.values())


def merge_documents(local: Document, remote: Document) -> Document:
    """Reconcile a local and a remote document into one.

    Args:
        local: The revision authored on this machine.
        remote: The revision from the remote (or the other side of a
            conflict).

    Returns:
        A new ``Document`` containing every entry and subscription from
        both sides, one per identity key / URL.
    """
    return Document(
        items=merge_entries(local.items, remote.items),
        subscriptions=merge_subscriptions(
            local.subscriptions, remote.subscriptions
        ),
    )
