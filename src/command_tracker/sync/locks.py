"""Per-storage-directory mutual exclusion.

The periodic peer refresh and user-triggered syncs can overlap.  Each
storage directory gets one re-entrant lock, shared by every object that
touches its document or working tree, so two operations never observe
"not conflicted" and then race on the same files.

The lock is re-entrant because a save (which holds it) triggers an
auto-sync (which takes it again) on the same thread.
"""

from __future__ import annotations

import threading
from pathlib import Path

_registry_lock = threading.Lock()
_locks: dict[Path, threading.RLock] = {}


def storage_lock(storage_dir: Path) -> threading.RLock:
    """Return the lock guarding *storage_dir*, creating it on first use."""
    key = Path(storage_dir).expanduser().resolve()
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _locks[key] = lock
        return lock
