"""Version-control sync driver.

The storage directory is a git working tree whose only tracked payload is
the document file.  ``SyncDriver`` moves that tree through its states::

    Unversioned -> Initialized -> {Clean, Dirty, Conflicted}

Operations:

1. ``ensure_initialized`` -- ``git init`` on the default branch, add the
   remote, seed and commit the document.
2. ``sync_now`` -- commit pending changes, pull with rebase (recovering
   from unrelated histories and textual conflicts), push, and settle a
   rejected push with an explicit user choice.
3. ``auto_sync`` -- the same sequence after every save, silent and
   without prompts; any pull failure stops before pushing.
4. ``pull`` / ``status`` / ``prefetch_and_merge`` / ``reset_configuration``.

Every public operation takes the storage lock, and every step runs only
after the previous one has finished.  Failures come back as a
``SyncOutcome`` carrying git's diagnostic text rather than raising to the
caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from command_tracker.sync.git import GitCommandError, GitRunner
from command_tracker.sync.merger import merge_documents
from command_tracker.sync.models import (
    SyncOutcome,
    SyncStatus,
    SyncStatusReport,
)
from command_tracker.sync.peers import username_from_remote
from command_tracker.sync.prompts import (
    DivergenceChoice,
    Prompter,
    ResetChoice,
)
from command_tracker.sync.resolver import ConflictResolver
from command_tracker.sync.store import (
    DocumentFormatError,
    DocumentStore,
    parse_document,
)

logger = logging.getLogger(__name__)

_MISSING_REMOTE_REF = "couldn't find remote ref"

CONFLICT_GUIDANCE = (
    "Sync conflict could not be auto-resolved. Please resolve manually "
    "or reset the Git configuration."
)


@dataclass(frozen=True)
class _PullResult:
    ok: bool
    resolved: bool = False
    message: str = ""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncDriver:
    """Drive the git repository behind a document store.

    Args:
        store: The document store living in the working tree.
        git: Runner bound to the same directory.
        lock: Storage lock shared with the rest of the workspace.
        branch: Branch synced with the remote.
        remote: Name of the remote.
        resolver: Conflict resolver; built from *git* and *store* when
            omitted.
    """

    def __init__(
        self,
        store: DocumentStore,
        git: GitRunner,
        lock: threading.RLock,
        branch: str = "main",
        remote: str = "origin",
        resolver: ConflictResolver | None = None,
    ) -> None:
        self.store = store
        self.git = git
        self.lock = lock
        self.branch = branch
        self.remote = remote
        self.resolver = resolver or ConflictResolver(git, store)

    @property
    def remote_branch(self) -> str:
        return f"{self.remote}/{self.branch}"

    def _outcome(
        self,
        operation: str,
        status: SyncStatus,
        message: str,
        *,
        resolved: bool = False,
        reload: bool = False,
    ) -> SyncOutcome:
        log = logger.warning if status == SyncStatus.FAILED else logger.info
        log("%s: %s", operation, message)
        return SyncOutcome(
            operation=operation,
            status=status,
            message=message,
            conflict_resolved=resolved,
            document=self.store.load() if reload else None,
        )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def ensure_initialized(self, prompter: Prompter) -> bool:
        """Make sure the storage directory is a repository with a remote.

        Returns:
            ``True`` if a repository exists (or was just created),
            ``False`` if the user declined to provide a remote.

        Raises:
            GitCommandError: If any setup step fails.
        """
        with self.lock:
            if self.git.is_initialized():
                return True

            remote_url = prompter.remote_url()
            if not remote_url or not remote_url.strip():
                logger.info("Git setup skipped: no remote URL provided")
                return False

            self.git.run("init", "-b", self.branch)
            self.git.run("remote", "add", self.remote, remote_url.strip())
            self.store.ensure_exists()
            self.git.run("add", self.store.document_name)
            self.git.run("commit", "-m", "Initial commit")
            logger.info("Git initialized with remote %s", remote_url.strip())
            return True

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync_now(self, prompter: Prompter) -> SyncOutcome:
        """Commit, pull (auto-resolving conflicts) and push."""
        op = "sync"
        with self.lock:
            try:
                if not self.ensure_initialized(prompter):
                    return self._outcome(
                        op,
                        SyncStatus.NOT_CONFIGURED,
                        "Git is not configured. Provide a remote URL to set up sync.",
                    )

                if self.git.is_conflicted():
                    if not prompter.abort_interrupted():
                        return self._outcome(
                            op,
                            SyncStatus.CANCELLED,
                            "Sync cancelled: repository is in a conflicted state.",
                        )
                    logger.info("Aborting interrupted merge/rebase")
                    self.git.abort_in_progress()

                self._commit_pending("Sync")

                pulled = self._pull(unattended=False)
                if not pulled.ok:
                    return self._outcome(op, SyncStatus.FAILED, pulled.message)

                return self._push(op, prompter, pulled.resolved)
            except GitCommandError as exc:
                return self._outcome(op, SyncStatus.FAILED, f"Sync failed: {exc}")

    def auto_sync(self) -> SyncOutcome:
        """Silent sync after a save.  Never prompts.

        Skips when git is not set up or a merge/rebase is unfinished.  A
        pull that cannot be completed unattended is rolled back and
        nothing is pushed.
        """
        op = "auto_sync"
        with self.lock:
            if not self.git.is_initialized():
                return SyncOutcome(
                    operation=op,
                    status=SyncStatus.NOT_CONFIGURED,
                    message="Git is not configured.",
                )
            if self.git.is_conflicted():
                return self._outcome(
                    op,
                    SyncStatus.CANCELLED,
                    "Skipped: repository is in a conflicted state.",
                )
            try:
                if not self._commit_pending("Auto-sync"):
                    return SyncOutcome(
                        operation=op,
                        status=SyncStatus.NOTHING_TO_DO,
                        message="No changes to sync.",
                    )

                pulled = self._pull(unattended=True)
                if not pulled.ok:
                    return self._outcome(op, SyncStatus.FAILED, pulled.message)

                self.git.run("push", "-u", self.remote, self.branch)
                return self._outcome(
                    op,
                    SyncStatus.COMPLETE,
                    "Auto-sync complete.",
                    resolved=pulled.resolved,
                )
            except GitCommandError as exc:
                return self._outcome(
                    op, SyncStatus.FAILED, f"Auto-sync failed: {exc}"
                )

    def pull(self) -> SyncOutcome:
        """Bring in remote changes without pushing."""
        op = "pull"
        with self.lock:
            if not self.git.is_initialized():
                return self._outcome(
                    op, SyncStatus.NOT_CONFIGURED, "Git is not configured."
                )
            if self.git.is_conflicted():
                return self._outcome(
                    op,
                    SyncStatus.CANCELLED,
                    "Pull cancelled: repository is in a conflicted state.",
                )
            try:
                self._commit_pending("Sync")
                pulled = self._pull(unattended=False)
            except GitCommandError as exc:
                return self._outcome(op, SyncStatus.FAILED, f"Pull failed: {exc}")
            if not pulled.ok:
                return self._outcome(op, SyncStatus.FAILED, pulled.message)
            return self._outcome(
                op,
                SyncStatus.COMPLETE,
                "Pulled latest changes.",
                resolved=pulled.resolved,
                reload=True,
            )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _commit_pending(self, label: str) -> bool:
        """Stage the document and commit it if it changed.

        Returns:
            ``True`` if a commit was made.
        """
        name = self.store.document_name
        if not self.git.has_pending_changes(name):
            return False
        self.git.run("add", name)
        self.git.run("commit", "-m", f"{label}: {_timestamp()}")
        return True

    def _is_conflict(self, exc: GitCommandError) -> bool:
        return exc.is_conflict or self.git.is_conflicted()

    def _pull(self, unattended: bool) -> _PullResult:
        try:
            self.git.run("pull", self.remote, self.branch, "--rebase")
            return _PullResult(ok=True)
        except GitCommandError as exc:
            error = exc

        if _MISSING_REMOTE_REF in error.output:
            logger.info(
                "Remote branch %s does not exist yet; nothing to pull",
                self.remote_branch,
            )
            return _PullResult(ok=True)

        if error.is_unrelated_histories and not self._is_conflict(error):
            logger.info("Reconciling unrelated histories")
            try:
                self.git.run(
                    "pull",
                    self.remote,
                    self.branch,
                    "--no-rebase",
                    "--allow-unrelated-histories",
                    "--no-edit",
                )
                return _PullResult(ok=True)
            except GitCommandError as exc:
                if not self._is_conflict(exc):
                    return _PullResult(
                        ok=False,
                        message=f"Failed to reconcile histories: {exc}",
                    )
                error = exc

        if self._is_conflict(error):
            logger.info("Pull stopped on a conflict; trying JSON merge")
            if self.resolver.resolve():
                return _PullResult(ok=True, resolved=True)
            if unattended:
                self._rollback()
            return _PullResult(ok=False, message=CONFLICT_GUIDANCE)

        return _PullResult(
            ok=False,
            message=(
                f"Pull failed: {error}. Please check your connection or "
                "resolve conflicts manually."
            ),
        )

    def _rollback(self) -> None:
        try:
            self.git.abort_in_progress()
        except GitCommandError as exc:
            logger.error("Could not abort unfinished pull: %s", exc)

    def _push(
        self, op: str, prompter: Prompter, resolved: bool
    ) -> SyncOutcome:
        try:
            self.git.run("push", "-u", self.remote, self.branch)
        except GitCommandError as exc:
            if not exc.is_push_rejected:
                raise
            return self._settle_divergence(op, prompter, resolved)
        return self._outcome(
            op,
            SyncStatus.COMPLETE,
            "Sync complete!",
            resolved=resolved,
            reload=True,
        )

    def _settle_divergence(
        self, op: str, prompter: Prompter, resolved: bool
    ) -> SyncOutcome:
        choice = prompter.resolve_divergence()
        if choice == DivergenceChoice.OVERWRITE_LOCAL:
            self.git.run("fetch", self.remote)
            self.git.run("reset", "--hard", self.remote_branch)
            return self._outcome(
                op,
                SyncStatus.OVERWROTE_LOCAL,
                "Local data has been overwritten with the remote version.",
                resolved=resolved,
                reload=True,
            )
        if choice == DivergenceChoice.OVERWRITE_REMOTE:
            self.git.run("push", "-f", self.remote, self.branch)
            return self._outcome(
                op,
                SyncStatus.OVERWROTE_REMOTE,
                "Remote version has been overwritten with your local data.",
                resolved=resolved,
            )
        return self._outcome(
            op,
            SyncStatus.CANCELLED,
            "Sync cancelled: local and remote histories have diverged.",
            resolved=resolved,
        )

    # ------------------------------------------------------------------
    # Queries and maintenance
    # ------------------------------------------------------------------

    def status(self) -> SyncStatusReport:
        """Fetch and report how far the local branch is ahead/behind."""
        with self.lock:
            if not self.git.is_initialized():
                return SyncStatusReport(configured=False)
            conflicted = self.git.is_conflicted()
            try:
                self.git.run("fetch", self.remote, self.branch)
                ahead, behind = self.git.ahead_behind(
                    "HEAD", self.remote_branch
                )
            except (GitCommandError, ValueError) as exc:
                logger.info("Sync status unavailable: %s", exc)
                return SyncStatusReport(
                    configured=True, conflicted=conflicted, error=str(exc)
                )
            return SyncStatusReport(
                configured=True,
                ahead=ahead,
                behind=behind,
                conflicted=conflicted,
            )

    def prefetch_and_merge(self) -> bool:
        """Merge the remote's document into the local file before loading.

        Writes locally only (no commit), so later syncs conflict less.
        Failures are logged and ignored.

        Returns:
            ``True`` if the local document changed.
        """
        with self.lock:
            if not self.git.is_initialized() or self.git.is_conflicted():
                return False
            try:
                self.git.run("fetch", self.remote, self.branch)
                text = self.git.show(
                    f"{self.remote_branch}:{self.store.document_name}"
                )
            except GitCommandError as exc:
                logger.debug("Pre-fetch merge skipped: %s", exc)
                return False
            try:
                remote_doc = parse_document(text)
            except DocumentFormatError as exc:
                logger.warning("Remote document is malformed, skipping merge: %s", exc)
                return False

            local = self.store.load()
            merged = merge_documents(local, remote_doc)
            if merged == local:
                return False
            self.store.save(merged)
            logger.info("Merged remote document into local copy")
            return True

    def remote_username(self) -> str | None:
        """Username derived from the configured remote, if it is GitHub."""
        if not self.git.is_initialized():
            return None
        url = self.git.remote_url(self.remote)
        return username_from_remote(url) if url else None

    def reset_configuration(self, prompter: Prompter) -> SyncOutcome:
        """Change the remote URL or remove git metadata entirely.

        The document file itself is never touched.
        """
        op = "reset"
        with self.lock:
            if not self.git.is_initialized():
                return self._outcome(
                    op,
                    SyncStatus.NOT_CONFIGURED,
                    "Git is not configured. Use sync to set it up.",
                )

            choice = prompter.reset_action()
            if choice == ResetChoice.CHANGE_REMOTE:
                new_url = prompter.new_remote_url()
                if not new_url or not new_url.strip():
                    return self._outcome(
                        op, SyncStatus.CANCELLED, "Remote URL unchanged."
                    )
                try:
                    self.git.run("remote", "set-url", self.remote, new_url.strip())
                except GitCommandError as exc:
                    return self._outcome(
                        op, SyncStatus.FAILED, f"Failed to update remote: {exc}"
                    )
                return self._outcome(
                    op,
                    SyncStatus.COMPLETE,
                    f"Remote URL updated to: {new_url.strip()}",
                )

            if choice == ResetChoice.REMOVE:
                if not prompter.confirm_remove_vcs():
                    return self._outcome(
                        op, SyncStatus.CANCELLED, "Git configuration kept."
                    )
                try:
                    self.git.remove_metadata()
                except OSError as exc:
                    return self._outcome(
                        op, SyncStatus.FAILED, f"Failed to remove Git: {exc}"
                    )
                return self._outcome(
                    op,
                    SyncStatus.COMPLETE,
                    "Git configuration removed. Sync again to set it up.",
                )

            return self._outcome(op, SyncStatus.CANCELLED, "Reset cancelled.")
