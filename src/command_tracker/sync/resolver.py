"""Automatic resolution of textual conflicts in the document file.

When a pull stops on a conflict, the two revisions of ``data.json`` are
parsed as documents and merged semantically with ``merge_documents``
instead of line by line.

Revisions are read from the index stages first (``:2:`` and ``:3:``), which
hold each side's complete file regardless of how git laid out the
conflict hunks.  If the stages are unavailable, both sides are rebuilt
from the conflict markers in the working copy.

Side mapping: during a merge stage 2 / the "ours" hunk is the local
revision.  During a rebase the roles swap: HEAD is the upstream being
rebased onto, and stage 3 / the "theirs" hunk is the local commit being
replayed.
"""

from __future__ import annotations

import logging

from command_tracker.file_handler import read_file_with_encoding
from command_tracker.sync.git import GitCommandError, GitRunner
from command_tracker.sync.merger import merge_documents
from command_tracker.sync.models import Document
from command_tracker.sync.store import (
    DocumentFormatError,
    DocumentStore,
    parse_document,
)

logger = logging.getLogger(__name__)

START_MARKER = "<<<<<<<"
BASE_MARKER = "|||||||"
SEPARATOR_MARKER = "======="
END_MARKER = ">>>>>>>"

MERGE_COMMIT_MESSAGE = "Merge: Auto-resolved with JSON merge"

_NOTHING_TO_CONTINUE = ("No changes", "nothing to commit", "nothing added")


def has_conflict_markers(text: str) -> bool:
    return any(
        line.startswith((START_MARKER, END_MARKER))
        or line.rstrip("\r\n") == SEPARATOR_MARKER
        for line in text.splitlines()
    )


def split_conflict_sides(text: str) -> tuple[str, str] | None:
    """Rebuild the complete "ours" and "theirs" texts from conflict markers.

    Lines outside conflict hunks belong to both sides.  diff3-style base
    sections (``|||||||``) are dropped.

    Returns:
        ``(ours, theirs)``, or ``None`` if there is no complete hunk or a
        hunk is not closed.
    """
    ours: list[str] = []
    theirs: list[str] = []
    state = "common"
    hunks = 0

    for line in text.splitlines(keepends=True):
        bare = line.rstrip("\r\n")
        if state == "common":
            if line.startswith(START_MARKER):
                state = "ours"
                continue
            ours.append(line)
            theirs.append(line)
        elif state == "ours":
            if line.startswith(BASE_MARKER):
                state = "base"
            elif bare == SEPARATOR_MARKER:
                state = "theirs"
            else:
                ours.append(line)
        elif state == "base":
            if bare == SEPARATOR_MARKER:
                state = "theirs"
        elif state == "theirs":
            if line.startswith(END_MARKER):
                state = "common"
                hunks += 1
            else:
                theirs.append(line)

    if state != "common" or hunks == 0:
        return None
    return "".join(ours), "".join(theirs)


class ConflictResolver:
    """Resolve a conflicted document file and finish the git operation.

    Args:
        git: Runner for the storage directory's repository.
        store: Store owning the document file.
        max_rounds: Upper bound on successive conflicts handled while a
            rebase replays several local commits.
    """

    def __init__(
        self,
        git: GitRunner,
        store: DocumentStore,
        max_rounds: int = 20,
    ) -> None:
        self.git = git
        self.store = store
        self.max_rounds = max_rounds

    def resolve(self) -> bool:
        """Try to resolve the current conflict.

        Returns:
            ``True`` if the file was merged, staged and the rebase
            continued (or merge committed).  ``False`` if the conflict
            cannot be resolved automatically; any error along the way
            counts as ``False``.
        """
        try:
            return self._resolve()
        except Exception:
            logger.exception("Automatic conflict resolution failed")
            return False

    def _resolve(self) -> bool:
        for round_ in range(1, self.max_rounds + 1):
            sides = self._read_sides()
            if sides is None:
                return False
            local, remote = sides

            merged = merge_documents(local, remote)
            self.store.save(merged)
            self.git.run("add", self.store.document_name)
            logger.info(
                "Resolved conflict round %d with JSON merge (%d entries)",
                round_,
                len(merged.items),
            )

            if self.git.rebase_in_progress():
                if self._continue_rebase():
                    return True
                continue
            if self.git.merge_in_progress():
                self.git.run("commit", "--no-edit", "-m", MERGE_COMMIT_MESSAGE)
            return True

        logger.error(
            "Rebase still conflicted after %d resolution rounds",
            self.max_rounds,
        )
        return False

    def _continue_rebase(self) -> bool:
        """Continue the rebase; ``False`` if it stopped on another conflict."""
        try:
            self.git.run("rebase", "--continue")
        except GitCommandError as exc:
            if any(token in exc.output for token in _NOTHING_TO_CONTINUE):
                # The local commit became empty after merging.
                return self._skip_commit()
            if self.git.rebase_in_progress() and exc.is_conflict:
                return False
            raise
        return not self.git.rebase_in_progress()

    def _skip_commit(self) -> bool:
        try:
            self.git.run("rebase", "--skip")
        except GitCommandError as exc:
            if self.git.rebase_in_progress() and exc.is_conflict:
                return False
            raise
        return not self.git.rebase_in_progress()

    # ------------------------------------------------------------------
    # Reading both sides
    # ------------------------------------------------------------------

    def _read_sides(self) -> tuple[Document, Document] | None:
        """Return ``(local, remote)`` documents, or ``None``."""
        path = self.store.path
        if not path.exists():
            return None
        text, _ = read_file_with_encoding(path)
        if not has_conflict_markers(text):
            logger.debug("No conflict markers in %s", path)
            return None

        sides = self._read_index_stages()
        if sides is None:
            sides = split_conflict_sides(text)
        if sides is None:
            logger.warning("Could not locate both conflict regions in %s", path)
            return None
        ours_text, theirs_text = sides

        try:
            ours = parse_document(ours_text)
            theirs = parse_document(theirs_text)
        except DocumentFormatError as exc:
            logger.warning("Conflicting revision is not a valid document: %s", exc)
            return None

        if self.git.rebase_in_progress():
            return theirs, ours
        return ours, theirs

    def _read_index_stages(self) -> tuple[str, str] | None:
        name = self.store.document_name
        try:
            return self.git.show(f":2:{name}"), self.git.show(f":3:{name}")
        except GitCommandError as exc:
            logger.debug("Index stages unavailable: %s", exc)
            return None
