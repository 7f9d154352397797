"""Thin wrapper around the ``git`` executable.

Every command runs with the storage directory as its working directory
and a timeout.  The environment disables editors and credential prompts
so that ``rebase --continue`` or a push needing credentials fails fast
instead of hanging a background sync.

Failures raise ``GitCommandError`` carrying git's own diagnostic output;
callers surface that text to the user rather than a generic message.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class GitCommandError(RuntimeError):
    """A git command exited with a non-zero status (or could not run).

    Attributes:
        command: The git arguments that were run.
        returncode: Exit status, or ``None`` if git never ran.
        output: Combined stderr and stdout.
    """

    def __init__(
        self,
        command: list[str],
        returncode: int | None,
        output: str,
        cwd: Path,
    ) -> None:
        detail = output.strip() or f"exit status {returncode}"
        super().__init__(
            f"Git execution failed (cwd: {cwd}): git {' '.join(command)}: {detail}"
        )
        self.command = command
        self.returncode = returncode
        self.output = output
        self.cwd = cwd

    @property
    def is_conflict(self) -> bool:
        return "CONFLICT" in self.output

    @property
    def is_unrelated_histories(self) -> bool:
        return "unrelated histories" in self.output

    @property
    def is_push_rejected(self) -> bool:
        text = self.output
        return (
            "[rejected]" in text
            or "non-fast-forward" in text
            or "fetch first" in text
        )


class GitRunner:
    """Run git commands inside one working tree.

    Args:
        work_dir: The storage directory (working tree root).
        timeout: Seconds before a command is killed.
        executable: Name or path of the git binary.
    """

    def __init__(
        self,
        work_dir: Path,
        timeout: float = 60.0,
        executable: str = "git",
    ) -> None:
        self.work_dir = work_dir
        self.timeout = timeout
        self.executable = executable

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, *args: str) -> str:
        """Run ``git <args>`` and return stdout.

        Raises:
            GitCommandError: On non-zero exit, timeout, or missing binary.
        """
        self.work_dir.mkdir(parents=True, exist_ok=True)
        argv = [self.executable, *args]
        env = {
            **os.environ,
            "GIT_EDITOR": "true",
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_MERGE_AUTOEDIT": "no",
        }
        logger.debug("git %s", " ".join(args))
        try:
            result = subprocess.run(
                argv,
                cwd=str(self.work_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(
                list(args),
                None,
                f"timed out after {self.timeout}s",
                self.work_dir,
            ) from exc
        except FileNotFoundError as exc:
            raise GitCommandError(
                list(args),
                None,
                f"git executable not found: {self.executable}",
                self.work_dir,
            ) from exc

        if result.returncode != 0:
            output = "\n".join(
                part for part in (result.stderr, result.stdout) if part
            )
            raise GitCommandError(
                list(args), result.returncode, output, self.work_dir
            )
        return result.stdout

    # ------------------------------------------------------------------
    # State queries (filesystem, no subprocess)
    # ------------------------------------------------------------------

    @property
    def git_dir(self) -> Path:
        return self.work_dir / ".git"

    def is_initialized(self) -> bool:
        return self.git_dir.exists()

    def merge_in_progress(self) -> bool:
        return (self.git_dir / "MERGE_HEAD").exists()

    def rebase_in_progress(self) -> bool:
        return (self.git_dir / "rebase-merge").exists() or (
            self.git_dir / "rebase-apply"
        ).exists()

    def is_conflicted(self) -> bool:
        """True if an unfinished merge or rebase is present."""
        return self.merge_in_progress() or self.rebase_in_progress()

    def remove_metadata(self) -> None:
        """Delete ``.git``; the working files are left untouched."""
        shutil.rmtree(self.git_dir)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def has_pending_changes(self, path: str) -> bool:
        """True if *path* differs from the last commit (staged or not)."""
        return bool(self.run("status", "--porcelain", "--", path).strip())

    def show(self, revision_path: str) -> str:
        """Contents of ``<revision>:<path>`` from the object store."""
        return self.run("show", revision_path)

    def remote_url(self, remote: str) -> str | None:
        try:
            return self.run("remote", "get-url", remote).strip() or None
        except GitCommandError:
            return None

    def ahead_behind(self, local_ref: str, remote_ref: str) -> tuple[int, int]:
        """Commits only on *local_ref* and only on *remote_ref*."""
        out = self.run(
            "rev-list", "--left-right", "--count", f"{local_ref}...{remote_ref}"
        )
        ahead, behind = out.split()
        return int(ahead), int(behind)

    def abort_in_progress(self) -> None:
        """Abort whichever of merge/rebase is actually in progress."""
        if self.rebase_in_progress():
            self.run("rebase", "--abort")
        if self.merge_in_progress():
            self.run("merge", "--abort")
