"""
git.py

Responsibility: Run subprocesses and wrap the handful of git commands stepsite needs.

Every external command (git, the dependency installer, the app toolchain) goes
through `run()`, so failures surface uniformly as `CommandError` with the
combined stdout/stderr attached. Calls block until the process exits; no
timeout is imposed.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from stepsite.errors import CommandError

logger = logging.getLogger(__name__)


def run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None, check: bool = True) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess command, raising a CommandError on failure when `check` is set.
    """
    logger.debug("$ %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        # Executable missing or not runnable.
        raise CommandError(cmd, 127, str(e)) from e
    if proc.stdout.strip():
        logger.debug("%s", proc.stdout.rstrip())
    if check and proc.returncode != 0:
        raise CommandError(cmd, proc.returncode, proc.stdout)
    return proc


class Git:
    """Thin wrapper around the git CLI for a single repository root."""

    def __init__(self, root: str | Path, *, executable: str = "git") -> None:
        self.root = Path(root).resolve()
        self._exe = executable

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return run([self._exe, *args], cwd=self.root, check=check)

    def output(self, *args: str) -> str:
        return self._git(*args).stdout.strip()

    def list_tags(self, pattern: str) -> list[str]:
        return [line.strip() for line in self.output("tag", "-l", pattern).splitlines() if line.strip()]

    def tag_subject(self, tag: str) -> str:
        """
        Subject line of the tag message (annotated tags) or of the tagged commit
        (lightweight tags). Empty when there is none.
        """
        return self.output("for-each-ref", f"refs/tags/{tag}", "--format=%(contents:subject)")

    def current_ref(self) -> str:
        """
        The active branch name, or the commit SHA when HEAD is detached.
        """
        name = self.output("rev-parse", "--abbrev-ref", "HEAD")
        if name == "HEAD":
            return self.output("rev-parse", "HEAD")
        return name

    def is_dirty(self) -> bool:
        # Untracked files survive checkouts untouched, so only tracked changes count.
        return bool(self.output("status", "--porcelain", "--untracked-files=no"))

    def stash_top(self) -> str | None:
        proc = self._git("rev-parse", "-q", "--verify", "refs/stash", check=False)
        sha = proc.stdout.strip()
        return sha if proc.returncode == 0 and sha else None

    def stash_push(self, message: str) -> None:
        self._git("stash", "push", "-m", message)

    def stash_pop(self) -> None:
        self._git("stash", "pop")

    def discard_tracked_changes(self) -> None:
        # Resets tracked paths only; untracked and ignored files are left alone.
        self._git("reset", "--hard", "--quiet")

    def incoming_collisions(self, ref: str) -> list[str]:
        """
        Paths that `ref` tracks but HEAD does not, which already exist on disk.

        A checkout of `ref` would overwrite these untracked or ignored files.
        """
        added = self._git("diff", "-z", "--name-only", "--no-renames", "--diff-filter=A", "HEAD", ref).stdout
        paths = [p for p in added.split("\0") if p]
        return [p for p in paths if (self.root / p).exists() or (self.root / p).is_symlink()]

    def checkout(self, ref: str, *, force: bool = False) -> None:
        args = ["checkout", "--quiet"]
        if force:
            args.append("--force")
        self._git(*args, ref)
