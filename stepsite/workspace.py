"""
workspace.py

Responsibility: Make a build run non-destructive to the caller's checkout.

`WorkspaceGuard.enter()` records the active ref, stashes tracked modifications and
issues a `WorkingTree` token; only a holder of an active token may check out
revisions. `WorkspaceGuard.exit()` must run on every path (it belongs in a
`finally`): it revokes the token, returns to the original ref and pops the stash.
Failures at exit are returned as warnings so they never mask the build outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from stepsite.errors import CommandError, WorkspaceError
from stepsite.git import Git, run

logger = logging.getLogger(__name__)

STASH_MESSAGE = "stepsite temporary stash"
STASH_RECOVERY_HINT = "Local changes may have been stashed; check `git stash list` and run `git stash pop` if needed"


class WorkingTree:
    """Ownership token for the single shared checkout."""

    def __init__(self, git: Git) -> None:
        self.git = git
        self._active = True

    @property
    def root(self) -> Path:
        return self.git.root

    @property
    def active(self) -> bool:
        return self._active

    def require_active(self) -> None:
        if not self._active:
            raise WorkspaceError("Working tree token has been released; enter the workspace guard first")

    def _release(self) -> None:
        self._active = False


@dataclass(frozen=True)
class WorkspaceSnapshot:
    original_ref: str
    dirty: bool
    stashed: bool
    tree: WorkingTree


class WorkspaceGuard:
    def __init__(
        self,
        git: Git,
        *,
        restore_command: tuple[str, ...] | None = None,
        stash_message: str = STASH_MESSAGE,
    ) -> None:
        self._git = git
        self._restore_command = restore_command
        self._stash_message = stash_message
        self._active: WorkspaceSnapshot | None = None

    @property
    def active(self) -> bool:
        return self._active is not None

    def enter(self) -> WorkspaceSnapshot:
        if self._active is not None:
            raise WorkspaceError("A workspace guard session is already active")

        try:
            original_ref = self._git.current_ref()
            dirty = self._git.is_dirty()
        except CommandError as e:
            raise WorkspaceError(f"Could not inspect the working tree: {e.tail() or e}") from e

        stashed = False
        if dirty:
            logger.warning("You have uncommitted changes. Stashing them temporarily...")
            try:
                before = self._git.stash_top()
                self._git.stash_push(self._stash_message)
            except CommandError as e:
                raise WorkspaceError(f"Could not stash local changes: {e.tail() or e}") from e
            try:
                after = self._git.stash_top()
            except CommandError as e:
                raise WorkspaceError(
                    f"Could not verify the stash: {e.tail() or e}. {STASH_RECOVERY_HINT}"
                ) from e
            if after is None or after == before:
                raise WorkspaceError(
                    f"git stash did not record the local changes; refusing to continue. {STASH_RECOVERY_HINT}"
                )
            stashed = True

        snapshot = WorkspaceSnapshot(
            original_ref=original_ref,
            dirty=dirty,
            stashed=stashed,
            tree=WorkingTree(self._git),
        )
        self._active = snapshot
        logger.debug("Workspace guard entered at %s (dirty=%s)", original_ref, dirty)
        return snapshot

    def exit(self, snapshot: WorkspaceSnapshot) -> list[str]:
        """
        Restore the state captured by `enter`. Returns warnings; never raises for git failures.
        """
        if not snapshot.tree.active:
            raise WorkspaceError("Workspace snapshot has already been restored")
        if snapshot is not self._active:
            raise WorkspaceError("Snapshot does not belong to the active workspace guard session")
        self._active = None
        snapshot.tree._release()

        warnings: list[str] = []
        logger.info("Restoring original ref: %s", snapshot.original_ref)
        try:
            self._git.checkout(snapshot.original_ref, force=True)
        except CommandError as e:
            warnings.append(f"Could not restore {snapshot.original_ref}: {e.tail() or e}")
            if snapshot.stashed:
                warnings.append("Local changes were left in `git stash`; run `git stash pop` after fixing the checkout")
            return self._report(warnings)

        if self._restore_command:
            logger.info("Re-installing dependencies for %s...", snapshot.original_ref)
            try:
                run(list(self._restore_command), cwd=self._git.root)
            except CommandError as e:
                warnings.append(f"Dependency re-install failed: {e.tail() or e}")

        if snapshot.stashed:
            logger.info("Restoring stashed changes...")
            try:
                self._git.stash_pop()
            except CommandError as e:
                warnings.append(f"Could not re-apply stashed changes (they remain in `git stash`): {e.tail() or e}")

        return self._report(warnings)

    @staticmethod
    def _report(warnings: list[str]) -> list[str]:
        for w in warnings:
            logger.warning("%s", w)
        return warnings
