from __future__ import annotations

import pytest

from stepsite.errors import CommandError, WorkspaceError
from stepsite.git import Git
from stepsite.workspace import WorkspaceGuard

from conftest import StepRepo, git


@pytest.mark.parametrize("dirty", [False, True])
def test_enter_exit_restores_ref_and_changes(step_repo: StepRepo, dirty: bool) -> None:
    if dirty:
        step_repo.write("VERSION", "local edit\n")
    step_repo.write("scratch.txt", "untracked\n")
    status_before = step_repo.status()

    guard = WorkspaceGuard(Git(step_repo.path))
    snapshot = guard.enter()
    assert snapshot.original_ref == "main"
    assert snapshot.dirty is dirty
    assert snapshot.stashed is dirty
    assert snapshot.tree.active
    # The checkout is clean of tracked edits while the guard is held.
    assert Git(step_repo.path).is_dirty() is False

    git(step_repo.path, "checkout", "-q", "step-1")
    warnings = guard.exit(snapshot)

    assert warnings == []
    assert step_repo.branch() == "main"
    assert step_repo.status() == status_before
    assert step_repo.read("VERSION") == ("local edit\n" if dirty else "dev\n")
    assert not snapshot.tree.active


def test_detached_head_is_restored(step_repo: StepRepo) -> None:
    sha = git(step_repo.path, "rev-parse", "step-2^{commit}")
    git(step_repo.path, "checkout", "-q", sha)

    guard = WorkspaceGuard(Git(step_repo.path))
    snapshot = guard.enter()
    assert snapshot.original_ref == sha
    git(step_repo.path, "checkout", "-q", "step-1")
    guard.exit(snapshot)

    assert git(step_repo.path, "rev-parse", "HEAD") == sha


def test_nesting_and_double_exit_are_rejected(step_repo: StepRepo) -> None:
    guard = WorkspaceGuard(Git(step_repo.path))
    snapshot = guard.enter()
    with pytest.raises(WorkspaceError):
        guard.enter()
    guard.exit(snapshot)
    with pytest.raises(WorkspaceError):
        guard.exit(snapshot)


def test_stash_pop_conflict_is_a_warning(step_repo: StepRepo) -> None:
    step_repo.write("VERSION", "local edit\n")
    guard = WorkspaceGuard(Git(step_repo.path))
    snapshot = guard.enter()

    # Something commits over the stashed file while the guard is held.
    step_repo.write("VERSION", "committed during build\n")
    step_repo.commit("Concurrent change")

    warnings = guard.exit(snapshot)

    assert len(warnings) == 1
    assert "stash" in warnings[0]
    assert step_repo.branch() == "main"
    assert "stepsite temporary stash" in git(step_repo.path, "stash", "list")


def test_restore_command_failure_is_a_warning(step_repo: StepRepo) -> None:
    guard = WorkspaceGuard(Git(step_repo.path), restore_command=("git", "no-such-subcommand"))
    snapshot = guard.enter()
    warnings = guard.exit(snapshot)
    assert len(warnings) == 1
    assert warnings[0].startswith("Dependency re-install failed")


def test_enter_outside_repository_is_fatal(tmp_path) -> None:
    with pytest.raises(WorkspaceError):
        WorkspaceGuard(Git(tmp_path)).enter()


def test_unverifiable_stash_points_at_recovery(step_repo: StepRepo, monkeypatch: pytest.MonkeyPatch) -> None:
    step_repo.write("VERSION", "local edit\n")
    real_stash_top = Git.stash_top
    calls = {"n": 0}

    def stash_top(self):
        calls["n"] += 1
        if calls["n"] == 2:
            raise CommandError(["git", "rev-parse", "--verify", "refs/stash"], 128, "fatal: cannot lock ref")
        return real_stash_top(self)

    monkeypatch.setattr(Git, "stash_top", stash_top)
    guard = WorkspaceGuard(Git(step_repo.path))

    with pytest.raises(WorkspaceError) as exc:
        guard.enter()

    assert "git stash list" in str(exc.value)
    assert not guard.active
    # The push itself went through, so the edit is recoverable from the stash.
    assert "stepsite temporary stash" in git(step_repo.path, "stash", "list")
