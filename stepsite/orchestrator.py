"""
orchestrator.py

Responsibility: Drive a full site build from discovery to the written manifest.

    IDLE -> DISCOVERING -> GUARD_ENTERED -> BUILDING -> GUARD_EXITED -> ASSEMBLING -> DONE
                 |               |              |
                 +---------------+--------------+--> ABORTED

The per-revision loop and the workspace restore are two explicit phases:
`_build_all` folds over the revisions and stops at the first fatal error,
returning that error as a value; `WorkspaceGuard.exit` then runs
unconditionally in a `finally`. GUARD_EXITED is therefore reached on every
path once the guard was entered, including operator interrupts.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path

from stepsite.builder import BuildArtifact, RevisionBuilder
from stepsite.config import BuildConfig
from stepsite.discovery import Revision, discover
from stepsite.docs import DocumentRenderer
from stepsite.errors import StepsiteError
from stepsite.git import Git
from stepsite.manifest import Manifest, ManifestEntry, SiteTemplates, assemble, prepare_output
from stepsite.workspace import WorkingTree, WorkspaceGuard

logger = logging.getLogger(__name__)


class State(enum.Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    GUARD_ENTERED = "guard-entered"
    BUILDING = "building"
    GUARD_EXITED = "guard-exited"
    ASSEMBLING = "assembling"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of the build phase: the artifacts built so far and the error that stopped it, if any."""

    artifacts: tuple[BuildArtifact, ...]
    error: StepsiteError | None = None


@dataclass
class BuildReport:
    state: State
    entries: tuple[ManifestEntry, ...] = ()
    warnings: list[str] = field(default_factory=list)
    error: StepsiteError | None = None
    manifest_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.state is State.DONE and self.error is None


class Orchestrator:
    def __init__(self, config: BuildConfig, *, git: Git | None = None) -> None:
        self.config = config
        self.git = git or Git(config.root)
        self.state = State.IDLE
        self.history: list[State] = [State.IDLE]
        tc = config.toolchain
        self.guard = WorkspaceGuard(self.git, restore_command=tc.install if tc.reinstall_on_restore else None)
        self.builder = RevisionBuilder(config, DocumentRenderer(config.root, config.docs))

    def _transition(self, state: State) -> None:
        logger.debug("state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def run(self) -> BuildReport:
        """
        Build every step and assemble the site. Fatal errors are returned in the
        report rather than raised; KeyboardInterrupt propagates after the
        workspace has been restored.
        """
        logger.info("Starting site build in %s", self.config.root)
        report = BuildReport(state=self.state)
        try:
            # Captured before any checkout so they reflect the invoking branch.
            templates = SiteTemplates.capture(self.config.pages_dir)
            prepare_output(self.config.output_dir, self.config.root, templates)

            self._transition(State.DISCOVERING)
            revisions = discover(self.git, self.config.tag_pattern)

            snapshot = self.guard.enter()
            self._transition(State.GUARD_ENTERED)
        except StepsiteError as e:
            return self._abort(report, e)

        try:
            outcome = self._build_all(revisions, snapshot.tree)
        except BaseException:
            self._transition(State.ABORTED)
            raise
        finally:
            report.warnings.extend(self.guard.exit(snapshot))
            self._transition(State.GUARD_EXITED)

        if outcome.error is not None:
            return self._abort(report, outcome.error)

        self._transition(State.ASSEMBLING)
        manifest = Manifest()
        for artifact in outcome.artifacts:
            manifest.append(ManifestEntry.from_artifact(artifact, self.config.output_dir))
        try:
            report.manifest_path = assemble(self.config.output_dir, manifest, templates)
        except StepsiteError as e:
            return self._abort(report, e)

        report.entries = manifest.entries
        self._transition(State.DONE)
        report.state = self.state
        logger.info("Build complete! Output: %s", self.config.output_dir)
        return report

    def _build_all(self, revisions: list[Revision], tree: WorkingTree) -> BuildOutcome:
        built: list[BuildArtifact] = []
        for revision in revisions:
            self._transition(State.BUILDING)
            try:
                built.append(self.builder.build(revision, tree))
            except StepsiteError as e:
                return BuildOutcome(artifacts=tuple(built), error=e)
        return BuildOutcome(artifacts=tuple(built))

    def _abort(self, report: BuildReport, error: StepsiteError) -> BuildReport:
        self._transition(State.ABORTED)
        report.state = self.state
        report.error = error
        return report
