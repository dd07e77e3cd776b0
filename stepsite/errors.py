"""
errors.py

Responsibility: The exception taxonomy shared by every stepsite module.

Fatal errors abort the run (after the workspace has been restored). The only
non-fatal member is `DocumentationMissing`, which the metadata renderer always
resolves to a fallback document.
"""

from __future__ import annotations


class StepsiteError(RuntimeError):
    pass


class ConfigError(StepsiteError, ValueError):
    pass


class TemplateMissing(StepsiteError):
    pass


class CommandError(StepsiteError):
    """A subprocess exited non-zero. Keeps the command and its combined output."""

    def __init__(self, cmd: list[str], returncode: int, output: str = "") -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command failed ({returncode}): {' '.join(cmd)}")

    def tail(self, lines: int = 20) -> str:
        return "\n".join(self.output.strip().splitlines()[-lines:])


class DiscoveryError(StepsiteError):
    pass


class NoRevisionsFound(DiscoveryError):
    pass


class WorkspaceError(StepsiteError):
    pass


class RevisionBuildError(StepsiteError):
    """Base for fatal per-revision failures; `step` names the aborting stage."""

    step = "build"

    def __init__(self, tag: str, message: str) -> None:
        self.tag = tag
        super().__init__(message)


class CheckoutFailed(RevisionBuildError):
    step = "checkout"


class DependencyInstallFailed(RevisionBuildError):
    step = "install"


class BuildInvocationFailed(RevisionBuildError):
    step = "build"


class ArtifactMissing(RevisionBuildError):
    step = "relocate"


class DocumentationMissing(StepsiteError):
    pass
