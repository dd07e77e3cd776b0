"""
builder.py

Responsibility: Build one revision of the app into its slot of the output tree.

For each revision, in order:
1) discard tracked build leftovers, then check out the tag; a tag that would
   overwrite an untracked or ignored file on disk is refused
2) install dependencies
3) run the toolchain build with the base path pinned to a relative value
4) move the raw build output into `<out>/.<tag>.partial`
5) rename its `index.html` to `app.html` and write a shell wrapper in its place
6) render the notes and prompt documents
7) rename the staging directory to `<out>/<tag>`

Any failure aborts with a `RevisionBuildError` subclass and leaves no
finalized `<tag>/` directory behind.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from stepsite.config import BuildConfig
from stepsite.discovery import Revision
from stepsite.docs import DocKind, DocumentRenderer
from stepsite.errors import (
    ArtifactMissing,
    BuildInvocationFailed,
    CheckoutFailed,
    CommandError,
    DependencyInstallFailed,
)
from stepsite.git import run
from stepsite.renderer import render_shell_wrapper, write_text
from stepsite.workspace import WorkingTree

logger = logging.getLogger(__name__)

ENTRY_DOCUMENT = "index.html"
APP_DOCUMENT = "app.html"


@dataclass(frozen=True)
class BuildArtifact:
    revision: Revision
    root: Path
    index_path: Path
    app_path: Path
    notes_path: Path
    prompt_path: Path

    def documents(self) -> tuple[Path, ...]:
        return (self.index_path, self.app_path, self.notes_path, self.prompt_path)


@contextlib.contextmanager
def override_base_path(config_path: Path, *, anchor: str, base_path: str, tag: str = "") -> Iterator[None]:
    """
    Temporarily insert `base: '<base_path>',` after `anchor` in the toolchain config.

    The original bytes are written back on exit, whether or not the body raised.
    """
    if not config_path.is_file():
        raise BuildInvocationFailed(tag, f"Build config not found: {config_path}")
    try:
        original = config_path.read_bytes()
        text = original.decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise BuildInvocationFailed(tag, f"Cannot read {config_path.name}: {e}") from e
    if anchor not in text:
        raise BuildInvocationFailed(tag, f"Cannot pin base path: {anchor!r} not found in {config_path.name}")

    try:
        config_path.write_text(text.replace(anchor, f"{anchor}\n  base: '{base_path}',", 1), encoding="utf-8", newline="")
    except OSError as e:
        config_path.write_bytes(original)
        raise BuildInvocationFailed(tag, f"Cannot write {config_path.name}: {e}") from e
    try:
        yield
    finally:
        config_path.write_bytes(original)


class RevisionBuilder:
    def __init__(self, config: BuildConfig, docs: DocumentRenderer) -> None:
        self._config = config
        self._docs = docs

    def step_dir(self, revision: Revision) -> Path:
        return self._config.output_dir / revision.tag

    def staging_dir(self, revision: Revision) -> Path:
        return self._config.output_dir / f".{revision.tag}.partial"

    def build(self, revision: Revision, tree: WorkingTree) -> BuildArtifact:
        tree.require_active()
        logger.info("=== Building %s ===", revision.tag)
        staging = self.staging_dir(revision)
        try:
            self._checkout(revision, tree)
            self._install(revision, tree)
            self._invoke_build(revision, tree)
            self._relocate(revision, tree, staging)
            self._rewrite_entry(revision, staging)
            self._write_documents(revision, staging)
            return self._finalize(revision, staging)
        finally:
            if staging.exists():
                shutil.rmtree(staging)

    def _checkout(self, revision: Revision, tree: WorkingTree) -> None:
        logger.info("Checking out %s...", revision.tag)
        try:
            # Tracked edits at this point come from the previous build (e.g. a rewritten lockfile).
            tree.git.discard_tracked_changes()
            collisions = tree.git.incoming_collisions(revision.tag)
            if not collisions:
                tree.git.checkout(revision.tag)
        except CommandError as e:
            raise CheckoutFailed(revision.tag, f"Could not check out {revision.tag}: {e.tail() or e}") from e
        if collisions:
            raise CheckoutFailed(
                revision.tag,
                f"Checking out {revision.tag} would overwrite local files not tracked on the current branch: "
                + ", ".join(collisions),
            )

    def _install(self, revision: Revision, tree: WorkingTree) -> None:
        logger.info("Installing dependencies...")
        try:
            run(list(self._config.toolchain.install), cwd=tree.root)
        except CommandError as e:
            raise DependencyInstallFailed(revision.tag, f"Dependency install failed for {revision.tag}: {e.tail() or e}") from e

    def _invoke_build(self, revision: Revision, tree: WorkingTree) -> None:
        tc = self._config.toolchain
        raw_output = tree.root / tc.output_dir
        if raw_output.exists():
            # A stale directory would hide a toolchain that silently produced nothing.
            shutil.rmtree(raw_output)

        logger.info("Building with base path: %s", tc.base_path)
        with override_base_path(
            tree.root / tc.config_file,
            anchor=tc.config_anchor,
            base_path=tc.base_path,
            tag=revision.tag,
        ):
            try:
                run(list(tc.build), cwd=tree.root)
            except CommandError as e:
                raise BuildInvocationFailed(revision.tag, f"Build failed for {revision.tag}: {e.tail() or e}") from e

    def _relocate(self, revision: Revision, tree: WorkingTree, staging: Path) -> None:
        raw_output = tree.root / self._config.toolchain.output_dir
        if not raw_output.is_dir():
            raise ArtifactMissing(revision.tag, f"Build failed for {revision.tag}: {raw_output.name} directory not found")
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(raw_output), str(staging))
        except OSError as e:
            raise ArtifactMissing(revision.tag, f"Cannot move build output for {revision.tag}: {e}") from e
        logger.info("Moved build output to %s", staging)

    def _rewrite_entry(self, revision: Revision, staging: Path) -> None:
        entry = staging / ENTRY_DOCUMENT
        if not entry.is_file():
            raise ArtifactMissing(revision.tag, f"Build for {revision.tag} produced no {ENTRY_DOCUMENT}")
        try:
            entry.rename(staging / APP_DOCUMENT)
            write_text(entry, render_shell_wrapper(tag=revision.tag, site_title=self._config.site_title))
        except OSError as e:
            raise ArtifactMissing(revision.tag, f"Cannot write shell wrapper for {revision.tag}: {e}") from e
        logger.info("Created shell wrapper %s and moved app to %s", ENTRY_DOCUMENT, APP_DOCUMENT)

    def _write_documents(self, revision: Revision, staging: Path) -> None:
        for kind in DocKind:
            doc = self._docs.render(revision, kind)
            try:
                write_text(staging / kind.filename, doc.html)
            except OSError as e:
                raise ArtifactMissing(revision.tag, f"Cannot write {kind.filename} for {revision.tag}: {e}") from e

    def _finalize(self, revision: Revision, staging: Path) -> BuildArtifact:
        final = self.step_dir(revision)
        try:
            if final.exists():
                shutil.rmtree(final)
            staging.rename(final)
        except OSError as e:
            raise ArtifactMissing(revision.tag, f"Cannot move {staging.name} into place: {e}") from e
        return BuildArtifact(
            revision=revision,
            root=final,
            index_path=final / ENTRY_DOCUMENT,
            app_path=final / APP_DOCUMENT,
            notes_path=final / DocKind.NOTES.filename,
            prompt_path=final / DocKind.PROMPT.filename,
        )
