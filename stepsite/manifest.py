"""
manifest.py

Responsibility: Capture the site-level templates, prepare the output tree, and
write `steps.json` plus the static top-level pages once every step is built.

Templates are captured before any revision is checked out, so the landing and
about pages always come from the branch that invoked the build.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from stepsite.builder import BuildArtifact
from stepsite.errors import ArtifactMissing, ConfigError, TemplateMissing
from stepsite.renderer import copy_tree, write_text

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "steps.json"


@dataclass(frozen=True)
class ManifestEntry:
    tag: str
    step_number: int
    description: str
    path: str
    app_path: str
    notes_path: str
    prompt_path: str

    @classmethod
    def from_artifact(cls, artifact: BuildArtifact, out_dir: Path) -> ManifestEntry:
        def rel(p: Path) -> str:
            return p.relative_to(out_dir).as_posix()

        rev = artifact.revision
        return cls(
            tag=rev.tag,
            step_number=rev.ordinal,
            description=rev.description,
            path=f"{rel(artifact.root)}/",
            app_path=rel(artifact.app_path),
            notes_path=rel(artifact.notes_path),
            prompt_path=rel(artifact.prompt_path),
        )

    def paths(self) -> tuple[str, ...]:
        return (self.path, self.app_path, self.notes_path, self.prompt_path)

    def to_dict(self) -> dict[str, Any]:
        # Key names are what the shell reads at runtime.
        return {
            "tag": self.tag,
            "stepNumber": self.step_number,
            "description": self.description,
            "path": self.path,
            "appPath": self.app_path,
            "notesPath": self.notes_path,
            "promptPath": self.prompt_path,
        }


class Manifest:
    """Append-only, ordered list of entries; tags are unique."""

    def __init__(self) -> None:
        self._entries: list[ManifestEntry] = []

    def append(self, entry: ManifestEntry) -> None:
        if any(e.tag == entry.tag for e in self._entries):
            raise ValueError(f"Duplicate manifest entry for {entry.tag}")
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[ManifestEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def to_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2, ensure_ascii=False) + "\n"


@dataclass(frozen=True)
class SiteTemplates:
    index_html: bytes
    about_html: bytes
    shell_dir: Path | None

    @classmethod
    def capture(cls, pages_dir: Path) -> SiteTemplates:
        """
        Read the landing/about pages into memory. Must run before any checkout.
        """
        texts: dict[str, bytes] = {}
        for name in ("index.html", "about.html"):
            path = pages_dir / name
            if not path.is_file():
                raise TemplateMissing(f"Site template not found: {path}")
            texts[name] = path.read_bytes()
        shell = pages_dir / "shell"
        return cls(index_html=texts["index.html"], about_html=texts["about.html"], shell_dir=shell if shell.is_dir() else None)


def prepare_output(out_dir: Path, root: Path, templates: SiteTemplates) -> None:
    """
    Start from an empty output directory and copy the shell assets into it.
    """
    out = out_dir.resolve()
    repo = root.resolve()
    if out == repo or out in repo.parents:
        raise ConfigError(f"Output directory must not contain the repository: {out}")

    if out.exists():
        logger.info("Cleaning %s directory...", out.name)
        shutil.rmtree(out)
    out.mkdir(parents=True)

    if templates.shell_dir is not None:
        result = copy_tree(src_dir=templates.shell_dir, destination_dir=out / "shell")
        logger.info("Copied %d shell asset(s)", result.copied_files)
    else:
        (out / "shell").mkdir()
        logger.warning("No shell assets found; %s/shell is empty", out.name)


def assemble(out_dir: Path, manifest: Manifest, templates: SiteTemplates) -> Path:
    """
    Write `steps.json`, the landing page, the about page and `.nojekyll`.
    """
    for entry in manifest.entries:
        for rel in entry.paths():
            if not (out_dir / rel).exists():
                raise ArtifactMissing(entry.tag, f"Manifest entry {entry.tag} references missing path: {rel}")

    logger.info("Generating %s...", MANIFEST_FILENAME)
    manifest_path = out_dir / MANIFEST_FILENAME
    write_text(manifest_path, manifest.to_json())

    logger.info("Generating landing and about pages...")
    (out_dir / "index.html").write_bytes(templates.index_html)
    about = out_dir / "about"
    about.mkdir(parents=True, exist_ok=True)
    (about / "index.html").write_bytes(templates.about_html)

    # Tells GitHub Pages to skip Jekyll processing.
    write_text(out_dir / ".nojekyll", "")
    return manifest_path
