"""
docs.py

Responsibility: Turn a step's markdown notes and prompt into standalone HTML pages.

Sources are looked up by the revision's zero-padded id, e.g.
`docs/agent-notes/03.md` and `docs/prompts/03.md`, in the checked-out working
tree. Missing documentation is normal (not every step recorded a prompt), so
`render` never raises for it: a placeholder page is produced instead.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

import markdown

from stepsite.config import DocsConfig
from stepsite.discovery import Revision
from stepsite.errors import DocumentationMissing
from stepsite.renderer import render_document

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ("fenced_code", "tables")


class DocKind(enum.Enum):
    NOTES = "notes"
    PROMPT = "prompt"

    @property
    def title(self) -> str:
        return "Agent Notes" if self is DocKind.NOTES else "Prompt"

    @property
    def filename(self) -> str:
        return f"{self.value}.html"

    @property
    def fallback_markdown(self) -> str:
        if self is DocKind.NOTES:
            return "# Agent Notes\n\nNo agent notes available for this step."
        return "# Prompt\n\nNo prompt file available for this step."


@dataclass(frozen=True)
class RenderedDocument:
    kind: DocKind
    html: str
    fallback: bool


def markdown_to_html(text: str) -> str:
    return markdown.markdown(text, extensions=list(MARKDOWN_EXTENSIONS), output_format="html")


class DocumentRenderer:
    def __init__(self, root: str | Path, docs: DocsConfig) -> None:
        self._root = Path(root)
        self._dirs = {DocKind.NOTES: docs.notes, DocKind.PROMPT: docs.prompts}

    def source_path(self, revision: Revision, kind: DocKind) -> Path:
        return self._root / self._dirs[kind] / f"{revision.step_id}.md"

    def _load_source(self, revision: Revision, kind: DocKind) -> str:
        path = self.source_path(revision, kind)
        if not path.is_file():
            raise DocumentationMissing(f"{kind.title} not found for {revision.tag}: {path}")
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentationMissing(f"{kind.title} unreadable for {revision.tag}: {e}") from e

    def render(self, revision: Revision, kind: DocKind) -> RenderedDocument:
        title = f"{kind.title} - {revision.tag}"
        try:
            source = self._load_source(revision, kind)
        except DocumentationMissing as e:
            if kind is DocKind.NOTES:
                logger.warning("%s", e)
            else:
                logger.info("%s (this is okay)", e)
            html = render_document(title=title, body_html=markdown_to_html(kind.fallback_markdown))
            return RenderedDocument(kind=kind, html=html, fallback=True)

        logger.info("Rendered %s", kind.title.lower())
        return RenderedDocument(kind=kind, html=render_document(title=title, body_html=markdown_to_html(source)), fallback=False)
