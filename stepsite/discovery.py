"""
discovery.py

Responsibility: Enumerate the `step-<N>` tags of a repository as ordered `Revision`s.

Ordering is by the numeric ordinal embedded in the tag, ties broken by the tag
string, independent of the order git lists tags in. A tag without a
recognizable ordinal sorts as ordinal 0.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from stepsite.errors import CommandError, DiscoveryError, NoRevisionsFound
from stepsite.git import Git

logger = logging.getLogger(__name__)

_ORDINAL_RE = re.compile(r"step-(\d+)")


@dataclass(frozen=True)
class Revision:
    """One buildable snapshot of the app, identified by its tag."""

    tag: str
    ordinal: int
    step_id: str
    annotation: str = ""

    @classmethod
    def from_tag(cls, tag: str, annotation: str = "") -> Revision:
        return cls(tag=tag, ordinal=parse_ordinal(tag), step_id=step_id(tag), annotation=annotation.strip())

    @property
    def description(self) -> str:
        if self.annotation:
            return f"Step {self.step_id}: {self.annotation}"
        return f"Step {self.step_id}"

    def sort_key(self) -> tuple[int, str]:
        return (self.ordinal, self.tag)


def parse_ordinal(tag: str) -> int:
    m = _ORDINAL_RE.search(tag)
    return int(m.group(1)) if m else 0


def step_id(tag: str) -> str:
    """Zero-padded display id, e.g. `step-3` -> `03`; `00` when the tag has no number."""
    m = _ORDINAL_RE.search(tag)
    return m.group(1).zfill(2) if m else "00"


def _annotation(git: Git, tag: str) -> str:
    try:
        return git.tag_subject(tag)
    except CommandError as e:
        logger.debug("No annotation for %s: %s", tag, e)
        return ""


def discover(git: Git, pattern: str = "step-*") -> list[Revision]:
    """
    Return every tag matching `pattern` as a `Revision`, in presentation order.

    Raises NoRevisionsFound when nothing matches.
    """
    try:
        tags = git.list_tags(pattern)
    except CommandError as e:
        raise DiscoveryError(f"Could not list tags matching {pattern!r}: {e.tail() or e}") from e
    if not tags:
        raise NoRevisionsFound(f"No {pattern} tags found")

    revisions = sorted(
        (Revision.from_tag(tag, _annotation(git, tag)) for tag in set(tags)),
        key=Revision.sort_key,
    )
    logger.info("Found %d steps: %s", len(revisions), ", ".join(r.tag for r in revisions))
    return revisions
