"""
renderer.py

Responsibility: Render the HTML pages stepsite generates and copy static asset trees.

Rules:
- Pages are rendered from the jinja2 templates below with StrictUndefined, so a
  missing context value fails loudly instead of producing an empty page.
- Generated pages are self-contained: inline styles, no external stylesheet
  except the shared shell bundle the wrapper is meant to load.
- Asset directories are walked in sorted order and copied byte-for-byte so the
  output tree is deterministic.

This module intentionally does NOT know about git, revisions, or the CLI.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, StrictUndefined

from stepsite.errors import StepsiteError


class RenderError(StepsiteError):
    pass


@dataclass(frozen=True)
class CopyResult:
    copied_files: int


SHELL_WRAPPER_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ tag }} - {{ site_title }}</title>
  <link rel="stylesheet" href="{{ shell_prefix }}/shell.css">
</head>
<body>
  <script src="{{ shell_prefix }}/shell.js"></script>
</body>
</html>
"""

DOCUMENT_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <style>
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
      line-height: 1.6;
      max-width: 800px;
      margin: 0 auto;
      padding: 2rem;
      color: #0f172a;
      background: #ffffff;
    }
    h1, h2, h3, h4, h5, h6 { margin-top: 2rem; margin-bottom: 1rem; line-height: 1.3; }
    h1 { font-size: 2rem; }
    h2 { font-size: 1.5rem; }
    h3 { font-size: 1.25rem; }
    code { background: #eef2ff; padding: 0.2em 0.4em; border-radius: 3px; font-size: 0.9em; }
    pre { background: #eef2ff; padding: 1rem; border-radius: 5px; overflow-x: auto; }
    pre code { background: none; padding: 0; }
    table { border-collapse: collapse; }
    th, td { border: 1px solid #cbd5e1; padding: 0.4rem 0.75rem; }
    a { color: #1d4ed8; text-decoration: none; }
    a:hover { text-decoration: underline; }
    ul, ol { margin: 1rem 0; padding-left: 2rem; }
  </style>
</head>
<body>
{{ body | safe }}
</body>
</html>
"""


def _environment() -> Environment:
    return Environment(
        autoescape=True,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


_ENV = _environment()


def _render(source: str, **context: object) -> str:
    try:
        return _ENV.from_string(source).render(**context)
    except Exception as e:  # noqa: BLE001 - surface as RenderError
        raise RenderError(f"Failed rendering page: {e}") from e


def render_shell_wrapper(*, tag: str, site_title: str, shell_prefix: str = "../shell") -> str:
    """
    The entry document a browser loads for one step: it only pulls in the shell,
    which then frames `app.html` and the documentation pages.
    """
    return _render(SHELL_WRAPPER_TEMPLATE, tag=tag, site_title=site_title, shell_prefix=shell_prefix)


def render_document(*, title: str, body_html: str) -> str:
    return _render(DOCUMENT_TEMPLATE, title=title, body=body_html)


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline="\n")


def _iter_files(src_dir: Path) -> list[Path]:
    """
    Return all files under src_dir, in deterministic lexicographic order
    (relative path ordering).
    """
    files: list[Path] = []
    for root, _dirs, filenames in os.walk(src_dir):
        root_path = Path(root)
        for name in filenames:
            files.append(root_path / name)
    files.sort(key=lambda p: str(p.relative_to(src_dir)).replace(os.sep, "/"))
    return files


def copy_tree(*, src_dir: str | Path, destination_dir: str | Path) -> CopyResult:
    """
    Copy a directory tree into destination_dir byte-for-byte, preserving file metadata.
    """
    src = Path(src_dir).resolve()
    dst = Path(destination_dir).resolve()

    if not src.is_dir():
        raise RenderError(f"Asset directory not found: {src}")

    copied = 0
    for src_path in _iter_files(src):
        dst_path = dst / src_path.relative_to(src)
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dst_path)
        copied += 1
    return CopyResult(copied_files=copied)
