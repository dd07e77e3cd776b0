"""
stepsite package

Builds every `step-<N>` tag of a project into one static site with a shared
navigation shell.

Key responsibilities are split across modules:
- `discovery.py`: enumerate step tags as ordered revisions
- `workspace.py`: stash/restore the caller's checkout around a run
- `builder.py`: check out, install, build and lay out one revision
- `docs.py`: render per-step notes and prompts (with fallbacks)
- `manifest.py`: write `steps.json` and the static top-level pages
- `orchestrator.py`: run the whole pipeline; `cli.py`: command line
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
