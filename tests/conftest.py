"""
Shared pytest fixtures: throwaway git repositories shaped like the feed demo.

The app toolchain is replaced by two small Python scripts committed into the
repository (`install.py`, `build.py`), so a full run needs only git and the
current interpreter.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest
import yaml

GITIGNORE = "dist/\nnode_modules/\ndist-pages/\n"

VITE_CONFIG = """\
import { defineConfig } from 'vite'

export default defineConfig({
  plugins: [],
})
"""

INSTALL_SCRIPT = """\
from pathlib import Path

Path("node_modules").mkdir(exist_ok=True)
Path("node_modules/.installed").write_text("ok")
"""

# Refuses to build unless the base path was pinned, and fails on demand.
BUILD_SCRIPT = """\
import sys
from pathlib import Path

if "base: './'," not in Path("vite.config.js").read_text():
    sys.exit("base path not pinned")
if Path("FAIL_BUILD").exists():
    sys.exit("toolchain exploded")
out = Path("dist")
(out / "assets").mkdir(parents=True, exist_ok=True)
version = Path("VERSION").read_text().strip()
(out / "index.html").write_text(f"<html><body>feed v{version}</body></html>")
(out / "assets" / "app.js").write_text(f"console.log('v{version}')")
"""


def git(repo: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
    )
    return proc.stdout.strip()


class StepRepo:
    """A git repository with helpers for committing files and tagging steps."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def write(self, rel: str, content: str) -> None:
        p = self.path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")

    def remove(self, rel: str) -> None:
        (self.path / rel).unlink()

    def commit(self, message: str) -> str:
        git(self.path, "add", "-A")
        if message:
            git(self.path, "commit", "-q", "-m", message)
        else:
            git(self.path, "commit", "-q", "--allow-empty-message", "-m", "")
        return git(self.path, "rev-parse", "HEAD")

    def tag(self, name: str, message: str | None = None) -> None:
        if message is None:
            git(self.path, "tag", name)
        else:
            git(self.path, "tag", "-a", name, "-m", message)

    def branch(self) -> str:
        return git(self.path, "rev-parse", "--abbrev-ref", "HEAD")

    def status(self) -> str:
        return git(self.path, "status", "--porcelain")

    def read(self, rel: str) -> str:
        return (self.path / rel).read_text(encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_git(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    """Deterministic identity and no user/system git config."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "stepsite-tests")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "stepsite-tests@example.invalid")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "stepsite-tests")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "stepsite-tests@example.invalid")
    monkeypatch.setenv("GIT_AUTHOR_DATE", "2000-01-01T00:00:00Z")
    monkeypatch.setenv("GIT_COMMITTER_DATE", "2000-01-01T00:00:00Z")


def make_step_repo(path: Path, *, fail_step: int | None = None) -> StepRepo:
    """
    Build a repo with three step tags and a newer `main`:

    - step-1 "Initial feed": notes + prompt for 01
    - step-2 "Add comments": notes for 02 only
    - step-3: lightweight tag on a commit with an empty message, no docs

    With `fail_step`, that step's commit carries a FAIL_BUILD marker.
    """
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    repo = StepRepo(path)

    repo.write(".gitignore", GITIGNORE)
    repo.write("vite.config.js", VITE_CONFIG)
    repo.write("install.py", INSTALL_SCRIPT)
    repo.write("build.py", BUILD_SCRIPT)
    repo.write("pages/index.html", "<html><body>Landing</body></html>\n")
    repo.write("pages/about.html", "<html><body>About</body></html>\n")
    repo.write("pages/shell/shell.js", "// shell\n")
    repo.write("pages/shell/shell.css", "body { margin: 0; }\n")
    repo.write(
        "stepsite.yaml",
        yaml.safe_dump(
            {
                "output_dir": "dist-pages",
                "site_title": "Feed Steps",
                "toolchain": {
                    "install": [sys.executable, "install.py"],
                    "build": [sys.executable, "build.py"],
                    "reinstall_on_restore": False,
                },
            }
        ),
    )

    steps = [
        (1, "Initial feed", True),
        (2, "Add comments", True),
        (3, "", False),
    ]
    for number, message, annotated in steps:
        repo.write("VERSION", f"{number}\n")
        if number == 1:
            repo.write("docs/agent-notes/01.md", "# Notes 01\n\nBuilt the **feed**.\n")
            repo.write("docs/prompts/01.md", "# Prompt 01\n\n```\nmake a feed\n```\n")
        if number == 2:
            repo.write("docs/agent-notes/02.md", "# Notes 02\n\n| a | b |\n|---|---|\n| 1 | 2 |\n")
        if fail_step == number:
            repo.write("FAIL_BUILD", "1\n")
        elif (path / "FAIL_BUILD").exists():
            repo.remove("FAIL_BUILD")
        repo.commit(message)
        repo.tag(f"step-{number}", message if annotated else None)

    repo.write("VERSION", "dev\n")
    repo.write("pages/about.html", "<html><body>About (current)</body></html>\n")
    repo.commit("Work after step 3")
    return repo


@pytest.fixture
def step_repo(tmp_path: Path) -> StepRepo:
    return make_step_repo(tmp_path / "repo")


@pytest.fixture
def failing_step_repo(tmp_path: Path) -> StepRepo:
    return make_step_repo(tmp_path / "repo", fail_step=2)
