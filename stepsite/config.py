"""
config.py

Responsibility: Load and validate the optional `stepsite.yaml` into a typed, frozen model.

Every key is optional; the defaults describe an npm + Vite project laid out like
the feed demo:

    output_dir: dist-pages
    pages_dir: pages
    tag_pattern: "step-*"
    site_title: "GenAI Incremental Localization Experiment (Copilot)"
    docs:
      notes: docs/agent-notes
      prompts: docs/prompts
    toolchain:
      install: npm install
      build: npm run build
      output_dir: dist
      config_file: vite.config.js
      config_anchor: "export default defineConfig({"
      base_path: "./"
      reinstall_on_restore: true

The orchestrator and CLI treat the parsed result as the single source of truth.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from stepsite.errors import ConfigError

CONFIG_FILENAME = "stepsite.yaml"


@dataclass(frozen=True)
class DocsConfig:
    """Where per-step documentation lives, relative to the repository root."""

    notes: str = "docs/agent-notes"
    prompts: str = "docs/prompts"


@dataclass(frozen=True)
class ToolchainConfig:
    """How a single revision of the app is installed and built."""

    install: tuple[str, ...] = ("npm", "install")
    build: tuple[str, ...] = ("npm", "run", "build")
    output_dir: str = "dist"
    config_file: str = "vite.config.js"
    config_anchor: str = "export default defineConfig({"
    base_path: str = "./"
    reinstall_on_restore: bool = True


@dataclass(frozen=True)
class BuildConfig:
    root: Path
    output_dir: Path
    pages_dir: Path
    tag_pattern: str = "step-*"
    site_title: str = "GenAI Incremental Localization Experiment (Copilot)"
    docs: DocsConfig = field(default_factory=DocsConfig)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)

    def __post_init__(self) -> None:
        # The toolchain output is deleted before every build and moved away after it.
        raw_output = (self.root / self.toolchain.output_dir).resolve()
        if self.output_dir == raw_output or raw_output in self.output_dir.parents:
            raise ConfigError(
                f"Output directory {self.output_dir} overlaps the toolchain output `{self.toolchain.output_dir}`; "
                "choose a directory outside it."
            )

    def with_output_dir(self, output_dir: str | Path) -> BuildConfig:
        return replace(self, output_dir=_resolve(self.root, output_dir))


def _resolve(root: Path, value: str | Path) -> Path:
    p = Path(value)
    return (p if p.is_absolute() else root / p).resolve()


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be an object/mapping when provided.")
    return raw


def _command(raw: Any, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Accept a command as either a list of arguments or a shell-style string.
    """
    if raw is None:
        return default
    if isinstance(raw, str):
        parts = shlex.split(raw)
    elif isinstance(raw, list) and all(isinstance(x, (str, int, float)) for x in raw):
        parts = [str(x) for x in raw]
    else:
        raise ConfigError(f"`toolchain.{key}` must be a string or a list of strings.")
    if not parts:
        raise ConfigError(f"`toolchain.{key}` must not be empty.")
    return tuple(parts)


def _string(data: dict[str, Any], key: str, default: str, *, prefix: str = "") -> str:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, (str, int, float)):
        raise ConfigError(f"`{prefix}{key}` must be a string.")
    value = str(raw).strip()
    if not value:
        raise ConfigError(f"`{prefix}{key}` must not be empty.")
    return value


def _flag(data: dict[str, Any], key: str, default: bool, *, prefix: str = "") -> bool:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ConfigError(f"`{prefix}{key}` must be true or false.")
    return raw


def load_config(root: str | Path, config_path: str | Path | None = None) -> BuildConfig:
    """
    Build a `BuildConfig` for the repository at `root`.

    When `config_path` is None, `<root>/stepsite.yaml` is used if it exists and
    defaults apply otherwise. An explicitly given path must exist.
    """
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise ConfigError(f"Repository root does not exist: {root_path}")

    if config_path is None:
        path = root_path / CONFIG_FILENAME
        data: dict[str, Any] = _read_yaml(path) if path.exists() else {}
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file does not exist: {path}")
        data = _read_yaml(path)

    docs_raw = _mapping(data, "docs")
    tc_raw = _mapping(data, "toolchain")
    tc_default = ToolchainConfig()

    toolchain = ToolchainConfig(
        install=_command(tc_raw.get("install"), "install", tc_default.install),
        build=_command(tc_raw.get("build"), "build", tc_default.build),
        output_dir=_string(tc_raw, "output_dir", tc_default.output_dir, prefix="toolchain."),
        config_file=_string(tc_raw, "config_file", tc_default.config_file, prefix="toolchain."),
        config_anchor=_string(tc_raw, "config_anchor", tc_default.config_anchor, prefix="toolchain."),
        base_path=_string(tc_raw, "base_path", tc_default.base_path, prefix="toolchain."),
        reinstall_on_restore=_flag(tc_raw, "reinstall_on_restore", tc_default.reinstall_on_restore, prefix="toolchain."),
    )
    docs = DocsConfig(
        notes=_string(docs_raw, "notes", DocsConfig.notes, prefix="docs."),
        prompts=_string(docs_raw, "prompts", DocsConfig.prompts, prefix="docs."),
    )

    return BuildConfig(
        root=root_path,
        output_dir=_resolve(root_path, _string(data, "output_dir", "dist-pages")),
        pages_dir=_resolve(root_path, _string(data, "pages_dir", "pages")),
        tag_pattern=_string(data, "tag_pattern", "step-*"),
        site_title=_string(data, "site_title", BuildConfig.site_title),
        docs=docs,
        toolchain=toolchain,
    )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {path}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must be a mapping/object at the top level.")
    return data
