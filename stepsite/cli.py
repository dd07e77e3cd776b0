"""
cli.py

Responsibility: CLI entrypoint for stepsite.

Commands:
- `build`: discover step tags, build each one, write the multi-version site
- `steps`: list the discovered steps in site order without touching the checkout

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Build run and workspace restore: `orchestrator.py`
- Tag discovery: `discovery.py`
"""

from __future__ import annotations

import argparse
import logging
import sys

from stepsite.config import BuildConfig, load_config
from stepsite.discovery import discover
from stepsite.errors import RevisionBuildError, StepsiteError
from stepsite.git import Git
from stepsite.orchestrator import Orchestrator

logger = logging.getLogger("stepsite")

EXIT_INTERRUPTED = 130


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[stepsite] %(message)s",
        stream=sys.stderr,
    )


def _load(args: argparse.Namespace) -> BuildConfig:
    config = load_config(args.root, args.config)
    if getattr(args, "out", None):
        config = config.with_output_dir(args.out)
    return config


def _describe_error(error: StepsiteError) -> str:
    if isinstance(error, RevisionBuildError):
        return f"step '{error.step}' failed for {error.tag}: {error}"
    return str(error)


def build_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    try:
        report = Orchestrator(config).run()
    except KeyboardInterrupt:
        logger.error("Interrupted; workspace restored. Rerun from clean.")
        return EXIT_INTERRUPTED

    for warning in report.warnings:
        logger.warning("Warning: %s", warning)
    if report.error is not None:
        logger.error("Error: %s", _describe_error(report.error))
        logger.error("Output in %s is incomplete; rerun from clean.", config.output_dir)
        return 1

    logger.info("Built %d step(s) into %s", len(report.entries), config.output_dir)
    return 0


def steps_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    for revision in discover(Git(config.root), config.tag_pattern):
        print(f"{revision.tag}\t{revision.description}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stepsite", description="Build a multi-version static site from step-* git tags")
    p.add_argument("-v", "--verbose", action="store_true", help="Log subprocess output and state transitions")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Build every step tag and assemble the site")
    b.add_argument("--root", default=".", help="Repository root (default: current directory)")
    b.add_argument("--config", default=None, help="Config file (default: <root>/stepsite.yaml if present)")
    b.add_argument("--out", default=None, help="Output directory (overrides output_dir)")
    b.set_defaults(func=build_cmd)

    s = sub.add_parser("steps", help="List discovered steps in site order")
    s.add_argument("--root", default=".", help="Repository root (default: current directory)")
    s.add_argument("--config", default=None, help="Config file (default: <root>/stepsite.yaml if present)")
    s.set_defaults(func=steps_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(bool(args.verbose))
    try:
        return int(args.func(args))
    except StepsiteError as e:
        logger.error("Error: %s", _describe_error(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
