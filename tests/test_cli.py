from __future__ import annotations

import json
from pathlib import Path

import pytest

from stepsite.cli import main

from conftest import VITE_CONFIG, StepRepo


def test_build_command_succeeds(step_repo: StepRepo, tmp_path: Path) -> None:
    out = tmp_path / "site"
    rc = main(["build", "--root", str(step_repo.path), "--out", str(out)])

    assert rc == 0
    steps = json.loads((out / "steps.json").read_text())
    assert [s["tag"] for s in steps] == ["step-1", "step-2", "step-3"]
    assert step_repo.branch() == "main"


def test_build_command_reports_failing_step(failing_step_repo: StepRepo, caplog: pytest.LogCaptureFixture) -> None:
    rc = main(["build", "--root", str(failing_step_repo.path)])

    assert rc == 1
    assert "step 'build' failed for step-2" in caplog.text
    assert failing_step_repo.branch() == "main"


def test_steps_command_lists_in_site_order(step_repo: StepRepo, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["steps", "--root", str(step_repo.path)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "step-1\tStep 01: Initial feed",
        "step-2\tStep 02: Add comments",
        "step-3\tStep 03",
    ]


def test_bad_config_exits_nonzero(tmp_path: Path) -> None:
    (tmp_path / "stepsite.yaml").write_text("- not a mapping\n", encoding="utf-8")
    assert main(["build", "--root", str(tmp_path)]) == 1


def test_undecodable_build_config_is_reported_as_build_failure(
    step_repo: StepRepo, caplog: pytest.LogCaptureFixture
) -> None:
    config = step_repo.path / "vite.config.js"
    config.write_bytes(VITE_CONFIG.encode().replace(b"from 'vite'", b"from 'vite' // caf\xe9"))
    step_repo.commit("Latin-1 comment in the build config")
    step_repo.tag("step-4", "Latin-1 comment")
    step_repo.write("vite.config.js", VITE_CONFIG)
    step_repo.commit("Back to UTF-8")

    rc = main(["build", "--root", str(step_repo.path)])

    assert rc == 1
    assert "step 'build' failed for step-4" in caplog.text
    assert step_repo.branch() == "main"
    assert step_repo.read("vite.config.js") == VITE_CONFIG
