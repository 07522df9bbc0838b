"""Unit tests for the ``config`` command and command-line config overrides."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from conftest import node, write_pipeline
from tdd_dag.domain.models import Pipeline
from tdd_dag.main import ExitCode, cli_entrypoint


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")
    for name in [name for name in os.environ if name.startswith("TDD_DAG_")]:
        monkeypatch.delenv(name)


def test_config_json_reports_defaults(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["config", "--project-root", str(tmp_path), "--json"]) == 0

    effective = json.loads(capsys.readouterr().out)
    assert effective["paths"]["runtime_root"] == ".tdd_dag/.runtime"
    assert effective["observability"]["log_level"] == "INFO"


def test_flags_override_file_values(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "tdd_dag.toml").write_text(
        '[paths]\nruntime_root = "from-file"\n', encoding="utf-8"
    )

    exit_code = cli_entrypoint(
        [
            "config",
            "--project-root",
            str(tmp_path),
            "--runtime-root",
            "from-flag",
            "--verbose",
            "--json",
        ]
    )

    assert exit_code == 0
    effective = json.loads(capsys.readouterr().out)
    assert effective["paths"]["runtime_root"] == "from-flag"
    assert effective["observability"]["log_level"] == "DEBUG"


def test_config_text_names_the_config_file(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli_entrypoint(["config", "--project-root", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert "(defaults)" in out
    assert '"runtime_root": ".tdd_dag/.runtime"' in out

    (tmp_path / "tdd_dag.toml").write_text("[paths]\n", encoding="utf-8")
    assert cli_entrypoint(["config", "--project-root", str(tmp_path)]) == 0
    assert str((tmp_path / "tdd_dag.toml").resolve()) in capsys.readouterr().out


def test_unsafe_runtime_root_flag_is_a_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = cli_entrypoint(
        ["config", "--project-root", str(tmp_path), "--runtime-root", "../outside"]
    )

    assert exit_code == ExitCode.USAGE_ERROR
    assert capsys.readouterr().err.startswith("ERROR: ")


def test_runtime_root_flag_moves_run_evidence(tmp_path: Path) -> None:
    pipeline_path = write_pipeline(
        tmp_path / "custom.pipeline.yml",
        Pipeline("custom", (node("only", run="echo hi"),)),
    )

    exit_code = cli_entrypoint(
        [
            "run",
            str(pipeline_path),
            "--project-root",
            str(tmp_path),
            "--runtime-root",
            "build/rt",
        ]
    )

    assert exit_code == 0
    assert (tmp_path / "build" / "rt" / "dag" / "state" / "last-run.json").is_file()
    assert not (tmp_path / ".tdd_dag" / ".runtime").exists()
