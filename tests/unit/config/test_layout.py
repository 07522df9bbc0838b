"""Unit tests for runtime layout resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from tdd_dag.config import RuntimeLayout, default_config, project_root_from_pipeline
from tdd_dag.domain.errors import UsageError


def test_layout_derives_runtime_locations(tmp_path: Path) -> None:
    layout = RuntimeLayout.from_config(default_config(), tmp_path)
    runtime = tmp_path / ".tdd_dag" / ".runtime"

    assert layout.runtime_root == runtime
    assert layout.scenario_source_dir == tmp_path / ".tdd_dag" / "dag" / "scenarios"
    assert layout.runtime_scenario_dir == runtime / "dag" / "scenarios"
    assert layout.manifest_path == runtime / "dag" / "scenarios" / ".compiled-manifest.tsv"
    assert layout.default_pipeline_path == runtime / "dag" / "pipelines" / "default.pipeline.yml"
    assert layout.evidence_root == runtime / "evidence" / "dag"
    assert layout.state_file == runtime / "dag" / "state" / "last-run.json"
    assert layout.log_dir == runtime / "logs"


def test_absolute_source_dir_is_kept(tmp_path: Path) -> None:
    config = default_config()
    config["paths"]["scenario_source_dir"] = str(tmp_path / "elsewhere")

    layout = RuntimeLayout.from_config(config, tmp_path / "project")

    assert layout.scenario_source_dir == tmp_path / "elsewhere"


def test_unsafe_runtime_root_is_a_usage_error(tmp_path: Path) -> None:
    config = default_config()
    config["paths"]["runtime_root"] = "../outside"

    with pytest.raises(UsageError, match="unsafe runtime root"):
        RuntimeLayout.from_config(config, tmp_path)


def test_project_root_from_runtime_pipeline_path(tmp_path: Path) -> None:
    pipeline = tmp_path / "app" / ".tdd_dag" / ".runtime" / "dag" / "pipelines" / "x.pipeline.yml"

    assert project_root_from_pipeline(pipeline, ".tdd_dag/.runtime") == tmp_path / "app"
    assert project_root_from_pipeline(pipeline, "other/runtime") is None
    assert project_root_from_pipeline(tmp_path / "loose.pipeline.yml", ".tdd_dag/.runtime") is None
