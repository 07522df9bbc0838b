"""Shared fixtures: scenario catalogs, runtime layouts and pipeline files."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from tdd_dag.config import RuntimeLayout, default_config
from tdd_dag.domain.models import Pipeline, PipelineNode
from tdd_dag.planning.pipeline_io import dump_pipeline

ScenarioWriter = Callable[..., Path]


def scenario_fields(scenario_id: str, *, linked: str = "peer") -> dict[str, str]:
    """Valid field set for ``scenario_id`` with deterministic echo commands."""

    return {
        "id": scenario_id,
        "outcome_id": f"out_{scenario_id}",
        "capability_id": f"cap_{scenario_id}",
        "stability_layer": "core",
        "depends_on": "",
        "linked_nodes": linked,
        "changed_paths": f"src/{scenario_id}/**",
        "red_run": f"echo red-{scenario_id}",
        "impl_run": f"echo impl-{scenario_id}",
        "green_run": f"echo green-{scenario_id}",
        "verify": f"echo verify-{scenario_id}",
        "unit_normal_tests": f"echo un1-{scenario_id} ||| echo un2-{scenario_id}",
        "unit_boundary_tests": f"echo ub1-{scenario_id} ||| echo ub2-{scenario_id}",
        "unit_failure_tests": f"echo uf1-{scenario_id} ||| echo uf2-{scenario_id}",
        "boundary_smoke_tests": " ||| ".join(
            f"echo smoke{index}-{scenario_id}" for index in range(1, 6)
        ),
    }


def render_scenario(fields: dict[str, str | None]) -> str:
    lines = ["# scenario fixture"]
    for key, value in fields.items():
        if value is None:
            continue
        lines.append(f"{key}: {value}".rstrip())
    return "\n".join(lines) + "\n"


@pytest.fixture
def write_scenario() -> ScenarioWriter:
    """Write ``<id>.scenario.yml`` into a directory; keyword overrides replace fields.

    Passing ``None`` for a field omits its line entirely.
    """

    def _write(
        directory: Path,
        scenario_id: str,
        *,
        linked: str = "peer",
        **overrides: str | None,
    ) -> Path:
        fields: dict[str, str | None] = dict(scenario_fields(scenario_id, linked=linked))
        fields.update(overrides)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{scenario_id}.scenario.yml"
        path.write_text(render_scenario(fields), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def layout(tmp_path: Path) -> RuntimeLayout:
    project_root = tmp_path / "project"
    project_root.mkdir()
    return RuntimeLayout.from_config(default_config(), project_root)


@pytest.fixture
def source_catalog(layout: RuntimeLayout, write_scenario: ScenarioWriter) -> Path:
    """Two mutually linked source scenarios: ``auth`` and ``billing`` (depends on auth)."""

    source_dir = layout.scenario_source_dir
    write_scenario(source_dir, "auth", linked="billing")
    write_scenario(source_dir, "billing", linked="auth", depends_on="auth")
    return source_dir


def node(
    node_id: str,
    *deps: str,
    run: str = "true",
    verify: str = "true",
    node_type: str = "impl",
    changed_paths: tuple[str, ...] = ("*",),
) -> PipelineNode:
    return PipelineNode(
        id=node_id,
        type=node_type,
        deps=tuple(deps),
        changed_paths=changed_paths,
        run=run,
        verify=verify,
    )


def write_pipeline(path: Path, pipeline: Pipeline) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_pipeline(pipeline), encoding="utf-8")
    return path


def read_trace(path: Path) -> list[dict[str, str]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
