"""Unit tests for run evidence helpers."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from conftest import node, read_trace
from tdd_dag.domain.models import Pipeline, RunStatus, Stage
from tdd_dag.execution import (
    Failure,
    RunArtifacts,
    RunResult,
    TraceWriter,
    allocate_run_dir,
    build_state,
    build_summary,
    local_run_id,
    render_mermaid,
)
from tdd_dag.execution.evidence import write_run_records


def test_local_run_id_format() -> None:
    assert local_run_id(datetime(2026, 7, 4, 9, 5, 3)) == "20260704-090503"


def test_run_dir_allocation_suffixes_collisions(tmp_path: Path) -> None:
    first = allocate_run_dir(tmp_path, "default", "20260101-000000")
    second = allocate_run_dir(tmp_path, "default", "20260101-000000")
    third = allocate_run_dir(tmp_path, "default", "20260101-000000")

    assert [path.name for path in (first, second, third)] == [
        "default-20260101-000000",
        "default-20260101-000000-2",
        "default-20260101-000000-3",
    ]
    assert all(path.is_dir() for path in (first, second, third))


def test_trace_writer_appends_escaped_json_lines(tmp_path: Path) -> None:
    trace = TraceWriter(tmp_path / "trace.jsonl")
    trace.emit("run_start", stage="pipeline", result="info", message='say "hi"\nbye')
    trace.emit("node_pass", node="a", stage="run", result="pass")

    lines = trace.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    events = read_trace(trace.path)
    assert events[0]["message"] == 'say "hi"\nbye'
    assert events[1] == {
        "ts": events[1]["ts"],
        "event": "node_pass",
        "node": "a",
        "stage": "run",
        "result": "pass",
        "message": "",
    }
    assert events[1]["ts"].endswith("Z")


def test_mermaid_renders_only_selected_nodes_and_edges() -> None:
    pipeline = Pipeline(
        pipeline_id="p",
        nodes=(node("a"), node("b", "a"), node("c", "b", node_type='say "x"')),
    )

    rendered = render_mermaid(pipeline, ["b", "c"])

    assert rendered == (
        "graph TD\n"
        '  n1["b (impl)"]\n'
        '  n2["c (say \\"x\\")"]\n'
        "  n1 --> n2\n"
    )


def test_summary_and_state_records(tmp_path: Path) -> None:
    run_dir = tmp_path / "evidence" / "p-20260101-000000"
    run_dir.mkdir(parents=True)
    artifacts = RunArtifacts(
        run_dir=run_dir,
        trace_file=run_dir / "trace.jsonl",
        summary_file=run_dir / "run-summary.json",
        mermaid_file=run_dir / "dag.mmd",
        state_file=tmp_path / "state" / "last-run.json",
    )
    result = RunResult(
        pipeline_id="p",
        pipeline_file="p.pipeline.yml",
        status=RunStatus.FAIL,
        changed_only=True,
        run_id="20260101-000000",
        selected_ids=("a", "b"),
        execution_order=("a", "b"),
        failure=Failure(node_id="b", stage=Stage.VERIFY, deps="a"),
        artifacts=artifacts,
        start_epoch_seconds=100,
        end_epoch_seconds=107,
    )

    summary = build_summary(result)
    assert summary["duration_seconds"] == 7
    assert summary["changed_only"] == 1
    assert summary["dry_run"] == 0
    assert summary["failed_stage"] == "verify"
    assert summary["failed_deps"] == "a"

    state = build_state(result)
    assert state["run_summary_file"] == str(artifacts.summary_file)
    assert state["execution_order"] == ["a", "b"]

    write_run_records(result)
    assert json.loads(artifacts.summary_file.read_text(encoding="utf-8")) == summary
    assert json.loads(artifacts.state_file.read_text(encoding="utf-8")) == state
