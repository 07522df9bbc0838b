"""
tdd-dag: run evidence artifacts.

Purpose
- Allocate the run-id scoped evidence directory.
- Append trace events, render the Mermaid graph of the selected subgraph and
  write the run summary and last-run state records.

Functional requirements
- ``trace.jsonl`` is append-only, one JSON object per line with the keys
  ``ts, event, node, stage, result, message`` in that order.
- Summary and state are written once, after the run loop ends.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tdd_dag.compiler.compiler import utc_timestamp
from tdd_dag.utils.fs import append_text, atomic_write

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tdd_dag.domain.models import Pipeline
    from tdd_dag.execution.state import RunResult


def local_run_id(moment: datetime | None = None) -> str:
    """Local wall-clock run id, ``YYYYMMDD-HHMMSS``."""

    current = moment if moment is not None else datetime.now()
    return current.strftime("%Y%m%d-%H%M%S")


def allocate_run_dir(evidence_root: Path, pipeline_id: str, run_id: str) -> Path:
    """Create ``<pipeline_id>-<run_id>``, suffixing ``-2``, ``-3``... on collision."""

    evidence_root.mkdir(parents=True, exist_ok=True)
    base = f"{pipeline_id}-{run_id}"
    candidate = evidence_root / base
    attempt = 1
    while True:
        try:
            candidate.mkdir()
        except FileExistsError:
            attempt += 1
            candidate = evidence_root / f"{base}-{attempt}"
            continue
        return candidate


class TraceWriter:
    """Append-only JSON-lines event log for one run."""

    __slots__ = ("path",)

    def __init__(self, path: Path) -> None:
        self.path = path

    def emit(
        self,
        event: str,
        *,
        node: str = "",
        stage: str = "",
        result: str = "",
        message: str = "",
    ) -> None:
        record = {
            "ts": utc_timestamp(),
            "event": event,
            "node": node,
            "stage": stage,
            "result": result,
            "message": message,
        }
        append_text(self.path, json.dumps(record, ensure_ascii=False) + "\n")


def render_mermaid(pipeline: Pipeline, selected: Iterable[str]) -> str:
    """Render the selected subgraph as a Mermaid ``graph TD`` document."""

    chosen = set(selected)
    lines = ["graph TD"]
    for index, node in enumerate(pipeline.nodes):
        if node.id not in chosen:
            continue
        label = f"{node.id} ({node.type})".replace('"', '\\"')
        lines.append(f'  n{index}["{label}"]')
    for index, node in enumerate(pipeline.nodes):
        if node.id not in chosen:
            continue
        for dep in node.deps:
            if dep in chosen:
                lines.append(f"  n{pipeline.position(dep)} --> n{index}")
    return "\n".join(lines) + "\n"


def build_summary(result: RunResult) -> dict[str, Any]:
    artifacts = result.artifacts
    failure = result.failure
    return {
        "pipeline_id": result.pipeline_id,
        "run_id": result.run_id,
        "status": str(result.status),
        "start_epoch_seconds": result.start_epoch_seconds,
        "end_epoch_seconds": result.end_epoch_seconds,
        "duration_seconds": result.duration_seconds,
        "dry_run": int(result.dry_run),
        "changed_only": int(result.changed_only),
        "only_node": result.only_node,
        "selected_node_count": len(result.selected_ids),
        "processed_node_count": len(result.execution_order),
        "failed_node": failure.node_id if failure else "",
        "failed_stage": str(failure.stage) if failure else "",
        "failed_deps": failure.deps if failure else "",
        "trace_file": str(artifacts.trace_file) if artifacts else "",
        "mermaid_file": str(artifacts.mermaid_file) if artifacts else "",
    }


def build_state(result: RunResult) -> dict[str, Any]:
    summary = build_summary(result)
    artifacts = result.artifacts
    return {
        "pipeline_id": summary["pipeline_id"],
        "pipeline_file": result.pipeline_file,
        "status": summary["status"],
        "dry_run": summary["dry_run"],
        "changed_only": summary["changed_only"],
        "only_node": summary["only_node"],
        "failed_node": summary["failed_node"],
        "failed_stage": summary["failed_stage"],
        "failed_deps": summary["failed_deps"],
        "run_id": summary["run_id"],
        "run_summary_file": str(artifacts.summary_file) if artifacts else "",
        "trace_file": summary["trace_file"],
        "mermaid_file": summary["mermaid_file"],
        "duration_seconds": summary["duration_seconds"],
        "selected_node_count": summary["selected_node_count"],
        "processed_node_count": summary["processed_node_count"],
        "evidence_dir": str(artifacts.run_dir) if artifacts else "",
        "execution_order": list(result.execution_order),
    }


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def write_run_records(result: RunResult) -> None:
    """Write ``run-summary.json`` and the persisted last-run state."""

    if result.artifacts is None:
        raise ValueError("run result has no artifact paths")
    write_json(result.artifacts.summary_file, build_summary(result))
    write_json(result.artifacts.state_file, build_state(result))


__all__ = [
    "TraceWriter",
    "allocate_run_dir",
    "build_state",
    "build_summary",
    "local_run_id",
    "render_mermaid",
    "write_json",
    "write_run_records",
]
