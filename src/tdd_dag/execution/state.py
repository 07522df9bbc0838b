"""
tdd-dag: per-run execution state.

Node state lives in one id-keyed record per node (selection, in-degree,
processing and outcome) instead of parallel position-indexed arrays.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from tdd_dag.domain.models import NodeOutcome, RunStatus, Stage

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from tdd_dag.domain.models import Pipeline, PipelineNode


@dataclass(slots=True)
class NodeState:
    """Mutable scheduling state of one pipeline node."""

    node: PipelineNode
    selected: bool = False
    processed: bool = False
    indegree: int = 0
    outcome: NodeOutcome = NodeOutcome.PENDING

    @property
    def ready(self) -> bool:
        return self.selected and not self.processed and self.indegree == 0


class ExecutionState:
    """Selection and scheduling state for one pipeline run."""

    __slots__ = ("_order", "_states", "pipeline")

    def __init__(self, pipeline: Pipeline) -> None:
        self.pipeline = pipeline
        self._states: dict[str, NodeState] = {node.id: NodeState(node) for node in pipeline}
        self._order: list[str] = []

    def __getitem__(self, node_id: str) -> NodeState:
        return self._states[node_id]

    def select(self, node_ids: Iterable[str]) -> None:
        for node_id in node_ids:
            self._states[node_id].selected = True
        self._compute_indegrees()

    def selected_states(self) -> Iterator[NodeState]:
        """Selected node states in definition order."""

        return (state for state in self._states.values() if state.selected)

    @property
    def selected_ids(self) -> tuple[str, ...]:
        return tuple(state.node.id for state in self.selected_states())

    @property
    def selected_count(self) -> int:
        return sum(1 for _ in self.selected_states())

    @property
    def processed_count(self) -> int:
        return len(self._order)

    @property
    def execution_order(self) -> tuple[str, ...]:
        return tuple(self._order)

    def mark_processed(self, node_id: str, outcome: NodeOutcome) -> None:
        state = self._states[node_id]
        state.processed = True
        state.outcome = outcome
        self._order.append(node_id)

    def release(self, node_id: str) -> None:
        """Decrement the in-degree of every selected, unprocessed dependent."""

        for state in self.selected_states():
            if not state.processed and node_id in state.node.deps:
                state.indegree -= 1

    def unresolved_ids(self) -> tuple[str, ...]:
        return tuple(state.node.id for state in self.selected_states() if not state.processed)

    def _compute_indegrees(self) -> None:
        for state in self._states.values():
            state.indegree = 0
            if not state.selected:
                continue
            for dep in dict.fromkeys(state.node.deps):
                dep_state = self._states.get(dep)
                if dep_state is not None and dep_state.selected:
                    state.indegree += 1


@dataclass(frozen=True, slots=True)
class Failure:
    node_id: str
    stage: Stage
    deps: str
    message: str = ""


@dataclass(frozen=True, slots=True)
class RunArtifacts:
    run_dir: Path
    trace_file: Path
    summary_file: Path
    mermaid_file: Path
    state_file: Path


@dataclass(frozen=True, slots=True)
class RunResult:
    """Terminal outcome of one executor invocation."""

    pipeline_id: str
    pipeline_file: str
    status: RunStatus
    dry_run: bool = False
    changed_only: bool = False
    only_node: str = ""
    run_id: str = ""
    selected_ids: tuple[str, ...] = ()
    execution_order: tuple[str, ...] = ()
    failure: Failure | None = None
    artifacts: RunArtifacts | None = None
    start_epoch_seconds: int = 0
    end_epoch_seconds: int = 0
    noop_message: str | None = None
    changed_files: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status is RunStatus.PASS

    @property
    def is_noop(self) -> bool:
        return self.noop_message is not None

    @property
    def duration_seconds(self) -> int:
        return self.end_epoch_seconds - self.start_epoch_seconds


__all__ = ["ExecutionState", "Failure", "NodeState", "RunArtifacts", "RunResult"]
