"""Pipeline execution: selection, Kahn scheduling, shell commands and evidence."""

from tdd_dag.execution.commands import CommandOutcome, ShellRunner
from tdd_dag.execution.evidence import (
    TraceWriter,
    allocate_run_dir,
    build_state,
    build_summary,
    local_run_id,
    render_mermaid,
)
from tdd_dag.execution.executor import (
    NO_CHANGED_FILES_MESSAGE,
    NO_SELECTION_MESSAGE,
    TOPOLOGY_MESSAGE,
    PipelineExecutor,
    RunOptions,
)
from tdd_dag.execution.selection import (
    Selection,
    SelectionMode,
    backward_closure,
    forward_closure,
    select_all,
    select_changed,
    select_only,
)
from tdd_dag.execution.state import ExecutionState, Failure, NodeState, RunArtifacts, RunResult

__all__ = [
    "CommandOutcome",
    "ExecutionState",
    "Failure",
    "NO_CHANGED_FILES_MESSAGE",
    "NO_SELECTION_MESSAGE",
    "NodeState",
    "PipelineExecutor",
    "RunArtifacts",
    "RunOptions",
    "RunResult",
    "Selection",
    "SelectionMode",
    "ShellRunner",
    "TOPOLOGY_MESSAGE",
    "TraceWriter",
    "allocate_run_dir",
    "backward_closure",
    "build_state",
    "build_summary",
    "forward_closure",
    "local_run_id",
    "render_mermaid",
    "select_all",
    "select_changed",
    "select_only",
]
