"""
tdd-dag: pipeline executor.

Purpose
- Run the selected subgraph of a pipeline file in Kahn order with fail-fast
  semantics and leave an evidence trail for every run.

Functional requirements
- Non-synthetic pipelines are checked against the compiled scenario manifest
  before any node runs.
- Zero in-degree nodes are processed in definition order; a pass without
  progress while selected nodes remain is a topology failure.
- The first failing ``run`` or ``verify`` stops the run; its node, stage and
  raw dependency list are recorded.
- Failures are reported through ``RunResult.status``, not exceptions.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

from tdd_dag.compiler.compiler import check_compiled, compiled_scenario_count
from tdd_dag.config.layout import RuntimeLayout
from tdd_dag.constants import GRAPH_FILE_NAME, SUMMARY_FILE_NAME, TRACE_FILE_NAME
from tdd_dag.domain.errors import IntegrityError
from tdd_dag.domain.models import NodeOutcome, Pipeline, RunStatus, Stage
from tdd_dag.execution.commands import ShellRunner
from tdd_dag.execution.evidence import (
    TraceWriter,
    allocate_run_dir,
    local_run_id,
    render_mermaid,
    write_run_records,
)
from tdd_dag.execution.selection import (
    Selection,
    select_all,
    select_changed,
    select_only,
)
from tdd_dag.execution.state import ExecutionState, Failure, NodeState, RunArtifacts, RunResult
from tdd_dag.observability.logging import correlation_scope
from tdd_dag.planning.pipeline_io import load_pipeline, validate_references
from tdd_dag.utils.fs import atomic_write
from tdd_dag.utils.git import changed_files_from_status

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]

NO_CHANGED_FILES_MESSAGE = "No changed files detected. --changed-only exits without execution."
NO_SELECTION_MESSAGE = "No nodes selected for execution."
TOPOLOGY_MESSAGE = "cycle or unresolved dependency in selected subgraph"


@dataclass(frozen=True, slots=True)
class RunOptions:
    dry_run: bool = False
    changed_only: bool = False
    changed_files: tuple[str, ...] = ()
    include_global_gates: bool = False
    only_node: str | None = None


def _discard(_line: str) -> None:
    return None


class PipelineExecutor:
    """Executes pipeline files against one project layout."""

    def __init__(
        self,
        *,
        layout: RuntimeLayout,
        repo_root: Path,
        runner: ShellRunner | None = None,
        echo: Echo | None = None,
    ) -> None:
        self.layout = layout
        self.repo_root = repo_root
        self.runner = runner or ShellRunner()
        self._echo = echo or _discard

    def verify_integrity(self, pipeline: Pipeline) -> None:
        """Re-run compile check mode when compiled scenarios are present."""

        if pipeline.is_synthetic:
            return
        runtime_dir = self.layout.runtime_scenario_dir
        if compiled_scenario_count(runtime_dir) == 0:
            return
        if not self.layout.scenario_source_dir.is_dir():
            raise IntegrityError(
                f"scenario source directory missing: {self.layout.scenario_source_dir}"
            )
        check_compiled(runtime_dir, project_root=self.layout.project_root)

    def select(self, pipeline: Pipeline, options: RunOptions) -> Selection:
        if options.only_node:
            return select_only(pipeline, options.only_node)
        if options.changed_only:
            changed = options.changed_files or changed_files_from_status(self.repo_root)
            return select_changed(
                pipeline,
                changed,
                include_global_gates=options.include_global_gates,
            )
        return select_all(pipeline)

    def execute(self, pipeline_path: Path, options: RunOptions | None = None) -> RunResult:
        options = options or RunOptions()
        start_epoch = int(time.time())
        pipeline = load_pipeline(pipeline_path)
        self.verify_integrity(pipeline)
        validate_references(pipeline)

        base = RunResult(
            pipeline_id=pipeline.pipeline_id,
            pipeline_file=str(pipeline_path),
            status=RunStatus.PASS,
            dry_run=options.dry_run,
            changed_only=options.changed_only,
            only_node=options.only_node or "",
            start_epoch_seconds=start_epoch,
            end_epoch_seconds=start_epoch,
        )

        selection = self.select(pipeline, options)
        if options.changed_only and not options.only_node and not selection.changed_files:
            return _noop_result(base, NO_CHANGED_FILES_MESSAGE)
        if not selection.node_ids:
            return _noop_result(base, NO_SELECTION_MESSAGE, selection.changed_files)

        state = ExecutionState(pipeline)
        state.select(selection.node_ids)

        run_id = local_run_id()
        run_dir = allocate_run_dir(self.layout.evidence_root, pipeline.pipeline_id, run_id)
        artifacts = RunArtifacts(
            run_dir=run_dir,
            trace_file=run_dir / TRACE_FILE_NAME,
            summary_file=run_dir / SUMMARY_FILE_NAME,
            mermaid_file=run_dir / GRAPH_FILE_NAME,
            state_file=self.layout.state_file,
        )
        trace = TraceWriter(artifacts.trace_file)

        with correlation_scope(run_id=run_id, pipeline_id=pipeline.pipeline_id):
            trace.emit(
                "run_start",
                stage=Stage.PIPELINE,
                result="info",
                message=(
                    f"pipeline={pipeline.pipeline_id} dry_run={int(options.dry_run)} "
                    f"changed_only={int(options.changed_only)} only_node={options.only_node or ''}"
                ),
            )
            logger.info(
                "run started",
                extra={"selected": state.selected_count, "mode": str(selection.mode)},
            )
            failure = self._run_loop(state, trace, run_dir, options)
            status = RunStatus.FAIL if failure is not None else RunStatus.PASS

            atomic_write(artifacts.mermaid_file, render_mermaid(pipeline, state.selected_ids))
            end_epoch = int(time.time())
            trace.emit(
                "run_end",
                stage=Stage.PIPELINE,
                result=str(status),
                message=(
                    f"duration_seconds={end_epoch - start_epoch} "
                    f"selected={state.selected_count} processed={state.processed_count}"
                ),
            )

            result = RunResult(
                pipeline_id=pipeline.pipeline_id,
                pipeline_file=str(pipeline_path),
                status=status,
                dry_run=options.dry_run,
                changed_only=options.changed_only,
                only_node=options.only_node or "",
                run_id=run_id,
                selected_ids=state.selected_ids,
                execution_order=state.execution_order,
                failure=failure,
                artifacts=artifacts,
                start_epoch_seconds=start_epoch,
                end_epoch_seconds=end_epoch,
                changed_files=selection.changed_files,
            )
            write_run_records(result)
            logger.info(
                "run finished",
                extra={"status": str(status), "processed": state.processed_count},
            )
        return result

    def _run_loop(
        self,
        state: ExecutionState,
        trace: TraceWriter,
        run_dir: Path,
        options: RunOptions,
    ) -> Failure | None:
        selected_count = state.selected_count
        while state.processed_count < selected_count:
            progress = False
            # Nodes released earlier in a pass become eligible later in the same pass.
            for node_state in state.selected_states():
                if not node_state.ready:
                    continue
                progress = True
                failure = self._process(node_state, state, trace, run_dir, options)
                if failure is not None:
                    return failure
                state.release(node_state.node.id)

            if not progress:
                unresolved = state.unresolved_ids()
                message = f"{TOPOLOGY_MESSAGE}: {','.join(unresolved)}"
                trace.emit("run_fail", stage=Stage.TOPOLOGY, result="fail", message=message)
                logger.error(TOPOLOGY_MESSAGE, extra={"unresolved": list(unresolved)})
                return Failure(
                    node_id="",
                    stage=Stage.TOPOLOGY,
                    deps=",".join(unresolved),
                    message=message,
                )
        return None

    def _process(
        self,
        node_state: NodeState,
        state: ExecutionState,
        trace: TraceWriter,
        run_dir: Path,
        options: RunOptions,
    ) -> Failure | None:
        node = node_state.node
        deps = node.deps_csv

        if options.dry_run:
            state.mark_processed(node.id, NodeOutcome.PASS)
            self._echo(f"[DRY-RUN] node={node.id} type={node.type} deps={deps}")
            self._echo(f"  run: {node.run}")
            self._echo(f"  verify: {node.verify}")
            trace.emit(
                "node_dry_run",
                node=node.id,
                stage=Stage.DRY_RUN,
                result="pass",
                message=f"deps={deps}",
            )
            return None

        with correlation_scope(node_id=node.id):
            self._echo(f"Running node: {node.id} ({node.type})")
            trace.emit(
                "node_start", node=node.id, stage=Stage.RUN, result="info", message=f"deps={deps}"
            )

            for stage, command in ((Stage.RUN, node.run), (Stage.VERIFY, node.verify)):
                log_file = run_dir / f"{node.id}-{stage}.log"
                outcome = self.runner.run(command, cwd=self.repo_root, log_file=log_file)
                if not outcome.ok:
                    state.mark_processed(node.id, NodeOutcome.FAIL)
                    trace.emit(
                        "node_fail",
                        node=node.id,
                        stage=stage,
                        result="fail",
                        message=f"log={log_file}",
                    )
                    logger.warning(
                        "node failed",
                        extra={"stage": str(stage), "returncode": outcome.returncode},
                    )
                    return Failure(
                        node_id=node.id,
                        stage=stage,
                        deps=deps,
                        message=f"exit code {outcome.returncode}; log={log_file}",
                    )
                trace.emit(
                    "node_pass",
                    node=node.id,
                    stage=stage,
                    result="pass",
                    message=f"log={log_file}",
                )

            state.mark_processed(node.id, NodeOutcome.PASS)
            logger.info("node passed")
        return None


def _noop_result(
    base: RunResult, message: str, changed_files: tuple[str, ...] = ()
) -> RunResult:
    logger.info(message)
    return replace(
        base,
        end_epoch_seconds=int(time.time()),
        noop_message=message,
        changed_files=changed_files,
    )


__all__ = [
    "NO_CHANGED_FILES_MESSAGE",
    "NO_SELECTION_MESSAGE",
    "PipelineExecutor",
    "RunOptions",
    "TOPOLOGY_MESSAGE",
]
