"""
tdd-dag: pipeline generator.

Purpose
- Expand a validated scenario catalog into a pipeline under the fixed
  red/impl/unit/green/smoke template.
- Produce straight-line synthetic pipelines for executor scale testing.
- Drive a full build: optional compile, validation, layer guard, emission.

Functional requirements
- Node order is catalog order and is the executor's scheduling order.
- The global ``preflight`` node comes first; ``smoke_gate`` depends on every
  scenario smoke node; ``e2e_gate`` depends only on ``smoke_gate``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tdd_dag.compiler.compiler import CompileReport, compile_scenarios
from tdd_dag.config.layout import RuntimeLayout
from tdd_dag.constants import (
    DEFAULT_PIPELINE_ID,
    E2E_GATE_NODE_ID,
    PREFLIGHT_NODE_ID,
    SMOKE_GATE_NODE_ID,
    SYNTHETIC_PIPELINE_PREFIX,
    TRIVIAL_VERIFY,
)
from tdd_dag.domain.errors import UsageError
from tdd_dag.domain.models import Pipeline, PipelineNode, Scenario, split_csv
from tdd_dag.planning.layer_guard import LayerGuardReport, enforce_layer_guard
from tdd_dag.planning.pipeline_io import dump_pipeline
from tdd_dag.planning.validation import load_catalog
from tdd_dag.utils.fs import atomic_write
from tdd_dag.utils.git import changed_files_from_status, repo_toplevel

logger = logging.getLogger(__name__)

SYNTHETIC_CHANGED_PATHS = ("synthetic/**",)
CATALOG_DESCRIPTION = "Generated from scenario catalog"
SYNTHETIC_DESCRIPTION = "Generated synthetic DAG pipeline for scale validation"


@dataclass(frozen=True, slots=True)
class GateCommands:
    """Commands and change globs for the global preflight and gate nodes."""

    preflight_run: str = "echo preflight"
    preflight_verify: str = TRIVIAL_VERIFY
    preflight_changed_paths: tuple[str, ...] = (".tdd_dag/dag/**", "tdd_dag.toml")
    smoke_gate_run: str = "echo smoke-gate"
    smoke_gate_verify: str = TRIVIAL_VERIFY
    e2e_gate_run: str = "echo e2e-gate"
    e2e_gate_verify: str = TRIVIAL_VERIFY
    gate_changed_paths: tuple[str, ...] = (".tdd_dag/dag/**",)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> GateCommands:
        section = config["generator"]
        return cls(
            preflight_run=section["preflight_run"],
            preflight_verify=section["preflight_verify"],
            preflight_changed_paths=split_csv(section["preflight_changed_paths"]),
            smoke_gate_run=section["smoke_gate_run"],
            smoke_gate_verify=section["smoke_gate_verify"],
            e2e_gate_run=section["e2e_gate_run"],
            e2e_gate_verify=section["e2e_gate_verify"],
            gate_changed_paths=split_csv(section["gate_changed_paths"]),
        )


def expand_scenario(scenario: Scenario) -> list[PipelineNode]:
    """Expand one scenario into its 16 template nodes."""

    paths = scenario.changed_paths
    red_id = scenario.red_node_id
    impl_id = scenario.impl_node_id
    green_id = scenario.green_node_id

    nodes = [
        PipelineNode(
            id=red_id,
            type="tdd_red",
            deps=(PREFLIGHT_NODE_ID, *(f"{dep}_green" for dep in scenario.depends_on)),
            changed_paths=paths,
            run=scenario.red_run,
            verify=scenario.verify,
        ),
        PipelineNode(
            id=impl_id,
            type="impl",
            deps=(red_id,),
            changed_paths=paths,
            run=scenario.impl_run,
            verify=scenario.verify,
        ),
    ]

    unit_ids: list[str] = []
    for kind, bundle in (
        ("unit_normal", scenario.unit_normal_tests),
        ("unit_boundary", scenario.unit_boundary_tests),
        ("unit_failure", scenario.unit_failure_tests),
    ):
        for index, command in enumerate(bundle, start=1):
            node_id = f"{scenario.id}_{kind}_{index}"
            unit_ids.append(node_id)
            nodes.append(
                PipelineNode(
                    id=node_id,
                    type=kind,
                    deps=(impl_id,),
                    changed_paths=paths,
                    run=command,
                    verify=TRIVIAL_VERIFY,
                )
            )

    nodes.append(
        PipelineNode(
            id=green_id,
            type="tdd_green",
            deps=(impl_id, *unit_ids),
            changed_paths=paths,
            run=scenario.green_run,
            verify=scenario.verify,
        )
    )

    smoke_deps = (green_id, *(f"{linked}_green" for linked in scenario.linked_nodes))
    for index, command in enumerate(scenario.boundary_smoke_tests, start=1):
        nodes.append(
            PipelineNode(
                id=f"{scenario.id}_smoke_boundary_{index}",
                type="smoke_boundary",
                deps=smoke_deps,
                changed_paths=paths,
                run=command,
                verify=TRIVIAL_VERIFY,
            )
        )
    return nodes


def expand_catalog(
    scenarios: Sequence[Scenario],
    gates: GateCommands | None = None,
) -> Pipeline:
    gates = gates or GateCommands()
    nodes: list[PipelineNode] = [
        PipelineNode(
            id=PREFLIGHT_NODE_ID,
            type="utility",
            deps=(),
            changed_paths=gates.preflight_changed_paths,
            run=gates.preflight_run,
            verify=gates.preflight_verify,
        )
    ]
    smoke_ids: list[str] = []
    for scenario in scenarios:
        expanded = expand_scenario(scenario)
        smoke_ids.extend(node.id for node in expanded if node.type == "smoke_boundary")
        nodes.extend(expanded)

    nodes.append(
        PipelineNode(
            id=SMOKE_GATE_NODE_ID,
            type="smoke",
            deps=tuple(smoke_ids),
            changed_paths=gates.gate_changed_paths,
            run=gates.smoke_gate_run,
            verify=gates.smoke_gate_verify,
        )
    )
    nodes.append(
        PipelineNode(
            id=E2E_GATE_NODE_ID,
            type="e2e",
            deps=(SMOKE_GATE_NODE_ID,),
            changed_paths=gates.gate_changed_paths,
            run=gates.e2e_gate_run,
            verify=gates.e2e_gate_verify,
        )
    )
    return Pipeline(
        pipeline_id=DEFAULT_PIPELINE_ID,
        nodes=tuple(nodes),
        description=CATALOG_DESCRIPTION,
    )


def synthetic_pipeline(count: int) -> Pipeline:
    """Straight chain of ``count`` synthetic nodes between preflight and the gates."""

    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise UsageError(f"--synthetic-nodes must be an integer >= 1 (got: {count})")

    def node(
        node_id: str, node_type: str, deps: tuple[str, ...], run: str, verify: str
    ) -> PipelineNode:
        return PipelineNode(
            id=node_id,
            type=node_type,
            deps=deps,
            changed_paths=SYNTHETIC_CHANGED_PATHS,
            run=run,
            verify=verify,
        )

    nodes = [
        node(
            "synthetic_preflight",
            "utility",
            (),
            "echo synthetic-preflight",
            "echo synthetic-preflight-verify",
        )
    ]
    previous = "synthetic_preflight"
    for index in range(1, count + 1):
        node_id = f"synthetic_node_{index}"
        nodes.append(
            node(node_id, "synthetic", (previous,), f"echo run-{node_id}", f"echo verify-{node_id}")
        )
        previous = node_id
    nodes.append(
        node(
            "synthetic_smoke_gate",
            "smoke",
            (previous,),
            "echo synthetic-smoke",
            "echo synthetic-smoke-verify",
        )
    )
    nodes.append(
        node(
            "synthetic_e2e_gate",
            "e2e",
            ("synthetic_smoke_gate",),
            "echo synthetic-e2e",
            "echo synthetic-e2e-verify",
        )
    )
    return Pipeline(
        pipeline_id=f"{SYNTHETIC_PIPELINE_PREFIX}{count}",
        nodes=tuple(nodes),
        description=SYNTHETIC_DESCRIPTION,
    )


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """Inputs of one ``build`` invocation; ``None`` paths use the runtime layout."""

    scenario_dir: Path | None = None
    source_dir: Path | None = None
    out_file: Path | None = None
    dry_run: bool = False
    synthetic_nodes: int | None = None
    auto_compile: bool = True
    enforce_layer_guard: bool = False
    changed_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BuildResult:
    pipeline: Pipeline
    document: str
    out_file: Path
    written: bool
    compile_report: CompileReport | None = None
    layer_guard: LayerGuardReport | None = None


def build_pipeline(
    request: BuildRequest,
    *,
    layout: RuntimeLayout,
    gates: GateCommands | None = None,
) -> BuildResult:
    """Generate a pipeline document and write it unless ``dry_run`` is set."""

    out_file = request.out_file or layout.default_pipeline_path

    if request.synthetic_nodes is not None:
        pipeline = synthetic_pipeline(request.synthetic_nodes)
        return _emit(pipeline, out_file, dry_run=request.dry_run)

    scenario_dir = request.scenario_dir or layout.runtime_scenario_dir
    source_dir = request.source_dir or layout.scenario_source_dir
    validation_dir = scenario_dir
    compile_report: CompileReport | None = None

    if request.auto_compile and _same_path(scenario_dir, layout.runtime_scenario_dir):
        compile_report = compile_scenarios(
            source_dir,
            layout.runtime_scenario_dir,
            project_root=layout.project_root,
        )
        validation_dir = source_dir

    scenarios = load_catalog(validation_dir)
    if validation_dir != scenario_dir:
        scenarios = load_catalog(scenario_dir)

    guard_report: LayerGuardReport | None = None
    if request.enforce_layer_guard:
        changed = request.changed_files or _changed_files(layout.project_root)
        guard_report = enforce_layer_guard(scenarios, changed)

    pipeline = expand_catalog(scenarios, gates)
    logger.info(
        "expanded %d scenarios into %d nodes",
        len(scenarios),
        len(pipeline),
        extra={"pipeline_id": pipeline.pipeline_id},
    )
    result = _emit(pipeline, out_file, dry_run=request.dry_run)
    return BuildResult(
        pipeline=result.pipeline,
        document=result.document,
        out_file=result.out_file,
        written=result.written,
        compile_report=compile_report,
        layer_guard=guard_report,
    )


def _emit(pipeline: Pipeline, out_file: Path, *, dry_run: bool) -> BuildResult:
    document = dump_pipeline(pipeline)
    if not dry_run:
        out_file.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(out_file, document)
        logger.info("pipeline written", extra={"out_file": out_file, "nodes": len(pipeline)})
    return BuildResult(pipeline=pipeline, document=document, out_file=out_file, written=not dry_run)


def _changed_files(project_root: Path) -> tuple[str, ...]:
    repo_root = repo_toplevel(project_root) or project_root
    return changed_files_from_status(repo_root)


def _same_path(left: Path, right: Path) -> bool:
    return left.absolute() == right.absolute() or left.resolve() == right.resolve()


__all__ = [
    "BuildRequest",
    "BuildResult",
    "CATALOG_DESCRIPTION",
    "GateCommands",
    "SYNTHETIC_CHANGED_PATHS",
    "SYNTHETIC_DESCRIPTION",
    "build_pipeline",
    "expand_catalog",
    "expand_scenario",
    "synthetic_pipeline",
]
