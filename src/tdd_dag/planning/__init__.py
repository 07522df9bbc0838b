"""Pipeline generation: catalog validation, template expansion and YAML emission."""

from tdd_dag.planning.generator import (
    BuildRequest,
    BuildResult,
    GateCommands,
    build_pipeline,
    expand_catalog,
    expand_scenario,
    synthetic_pipeline,
)
from tdd_dag.planning.layer_guard import LayerGuardReport, enforce_layer_guard, impacted_scenarios
from tdd_dag.planning.pipeline_io import (
    dump_pipeline,
    load_pipeline,
    parse_pipeline_text,
    pipeline_to_document,
    validate_references,
)
from tdd_dag.planning.validation import (
    is_noop_command,
    load_catalog,
    scenario_from_document,
    split_bundle,
)

__all__ = [
    "BuildRequest",
    "BuildResult",
    "GateCommands",
    "LayerGuardReport",
    "build_pipeline",
    "dump_pipeline",
    "enforce_layer_guard",
    "expand_catalog",
    "expand_scenario",
    "impacted_scenarios",
    "is_noop_command",
    "load_catalog",
    "load_pipeline",
    "parse_pipeline_text",
    "pipeline_to_document",
    "scenario_from_document",
    "split_bundle",
    "synthetic_pipeline",
    "validate_references",
]
