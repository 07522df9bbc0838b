"""Stable constants shared across the compiler, generator and executor."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
PIPELINE_SCHEMA_VERSION: Final[int] = 1

# Default project-relative locations (overridable by config / env).
DEFAULT_RUNTIME_ROOT: Final[str] = ".tdd_dag/.runtime"
DEFAULT_SCENARIO_SOURCE_DIR: Final[str] = ".tdd_dag/dag/scenarios"
CONFIG_FILE_NAME: Final[str] = "tdd_dag.toml"
ENV_PREFIX: Final[str] = "TDD_DAG_"
RUNTIME_ROOT_ENV: Final[str] = "TDD_DAG_RUNTIME_ROOT"

# Runtime-root relative layout.
RUNTIME_SCENARIO_DIR: Final[PurePosixPath] = PurePosixPath("dag/scenarios")
PIPELINES_DIR: Final[PurePosixPath] = PurePosixPath("dag/pipelines")
EVIDENCE_DIR: Final[PurePosixPath] = PurePosixPath("evidence/dag")
STATE_FILE: Final[PurePosixPath] = PurePosixPath("dag/state/last-run.json")
DEFAULT_PIPELINE_FILE: Final[str] = "default.pipeline.yml"

# Scenario catalog format.
SCENARIO_SUFFIX: Final[str] = ".scenario.yml"
MANIFEST_FILE_NAME: Final[str] = ".compiled-manifest.tsv"
MANIFEST_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "source_rel",
    "source_sha256",
    "runtime_rel",
    "runtime_sha256",
    "compiled_at",
)
BUNDLE_DELIMITER: Final[str] = "|||"
NOOP_COMMANDS: Final[frozenset[str]] = frozenset({"true", ":"})
TRIVIAL_VERIFY: Final[str] = "true"

# Stability layers ordered from most to least stable.
STABILITY_LAYERS: Final[tuple[str, ...]] = ("core", "system", "experimental")
STABILITY_LAYER_RANK: Final[dict[str, int]] = {
    "core": 0,
    "system": 1,
    "experimental": 2,
}

# Bundle sizes enforced by the generator.
UNIT_BUNDLE_SIZE: Final[int] = 2
SMOKE_BUNDLE_SIZE: Final[int] = 5

# Global pipeline node ids.
PREFLIGHT_NODE_ID: Final[str] = "preflight"
SMOKE_GATE_NODE_ID: Final[str] = "smoke_gate"
E2E_GATE_NODE_ID: Final[str] = "e2e_gate"
SYNTHETIC_PIPELINE_PREFIX: Final[str] = "synthetic-"
DEFAULT_PIPELINE_ID: Final[str] = "default"

# Evidence file names inside a run directory.
TRACE_FILE_NAME: Final[str] = "trace.jsonl"
SUMMARY_FILE_NAME: Final[str] = "run-summary.json"
GRAPH_FILE_NAME: Final[str] = "dag.mmd"

__all__ = [
    "BUNDLE_DELIMITER",
    "CONFIG_FILE_NAME",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_PIPELINE_FILE",
    "DEFAULT_PIPELINE_ID",
    "DEFAULT_RUNTIME_ROOT",
    "DEFAULT_SCENARIO_SOURCE_DIR",
    "E2E_GATE_NODE_ID",
    "ENV_PREFIX",
    "EVIDENCE_DIR",
    "GRAPH_FILE_NAME",
    "MANIFEST_COLUMNS",
    "MANIFEST_FILE_NAME",
    "NOOP_COMMANDS",
    "PIPELINES_DIR",
    "PIPELINE_SCHEMA_VERSION",
    "PREFLIGHT_NODE_ID",
    "RUNTIME_ROOT_ENV",
    "RUNTIME_SCENARIO_DIR",
    "SCENARIO_SUFFIX",
    "SMOKE_BUNDLE_SIZE",
    "SMOKE_GATE_NODE_ID",
    "STABILITY_LAYERS",
    "STABILITY_LAYER_RANK",
    "STATE_FILE",
    "SUMMARY_FILE_NAME",
    "SYNTHETIC_PIPELINE_PREFIX",
    "TRACE_FILE_NAME",
    "TRIVIAL_VERIFY",
    "UNIT_BUNDLE_SIZE",
]
