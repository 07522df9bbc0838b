"""
tdd-dag config package public API.

Purpose
- Export config loading/validation entrypoints, the runtime layout and
  public error types.

Functional requirements
- Support loading from ``tdd_dag.toml`` + ``TDD_DAG_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from tdd_dag.config.layout import RuntimeLayout, project_root_from_pipeline
from tdd_dag.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from tdd_dag.config.schema import (
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    TddDagConfig,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "RuntimeLayout",
    "TddDagConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "project_root_from_pipeline",
    "validate_config",
]
