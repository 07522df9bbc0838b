"""
tdd-dag: configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject an unsafe runtime root (absolute, ``.``, ``..`` or containing ``..``).

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict, cast

from tdd_dag.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_RUNTIME_ROOT,
    DEFAULT_SCENARIO_SOURCE_DIR,
)
from tdd_dag.utils.fs import is_safe_relative_path

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    runtime_root: str
    scenario_source_dir: str


class GeneratorConfig(TypedDict):
    preflight_run: str
    preflight_verify: str
    preflight_changed_paths: str
    smoke_gate_run: str
    smoke_gate_verify: str
    e2e_gate_run: str
    e2e_gate_verify: str
    gate_changed_paths: str


class ExecutorConfig(TypedDict):
    shell: str
    login_shell: bool


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stdout: bool


class TddDagConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    generator: GeneratorConfig
    executor: ExecutorConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[TddDagConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "paths": {
        "runtime_root": DEFAULT_RUNTIME_ROOT,
        "scenario_source_dir": DEFAULT_SCENARIO_SOURCE_DIR,
    },
    "generator": {
        "preflight_run": "echo preflight",
        "preflight_verify": "true",
        "preflight_changed_paths": ".tdd_dag/dag/**,tdd_dag.toml",
        "smoke_gate_run": "echo smoke-gate",
        "smoke_gate_verify": "true",
        "e2e_gate_run": "echo e2e-gate",
        "e2e_gate_verify": "true",
        "gate_changed_paths": ".tdd_dag/dag/**",
    },
    "executor": {
        "shell": "bash",
        "login_shell": False,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stdout": False,
    },
}

_SECTION_KEYS: Final[dict[str, dict[str, type]]] = {
    "meta": {"schema_version": int},
    "paths": {"runtime_root": str, "scenario_source_dir": str},
    "generator": {key: str for key in DEFAULT_CONFIG["generator"]},
    "executor": {"shell": str, "login_shell": bool},
    "observability": {"log_level": str, "log_dir": str, "log_to_stdout": bool},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> TddDagConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> tuple[ConfigValidationIssue, ...]:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", f"expected object, got {type(config).__name__}")
        return issues.items()

    for key in sorted(config):
        if key not in _SECTION_KEYS:
            issues.add(str(key), "unknown section")

    for section_name, expected in _SECTION_KEYS.items():
        section = config.get(section_name)
        if section is None:
            issues.add(section_name, "missing required section")
            continue
        if not isinstance(section, Mapping):
            issues.add(section_name, f"expected object, got {type(section).__name__}")
            continue
        for key in sorted(section):
            if key not in expected:
                issues.add(f"{section_name}.{key}", "unknown field")
        for key, value_type in expected.items():
            path = f"{section_name}.{key}"
            if key not in section:
                issues.add(path, "missing required field")
                continue
            _check_type(section[key], value_type, path, issues)

    if not issues.has_issues:
        _validate_semantics(config, issues)
    return issues.items()


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    issues = validate_config(config)
    if issues:
        raise ConfigValidationError(issues)
    return _deep_copy_mapping(cast("Mapping[str, object]", config))


def _validate_semantics(config: Mapping[str, Any], issues: _IssueCollector) -> None:
    version = config["meta"]["schema_version"]
    if version != ConfigSchemaVersion:
        issues.add(
            "meta.schema_version",
            f"unsupported schema version {version}; expected {ConfigSchemaVersion}",
        )

    runtime_root = config["paths"]["runtime_root"].strip()
    if not is_safe_relative_path(runtime_root):
        issues.add(
            "paths.runtime_root",
            "runtime root must be a safe relative path (e.g. .tdd_dag/.runtime)",
        )
    if not config["paths"]["scenario_source_dir"].strip():
        issues.add("paths.scenario_source_dir", "must not be empty")

    for key, value in config["generator"].items():
        if not value.strip():
            issues.add(f"generator.{key}", "must not be empty")

    if not config["executor"]["shell"].strip():
        issues.add("executor.shell", "must not be empty")

    level = config["observability"]["log_level"].strip().upper()
    if level not in LOG_LEVELS:
        issues.add(
            "observability.log_level",
            f"invalid value {level!r}; expected one of: {', '.join(LOG_LEVELS)}",
        )
    if not is_safe_relative_path(config["observability"]["log_dir"].strip()):
        issues.add("observability.log_dir", "log dir must be a safe relative path")


def _check_type(value: object, value_type: type, path: str, issues: _IssueCollector) -> None:
    if value_type is int:
        if isinstance(value, bool) or not isinstance(value, int):
            issues.add(path, f"expected integer, got {type(value).__name__}")
        return
    if value_type is bool:
        if not isinstance(value, bool):
            issues.add(path, f"expected boolean, got {type(value).__name__}")
        return
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DEFAULT_CONFIG",
    "ExecutorConfig",
    "GeneratorConfig",
    "LOG_LEVELS",
    "ObservabilityConfig",
    "PathsConfig",
    "TddDagConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
