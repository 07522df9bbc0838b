"""
tdd-dag: scenario catalog validation.

Purpose
- Turn parsed scenario documents into validated ``Scenario`` records.

Functional requirements
- Fail on the first problem, naming the scenario file and field.
- Checks, in order: field presence, layer enum, command non-emptiness and
  no-op rejection, bundle length and uniqueness, then cross references.
"""

from __future__ import annotations

from pathlib import Path

from tdd_dag.compiler.document import (
    ScenarioDocument,
    read_scenario_document,
    scenario_files,
    scenario_id_from_document,
)
from tdd_dag.constants import (
    BUNDLE_DELIMITER,
    NOOP_COMMANDS,
    SMOKE_BUNDLE_SIZE,
    STABILITY_LAYERS,
    UNIT_BUNDLE_SIZE,
)
from tdd_dag.domain.errors import SchemaError
from tdd_dag.domain.models import Scenario, StabilityLayer, split_csv

_REQUIRED_TEXT_FIELDS = ("outcome_id", "capability_id", "stability_layer")
_COMMAND_FIELDS = ("red_run", "impl_run", "green_run", "verify")
_BUNDLES = (
    ("unit_normal_tests", UNIT_BUNDLE_SIZE),
    ("unit_boundary_tests", UNIT_BUNDLE_SIZE),
    ("unit_failure_tests", UNIT_BUNDLE_SIZE),
    ("boundary_smoke_tests", SMOKE_BUNDLE_SIZE),
)


def split_bundle(raw: str) -> tuple[str, ...]:
    """Split a ``|||``-delimited command bundle, dropping empty chunks."""

    return tuple(chunk.strip() for chunk in raw.split(BUNDLE_DELIMITER) if chunk.strip())


def is_noop_command(command: str) -> bool:
    return command.strip() in NOOP_COMMANDS


def load_catalog(scenario_dir: Path) -> tuple[Scenario, ...]:
    """Read and validate every scenario file in ``scenario_dir``, in sorted order."""

    if not scenario_dir.is_dir():
        raise SchemaError(f"scenario directory not found: {scenario_dir}")
    files = scenario_files(scenario_dir)
    if not files:
        raise SchemaError(
            f"no scenario files found in {scenario_dir} (at least one *.scenario.yml is required)"
        )

    documents: dict[str, ScenarioDocument] = {}
    for path in files:
        document = read_scenario_document(path)
        scenario_id = scenario_id_from_document(document)
        if scenario_id in documents:
            raise SchemaError(f"duplicate scenario id '{scenario_id}'", path=path, field="id")
        documents[scenario_id] = document

    catalog_ids = frozenset(documents)
    return tuple(
        scenario_from_document(document, catalog_ids=catalog_ids)
        for document in documents.values()
    )


def scenario_from_document(
    document: ScenarioDocument,
    *,
    catalog_ids: frozenset[str],
) -> Scenario:
    """Validate one document against the catalog and build its ``Scenario``."""

    path = document.path
    scenario_id = document.require("id")

    for key in _REQUIRED_TEXT_FIELDS:
        document.require(key)
    layer = document.get("stability_layer")
    if layer not in STABILITY_LAYERS:
        raise SchemaError(
            f"stability_layer must be {'|'.join(STABILITY_LAYERS)} in scenario file",
            path=path,
            field="stability_layer",
        )
    if not document.has("depends_on"):
        raise SchemaError(
            "missing depends_on in scenario file (declare it empty when there are none)",
            path=path,
            field="depends_on",
        )
    if not document.get("linked_nodes"):
        raise SchemaError(
            "missing linked_nodes in scenario file "
            "(must reference at least one bug-prone linked scenario id)",
            path=path,
            field="linked_nodes",
        )
    document.require("changed_paths")

    commands: dict[str, str] = {}
    for key in _COMMAND_FIELDS:
        commands[key] = document.require(key)
    for key, command in commands.items():
        _validate_command(command, key, path)

    bundles: dict[str, tuple[str, ...]] = {}
    for key, expected in _BUNDLES:
        bundles[key] = _validate_bundle(document.get(key), key, expected, path)

    depends_on = _validate_references(
        split_csv(document.get("depends_on")), "depends_on", scenario_id, catalog_ids, path
    )
    linked_nodes = _validate_references(
        split_csv(document.get("linked_nodes")), "linked_nodes", scenario_id, catalog_ids, path
    )
    if not linked_nodes:
        raise SchemaError(
            "linked_nodes must contain at least one scenario id",
            path=path,
            field="linked_nodes",
        )

    return Scenario(
        id=scenario_id,
        outcome_id=document.get("outcome_id"),
        capability_id=document.get("capability_id"),
        stability_layer=StabilityLayer(layer),
        depends_on=depends_on,
        linked_nodes=linked_nodes,
        changed_paths=split_csv(document.get("changed_paths")),
        red_run=commands["red_run"],
        impl_run=commands["impl_run"],
        green_run=commands["green_run"],
        verify=commands["verify"],
        unit_normal_tests=bundles["unit_normal_tests"],
        unit_boundary_tests=bundles["unit_boundary_tests"],
        unit_failure_tests=bundles["unit_failure_tests"],
        boundary_smoke_tests=bundles["boundary_smoke_tests"],
        source_path=path,
    )


def _validate_command(command: str, key: str, path: Path) -> None:
    if not command.strip():
        raise SchemaError(f"{key} contains an empty command", path=path, field=key)
    if is_noop_command(command):
        raise SchemaError(f"{key} contains no-op command '{command}'", path=path, field=key)


def _validate_bundle(raw: str, key: str, expected: int, path: Path) -> tuple[str, ...]:
    bundle = split_bundle(raw)
    if len(bundle) != expected:
        raise SchemaError(
            f"{key} must contain exactly {expected} commands "
            f"(delimiter '{BUNDLE_DELIMITER}'), got {len(bundle)}",
            path=path,
            field=key,
        )
    if len(set(bundle)) != len(bundle):
        raise SchemaError(f"{key} must not contain duplicate commands", path=path, field=key)
    for command in bundle:
        _validate_command(command, key, path)
    return bundle


def _validate_references(
    references: tuple[str, ...],
    key: str,
    scenario_id: str,
    catalog_ids: frozenset[str],
    path: Path,
) -> tuple[str, ...]:
    for reference in references:
        if reference == scenario_id:
            raise SchemaError(
                f"{key} must not include self ('{scenario_id}')", path=path, field=key
            )
        if reference not in catalog_ids:
            raise SchemaError(
                f"{key} references unknown scenario id '{reference}'", path=path, field=key
            )
    return references


__all__ = [
    "is_noop_command",
    "load_catalog",
    "scenario_from_document",
    "split_bundle",
]
