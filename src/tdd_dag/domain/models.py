"""Frozen dataclass records for scenarios, manifests and pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from tdd_dag.constants import (
    E2E_GATE_NODE_ID,
    MANIFEST_COLUMNS,
    PIPELINE_SCHEMA_VERSION,
    SMOKE_GATE_NODE_ID,
    SYNTHETIC_PIPELINE_PREFIX,
)
from tdd_dag.domain.errors import IntegrityError, SchemaError
from tdd_dag.utils.fs import is_safe_name

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class StabilityLayer(StrEnum):
    CORE = "core"
    SYSTEM = "system"
    EXPERIMENTAL = "experimental"


class RunStatus(StrEnum):
    PASS = "PASS"
    FAIL = "FAIL"


class NodeOutcome(StrEnum):
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"


class Stage(StrEnum):
    PIPELINE = "pipeline"
    RUN = "run"
    VERIFY = "verify"
    DRY_RUN = "dry_run"
    TOPOLOGY = "topology"


@dataclass(frozen=True, slots=True)
class Scenario:
    """One validated TDD scenario from the catalog."""

    id: str
    outcome_id: str
    capability_id: str
    stability_layer: StabilityLayer
    depends_on: tuple[str, ...]
    linked_nodes: tuple[str, ...]
    changed_paths: tuple[str, ...]
    red_run: str
    impl_run: str
    green_run: str
    verify: str
    unit_normal_tests: tuple[str, ...]
    unit_boundary_tests: tuple[str, ...]
    unit_failure_tests: tuple[str, ...]
    boundary_smoke_tests: tuple[str, ...]
    source_path: Path | None = None

    @property
    def red_node_id(self) -> str:
        return f"{self.id}_red"

    @property
    def impl_node_id(self) -> str:
        return f"{self.id}_impl"

    @property
    def green_node_id(self) -> str:
        return f"{self.id}_green"


@dataclass(frozen=True, slots=True)
class CompiledScenario:
    """Provenance-stamped runtime copy of a source scenario."""

    scenario_id: str
    source_rel: str
    source_sha256: str
    compiled_at: str
    body: str

    @property
    def header_line(self) -> str:
        return f"# GENERATED_FROM: {self.source_rel}"

    def render(self) -> str:
        return "\n".join(
            (
                self.header_line,
                f"# SOURCE_SHA256: {self.source_sha256}",
                f"# GENERATED_AT: {self.compiled_at}",
                self.body,
            )
        )


@dataclass(frozen=True, slots=True)
class ManifestRow:
    """One line of the compiled-scenario manifest."""

    scenario_id: str
    source_rel: str
    source_sha256: str
    runtime_rel: str
    runtime_sha256: str
    compiled_at: str

    def to_tsv(self) -> str:
        return "\t".join(
            (
                self.scenario_id,
                self.source_rel,
                self.source_sha256,
                self.runtime_rel,
                self.runtime_sha256,
                self.compiled_at,
            )
        )

    @classmethod
    def from_tsv(cls, line: str, *, line_number: int) -> ManifestRow:
        columns = line.split("\t")
        if len(columns) != len(MANIFEST_COLUMNS):
            raise IntegrityError(
                f"malformed manifest row at line {line_number}: "
                f"expected {len(MANIFEST_COLUMNS)} columns, got {len(columns)}"
            )
        scenario_id, source_rel, source_sha, runtime_rel, runtime_sha, compiled_at = columns
        return cls(
            scenario_id=scenario_id,
            source_rel=source_rel,
            source_sha256=source_sha,
            runtime_rel=runtime_rel,
            runtime_sha256=runtime_sha,
            compiled_at=compiled_at,
        )


@dataclass(frozen=True, slots=True)
class PipelineNode:
    """One executable unit of pipeline work."""

    id: str
    type: str
    deps: tuple[str, ...]
    changed_paths: tuple[str, ...]
    run: str
    verify: str

    @property
    def is_global_gate(self) -> bool:
        return (self.type == "smoke" and self.id == SMOKE_GATE_NODE_ID) or (
            self.type == "e2e" and self.id == E2E_GATE_NODE_ID
        )

    @property
    def deps_csv(self) -> str:
        return ",".join(self.deps)


@dataclass(frozen=True, slots=True)
class Pipeline:
    """Ordered node list with a pipeline id; node order is scheduling order."""

    pipeline_id: str
    nodes: tuple[PipelineNode, ...]
    description: str = ""
    version: int = PIPELINE_SCHEMA_VERSION
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Both ids end up in evidence and log file names.
        if not is_safe_name(self.pipeline_id):
            raise SchemaError(
                f"pipeline_id {self.pipeline_id!r} must match [A-Za-z0-9._-]+",
                field="pipeline_id",
            )
        if not self.nodes:
            raise SchemaError("no nodes parsed from pipeline", field="nodes")
        index: dict[str, int] = {}
        for position, node in enumerate(self.nodes):
            if not is_safe_name(node.id):
                raise SchemaError(
                    f"node id {node.id!r} must match [A-Za-z0-9._-]+", field="id"
                )
            if node.id in index:
                raise SchemaError(f"duplicate node id '{node.id}' in pipeline", field="nodes")
            index[node.id] = position
        object.__setattr__(self, "_index", index)

    @property
    def is_synthetic(self) -> bool:
        return self.pipeline_id.startswith(SYNTHETIC_PIPELINE_PREFIX)

    @property
    def node_ids(self) -> tuple[str, ...]:
        return tuple(node.id for node in self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __iter__(self) -> Iterator[PipelineNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> PipelineNode:
        try:
            return self.nodes[self._index[node_id]]
        except KeyError:
            raise KeyError(f"Unknown node: {node_id}") from None

    def position(self, node_id: str) -> int:
        return self._index[node_id]


def split_csv(raw: str) -> tuple[str, ...]:
    """Split a comma-separated list, dropping blank entries."""

    return tuple(chunk.strip() for chunk in raw.split(",") if chunk.strip())


def join_csv(items: Sequence[str]) -> str:
    return ",".join(items)


__all__ = [
    "CompiledScenario",
    "ManifestRow",
    "NodeOutcome",
    "Pipeline",
    "PipelineNode",
    "RunStatus",
    "Scenario",
    "StabilityLayer",
    "Stage",
    "join_csv",
    "split_csv",
]
