"""
tdd-dag: node selection.

Purpose
- Decide which pipeline nodes a run executes: one node (``--only``), the
  change-driven subgraph (``--changed-only``) or everything.

Functional requirements
- Change-driven selection seeds on ``changed_paths`` matches, then adds
  dependents (forward closure, global gates excluded unless requested), then
  every dependency of the result (backward closure, gates included).
- Selected ids are always returned in pipeline definition order.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from tdd_dag.domain.errors import UsageError
from tdd_dag.utils.globbing import matches_any_file

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from tdd_dag.domain.models import Pipeline


class SelectionMode(StrEnum):
    ALL = "all"
    ONLY = "only"
    CHANGED = "changed"


@dataclass(frozen=True, slots=True)
class Selection:
    mode: SelectionMode
    node_ids: tuple[str, ...]
    changed_files: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.node_ids)


def select_all(pipeline: Pipeline) -> Selection:
    return Selection(mode=SelectionMode.ALL, node_ids=pipeline.node_ids)


def select_only(pipeline: Pipeline, node_id: str) -> Selection:
    if node_id not in pipeline:
        raise UsageError(f"--only node not found: {node_id}")
    return Selection(mode=SelectionMode.ONLY, node_ids=(node_id,))


def select_changed(
    pipeline: Pipeline,
    changed_files: Sequence[str],
    *,
    include_global_gates: bool = False,
) -> Selection:
    seeds = {
        node.id for node in pipeline if matches_any_file(node.changed_paths, changed_files)
    }
    closed = backward_closure(
        pipeline,
        forward_closure(pipeline, seeds, include_global_gates=include_global_gates),
    )
    return Selection(
        mode=SelectionMode.CHANGED,
        node_ids=_in_definition_order(pipeline, closed),
        changed_files=tuple(changed_files),
    )


def forward_closure(
    pipeline: Pipeline,
    selected: Iterable[str],
    *,
    include_global_gates: bool = False,
) -> set[str]:
    """Add every transitive dependent; gates are skipped unless included."""

    dependents: dict[str, list[str]] = {node.id: [] for node in pipeline}
    for node in pipeline:
        for dep in node.deps:
            if dep in dependents:
                dependents[dep].append(node.id)

    result = set(selected)
    pending = list(result)
    while pending:
        current = pending.pop()
        for dependent_id in dependents.get(current, ()):
            if dependent_id in result:
                continue
            if not include_global_gates and pipeline.get(dependent_id).is_global_gate:
                continue
            result.add(dependent_id)
            pending.append(dependent_id)
    return result


def backward_closure(pipeline: Pipeline, selected: Iterable[str]) -> set[str]:
    """Add every transitive dependency, global gates included."""

    result = set(selected)
    pending = list(result)
    while pending:
        current = pending.pop()
        for dep in pipeline.get(current).deps:
            if dep in pipeline and dep not in result:
                result.add(dep)
                pending.append(dep)
    return result


def _in_definition_order(pipeline: Pipeline, node_ids: set[str]) -> tuple[str, ...]:
    return tuple(node_id for node_id in pipeline.node_ids if node_id in node_ids)


__all__ = [
    "Selection",
    "SelectionMode",
    "backward_closure",
    "forward_closure",
    "select_all",
    "select_changed",
    "select_only",
]
