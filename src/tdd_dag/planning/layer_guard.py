"""
tdd-dag: stability layer guard.

A scenario may only depend on scenarios that are at least as stable as it is
(``core`` < ``system`` < ``experimental``). With a changed-file set, only the
scenarios whose ``changed_paths`` match a changed file are guarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tdd_dag.constants import STABILITY_LAYER_RANK
from tdd_dag.domain.errors import SchemaError
from tdd_dag.utils.globbing import matches_any_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tdd_dag.domain.models import Scenario

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LayerGuardReport:
    guarded: tuple[str, ...]
    changed_files: tuple[str, ...]


def impacted_scenarios(
    scenarios: Sequence[Scenario],
    changed_files: Sequence[str],
) -> tuple[Scenario, ...]:
    """Scenarios whose ``changed_paths`` match a changed file; all when none changed."""

    if not changed_files:
        return tuple(scenarios)
    return tuple(
        scenario
        for scenario in scenarios
        if matches_any_file(scenario.changed_paths, changed_files)
    )


def enforce_layer_guard(
    scenarios: Sequence[Scenario],
    changed_files: Sequence[str] = (),
) -> LayerGuardReport:
    by_id = {scenario.id: scenario for scenario in scenarios}
    guarded = impacted_scenarios(scenarios, changed_files)

    for scenario in guarded:
        rank = STABILITY_LAYER_RANK[scenario.stability_layer]
        for dependency_id in scenario.depends_on:
            dependency = by_id[dependency_id]
            if STABILITY_LAYER_RANK[dependency.stability_layer] > rank:
                raise SchemaError(
                    f"layer guard violation: {scenario.stability_layer} scenario "
                    f"'{scenario.id}' depends on {dependency.stability_layer} scenario "
                    f"'{dependency_id}'",
                    path=scenario.source_path,
                    field="depends_on",
                )

    report = LayerGuardReport(
        guarded=tuple(scenario.id for scenario in guarded),
        changed_files=tuple(changed_files),
    )
    logger.info(
        "layer guard passed",
        extra={"guarded": len(report.guarded), "changed_files": len(report.changed_files)},
    )
    return report


__all__ = ["LayerGuardReport", "enforce_layer_guard", "impacted_scenarios"]
