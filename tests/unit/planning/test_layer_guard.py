"""Unit tests for the stability layer guard."""

from __future__ import annotations

from pathlib import Path

import pytest

from tdd_dag.domain.errors import SchemaError
from tdd_dag.planning import enforce_layer_guard, impacted_scenarios, load_catalog


def _catalog(tmp_path: Path, write_scenario, *, core_layer: str, dependent_layer: str):
    write_scenario(tmp_path, "base", linked="feature", stability_layer=core_layer)
    write_scenario(
        tmp_path,
        "feature",
        linked="base",
        depends_on="base",
        stability_layer=dependent_layer,
    )
    return load_catalog(tmp_path)


@pytest.mark.parametrize(
    ("dependency_layer", "dependent_layer"),
    [
        ("core", "core"),
        ("core", "experimental"),
        ("system", "experimental"),
        ("system", "system"),
    ],
)
def test_dependencies_on_equal_or_more_stable_layers_pass(
    tmp_path: Path, write_scenario, dependency_layer: str, dependent_layer: str
) -> None:
    scenarios = _catalog(
        tmp_path, write_scenario, core_layer=dependency_layer, dependent_layer=dependent_layer
    )

    report = enforce_layer_guard(scenarios)

    assert report.guarded == ("base", "feature")


@pytest.mark.parametrize(
    ("dependency_layer", "dependent_layer"),
    [("system", "core"), ("experimental", "core"), ("experimental", "system")],
)
def test_dependencies_on_less_stable_layers_fail(
    tmp_path: Path, write_scenario, dependency_layer: str, dependent_layer: str
) -> None:
    scenarios = _catalog(
        tmp_path, write_scenario, core_layer=dependency_layer, dependent_layer=dependent_layer
    )

    with pytest.raises(SchemaError, match="layer guard violation") as excinfo:
        enforce_layer_guard(scenarios)

    assert excinfo.value.field == "depends_on"
    assert "feature" in str(excinfo.value)


def test_changed_files_limit_the_guarded_scenarios(tmp_path: Path, write_scenario) -> None:
    scenarios = _catalog(
        tmp_path, write_scenario, core_layer="experimental", dependent_layer="core"
    )

    assert [s.id for s in impacted_scenarios(scenarios, ["src/base/x.py"])] == ["base"]
    report = enforce_layer_guard(scenarios, ["src/base/x.py"])
    assert report.guarded == ("base",)
    assert report.changed_files == ("src/base/x.py",)

    with pytest.raises(SchemaError):
        enforce_layer_guard(scenarios, ["src/feature/y.py"])
