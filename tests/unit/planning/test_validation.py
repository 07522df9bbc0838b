"""Unit tests for scenario catalog validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from tdd_dag.domain.errors import SchemaError
from tdd_dag.domain.models import StabilityLayer
from tdd_dag.planning.validation import is_noop_command, load_catalog, split_bundle


def _catalog(tmp_path: Path, write_scenario, **overrides: str | None) -> Path:
    write_scenario(tmp_path, "alpha", linked="beta", **overrides)
    write_scenario(tmp_path, "beta", linked="alpha")
    return tmp_path


def test_valid_catalog_loads_in_file_order(tmp_path: Path, write_scenario) -> None:
    write_scenario(tmp_path, "beta", linked="alpha", depends_on="alpha")
    write_scenario(tmp_path, "alpha", linked="beta", stability_layer="'system'")

    scenarios = load_catalog(tmp_path)

    assert [scenario.id for scenario in scenarios] == ["alpha", "beta"]
    alpha, beta = scenarios
    assert alpha.stability_layer is StabilityLayer.SYSTEM
    assert beta.depends_on == ("alpha",)
    assert alpha.unit_normal_tests == ("echo un1-alpha", "echo un2-alpha")
    assert len(alpha.boundary_smoke_tests) == 5
    assert alpha.changed_paths == ("src/alpha/**",)


def test_split_bundle_drops_empty_chunks() -> None:
    assert split_bundle(" a ||| ||| b|||") == ("a", "b")


@pytest.mark.parametrize("command", ["true", " : ", "true\t"])
def test_noop_commands(command: str) -> None:
    assert is_noop_command(command)


def test_real_commands_are_not_noop() -> None:
    assert not is_noop_command("true && make test")


def test_missing_directory_and_empty_catalog(tmp_path: Path) -> None:
    with pytest.raises(SchemaError, match="scenario directory not found"):
        load_catalog(tmp_path / "absent")
    with pytest.raises(SchemaError, match=r"no scenario files found in .*\*\.scenario\.yml"):
        load_catalog(tmp_path)


def test_duplicate_ids_across_files(tmp_path: Path, write_scenario) -> None:
    _catalog(tmp_path, write_scenario)
    write_scenario(tmp_path, "gamma", linked="alpha", id="alpha")

    with pytest.raises(SchemaError, match="duplicate scenario id 'alpha'"):
        load_catalog(tmp_path)


@pytest.mark.parametrize(
    ("overrides", "field", "message"),
    [
        ({"outcome_id": None}, "outcome_id", "missing outcome_id"),
        ({"capability_id": ""}, "capability_id", "missing capability_id"),
        ({"stability_layer": "beta"}, "stability_layer", "core|system|experimental"),
        ({"depends_on": None}, "depends_on", "missing depends_on"),
        ({"linked_nodes": ""}, "linked_nodes", "missing linked_nodes"),
        ({"changed_paths": None}, "changed_paths", "missing changed_paths"),
        ({"impl_run": None}, "impl_run", "missing impl_run"),
        ({"green_run": "true"}, "green_run", "no-op command 'true'"),
        ({"verify": ":"}, "verify", "no-op command ':'"),
        ({"unit_normal_tests": "echo one"}, "unit_normal_tests", "exactly 2 commands"),
        (
            {"unit_boundary_tests": "echo same ||| echo same"},
            "unit_boundary_tests",
            "duplicate commands",
        ),
        ({"unit_failure_tests": "echo ok ||| true"}, "unit_failure_tests", "no-op command"),
        (
            {"boundary_smoke_tests": "echo 1 ||| echo 2 ||| echo 3 ||| echo 4"},
            "boundary_smoke_tests",
            "exactly 5 commands",
        ),
        ({"depends_on": "alpha"}, "depends_on", "must not include self"),
        ({"depends_on": "ghost"}, "depends_on", "unknown scenario id 'ghost'"),
        ({"linked_nodes": "beta,ghost"}, "linked_nodes", "unknown scenario id 'ghost'"),
        ({"linked_nodes": " , "}, "linked_nodes", "at least one scenario id"),
    ],
)
def test_invalid_scenarios_fail_with_file_and_field(
    tmp_path: Path,
    write_scenario,
    overrides: dict[str, str | None],
    field: str,
    message: str,
) -> None:
    _catalog(tmp_path, write_scenario, **overrides)

    with pytest.raises(SchemaError, match=message) as excinfo:
        load_catalog(tmp_path)

    assert excinfo.value.field == field
    assert excinfo.value.path == str(tmp_path / "alpha.scenario.yml")


@pytest.mark.parametrize(
    ("scenario_id", "message"),
    [
        ("team/auth", "scenario id 'team/auth' must match"),
        ("..", "scenario id '..' must match"),
        ("", "missing id in scenario file"),
    ],
)
def test_catalog_ids_must_be_file_name_tokens(
    tmp_path: Path, write_scenario, scenario_id: str, message: str
) -> None:
    _catalog(tmp_path, write_scenario, id=scenario_id)

    with pytest.raises(SchemaError, match=message) as excinfo:
        load_catalog(tmp_path)

    assert excinfo.value.field == "id"
    assert excinfo.value.path == str(tmp_path / "alpha.scenario.yml")


def test_non_utf8_scenario_file_is_a_schema_error(tmp_path: Path, write_scenario) -> None:
    path = write_scenario(tmp_path, "alpha", linked="beta")
    write_scenario(tmp_path, "beta", linked="alpha")
    path.write_bytes(path.read_bytes() + b"# caf\xe9\n")

    with pytest.raises(SchemaError, match="scenario file is not valid UTF-8") as excinfo:
        load_catalog(tmp_path)

    assert excinfo.value.path == str(path)
