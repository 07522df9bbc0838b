"""
tdd-dag: unit tests for node selection.

Purpose
- Validate ``--only``, full and change-driven selection, including the
  global-gate exclusion and the dependency closure.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import node
from tdd_dag.domain.errors import UsageError
from tdd_dag.domain.models import Pipeline
from tdd_dag.execution import (
    SelectionMode,
    backward_closure,
    forward_closure,
    select_all,
    select_changed,
    select_only,
)
from tdd_dag.planning import synthetic_pipeline


def _pipeline() -> Pipeline:
    return Pipeline(
        pipeline_id="default",
        nodes=(
            node("preflight", node_type="utility", changed_paths=("config/**",)),
            node("lib", "preflight", changed_paths=("src/lib/**",)),
            node("api", "lib", changed_paths=("src/api/**",)),
            node("docs", "preflight", changed_paths=("docs/**",)),
            node("smoke_gate", "api", "docs", node_type="smoke", changed_paths=("gates/**",)),
            node("e2e_gate", "smoke_gate", node_type="e2e", changed_paths=("gates/**",)),
        ),
    )


def test_select_all_keeps_definition_order() -> None:
    pipeline = _pipeline()
    selection = select_all(pipeline)

    assert selection.mode is SelectionMode.ALL
    assert selection.node_ids == pipeline.node_ids


def test_select_only_requires_known_node() -> None:
    pipeline = _pipeline()

    assert select_only(pipeline, "api").node_ids == ("api",)
    with pytest.raises(UsageError, match="--only node not found: ghost"):
        select_only(pipeline, "ghost")


def test_changed_selection_adds_dependents_and_dependencies() -> None:
    selection = select_changed(_pipeline(), ["src/lib/core.py"])

    assert selection.mode is SelectionMode.CHANGED
    assert selection.node_ids == ("preflight", "lib", "api")
    assert selection.changed_files == ("src/lib/core.py",)


def test_changed_selection_reaches_gates_only_when_included() -> None:
    selection = select_changed(_pipeline(), ["src/lib/core.py"], include_global_gates=True)

    # The gate's own dependencies come back in through the backward closure.
    assert selection.node_ids == ("preflight", "lib", "api", "docs", "smoke_gate", "e2e_gate")


def test_gate_matched_directly_pulls_in_its_dependencies() -> None:
    selection = select_changed(_pipeline(), ["gates/run.sh"])

    assert selection.node_ids == _pipeline().node_ids


def test_changed_selection_with_no_match_is_empty() -> None:
    assert select_changed(_pipeline(), ["README.md"]).node_ids == ()


def test_catch_all_pattern_matches_any_change() -> None:
    pipeline = Pipeline(pipeline_id="p", nodes=(node("a"), node("b", "a", changed_paths=("x",))))

    assert select_changed(pipeline, ["anything/at/all"]).node_ids == ("a", "b")


def test_closures_tolerate_dangling_references() -> None:
    pipeline = Pipeline(pipeline_id="p", nodes=(node("a", "ghost"), node("b", "a")))

    assert forward_closure(pipeline, {"a"}) == {"a", "b"}
    assert backward_closure(pipeline, {"b"}) == {"a", "b"}


@settings(max_examples=40, deadline=None)
@given(
    count=st.integers(min_value=1, max_value=30),
    data=st.data(),
)
def test_chain_change_selects_downstream_then_upstream(count: int, data: st.DataObject) -> None:
    pipeline = synthetic_pipeline(count)
    index = data.draw(st.integers(min_value=1, max_value=count))
    seed = f"synthetic_node_{index}"

    # Synthetic gates carry their own ids, so they are ordinary dependents.
    forward = forward_closure(pipeline, {seed})
    assert forward == {
        *(f"synthetic_node_{i}" for i in range(index, count + 1)),
        "synthetic_smoke_gate",
        "synthetic_e2e_gate",
    }

    closed = backward_closure(pipeline, forward)
    assert closed == set(pipeline.node_ids)
