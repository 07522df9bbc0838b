"""Unit tests for filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from tdd_dag.utils.fs import (
    append_text,
    atomic_write,
    is_safe_name,
    is_safe_relative_path,
    project_relative,
    safe_delete,
)


def test_atomic_write_replaces_content_without_temp_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    atomic_write(target, "first")
    atomic_write(target, b"second")

    assert target.read_text(encoding="utf-8") == "second"
    assert [entry.name for entry in tmp_path.iterdir()] == ["state.json"]


def test_append_text_creates_then_appends(tmp_path: Path) -> None:
    target = tmp_path / "trace.jsonl"
    append_text(target, "a\n")
    append_text(target, "b\n")

    assert target.read_text(encoding="utf-8") == "a\nb\n"


def test_safe_delete_refuses_paths_outside_root(tmp_path: Path) -> None:
    root = tmp_path / "runtime"
    root.mkdir()
    inside = root / "a.scenario.yml"
    inside.write_text("x", encoding="utf-8")
    outside = tmp_path / "b.scenario.yml"
    outside.write_text("y", encoding="utf-8")

    safe_delete(inside, root)
    assert not inside.exists()

    with pytest.raises(ValueError, match="refusing to delete path outside"):
        safe_delete(root / ".." / "b.scenario.yml", root)
    assert outside.exists()


def test_project_relative_rendering(tmp_path: Path) -> None:
    assert project_relative(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"
    assert project_relative(tmp_path, tmp_path) == "."
    assert project_relative("/opt/other", tmp_path) == "/opt/other"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (".tdd_dag/.runtime", True),
        ("runtime", True),
        ("", False),
        (".", False),
        ("..", False),
        ("/abs", False),
        ("a/../b", False),
        ("a/..hidden", False),
    ],
)
def test_is_safe_relative_path(value: str, expected: bool) -> None:
    assert is_safe_relative_path(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("default", True),
        ("auth_login.v2-rc", True),
        ("", False),
        (".", False),
        ("..", False),
        ("team/nightly", False),
        ("../../escaped", False),
        ("with space", False),
    ],
)
def test_is_safe_name(value: str, expected: bool) -> None:
    assert is_safe_name(value) is expected
