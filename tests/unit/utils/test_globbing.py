"""Unit tests for changed-path glob matching."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tdd_dag.utils.globbing import glob_to_regex, matches_any, matches_any_file

_PATH_TEXT = st.text(alphabet="abc/._-[]()+$^", min_size=0, max_size=24)


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("src/**", "src/a/b/c.py", True),
        ("src/*", "src/a/b/c.py", True),
        ("src/*.py", "src/pkg/mod.py", True),
        ("src/*.py", "src/pkg/mod.pyc", False),
        ("docs/?.md", "docs/a.md", True),
        ("docs/?.md", "docs/ab.md", False),
        ("a+b(c).txt", "a+b(c).txt", True),
        ("a.b", "axb", False),
        ("src/**", "lib/src/x", False),
    ],
)
def test_glob_semantics(pattern: str, path: str, expected: bool) -> None:
    assert matches_any([pattern], path) is expected


def test_bare_star_matches_everything() -> None:
    assert matches_any(["nothing", "*"], "")
    assert matches_any_file(["*"], ["any/where"])


def test_no_files_match_nothing() -> None:
    assert not matches_any_file(["*"], [])


@given(path=_PATH_TEXT)
def test_literal_patterns_only_match_themselves(path: str) -> None:
    pattern = path.replace("*", "").replace("?", "")

    assert glob_to_regex(pattern).match(pattern)
    assert matches_any([pattern], pattern + "x") is False


@given(prefix=_PATH_TEXT, suffix=_PATH_TEXT)
def test_trailing_star_matches_any_suffix(prefix: str, suffix: str) -> None:
    assert matches_any([f"{prefix}*"], f"{prefix}{suffix}")
