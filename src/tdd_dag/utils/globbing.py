"""Glob matching for node ``changed_paths`` patterns.

Patterns are deliberately simpler than shell globs: ``*`` matches any run of
characters (path separators included), ``?`` matches one character, and every
other character is literal. A bare ``*`` pattern matches every path.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

MATCH_ALL = "*"

__all__ = ["MATCH_ALL", "glob_to_regex", "matches_any", "matches_any_file"]


@lru_cache(maxsize=1024)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a changed-path glob into an anchored regular expression."""

    parts: list[str] = ["^"]
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    parts.append("$")
    return re.compile("".join(parts), re.DOTALL)


def matches_any(patterns: Iterable[str], file_path: str) -> bool:
    """Return ``True`` when ``file_path`` matches at least one pattern."""

    for pattern in patterns:
        if pattern == MATCH_ALL:
            return True
        if glob_to_regex(pattern).match(file_path):
            return True
    return False


def matches_any_file(patterns: Iterable[str], file_paths: Iterable[str]) -> bool:
    """Return ``True`` when any of ``file_paths`` matches any pattern."""

    materialized = tuple(patterns)
    return any(matches_any(materialized, file_path) for file_path in file_paths)
