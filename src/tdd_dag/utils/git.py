"""Minimal git subprocess helpers: repository root and working-tree changes."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

_RENAME_SEPARATOR = " -> "


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result for git invocations."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


def run_git(args: Sequence[str], *, cwd: Path) -> CommandResult:
    """Run ``git`` without raising on non-zero exit; a missing binary yields 127."""

    command = ("git", *args)
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            env=env,
            text=True,
            capture_output=True,
            check=False,
        )
    except FileNotFoundError as exc:
        return CommandResult(
            command=command,
            cwd=cwd.as_posix(),
            returncode=127,
            stdout="",
            stderr=str(exc),
        )
    return CommandResult(
        command=command,
        cwd=cwd.as_posix(),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def repo_toplevel(path: Path) -> Path | None:
    """Return the git top-level directory containing ``path``, if any."""

    if not path.is_dir():
        return None
    result = run_git(("rev-parse", "--show-toplevel"), cwd=path)
    if result.returncode != 0:
        return None
    top = result.stdout.strip()
    return Path(top) if top else None


def changed_files_from_status(repo_root: Path) -> tuple[str, ...]:
    """
    Return working-tree changes reported by ``git status --porcelain``.

    Renamed entries report their new path. Outside a repository the result is empty.
    """

    result = run_git(("status", "--porcelain"), cwd=repo_root)
    if result.returncode != 0:
        return ()

    changed: list[str] = []
    for line in result.stdout.splitlines():
        entry = line[3:].strip()
        if _RENAME_SEPARATOR in entry:
            entry = entry.split(_RENAME_SEPARATOR, 1)[1].strip()
        if len(entry) >= 2 and entry.startswith('"') and entry.endswith('"'):
            entry = entry[1:-1]
        if entry:
            changed.append(entry)
    return tuple(changed)


__all__ = ["CommandResult", "changed_files_from_status", "repo_toplevel", "run_git"]
