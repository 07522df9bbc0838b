"""
tdd-dag: filesystem utilities

Purpose
- Atomic whole-file writes for compiled scenarios, manifests, summaries and state.
- Append-only writes for the run trace.
- Guarded deletion of generated files and project-relative path rendering.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Deletion refuses paths outside the given root.
"""

from __future__ import annotations

import contextlib
import os
import re
import tempfile
from pathlib import Path, PurePosixPath

PathLike = str | os.PathLike[str]

_SAFE_NAME = re.compile(r"[A-Za-z0-9._-]+")

__all__ = [
    "append_text",
    "atomic_write",
    "is_safe_name",
    "is_safe_relative_path",
    "project_relative",
    "safe_delete",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def append_text(path: PathLike, text: str, *, encoding: str = "utf-8") -> None:
    """Append ``text`` to ``path``, creating the file when needed."""

    with Path(path).open("a", encoding=encoding, newline="") as file_handle:
        file_handle.write(text)
        file_handle.flush()


def safe_delete(path: PathLike, root: PathLike) -> None:
    """Delete the file ``path`` only if it is contained within ``root``."""

    workspace = Path(root).resolve(strict=True)
    if not workspace.is_dir():
        raise NotADirectoryError(f"{workspace!s} is not a directory")

    target = Path(path)
    candidate = target.parent.resolve(strict=True) / target.name
    if not _is_relative_to(candidate, workspace):
        raise ValueError(f"refusing to delete path outside {workspace!s}: {target!s}")
    if target.is_dir() and not target.is_symlink():
        raise IsADirectoryError(f"refusing to delete directory: {target!s}")

    target.unlink(missing_ok=True)


def project_relative(path: PathLike, project_root: PathLike) -> str:
    """
    Render ``path`` as a POSIX path relative to ``project_root``.

    Paths outside the project root are returned as absolute POSIX paths.
    """

    resolved = Path(os.path.abspath(path))
    root = Path(os.path.abspath(project_root))
    if resolved == root:
        return "."
    if _is_relative_to(resolved, root):
        return resolved.relative_to(root).as_posix()
    return resolved.as_posix()


def is_safe_relative_path(value: str) -> bool:
    """
    Return ``True`` for a non-empty relative path without traversal.

    Rejects absolute paths, ``.``, ``..`` and anything containing ``..``.
    """

    if not value or value in {".", ".."}:
        return False
    if value.startswith("/") or PurePosixPath(value).is_absolute():
        return False
    return ".." not in value


def is_safe_name(value: str) -> bool:
    """Return ``True`` for a single path component built from ``[A-Za-z0-9._-]``."""

    if value in {".", ".."}:
        return False
    return _SAFE_NAME.fullmatch(value) is not None


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True
