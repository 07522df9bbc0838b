"""Utility exports for filesystem, hashing, glob matching and git helpers."""

from tdd_dag.utils.fs import (
    append_text,
    atomic_write,
    is_safe_name,
    is_safe_relative_path,
    project_relative,
    safe_delete,
)
from tdd_dag.utils.git import changed_files_from_status, repo_toplevel, run_git
from tdd_dag.utils.globbing import glob_to_regex, matches_any, matches_any_file
from tdd_dag.utils.hashing import is_sha256_hex, sha256_bytes, sha256_file

__all__ = [
    "append_text",
    "atomic_write",
    "changed_files_from_status",
    "glob_to_regex",
    "is_safe_name",
    "is_safe_relative_path",
    "is_sha256_hex",
    "matches_any",
    "matches_any_file",
    "project_relative",
    "repo_toplevel",
    "run_git",
    "safe_delete",
    "sha256_bytes",
    "sha256_file",
]
