"""Error taxonomy for schema, integrity, topology and usage failures.

Execution failures (a node command exiting non-zero, a cycle in the selected
subgraph) are not exceptions; they are reported through ``RunStatus.FAIL``.
"""

from __future__ import annotations

from pathlib import Path


class TddDagError(Exception):
    """Base class for fatal, non-retryable pipeline errors."""


class SchemaError(TddDagError, ValueError):
    """Raised for malformed or incomplete scenario or pipeline definitions."""

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        field: str | None = None,
    ) -> None:
        self.path = None if path is None else str(path)
        self.field = field
        rendered = message
        if self.path is not None:
            rendered = f"{rendered} in file: {self.path}"
        super().__init__(rendered)


class IntegrityError(TddDagError):
    """Raised when compiled artifacts diverge from their recorded provenance."""

    def __init__(self, message: str, *, scenario_id: str | None = None) -> None:
        self.scenario_id = scenario_id
        super().__init__(message)


class TopologyError(TddDagError):
    """Raised when a pipeline references a node that does not exist."""

    def __init__(self, message: str, *, node_id: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message)


class UsageError(TddDagError):
    """Raised for invalid command-line arguments or unsafe runtime settings."""


__all__ = [
    "IntegrityError",
    "SchemaError",
    "TddDagError",
    "TopologyError",
    "UsageError",
]
