"""
tdd-dag: runtime directory layout.

Purpose
- Resolve every project location the compiler, generator and executor touch
  from the effective config and a project root.

Functional requirements
- All runtime locations live under ``<project_root>/<paths.runtime_root>``.
- The runtime root must stay a safe relative path.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from tdd_dag.constants import (
    DEFAULT_PIPELINE_FILE,
    EVIDENCE_DIR,
    MANIFEST_FILE_NAME,
    PIPELINES_DIR,
    RUNTIME_SCENARIO_DIR,
    STATE_FILE,
)
from tdd_dag.domain.errors import UsageError
from tdd_dag.utils.fs import is_safe_relative_path


@dataclass(frozen=True, slots=True)
class RuntimeLayout:
    """Absolute project locations derived from config."""

    project_root: Path
    runtime_root_rel: str
    scenario_source_dir: Path
    log_dir_rel: str

    @classmethod
    def from_config(cls, config: Mapping[str, Any], project_root: Path) -> RuntimeLayout:
        paths = config["paths"]
        runtime_root_rel = str(paths["runtime_root"]).strip().rstrip("/")
        if not is_safe_relative_path(runtime_root_rel):
            raise UsageError(
                f"unsafe runtime root {runtime_root_rel!r}: must be a relative path "
                "without '..' (e.g. .tdd_dag/.runtime)"
            )
        source = Path(str(paths["scenario_source_dir"]).strip())
        if not source.is_absolute():
            source = project_root / source
        return cls(
            project_root=project_root,
            runtime_root_rel=runtime_root_rel,
            scenario_source_dir=source,
            log_dir_rel=str(config["observability"]["log_dir"]).strip(),
        )

    @property
    def runtime_root(self) -> Path:
        return self.project_root / self.runtime_root_rel

    @property
    def runtime_scenario_dir(self) -> Path:
        return self.runtime_root / RUNTIME_SCENARIO_DIR

    @property
    def manifest_path(self) -> Path:
        return self.runtime_scenario_dir / MANIFEST_FILE_NAME

    @property
    def pipelines_dir(self) -> Path:
        return self.runtime_root / PIPELINES_DIR

    @property
    def default_pipeline_path(self) -> Path:
        return self.pipelines_dir / DEFAULT_PIPELINE_FILE

    @property
    def evidence_root(self) -> Path:
        return self.runtime_root / EVIDENCE_DIR

    @property
    def state_file(self) -> Path:
        return self.runtime_root / STATE_FILE

    @property
    def log_dir(self) -> Path:
        return self.runtime_root / self.log_dir_rel


def project_root_from_pipeline(pipeline_path: Path, runtime_root_rel: str) -> Path | None:
    """
    Return the project root encoded in a runtime pipeline path, if any.

    ``/work/app/.tdd_dag/.runtime/dag/pipelines/default.pipeline.yml`` yields
    ``/work/app`` for the default runtime root.
    """

    marker = f"/{PurePosixPath(runtime_root_rel.rstrip('/')) / PIPELINES_DIR}/"
    rendered = pipeline_path.absolute().as_posix()
    index = rendered.find(marker)
    if index < 0:
        return None
    prefix = rendered[:index]
    return Path(prefix or "/")


__all__ = ["RuntimeLayout", "project_root_from_pipeline"]
