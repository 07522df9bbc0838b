"""
tdd-dag: scenario compiler.

Purpose
- Freeze mutable source scenarios into provenance-stamped runtime copies and
  record them in ``.compiled-manifest.tsv``.
- Re-verify a manifest against the filesystem (check-only mode).

Functional requirements
- Only generated ``*.scenario.yml`` files are removed from the runtime dir.
- A compile always ends with a check of its own output.
- Check failures raise ``IntegrityError`` and are never auto-repaired.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from tdd_dag.compiler.document import (
    decode_scenario_bytes,
    parse_scenario_text,
    scenario_files,
    scenario_id_from_document,
)
from tdd_dag.compiler.manifest import read_manifest, write_manifest
from tdd_dag.constants import MANIFEST_FILE_NAME, SCENARIO_SUFFIX
from tdd_dag.domain.errors import IntegrityError, SchemaError, UsageError
from tdd_dag.domain.models import CompiledScenario, ManifestRow
from tdd_dag.utils.fs import atomic_write, project_relative, safe_delete
from tdd_dag.utils.hashing import sha256_bytes, sha256_file

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_FIRST_LINE = re.compile(r"\r?\n")


@dataclass(frozen=True, slots=True)
class CheckReport:
    runtime_dir: Path
    manifest_path: Path
    file_count: int


@dataclass(frozen=True, slots=True)
class CompileReport:
    source_dir: Path
    runtime_dir: Path
    manifest_path: Path
    rows: tuple[ManifestRow, ...]
    check: CheckReport


def utc_timestamp(moment: datetime | None = None) -> str:
    """Render ``moment`` (default: now) as ISO-8601 UTC with second precision."""

    current = moment if moment is not None else datetime.now(UTC)
    return current.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def manifest_path_for(runtime_dir: Path) -> Path:
    return runtime_dir / MANIFEST_FILE_NAME


def compiled_scenario_count(runtime_dir: Path) -> int:
    """Count compiled scenario files physically present in ``runtime_dir``."""

    if not runtime_dir.is_dir():
        return 0
    return len(scenario_files(runtime_dir))


def compile_scenarios(
    source_dir: Path,
    runtime_dir: Path,
    *,
    project_root: Path,
    clock: Clock | None = None,
) -> CompileReport:
    """Compile every source scenario into ``runtime_dir`` and verify the result."""

    if not source_dir.is_dir():
        raise SchemaError(f"source scenario directory not found: {source_dir}")
    if source_dir.resolve() == runtime_dir.resolve():
        raise UsageError(f"source and runtime scenario directories must differ: {source_dir}")

    sources = scenario_files(source_dir)
    if not sources:
        raise SchemaError(f"no source scenarios found in {source_dir}")

    # Parse everything before touching the runtime dir so a bad catalog leaves it intact.
    seen: set[str] = set()
    planned: list[tuple[str, Path, bytes, str]] = []
    for source_path in sources:
        raw = source_path.read_bytes()
        text = decode_scenario_bytes(raw, source_path)
        document = parse_scenario_text(text, path=source_path)
        scenario_id = scenario_id_from_document(document)
        if scenario_id in seen:
            raise SchemaError(
                f"duplicate scenario id in source catalog: {scenario_id}",
                path=source_path,
                field="id",
            )
        seen.add(scenario_id)
        planned.append((scenario_id, source_path, raw, text))

    runtime_dir.mkdir(parents=True, exist_ok=True)
    for stale in scenario_files(runtime_dir):
        safe_delete(stale, runtime_dir)

    rows: list[ManifestRow] = []
    for scenario_id, source_path, raw, text in planned:
        compiled = CompiledScenario(
            scenario_id=scenario_id,
            source_rel=project_relative(source_path, project_root),
            source_sha256=sha256_bytes(raw),
            compiled_at=utc_timestamp(clock() if clock is not None else None),
            body=text,
        )
        runtime_path = runtime_dir / f"{scenario_id}{SCENARIO_SUFFIX}"
        atomic_write(runtime_path, compiled.render())
        rows.append(
            ManifestRow(
                scenario_id=scenario_id,
                source_rel=compiled.source_rel,
                source_sha256=compiled.source_sha256,
                runtime_rel=project_relative(runtime_path, project_root),
                runtime_sha256=sha256_file(runtime_path),
                compiled_at=compiled.compiled_at,
            )
        )
        logger.debug("compiled scenario %s", scenario_id, extra={"source": compiled.source_rel})

    manifest_path = manifest_path_for(runtime_dir)
    write_manifest(manifest_path, rows)
    check = check_compiled(runtime_dir, project_root=project_root)
    logger.info(
        "compiled %d scenarios",
        len(rows),
        extra={"source_dir": source_dir, "runtime_dir": runtime_dir},
    )
    return CompileReport(
        source_dir=source_dir,
        runtime_dir=runtime_dir,
        manifest_path=manifest_path,
        rows=tuple(rows),
        check=check,
    )


def check_compiled(runtime_dir: Path, *, project_root: Path) -> CheckReport:
    """Verify every manifest row against the files it references."""

    manifest_path = manifest_path_for(runtime_dir)
    rows = read_manifest(manifest_path)

    for row in rows:
        _check_row(row, project_root)

    runtime_count = compiled_scenario_count(runtime_dir)
    if len(rows) != runtime_count:
        raise IntegrityError(
            "compiled manifest/runtime file count mismatch "
            f"(manifest={len(rows)} runtime={runtime_count})"
        )

    logger.info("compile check passed", extra={"runtime_dir": runtime_dir, "files": len(rows)})
    return CheckReport(runtime_dir=runtime_dir, manifest_path=manifest_path, file_count=len(rows))


def _check_row(row: ManifestRow, project_root: Path) -> None:
    source_path = project_root / row.source_rel
    runtime_path = project_root / row.runtime_rel
    scenario_id = row.scenario_id

    if not source_path.is_file():
        raise IntegrityError(
            f"source scenario missing for compiled row '{scenario_id}': {source_path}",
            scenario_id=scenario_id,
        )
    if not runtime_path.is_file():
        raise IntegrityError(
            f"runtime scenario missing for compiled row '{scenario_id}': {runtime_path}",
            scenario_id=scenario_id,
        )

    if sha256_file(source_path) != row.source_sha256:
        raise IntegrityError(
            f"source scenario changed after compile for '{scenario_id}'. "
            "Recompile and rebuild the pipeline first.",
            scenario_id=scenario_id,
        )
    if sha256_file(runtime_path) != row.runtime_sha256:
        raise IntegrityError(
            f"runtime scenario drift detected for '{scenario_id}' "
            f"(manual edit suspected): {runtime_path}",
            scenario_id=scenario_id,
        )

    content = runtime_path.read_bytes().decode("utf-8", errors="replace")
    header = _FIRST_LINE.split(content, maxsplit=1)[0]
    if header != f"# GENERATED_FROM: {row.source_rel}":
        raise IntegrityError(
            f"generated header mismatch for '{scenario_id}': {runtime_path}",
            scenario_id=scenario_id,
        )


__all__ = [
    "CheckReport",
    "Clock",
    "CompileReport",
    "check_compiled",
    "compile_scenarios",
    "compiled_scenario_count",
    "manifest_path_for",
    "utc_timestamp",
]
