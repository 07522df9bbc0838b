"""Read and write the tab-separated compiled-scenario manifest."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tdd_dag.constants import MANIFEST_COLUMNS
from tdd_dag.domain.errors import IntegrityError
from tdd_dag.domain.models import ManifestRow
from tdd_dag.utils.fs import atomic_write
from tdd_dag.utils.hashing import is_sha256_hex

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

MANIFEST_HEADER = "\t".join(MANIFEST_COLUMNS)


def render_manifest(rows: Iterable[ManifestRow]) -> str:
    lines = [MANIFEST_HEADER, *(row.to_tsv() for row in rows)]
    return "\n".join(lines) + "\n"


def write_manifest(path: Path, rows: Iterable[ManifestRow]) -> None:
    atomic_write(path, render_manifest(rows))


def read_manifest(path: Path) -> tuple[ManifestRow, ...]:
    """Parse manifest rows, skipping the header and blank lines."""

    if not path.is_file():
        raise IntegrityError(f"compiled manifest not found: {path}")

    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise IntegrityError(f"compiled manifest is not valid UTF-8: {path}") from exc

    rows: list[ManifestRow] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line or line == MANIFEST_HEADER:
            continue
        row = ManifestRow.from_tsv(line, line_number=line_number)
        if not row.scenario_id:
            raise IntegrityError(f"manifest row at line {line_number} has an empty id")
        if not (is_sha256_hex(row.source_sha256) and is_sha256_hex(row.runtime_sha256)):
            raise IntegrityError(
                f"manifest row at line {line_number} has a malformed digest",
                scenario_id=row.scenario_id,
            )
        rows.append(row)
    return tuple(rows)


__all__ = ["MANIFEST_HEADER", "read_manifest", "render_manifest", "write_manifest"]
