"""
tdd-dag: scenario document parser.

Purpose
- Parse line-oriented ``key: value`` scenario files into a typed document
  that records which recognized keys were declared.

Functional requirements
- Only column-0 lines whose key is in ``SCENARIO_KEYS`` are recognized;
  comments, blank lines and unknown keys are ignored.
- Values have surrounding whitespace trimmed and one pair of matching
  single or double quotes removed.
- Declaring a recognized key twice is a schema error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from tdd_dag.constants import SCENARIO_SUFFIX
from tdd_dag.domain.errors import SchemaError
from tdd_dag.utils.fs import is_safe_name

SCENARIO_KEYS: Final[tuple[str, ...]] = (
    "id",
    "outcome_id",
    "capability_id",
    "stability_layer",
    "depends_on",
    "linked_nodes",
    "changed_paths",
    "red_run",
    "impl_run",
    "green_run",
    "verify",
    "unit_normal_tests",
    "unit_boundary_tests",
    "unit_failure_tests",
    "boundary_smoke_tests",
)

_KEY_LINE: Final[re.Pattern[str]] = re.compile(r"^([a-z_]+):\s*(.*)$")
_RECOGNIZED: Final[frozenset[str]] = frozenset(SCENARIO_KEYS)


@dataclass(frozen=True, slots=True)
class ScenarioDocument:
    """Recognized fields of one scenario file, in declaration order."""

    path: Path
    fields: dict[str, str] = field(default_factory=dict)

    def has(self, key: str) -> bool:
        return key in self.fields

    def get(self, key: str, default: str = "") -> str:
        return self.fields.get(key, default)

    def require(self, key: str) -> str:
        """Return a declared, non-empty value or raise ``SchemaError``."""

        value = self.fields.get(key, "")
        if not value:
            raise SchemaError(f"missing {key} in scenario file", path=self.path, field=key)
        return value

    @property
    def scenario_id(self) -> str:
        return self.get("id")


def unquote(raw: str) -> str:
    """Trim ``raw`` and drop one pair of matching surrounding quotes."""

    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        value = value[1:-1]
    return value.strip()


def parse_scenario_text(text: str, *, path: Path) -> ScenarioDocument:
    fields: dict[str, str] = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        match = _KEY_LINE.match(line)
        if match is None:
            continue
        key = match.group(1)
        if key not in _RECOGNIZED:
            continue
        if key in fields:
            raise SchemaError(
                f"duplicate key {key!r} at line {line_number} in scenario file",
                path=path,
                field=key,
            )
        fields[key] = unquote(match.group(2))
    return ScenarioDocument(path=path, fields=fields)


def decode_scenario_bytes(raw: bytes, path: Path) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SchemaError(
            f"scenario file is not valid UTF-8 (byte offset {exc.start})", path=path
        ) from exc


def read_scenario_document(path: Path) -> ScenarioDocument:
    return parse_scenario_text(decode_scenario_bytes(path.read_bytes(), path), path=path)


def scenario_id_from_document(document: ScenarioDocument) -> str:
    """Return the document's id, requiring a safe file-name token."""

    scenario_id = document.scenario_id
    if not scenario_id:
        raise SchemaError("missing id in scenario file", path=document.path, field="id")
    if not is_safe_name(scenario_id):
        raise SchemaError(
            f"scenario id {scenario_id!r} must match [A-Za-z0-9._-]+",
            path=document.path,
            field="id",
        )
    return scenario_id


def scenario_files(directory: Path) -> list[Path]:
    """Return regular ``*.scenario.yml`` files directly in ``directory``, sorted."""

    return sorted(
        entry
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.endswith(SCENARIO_SUFFIX)
    )


__all__ = [
    "SCENARIO_KEYS",
    "ScenarioDocument",
    "decode_scenario_bytes",
    "parse_scenario_text",
    "read_scenario_document",
    "scenario_files",
    "scenario_id_from_document",
    "unquote",
]
