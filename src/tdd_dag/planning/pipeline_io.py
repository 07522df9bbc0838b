"""
tdd-dag: pipeline document serialization.

Purpose
- Emit a ``Pipeline`` as a YAML document and parse pipeline files back into
  typed ``PipelineNode`` records.

Functional requirements
- ``deps`` and ``changed_paths`` are written as comma-separated strings;
  both strings and YAML lists are accepted on input.
- ``run`` and ``verify`` are required; ``changed_paths`` defaults to ``*``;
  a missing ``pipeline_id`` defaults to ``default``.
- Plain scalars stay text (``true``, ``yes``, ``1.10`` are commands and ids,
  not YAML 1.1 booleans or floats); only ``null`` and merge keys resolve.
- Dependency references are checked separately by ``validate_references``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from tdd_dag.constants import DEFAULT_PIPELINE_ID, PIPELINE_SCHEMA_VERSION
from tdd_dag.domain.errors import SchemaError, TopologyError
from tdd_dag.domain.models import Pipeline, PipelineNode, join_csv, split_csv
from tdd_dag.utils.globbing import MATCH_ALL

_TEXT_TAGS = frozenset({"tag:yaml.org,2002:null", "tag:yaml.org,2002:merge"})


class _TextScalarLoader(yaml.SafeLoader):
    """``SafeLoader`` whose only implicit scalar types are null and merge."""


_TextScalarLoader.yaml_implicit_resolvers = {
    first: kept
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
    if (kept := [(tag, regexp) for tag, regexp in resolvers if tag in _TEXT_TAGS])
}


def pipeline_to_document(pipeline: Pipeline) -> dict[str, Any]:
    return {
        "version": pipeline.version,
        "pipeline_id": pipeline.pipeline_id,
        "description": pipeline.description,
        "nodes": [
            {
                "id": node.id,
                "type": node.type,
                "deps": join_csv(node.deps),
                "changed_paths": join_csv(node.changed_paths),
                "run": node.run,
                "verify": node.verify,
            }
            for node in pipeline.nodes
        ],
    }


def dump_pipeline(pipeline: Pipeline) -> str:
    return yaml.safe_dump(
        pipeline_to_document(pipeline),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )


def parse_pipeline_text(text: str, *, path: Path | None = None) -> Pipeline:
    try:
        payload = yaml.load(text, Loader=_TextScalarLoader)
    except yaml.YAMLError as exc:
        raise SchemaError(f"invalid pipeline YAML: {exc}", path=path) from exc

    if not isinstance(payload, Mapping):
        raise SchemaError("pipeline document must be a mapping", path=path)

    raw_nodes = payload.get("nodes")
    if raw_nodes is None:
        raw_nodes = []
    if not isinstance(raw_nodes, list):
        raise SchemaError("nodes must be a list", path=path, field="nodes")

    nodes = tuple(_parse_node(item, index, path) for index, item in enumerate(raw_nodes))

    pipeline_id = _scalar_text(payload.get("pipeline_id")) or DEFAULT_PIPELINE_ID
    version = _version(payload.get("version", PIPELINE_SCHEMA_VERSION), path)

    try:
        return Pipeline(
            pipeline_id=pipeline_id,
            nodes=nodes,
            description=_scalar_text(payload.get("description")),
            version=version,
        )
    except SchemaError as exc:
        raise SchemaError(str(exc), path=path, field=exc.field) from exc


def load_pipeline(path: Path) -> Pipeline:
    if not path.is_file():
        raise SchemaError(f"pipeline file not found: {path}")
    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SchemaError("pipeline file is not valid UTF-8", path=path) from exc
    return parse_pipeline_text(text, path=path)


def validate_references(pipeline: Pipeline) -> None:
    """Raise ``TopologyError`` for the first dependency that does not resolve."""

    for node in pipeline.nodes:
        for dep in node.deps:
            if dep not in pipeline:
                raise TopologyError(
                    f"node '{node.id}' references unknown dep '{dep}'",
                    node_id=node.id,
                )


def _parse_node(item: object, index: int, path: Path | None) -> PipelineNode:
    if not isinstance(item, Mapping):
        raise SchemaError(f"node #{index + 1} must be a mapping", path=path, field="nodes")

    node_id = _scalar_text(item.get("id"))
    if not node_id:
        raise SchemaError(f"node #{index + 1} is missing an id", path=path, field="id")

    run = _scalar_text(item.get("run"))
    verify = _scalar_text(item.get("verify"))
    if not run or not verify:
        raise SchemaError(
            f"node '{node_id}' missing run or verify",
            path=path,
            field="verify" if run else "run",
        )

    changed_paths = _list_field(item.get("changed_paths"), "changed_paths", node_id, path)
    return PipelineNode(
        id=node_id,
        type=_scalar_text(item.get("type")),
        deps=_list_field(item.get("deps"), "deps", node_id, path),
        changed_paths=changed_paths or (MATCH_ALL,),
        run=run,
        verify=verify,
    )


def _list_field(
    value: object, field: str, node_id: str, path: Path | None
) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, list):
        items: list[str] = []
        for entry in value:
            if isinstance(entry, (Mapping, list)):
                raise SchemaError(
                    f"node '{node_id}' {field} entries must be scalars", path=path, field=field
                )
            text = _scalar_text(entry)
            if text:
                items.append(text)
        return tuple(items)
    if isinstance(value, Mapping):
        raise SchemaError(
            f"node '{node_id}' {field} must be a string or list", path=path, field=field
        )
    return split_csv(_scalar_text(value))


def _scalar_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _version(value: object, path: Path | None) -> int:
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise SchemaError("version must be an integer", path=path, field="version")


__all__ = [
    "dump_pipeline",
    "load_pipeline",
    "parse_pipeline_text",
    "pipeline_to_document",
    "validate_references",
]
