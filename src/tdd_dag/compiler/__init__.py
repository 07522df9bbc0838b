"""Scenario compiler: provenance-stamped runtime copies plus a hash manifest."""

from tdd_dag.compiler.compiler import (
    CheckReport,
    CompileReport,
    check_compiled,
    compile_scenarios,
    compiled_scenario_count,
    manifest_path_for,
    utc_timestamp,
)
from tdd_dag.compiler.document import (
    SCENARIO_KEYS,
    ScenarioDocument,
    decode_scenario_bytes,
    parse_scenario_text,
    read_scenario_document,
    scenario_files,
    scenario_id_from_document,
    unquote,
)
from tdd_dag.compiler.manifest import read_manifest, render_manifest, write_manifest

__all__ = [
    "CheckReport",
    "CompileReport",
    "SCENARIO_KEYS",
    "ScenarioDocument",
    "check_compiled",
    "compile_scenarios",
    "compiled_scenario_count",
    "decode_scenario_bytes",
    "manifest_path_for",
    "parse_scenario_text",
    "read_manifest",
    "read_scenario_document",
    "render_manifest",
    "scenario_files",
    "scenario_id_from_document",
    "unquote",
    "utc_timestamp",
    "write_manifest",
]
