"""Command-line interface router for tdd-dag."""

from __future__ import annotations

import argparse
import sys
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tdd_dag.compiler import check_compiled, compile_scenarios
from tdd_dag.config import (
    DEFAULT_CONFIG_FILE,
    RuntimeLayout,
    dump_effective_config,
    load_config,
    project_root_from_pipeline,
)
from tdd_dag.domain.errors import UsageError
from tdd_dag.execution import PipelineExecutor, RunOptions, RunResult, ShellRunner, local_run_id
from tdd_dag.observability import correlation_scope, setup_logging, shutdown_logging
from tdd_dag.planning import BuildRequest, GateCommands, build_pipeline
from tdd_dag.ui.render import CLIRenderer, create_renderer
from tdd_dag.utils.git import repo_toplevel

PROG = "tdd-dag"


@dataclass(frozen=True, slots=True)
class CommandContext:
    """Effective config and resolved locations for one command invocation."""

    config: Mapping[str, Any]
    layout: RuntimeLayout
    repo_root: Path


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for compile, build, run and config."""

    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "tdd-dag: compile TDD scenarios into a verification DAG and run it.\n\n"
            "Common workflows:\n"
            "  tdd-dag compile                   Compile source scenarios into the runtime\n"
            "  tdd-dag build                     Generate the default pipeline\n"
            "  tdd-dag run PIPELINE              Execute a pipeline\n"
            "  tdd-dag run PIPELINE --changed-only\n"
            "  tdd-dag config --json             Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--project-root",
        default=None,
        help="Project root directory (default: git top-level of cwd, else cwd).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a tdd_dag TOML config (default: <project-root>/tdd_dag.toml if present).",
    )
    common.add_argument(
        "--runtime-root",
        default=None,
        help="Runtime root relative to the project root (overrides paths.runtime_root).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # compile -------------------------------------------------------------
    compile_parser = subparsers.add_parser(
        "compile",
        parents=[common],
        help="Compile source scenarios into the runtime catalog",
        description=(
            "Copy every source scenario into the runtime catalog with a generated header\n"
            "and record source/runtime hashes in the compiled manifest.\n\n"
            "Examples:\n"
            "  tdd-dag compile\n"
            "  tdd-dag compile --check-only\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    compile_parser.add_argument("--source", default=None, help="Source scenario directory")
    compile_parser.add_argument("--out", default=None, help="Runtime scenario directory")
    compile_parser.add_argument(
        "--check-only",
        action="store_true",
        help="Only verify the runtime catalog against its manifest",
    )
    compile_parser.set_defaults(handler=_cmd_compile)

    # build ---------------------------------------------------------------
    build_parser_ = subparsers.add_parser(
        "build",
        parents=[common],
        help="Generate a pipeline document from the scenario catalog",
        description=(
            "Validate the scenario catalog and expand every scenario into its node\n"
            "template plus the preflight, smoke and e2e gates.\n\n"
            "Examples:\n"
            "  tdd-dag build\n"
            "  tdd-dag build --dry-run\n"
            "  tdd-dag build --synthetic-nodes 500 --out /tmp/synthetic.pipeline.yml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    build_parser_.add_argument(
        "--from",
        dest="scenario_dir",
        default=None,
        help="Scenario catalog to expand (default: runtime scenario directory)",
    )
    build_parser_.add_argument(
        "--source", default=None, help="Source scenario directory used for auto-compile"
    )
    build_parser_.add_argument("--out", default=None, help="Pipeline output file")
    build_parser_.add_argument(
        "--dry-run", action="store_true", help="Print the document instead of writing it"
    )
    build_parser_.add_argument(
        "--synthetic-nodes",
        type=int,
        default=None,
        help="Generate a synthetic pipeline of N chained nodes plus gates",
    )
    build_parser_.add_argument(
        "--no-compile",
        dest="auto_compile",
        action="store_false",
        help="Skip compiling source scenarios before building",
    )
    build_parser_.add_argument(
        "--enforce-layer-guard",
        action="store_true",
        help="Reject dependencies on less stable scenarios",
    )
    build_parser_.add_argument(
        "--changed-file",
        dest="changed_files",
        action="append",
        default=[],
        help="Changed path used to scope the layer guard (repeatable)",
    )
    build_parser_.set_defaults(handler=_cmd_build)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Execute a pipeline in dependency order",
        description=(
            "Execute the selected nodes of a pipeline with fail-fast semantics and\n"
            "write trace, summary and graph evidence for the run.\n\n"
            "Examples:\n"
            "  tdd-dag run .tdd_dag/.runtime/dag/pipelines/default.pipeline.yml\n"
            "  tdd-dag run PIPELINE --changed-only --changed-file src/app.py\n"
            "  tdd-dag run PIPELINE --only auth_login_green\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("pipeline", help="Pipeline YAML file")
    run_parser.add_argument(
        "--dry-run", action="store_true", help="Print commands without executing them"
    )
    run_parser.add_argument(
        "--changed-only",
        action="store_true",
        help="Run only nodes impacted by changed files",
    )
    run_parser.add_argument(
        "--changed-file",
        dest="changed_files",
        action="append",
        default=[],
        help="Changed path for --changed-only (repeatable; default: git status)",
    )
    run_parser.add_argument(
        "--include-global-gates",
        action="store_true",
        help="Let --changed-only propagate into the smoke and e2e gates",
    )
    run_parser.add_argument("--only", dest="only_node", default=None, help="Run a single node")
    run_parser.set_defaults(handler=_cmd_run)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, tdd_dag.toml,\n"
            "TDD_DAG_* environment variables and command-line overrides.\n\n"
            "Examples:\n"
            "  tdd-dag config\n"
            "  tdd-dag config --runtime-root build/runtime --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument(
        "--json", action="store_true", help="Emit compact JSON only"
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2
    return int(handler(namespace))


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_compile(args: argparse.Namespace) -> int:
    context = _load_context(args)
    layout = context.layout
    source_dir = _resolve_path(args.source, layout.project_root) or layout.scenario_source_dir
    runtime_dir = _resolve_path(args.out, layout.project_root) or layout.runtime_scenario_dir
    renderer = _get_renderer(args)

    with _logging_session(args, context):
        if args.check_only:
            report = check_compiled(runtime_dir, project_root=layout.project_root)
            renderer.ok(
                f"DAG compile check passed: source={source_dir} runtime={runtime_dir} "
                f"files={report.file_count}"
            )
            return 0

        compiled = compile_scenarios(source_dir, runtime_dir, project_root=layout.project_root)
    renderer.ok(f"DAG scenarios compiled: source={source_dir} runtime={runtime_dir}")
    renderer.kv("Scenarios", len(compiled.rows))
    renderer.kv("Manifest", compiled.manifest_path)
    renderer.detail(
        f"DAG compile check passed: source={source_dir} runtime={runtime_dir} "
        f"files={compiled.check.file_count}"
    )
    return 0


def _cmd_build(args: argparse.Namespace) -> int:
    context = _load_context(args)
    layout = context.layout
    request = BuildRequest(
        scenario_dir=_resolve_path(args.scenario_dir, layout.project_root),
        source_dir=_resolve_path(args.source, layout.project_root),
        out_file=_resolve_path(args.out, layout.project_root),
        dry_run=args.dry_run,
        synthetic_nodes=args.synthetic_nodes,
        auto_compile=args.auto_compile,
        enforce_layer_guard=args.enforce_layer_guard,
        changed_files=tuple(args.changed_files),
    )
    renderer = _get_renderer(args)

    with _logging_session(args, context):
        result = build_pipeline(
            request,
            layout=layout,
            gates=GateCommands.from_config(context.config),
        )

    if request.dry_run:
        renderer.text(result.document.rstrip("\n"))
        return 0
    if request.synthetic_nodes is not None:
        renderer.ok(
            f"Synthetic pipeline generated: {result.out_file} (nodes={request.synthetic_nodes})"
        )
        return 0

    renderer.ok(f"Pipeline generated: {result.out_file}")
    renderer.kv("Nodes", len(result.pipeline))
    if result.layer_guard is not None:
        renderer.kv("Layer guard", f"passed for {len(result.layer_guard.guarded)} scenario(s)")
    renderer.next_steps([f"{PROG} run {result.out_file}"])
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    context = _load_context(args)

    if args.json:
        sys.stdout.write(dump_effective_config(context.config) + "\n")
        return 0

    renderer = _get_renderer(args)
    config_file = (
        Path(args.config_path).expanduser().resolve()
        if args.config_path is not None
        else context.layout.project_root / DEFAULT_CONFIG_FILE
    )
    renderer.kv("Project root", context.layout.project_root)
    renderer.kv("Config file", config_file if config_file.is_file() else "(defaults)")
    renderer.kv("Runtime root", context.layout.runtime_root)
    renderer.text(dump_effective_config(context.config, indent=2))
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    pipeline_path = Path(args.pipeline).expanduser().absolute()
    context = _load_context(args, pipeline_path=pipeline_path)
    if args.only_node is not None and not args.only_node.strip():
        raise UsageError("--only requires a node id")
    options = RunOptions(
        dry_run=args.dry_run,
        changed_only=args.changed_only,
        changed_files=tuple(args.changed_files),
        include_global_gates=args.include_global_gates,
        only_node=args.only_node,
    )
    renderer = _get_renderer(args)
    executor = PipelineExecutor(
        layout=context.layout,
        repo_root=context.repo_root,
        runner=ShellRunner.from_config(context.config),
        echo=renderer.text,
    )

    with _logging_session(args, context):
        result = executor.execute(pipeline_path, options)

    _render_run_result(renderer, result, args.pipeline)
    return 0 if result.passed else 1


def _render_run_result(renderer: CLIRenderer, result: RunResult, pipeline_arg: str) -> None:
    if result.is_noop:
        renderer.text(result.noop_message or "")
        return

    failure = result.failure
    if failure is not None:
        if failure.node_id:
            renderer.fail(f"FAILED NODE: {failure.node_id}")
            renderer.text(f"Dependency context: deps={failure.deps}")
            renderer.text(f"Rerun command: {PROG} run {pipeline_arg} --only {failure.node_id}")
        else:
            renderer.error(f"ERROR: {failure.message}")

    line = f"DAG run completed: pipeline={result.pipeline_id} status={result.status}"
    if result.passed:
        renderer.ok(line)
    else:
        renderer.fail(line)
    artifacts = result.artifacts
    if artifacts is None:
        return
    renderer.text(f"State file: {artifacts.state_file}")
    renderer.text(f"Run summary: {artifacts.summary_file}")
    renderer.text(f"Evidence dir: {artifacts.run_dir}")
    renderer.text(f"Trace file: {artifacts.trace_file}")
    renderer.text(f"Mermaid DAG: {artifacts.mermaid_file}")
    renderer.detail(f"Execution order: {','.join(result.execution_order)}")


# ---------------------------------------------------------------------------
# Helpers: config, paths, logging
# ---------------------------------------------------------------------------


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(
        no_color=bool(getattr(args, "no_color", False)),
        verbose=bool(getattr(args, "verbose", False)),
    )


def _project_root(args: argparse.Namespace) -> Path:
    raw = getattr(args, "project_root", None)
    if raw:
        candidate = Path(raw).expanduser().resolve()
        if not candidate.is_dir():
            raise UsageError(f"project root is not a directory: {candidate}")
        return candidate
    cwd = Path.cwd()
    return repo_toplevel(cwd) or cwd


def _load_context(args: argparse.Namespace, *, pipeline_path: Path | None = None) -> CommandContext:
    """Load config for the project root, preferring the root encoded in a pipeline path."""

    project_root = _project_root(args)
    overrides = _cli_overrides(args)
    config = load_config(project_root, config_path=args.config_path, cli_overrides=overrides)

    if pipeline_path is not None:
        encoded = project_root_from_pipeline(pipeline_path, config["paths"]["runtime_root"])
        if encoded is not None and encoded.resolve() != project_root:
            project_root = encoded.resolve()
            config = load_config(
                project_root, config_path=args.config_path, cli_overrides=overrides
            )

    layout = RuntimeLayout.from_config(config, project_root)
    return CommandContext(
        config=config,
        layout=layout,
        repo_root=repo_toplevel(project_root) or project_root,
    )


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    """Dotted config keys set from flags; ``None`` leaves the lower layers in place."""

    return {
        "paths.runtime_root": getattr(args, "runtime_root", None),
        "observability.log_level": "DEBUG" if getattr(args, "verbose", False) else None,
    }


def _resolve_path(raw: str | None, project_root: Path) -> Path | None:
    if raw is None:
        return None
    candidate = Path(raw).expanduser()
    return candidate if candidate.is_absolute() else project_root / candidate


@contextmanager
def _logging_session(args: argparse.Namespace, context: CommandContext) -> Iterator[None]:
    """Structured log file for the duration of one command."""

    run_id = f"{local_run_id()}-{args.command}-{uuid.uuid4().hex[:8]}"
    handle = setup_logging(
        context.config["observability"], run_id=run_id, log_dir=context.layout.log_dir
    )
    try:
        with correlation_scope(command=args.command):
            handle.logger.info(
                "command started", extra={"project_root": str(context.layout.project_root)}
            )
            yield
    finally:
        shutdown_logging(handle)


__all__ = ["CommandContext", "build_parser", "main", "run_cli"]
