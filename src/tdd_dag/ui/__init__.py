"""UI package exports for the CLI and its renderer."""

from tdd_dag.ui.cli import build_parser, main, run_cli
from tdd_dag.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "main",
    "run_cli",
]
