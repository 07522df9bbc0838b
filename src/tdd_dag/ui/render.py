"""Output rendering abstraction for the tdd-dag CLI.

Purpose
- Provide a thin rendering layer for user-facing CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- Results and failure context go to stdout; only errors go to stderr.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

_GREEN = "\033[32m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output. Color is only used for
    the pass/fail markers and only on a terminal.
    """

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr
        self._color = _color_allowed(no_color, self._out)

    def text(self, line: str) -> None:
        """Print a plain text line."""

        print(line, file=self._out)

    def kv(self, key: str, value: object) -> None:
        """Print an indented key: value pair."""

        print(f"  {key}: {value}", file=self._out)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        print(f"\n{title}", file=self._out)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        """Print a bulleted list."""

        for entry in entries:
            print(f"  {prefix}{entry}", file=self._out)

    def detail(self, line: str) -> None:
        """Print a line only in verbose mode."""

        if self.verbose:
            print(line, file=self._out)

    def ok(self, label: str) -> None:
        """Print a success line."""

        print(self._paint(label, _GREEN), file=self._out)

    def fail(self, label: str) -> None:
        """Print a failure line."""

        print(self._paint(label, _RED), file=self._out)

    def error(self, line: str) -> None:
        """Print an error line to stderr."""

        print(line, file=self._err)

    def next_steps(self, steps: Sequence[str]) -> None:
        """Print actionable next-step hints."""

        if not steps:
            return
        for step in steps:
            print(f"  $ {step}", file=self._out)

    def _paint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
