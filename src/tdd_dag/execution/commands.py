"""Run node commands through a shell and capture combined output to a log file."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tdd_dag.utils.fs import atomic_write

logger = logging.getLogger(__name__)

_MISSING_SHELL_EXIT_CODE = 127


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    """Result of one node command invocation."""

    command: str
    returncode: int
    output: str
    duration_ms: int
    log_file: Path

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True, slots=True)
class ShellRunner:
    """Invoke commands as ``<shell> -c <command>`` (``-lc`` for a login shell)."""

    shell: str = "bash"
    login_shell: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ShellRunner:
        section = config["executor"]
        return cls(shell=section["shell"], login_shell=bool(section["login_shell"]))

    def argv(self, command: str) -> tuple[str, ...]:
        return (self.shell, "-lc" if self.login_shell else "-c", command)

    def run(self, command: str, *, cwd: Path, log_file: Path) -> CommandOutcome:
        """Run ``command`` in ``cwd``; the log holds ``+ <command>`` then the output."""

        started = time.perf_counter()
        try:
            completed = subprocess.run(
                self.argv(command),
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                check=False,
            )
            returncode = completed.returncode
            output = completed.stdout or ""
        except FileNotFoundError as exc:
            returncode = _MISSING_SHELL_EXIT_CODE
            output = f"{exc}\n"
        duration_ms = int((time.perf_counter() - started) * 1000)

        atomic_write(log_file, f"+ {command}\n{output}")
        logger.debug(
            "command finished",
            extra={"returncode": returncode, "duration_ms": duration_ms, "log_file": log_file},
        )
        return CommandOutcome(
            command=command,
            returncode=returncode,
            output=output,
            duration_ms=duration_ms,
            log_file=log_file,
        )


__all__ = ["CommandOutcome", "ShellRunner"]
