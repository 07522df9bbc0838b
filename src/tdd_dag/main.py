"""Executable CLI entrypoint for ``tdd_dag``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    RUN_FAILED = 1
    USAGE_ERROR = 2
    SCHEMA_ERROR = 3
    INTEGRITY_ERROR = 4
    TOPOLOGY_ERROR = 5
    INTERNAL_ERROR = 70


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m tdd_dag`` and script shims."""

    try:
        from tdd_dag.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except KeyboardInterrupt:
        _write_stderr("ERROR: interrupted")
        return 130
    except BaseException as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {code.value for code in ExitCode}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    from tdd_dag.config.loader import ConfigLoadError
    from tdd_dag.config.schema import ConfigValidationError
    from tdd_dag.domain.errors import IntegrityError, SchemaError, TopologyError, UsageError

    for item in _iter_exception_chain(exc):
        if isinstance(item, SchemaError):
            return ExitCode.SCHEMA_ERROR
        if isinstance(item, IntegrityError):
            return ExitCode.INTEGRITY_ERROR
        if isinstance(item, TopologyError):
            return ExitCode.TOPOLOGY_ERROR
        if isinstance(item, (UsageError, ConfigLoadError, ConfigValidationError)):
            return ExitCode.USAGE_ERROR
        if isinstance(item, (FileNotFoundError, NotADirectoryError, PermissionError)):
            return ExitCode.USAGE_ERROR
    return ExitCode.INTERNAL_ERROR


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    if exit_code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    _write_stderr(f"ERROR: {str(exc).strip() or exc.__class__.__name__}")


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
