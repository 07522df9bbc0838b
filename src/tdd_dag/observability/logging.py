"""
tdd-dag: structured logging

Purpose
- One JSON-lines log file per CLI invocation under ``<runtime>/<log_dir>/<run_id>/``.
- Records carry the correlation fields bound by the running command
  (``command``, ``pipeline_id``, ``node_id``...) and have secrets redacted.

Functional requirements
- Producers never block: records go through a bounded queue drained by a
  ``QueueListener`` thread. Records dropped on a full queue are counted and
  reported as a final warning line when logging shuts down.
- Only one invocation handle is active at a time; a new setup closes the old one.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

LOG_FILE_NAME: Final[str] = "tdd_dag.jsonl"
ROOT_LOGGER_NAME: Final[str] = "tdd_dag"
REDACTED: Final[str] = "***REDACTED***"

_QUEUE_SIZE: Final[int] = 4096

_CORRELATION_KEYS: Final[tuple[str, ...]] = (
    "run_id",
    "command",
    "pipeline_id",
    "node_id",
    "stage",
)
_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "private_key",
)
_SENSITIVE_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

# Attributes every LogRecord has; anything else was passed through ``extra=``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.makeLogRecord({}).__dict__
) | {"message", "asctime", "correlation"}

_CORRELATION: contextvars.ContextVar[tuple[tuple[str, str], ...]] = contextvars.ContextVar(
    "tdd_dag_correlation", default=()
)

_ACTIVE_LOCK = threading.Lock()
_ACTIVE: LoggingHandle | None = None
_ATEXIT_REGISTERED = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Settings for one invocation's log file."""

    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = ROOT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = _QUEUE_SIZE
    log_filename: str = LOG_FILE_NAME
    log_to_stdout: bool = False


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str,
    logger_name: str = ROOT_LOGGER_NAME,
) -> LoggingHandle:
    """Configure logging from the ``[observability]`` config section.

    ``log_dir`` is the base directory, already resolved against the runtime root.
    """

    section = dict(observability_config or {})
    raw_level = section.get("log_level", "INFO")
    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=log_dir,
            logger_name=logger_name,
            level=raw_level if isinstance(raw_level, (int, str)) else "INFO",
            log_to_stdout=bool(section.get("log_to_stdout", False)),
        )
    )


class _CountingQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that snapshots correlation and counts records dropped on overflow."""

    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self._lock = threading.Lock()
        self.dropped = 0

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The contextvar is only visible on the producing thread.
        context = get_correlation_context()
        if context:
            record.correlation = context
        return super().prepare(record)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._lock:
                self.dropped += 1


class _JsonLineFormatter(logging.Formatter):
    def __init__(self, *, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
        }
        event.update(sorted(_correlation_fields(record, self._run_id).items()))

        extras = {
            key: _to_json(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
            and key not in _CORRELATION_KEYS
            and not key.startswith("_")
        }
        if extras:
            event["fields"] = redact(extras)
        if record.exc_info is not None:
            event["exception"] = redact_text(self.formatException(record.exc_info))
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class LoggingHandle:
    """Active log file for one invocation; ``shutdown`` drains and closes it."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        log_path: Path,
        queue_handler: _CountingQueueHandler,
        sinks: tuple[logging.Handler, ...],
        listener: logging.handlers.QueueListener,
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._sinks = sinks
        self._listener = listener
        self._lock = threading.Lock()
        self.closed = False

    def shutdown(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.logger.removeHandler(self._queue_handler)
            # The stop sentinel needs a free slot, so drain first.
            self._queue_handler.queue.join()
            self._listener.stop()
            self._queue_handler.close()
            if self._queue_handler.dropped:
                self._write_direct(
                    logging.WARNING,
                    f"dropped {self._queue_handler.dropped} log records (queue full)",
                )
            for sink in self._sinks:
                sink.flush()
                sink.close()
            self.closed = True

    def _write_direct(self, level: int, message: str) -> None:
        record = self.logger.makeRecord(self.logger.name, level, __file__, 0, message, (), None)
        for sink in self._sinks:
            sink.handle(record)


def setup_structured_logging(config: LoggingConfig) -> LoggingHandle:
    """Open the invocation log file and route ``config.logger_name`` into it."""

    shutdown_logging()

    run_id = _require_text(config.run_id, "run_id")
    logger_name = _require_text(config.logger_name, "logger_name")
    log_filename = _require_text(config.log_filename, "log_filename")
    if Path(log_filename).name != log_filename:
        raise ValueError("log_filename must not include path separators")
    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    level = _parse_level(config.level)

    run_log_dir = Path(config.base_log_dir) / run_id
    run_log_dir.mkdir(parents=True, exist_ok=True)
    log_path = run_log_dir / log_filename

    formatter = _JsonLineFormatter(run_id=run_id)
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    queue_handler = _CountingQueueHandler(queue.Queue(maxsize=config.queue_size))
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(
        queue_handler.queue, *sinks, respect_handler_level=True
    )
    listener.start()
    logger.addHandler(queue_handler)

    handle = LoggingHandle(
        logger=logger,
        log_path=log_path,
        queue_handler=queue_handler,
        sinks=tuple(sinks),
        listener=listener,
    )
    global _ACTIVE, _ATEXIT_REGISTERED
    with _ACTIVE_LOCK:
        _ACTIVE = handle
        if not _ATEXIT_REGISTERED:
            atexit.register(shutdown_logging)
            _ATEXIT_REGISTERED = True
    return handle


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Shut down ``handle``, or the active handle when none is given."""

    global _ACTIVE
    with _ACTIVE_LOCK:
        target = handle if handle is not None else _ACTIVE
        if target is _ACTIVE:
            _ACTIVE = None
    if target is not None:
        target.shutdown()


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for records logged in scope; ``None`` unbinds a key."""

    state = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            state.pop(key, None)
        else:
            state[key] = _require_text(value, f"correlation field {key!r}")
    token = _CORRELATION.set(tuple(state.items()))
    try:
        yield
    finally:
        _CORRELATION.reset(token)


def redact(value: JSONValue, *, key: str | None = None) -> JSONValue:
    """Redact values under secret-looking keys and inline credentials in text."""

    if key is not None and any(term in key.lower() for term in _SENSITIVE_KEY_TERMS):
        return REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, dict):
        return {name: redact(item, key=name) for name, item in value.items()}
    return value


def redact_text(text: str) -> str:
    text = _SENSITIVE_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)
    return _BEARER_TOKEN.sub(f"Bearer {REDACTED}", text)


def _correlation_fields(record: logging.LogRecord, run_id: str) -> dict[str, str]:
    fields = {"run_id": run_id}
    bound = getattr(record, "correlation", None)
    if isinstance(bound, Mapping):
        fields.update(
            (key, value.strip())
            for key, value in bound.items()
            if isinstance(value, str) and value.strip()
        )
    for key in _CORRELATION_KEYS:
        value = getattr(record, key, None)
        if isinstance(value, str) and value.strip():
            fields[key] = value.strip()
    return fields


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(str(item) for item in value)
    return repr(value)


def _require_text(value: str, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{name} must not be empty")
    return normalized


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


__all__ = [
    "LOG_FILE_NAME",
    "REDACTED",
    "ROOT_LOGGER_NAME",
    "LoggingConfig",
    "LoggingHandle",
    "correlation_scope",
    "get_correlation_context",
    "redact",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
