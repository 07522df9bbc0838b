"""
tdd-dag: unit tests for structured logging

Purpose
- Validate JSON-lines output, correlation propagation and secret redaction.

What this test file should cover
- One JSON object per line with the run id stamped on every record.
- Correlation scopes nest and unwind.
- Shutdown is idempotent, drains queued records and reports overflow.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from tdd_dag.observability import (
    LoggingConfig,
    correlation_scope,
    get_correlation_context,
    redact,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"tdd_dag.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_records_are_json_lines_with_correlation(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-1", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(command="run", pipeline_id="default"):
        with correlation_scope(node_id="compile"):
            logger.info("node started", extra={"attempt": 1})
        logger.info("pipeline finished")
    logger.debug("filtered out")
    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "run-1" / "tdd_dag.jsonl"
    first, second = _read_json_lines(handle.log_path)
    assert first["run_id"] == "run-1"
    assert first["command"] == "run"
    assert first["node_id"] == "compile"
    assert first["fields"] == {"attempt": 1}
    assert second["message"] == "pipeline finished"
    assert "node_id" not in second


def test_secrets_are_redacted_in_messages_and_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(run_id="run-redact", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logging.getLogger(logger_name).warning(
        "calling api with token=abc123 and Bearer xyz.789",
        extra={"api_key": "k-1", "detail": {"password": "p"}},
    )
    shutdown_logging(handle)

    (event,) = _read_json_lines(handle.log_path)
    serialized = json.dumps(event)
    assert "abc123" not in serialized
    assert "xyz.789" not in serialized
    assert event["fields"] == {
        "api_key": "***REDACTED***",
        "detail": {"password": "***REDACTED***"},
    }


def test_setup_logging_reads_observability_section(tmp_path: Path) -> None:
    handle = setup_logging(
        {"log_level": "WARNING"},
        run_id="run-cfg",
        log_dir=tmp_path,
        logger_name=_logger_name(),
    )

    assert handle.logger.level == logging.WARNING

    shutdown_logging()
    shutdown_logging()
    assert handle.closed


def test_correlation_scope_drops_none_values() -> None:
    with correlation_scope(command="build"):
        with correlation_scope(command=None, stage="generate"):
            assert get_correlation_context() == {"stage": "generate"}
        assert get_correlation_context() == {"command": "build"}
    assert get_correlation_context() == {}


@pytest.mark.parametrize(
    ("config", "message"),
    [
        (LoggingConfig(run_id=" "), "run_id must not be empty"),
        (LoggingConfig(run_id="r", log_filename="a/b.jsonl"), "path separators"),
        (LoggingConfig(run_id="r", queue_size=0), "queue_size"),
        (LoggingConfig(run_id="r", level="CHATTY"), "unsupported logging level"),
    ],
)
def test_invalid_logging_config_is_rejected(config: LoggingConfig, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        setup_structured_logging(config)


def test_redact_handles_nested_lists() -> None:
    redacted = redact([{"secret": "s"}, "password: hunter2"])

    assert redacted == [{"secret": "***REDACTED***"}, "password:***REDACTED***"]


def test_setup_replaces_the_previous_handle(tmp_path: Path) -> None:
    first = setup_structured_logging(
        LoggingConfig(run_id="run-a", base_log_dir=tmp_path, logger_name=_logger_name())
    )
    second = setup_structured_logging(
        LoggingConfig(run_id="run-b", base_log_dir=tmp_path, logger_name=_logger_name())
    )

    assert first.closed
    assert not second.closed


def test_queue_overflow_is_reported_on_shutdown(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            run_id="run-overflow", base_log_dir=tmp_path, logger_name=logger_name, queue_size=1
        )
    )
    logger = logging.getLogger(logger_name)
    total = 500
    for index in range(total):
        logger.info("record %d", index)
    shutdown_logging(handle)

    events = _read_json_lines(handle.log_path)
    kept = [event for event in events if str(event["message"]).startswith("record ")]
    if len(kept) < total:
        assert events[-1]["level"] == "WARNING"
        assert events[-1]["message"] == f"dropped {total - len(kept)} log records (queue full)"
    else:
        assert len(events) == total
