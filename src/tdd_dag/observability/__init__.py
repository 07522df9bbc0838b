"""Public observability primitives: structured JSON-lines logging."""

from tdd_dag.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    correlation_scope,
    get_correlation_context,
    redact,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "LoggingHandle",
    "correlation_scope",
    "get_correlation_context",
    "redact",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
