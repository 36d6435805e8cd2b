"""Structured logging and OpenTelemetry spans for hg-releases.

This module provides:
- Structured logging setup via structlog
- OpenTelemetry span helpers for resolver and registry operations
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer
    from structlog.stdlib import BoundLogger

    from hg_releases.models import OperatorSet

# Module-level logger and tracer
_logger: BoundLogger | None = None
_tracer: Tracer | None = None

TRACER_NAME = "hourglass.releases"


def get_logger() -> BoundLogger:
    """Get the module logger, creating it if necessary.

    Returns:
        Configured structlog BoundLogger instance.

    Example:
        >>> logger = get_logger()
        >>> logger.info("registry_client_created", uri="http://localhost:8545")
    """
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(TRACER_NAME)
    assert _logger is not None  # Type narrowing for mypy
    return _logger


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for hg-releases.

    Returns:
        OpenTelemetry Tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for hg-releases.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format. If False, output human-readable.
        add_timestamp: If True, add ISO timestamp to log entries.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
    log_start: bool = True,
    log_end: bool = True,
) -> Iterator[Span]:
    """Create an OpenTelemetry span with structured logging.

    Args:
        name: Span name (e.g., "release.list_releases").
        kind: Span kind (INTERNAL, CLIENT, SERVER, PRODUCER, CONSUMER).
        attributes: Optional span attributes.
        log_start: If True, log span start.
        log_end: If True, log span end.

    Yields:
        OpenTelemetry Span instance.
    """
    tracer = get_tracer()
    logger = get_logger()
    attrs = attributes or {}

    with tracer.start_as_current_span(name, kind=kind, attributes=attrs) as s:
        if log_start:
            logger.debug(f"{name}_started", **attrs)
        try:
            yield s
            s.set_status(Status(StatusCode.OK))
            if log_end:
                logger.debug(f"{name}_completed", **attrs)
        except Exception as exc:
            s.set_status(Status(StatusCode.ERROR, str(exc)))
            s.record_exception(exc)
            logger.debug(f"{name}_failed", error=str(exc), **attrs)
            raise


def _operator_set_attributes(prefix: str, operator_set: OperatorSet | None) -> dict[str, Any]:
    if operator_set is None:
        return {}
    return {
        f"{prefix}.owner": operator_set.owner,
        f"{prefix}.set_id": operator_set.set_id,
    }


@contextmanager
def release_operation(
    operation: str,
    operator_set: OperatorSet,
    **extra: Any,
) -> Iterator[Span]:
    """Create a span for a resolver operation with standard attributes.

    Args:
        operation: Operation name (e.g., "list_releases").
        operator_set: Operator set being resolved.
        **extra: Additional attributes, prefixed with ``release.``.

    Yields:
        OpenTelemetry Span instance.

    Example:
        >>> with release_operation("get_latest_release", operator_set):
        ...     registry.latest_release(operator_set)
    """
    attrs: dict[str, Any] = {"release.operation": operation}
    attrs.update(_operator_set_attributes("release.operator_set", operator_set))
    attrs.update({f"release.{k}": v for k, v in extra.items() if v is not None})

    with span(f"release.{operation}", attributes=attrs) as s:
        yield s


@contextmanager
def registry_operation(
    operation: str,
    *,
    uri: str | None = None,
    operator_set: OperatorSet | None = None,
    release_id: int | None = None,
) -> Iterator[Span]:
    """Create a client span for a registry RPC call.

    Args:
        operation: Contract function being called (e.g., "getTotalReleases").
        uri: Registry RPC URI.
        operator_set: Operator set the call is keyed by.
        release_id: Release id, for per-release calls.

    Yields:
        OpenTelemetry Span instance.
    """
    attrs: dict[str, Any] = {"registry.operation": operation}
    if uri:
        attrs["registry.uri"] = uri
    attrs.update(_operator_set_attributes("registry.operator_set", operator_set))
    if release_id is not None:
        attrs["registry.release_id"] = release_id

    with span(
        f"registry.{operation}",
        kind=SpanKind.CLIENT,
        attributes=attrs,
        log_start=False,
        log_end=False,
    ) as s:
        yield s


def log_retry_attempt(
    operation: str,
    attempt: int,
    max_attempts: int,
    wait_seconds: float,
    error: str,
) -> None:
    """Log a retry attempt for observability.

    Args:
        operation: Operation being retried.
        attempt: Current attempt number.
        max_attempts: Maximum attempts configured.
        wait_seconds: Time waiting before retry.
        error: Error message that triggered retry.
    """
    logger = get_logger()
    logger.warning(
        "operation_retry",
        operation=operation,
        attempt=attempt,
        max_attempts=max_attempts,
        wait_seconds=wait_seconds,
        error=error,
    )
