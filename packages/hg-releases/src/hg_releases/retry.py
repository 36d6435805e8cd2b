"""Retry policy and circuit breaker for registry reads.

This module provides:
- CircuitBreaker: consecutive-failure breaker that half-opens after a cooldown
- call_with_retry: tenacity retry loop bounded by attempts and by the caller's deadline
- stop_at_deadline / wait_within_deadline: tenacity strategies for that deadline

Deadlines are absolute ``time.monotonic()`` values. Only the registry adapter
retries. The resolver never does.
"""

from __future__ import annotations

from collections.abc import Callable
import threading
import time
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from hg_releases.errors import RegistryConnectionError
from hg_releases.observability import log_retry_attempt

if TYPE_CHECKING:
    from tenacity import RetryCallState

    from hg_releases.config import RetryConfig

R = TypeVar("R")

# Decode and not-found failures are deterministic, so only transport errors retry
DEFAULT_RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (RegistryConnectionError,)


def remaining_seconds(deadline: float | None) -> float | None:
    """Return seconds left before a monotonic deadline, or None when unbounded."""
    if deadline is None:
        return None
    return deadline - time.monotonic()


class CircuitBreaker:
    """Thread-safe consecutive-failure circuit breaker.

    The circuit opens once ``threshold`` consecutive failures are recorded and
    rejects calls for ``recovery_seconds``. After that cooldown it is half-open:
    calls go through again, a success closes it and a failure reopens it for
    another cooldown.

    Attributes:
        threshold: Number of consecutive failures before opening (0=disabled).
        recovery_seconds: Cooldown before an open circuit lets calls through.
        failure_count: Current consecutive failure count.

    Example:
        >>> breaker = CircuitBreaker(threshold=2, recovery_seconds=10.0)
        >>> breaker.record_failure()
        >>> breaker.state
        'closed'
        >>> breaker.record_failure()
        >>> breaker.state
        'open'
    """

    def __init__(self, threshold: int, recovery_seconds: float = 30.0) -> None:
        """Initialize circuit breaker.

        Args:
            threshold: Consecutive failures before circuit opens (0=disabled).
            recovery_seconds: Cooldown before a trial call is allowed.
        """
        self.threshold = threshold
        self.recovery_seconds = recovery_seconds
        self.failure_count = 0
        self._opened_at: float | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        """One of ``closed``, ``open`` or ``half_open``."""
        with self._lock:
            if self._opened_at is None:
                return "closed"
            if time.monotonic() - self._opened_at < self.recovery_seconds:
                return "open"
            return "half_open"

    @property
    def is_open(self) -> bool:
        """Check if the circuit currently rejects calls."""
        return self.state == "open"

    def record_failure(self) -> None:
        """Record a failure, opening (or reopening) the circuit at the threshold."""
        if self.threshold == 0:
            return  # Disabled
        with self._lock:
            self.failure_count += 1
            if self.failure_count >= self.threshold:
                self._opened_at = time.monotonic()

    def record_success(self) -> None:
        """Record a success, resetting failure count and closing circuit."""
        with self._lock:
            self.failure_count = 0
            self._opened_at = None

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self.record_success()


class CircuitOpenError(RegistryConnectionError):
    """Raised when circuit breaker is open and operation is not attempted."""

    def __init__(self, message: str = "Circuit breaker is open") -> None:
        super().__init__(message)


class stop_at_deadline(stop_base):  # noqa: N801
    """Stop retrying once the caller's deadline has passed."""

    def __init__(self, deadline: float | None) -> None:
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> bool:
        remaining = remaining_seconds(self.deadline)
        return remaining is not None and remaining <= 0


class wait_within_deadline(wait_base):  # noqa: N801
    """Cap another wait strategy so no sleep runs past the caller's deadline."""

    def __init__(self, wait: wait_base, deadline: float | None) -> None:
        self.wait = wait
        self.deadline = deadline

    def __call__(self, retry_state: RetryCallState) -> float:
        wait_seconds = self.wait(retry_state)
        remaining = remaining_seconds(self.deadline)
        if remaining is None:
            return wait_seconds
        return max(0.0, min(wait_seconds, remaining))


def call_with_retry(
    func: Callable[[], R],
    config: RetryConfig,
    *,
    operation_name: str,
    deadline: float | None = None,
    circuit_breaker: CircuitBreaker | None = None,
    count_failures: bool = True,
    retry_exceptions: tuple[type[Exception], ...] | None = None,
) -> R:
    """Call a registry read with retries, a deadline and an optional breaker.

    Attempts stop at ``config.max_attempts`` or when ``deadline`` passes,
    whichever comes first, and backoff sleeps never run past the deadline.
    The last error is raised once retrying stops.

    Args:
        func: Zero-argument callable performing one attempt.
        config: RetryConfig with retry policy settings.
        operation_name: Name for logging purposes.
        deadline: Optional ``time.monotonic()`` value bounding all attempts.
        circuit_breaker: Optional CircuitBreaker instance for fail-fast.
        count_failures: If False, exhausted retries do not count toward the breaker.
        retry_exceptions: Exception types that trigger retry.
            Defaults to registry connection errors.

    Returns:
        The result of the first successful attempt.

    Raises:
        CircuitOpenError: If the breaker is open.

    Example:
        >>> call_with_retry(
        ...     contract.functions.getTotalReleases(key).call,
        ...     RetryConfig(max_attempts=3),
        ...     operation_name="getTotalReleases",
        ...     deadline=time.monotonic() + 5,
        ... )
    """
    exceptions = retry_exceptions or DEFAULT_RETRY_EXCEPTIONS
    if circuit_breaker is not None and circuit_breaker.is_open:
        raise CircuitOpenError(f"Circuit open for {operation_name}")

    def before_sleep(retry_state: RetryCallState) -> None:
        assert retry_state.outcome is not None  # Type narrowing for mypy
        assert retry_state.next_action is not None
        log_retry_attempt(
            operation=operation_name,
            attempt=retry_state.attempt_number,
            max_attempts=config.max_attempts,
            wait_seconds=retry_state.next_action.sleep,
            error=str(retry_state.outcome.exception()),
        )

    last_exception: Exception | None = None
    try:
        for attempt_state in Retrying(
            retry=retry_if_exception_type(exceptions),
            stop=stop_after_attempt(config.max_attempts) | stop_at_deadline(deadline),
            wait=wait_within_deadline(
                wait_exponential_jitter(
                    initial=config.initial_wait_seconds,
                    max=config.max_wait_seconds,
                    jitter=config.jitter_seconds,
                ),
                deadline,
            ),
            before_sleep=before_sleep,
            reraise=False,
        ):
            with attempt_state:
                try:
                    result = func()
                except exceptions as exc:
                    last_exception = exc
                    raise
                if circuit_breaker is not None:
                    circuit_breaker.record_success()
                return result
    except RetryError:
        # Attempts or deadline exhausted
        if circuit_breaker is not None and count_failures:
            circuit_breaker.record_failure()
        if last_exception is not None:
            raise last_exception
        raise

    raise RuntimeError("Unexpected retry state")  # pragma: no cover
