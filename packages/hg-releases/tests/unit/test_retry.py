"""Unit tests for the registry retry policy and circuit breaker."""

from __future__ import annotations

import time
from unittest.mock import MagicMock, patch

import pytest

from hg_releases.config import RetryConfig
from hg_releases.errors import RegistryConnectionError, RegistryDecodeError, ReleaseNotFoundError
from hg_releases.models import OperatorSet
from hg_releases.retry import (
    CircuitBreaker,
    CircuitOpenError,
    call_with_retry,
    remaining_seconds,
    stop_at_deadline,
    wait_within_deadline,
)

FAST_RETRY = RetryConfig(max_attempts=3, initial_wait_seconds=0.1, jitter_seconds=0)


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Monotonic clock under test control. Mutate element 0 to advance it."""
    clock = [1000.0]
    monkeypatch.setattr("hg_releases.retry.time.monotonic", lambda: clock[0])
    return clock


def _counting(*outcomes: object) -> MagicMock:
    """Callable returning or raising each outcome in turn."""
    return MagicMock(side_effect=list(outcomes))


class TestCircuitBreaker:
    """Tests for CircuitBreaker class."""

    def test_initial_state_closed(self) -> None:
        """Test circuit starts in closed state."""
        breaker = CircuitBreaker(threshold=3)

        assert breaker.state == "closed"
        assert breaker.is_open is False
        assert breaker.failure_count == 0

    def test_opens_after_threshold_failures(self) -> None:
        """Test circuit opens after threshold consecutive failures."""
        breaker = CircuitBreaker(threshold=2)

        breaker.record_failure()
        assert breaker.is_open is False
        breaker.record_failure()
        assert breaker.is_open is True

    def test_half_opens_after_recovery(self, fake_clock: list[float]) -> None:
        """Test an open circuit lets calls through once the cooldown has passed."""
        breaker = CircuitBreaker(threshold=1, recovery_seconds=10.0)
        breaker.record_failure()

        fake_clock[0] += 9.0
        assert breaker.state == "open"
        fake_clock[0] += 1.0
        assert breaker.state == "half_open"
        assert breaker.is_open is False

    def test_failed_trial_reopens(self, fake_clock: list[float]) -> None:
        """Test a failure while half-open starts a new cooldown."""
        breaker = CircuitBreaker(threshold=2, recovery_seconds=5.0)
        breaker.record_failure()
        breaker.record_failure()
        fake_clock[0] += 5.0

        breaker.record_failure()

        assert breaker.state == "open"
        fake_clock[0] += 5.0
        assert breaker.state == "half_open"

    def test_success_closes_open_circuit(self) -> None:
        """Test success resets the count and closes the circuit."""
        breaker = CircuitBreaker(threshold=1)
        breaker.record_failure()

        breaker.record_success()

        assert breaker.state == "closed"
        assert breaker.failure_count == 0

    def test_manual_reset(self) -> None:
        """Test manual reset closes the circuit."""
        breaker = CircuitBreaker(threshold=1)
        breaker.record_failure()

        breaker.reset()

        assert breaker.is_open is False

    def test_disabled_when_threshold_zero(self) -> None:
        """Test circuit breaker is disabled when threshold is 0."""
        breaker = CircuitBreaker(threshold=0)

        for _ in range(50):
            breaker.record_failure()

        assert breaker.state == "closed"


class TestDeadlineStrategies:
    """Tests for deadline-aware stop and wait strategies."""

    def test_remaining_seconds(self, fake_clock: list[float]) -> None:
        """Test remaining time is measured on the monotonic clock."""
        assert remaining_seconds(None) is None
        assert remaining_seconds(1004.0) == 4.0
        assert remaining_seconds(998.0) == -2.0

    def test_stop_at_deadline(self, fake_clock: list[float]) -> None:
        """Test retrying stops once the deadline has passed."""
        state = MagicMock()

        assert stop_at_deadline(None)(state) is False
        assert stop_at_deadline(1001.0)(state) is False
        fake_clock[0] = 1001.0
        assert stop_at_deadline(1001.0)(state) is True

    def test_wait_capped_by_deadline(self, fake_clock: list[float]) -> None:
        """Test backoff sleeps never run past the deadline."""
        inner = MagicMock(return_value=8.0)
        state = MagicMock()

        assert wait_within_deadline(inner, None)(state) == 8.0
        assert wait_within_deadline(inner, 1003.0)(state) == 3.0
        assert wait_within_deadline(inner, 990.0)(state) == 0.0


class TestCallWithRetry:
    """Tests for call_with_retry."""

    def test_successful_call_not_retried(self) -> None:
        """Test a successful call happens once."""
        read = _counting(5)

        assert call_with_retry(read, FAST_RETRY, operation_name="getTotalReleases") == 5
        assert read.call_count == 1

    def test_retries_connection_errors(self) -> None:
        """Test RegistryConnectionError is retried until success."""
        read = _counting(RegistryConnectionError(), RegistryConnectionError(), "ok")

        assert call_with_retry(read, FAST_RETRY, operation_name="getRelease") == "ok"
        assert read.call_count == 3

    def test_raises_last_error_after_max_attempts(self) -> None:
        """Test the last connection error surfaces once attempts are exhausted."""
        read = _counting(RegistryConnectionError("attempt 1"), RegistryConnectionError("attempt 2"))
        config = RetryConfig(max_attempts=2, initial_wait_seconds=0.1, jitter_seconds=0)

        with pytest.raises(RegistryConnectionError, match="attempt 2"):
            call_with_retry(read, config, operation_name="getRelease")

        assert read.call_count == 2

    def test_last_error_keeps_its_cause(self) -> None:
        """Test the surfaced error still chains the transport failure."""
        cause = ConnectionResetError("reset")
        error = RegistryConnectionError()
        error.__cause__ = cause

        with pytest.raises(RegistryConnectionError) as exc_info:
            call_with_retry(
                _counting(error), RetryConfig(max_attempts=1), operation_name="getRelease"
            )

        assert exc_info.value.__cause__ is cause

    @pytest.mark.parametrize(
        "failure",
        [
            RegistryDecodeError(cause="bad tuple"),
            ReleaseNotFoundError(OperatorSet(owner="0xAAA", set_id=1), 4),
            ValueError("bug"),
        ],
    )
    def test_deterministic_failures_not_retried(self, failure: Exception) -> None:
        """Test decode, not-found and unexpected errors are raised immediately."""
        read = _counting(failure)

        with pytest.raises(type(failure)):
            call_with_retry(read, FAST_RETRY, operation_name="getRelease")

        assert read.call_count == 1

    def test_logs_retry_attempts(self) -> None:
        """Test each retry is logged with the operation name and planned wait."""
        read = _counting(RegistryConnectionError(), RegistryConnectionError())
        config = RetryConfig(max_attempts=2, initial_wait_seconds=0.1, jitter_seconds=0)

        with patch("hg_releases.retry.log_retry_attempt") as log_retry:
            with pytest.raises(RegistryConnectionError):
                call_with_retry(read, config, operation_name="getTotalReleases")

        log_retry.assert_called_once()
        assert log_retry.call_args.kwargs["operation"] == "getTotalReleases"
        assert log_retry.call_args.kwargs["attempt"] == 1
        assert log_retry.call_args.kwargs["wait_seconds"] == pytest.approx(0.1)

    def test_deadline_stops_retrying(self) -> None:
        """Test attempts stop at the deadline even with attempts left."""
        read = MagicMock(side_effect=RegistryConnectionError())
        config = RetryConfig(max_attempts=10, initial_wait_seconds=0.5, jitter_seconds=0)
        started = time.monotonic()

        with pytest.raises(RegistryConnectionError):
            call_with_retry(
                read, config, operation_name="getLatestRelease", deadline=started + 0.2
            )

        assert time.monotonic() - started < 0.5
        assert read.call_count <= 3

    def test_expired_deadline_still_attempts_once(self) -> None:
        """Test the attempt itself decides what to do with a spent budget."""
        read = _counting(7)

        result = call_with_retry(
            read, FAST_RETRY, operation_name="getRelease", deadline=time.monotonic() - 1
        )

        assert result == 7


class TestCircuitBreakerIntegration:
    """Tests for call_with_retry with a circuit breaker."""

    def test_open_circuit_fails_fast(self) -> None:
        """Test an open circuit prevents calls."""
        breaker = CircuitBreaker(threshold=1)
        read = MagicMock(side_effect=RegistryConnectionError())
        config = RetryConfig(max_attempts=1)

        with pytest.raises(RegistryConnectionError):
            call_with_retry(
                read, config, operation_name="getTotalReleases", circuit_breaker=breaker
            )
        with pytest.raises(CircuitOpenError, match="getTotalReleases"):
            call_with_retry(
                read, config, operation_name="getTotalReleases", circuit_breaker=breaker
            )

        assert read.call_count == 1

    def test_uncounted_failures_leave_circuit_closed(self) -> None:
        """Test failures with count_failures=False never open the circuit."""
        breaker = CircuitBreaker(threshold=1)
        read = MagicMock(side_effect=RegistryConnectionError())

        for _ in range(3):
            with pytest.raises(RegistryConnectionError):
                call_with_retry(
                    read,
                    RetryConfig(max_attempts=1),
                    operation_name="getRelease",
                    circuit_breaker=breaker,
                    count_failures=False,
                )

        assert breaker.state == "closed"
        assert read.call_count == 3

    def test_recovers_after_cooldown(self, fake_clock: list[float]) -> None:
        """Test a trial call after the cooldown closes the circuit on success."""
        breaker = CircuitBreaker(threshold=1, recovery_seconds=30.0)
        read = _counting(RegistryConnectionError(), 4)
        config = RetryConfig(max_attempts=1)

        with pytest.raises(RegistryConnectionError):
            call_with_retry(
                read, config, operation_name="getTotalReleases", circuit_breaker=breaker
            )
        with pytest.raises(CircuitOpenError):
            call_with_retry(
                read, config, operation_name="getTotalReleases", circuit_breaker=breaker
            )

        fake_clock[0] += 30.0

        assert call_with_retry(
            read, config, operation_name="getTotalReleases", circuit_breaker=breaker
        ) == 4
        assert breaker.state == "closed"

    def test_circuit_open_error_is_connection_error(self) -> None:
        """Test callers catching connection errors also see open circuits."""
        assert issubclass(CircuitOpenError, RegistryConnectionError)
