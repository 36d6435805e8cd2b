"""Shared test fixtures for hg-releases tests.

Provides an in-memory registry port, a mock logger and helpers for
building registry records.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from hg_releases.errors import ReleaseNotFoundError
from hg_releases.models import OperatorSet
from hg_releases.registry import RawArtifact, RawRelease

AVS_ADDRESS = "0x1234567890123456789012345678901234567890"
RELEASE_MANAGER_ADDRESS = "0xd9cb89f1993292dec2f973934bc63b0f2a702776"
RPC_URL = "http://localhost:8545"


def raw_release(release_id: int, artifact_count: int = 1) -> RawRelease:
    """Build a registry record whose fields are derived from its id."""
    return RawRelease(
        artifacts=tuple(
            RawArtifact(
                digest="0x" + f"{release_id:02x}{n:02x}" * 16,
                registry_url=f"ghcr.io/avs/app-{release_id}",
            )
            for n in range(artifact_count)
        ),
        upgrade_by_time=1_700_000_000 + release_id,
    )


SENTINEL = RawRelease(artifacts=(), upgrade_by_time=0)


class FakeRegistry:
    """In-memory RegistryPort.

    Attributes:
        releases: Records per operator set, indexed by release id.
        failures: Exceptions raised by release_at, keyed by release id.
        latest: Overrides for latest_release per operator set.
        current: Overrides for current_release per operator set.
        calls: Names of port methods in call order.
        timeouts: Deadline budgets received, in call order.
    """

    def __init__(self) -> None:
        self.releases: dict[OperatorSet, list[RawRelease]] = {}
        self.failures: dict[int, Exception] = {}
        self.count_error: Exception | None = None
        self.pointer_error: Exception | None = None
        self.latest: dict[OperatorSet, tuple[int, RawRelease]] = {}
        self.current: dict[OperatorSet, tuple[int, RawRelease]] = {}
        self.calls: list[str] = []
        self.timeouts: list[float | None] = []

    def publish(self, operator_set: OperatorSet, count: int) -> None:
        """Append ``count`` releases for the operator set."""
        history = self.releases.setdefault(operator_set, [])
        start = len(history)
        history.extend(raw_release(i) for i in range(start, start + count))

    def total_release_count(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> int:
        self.calls.append("total_release_count")
        self.timeouts.append(timeout)
        if self.count_error is not None:
            raise self.count_error
        return len(self.releases.get(operator_set, []))

    def release_at(
        self, operator_set: OperatorSet, release_id: int, *, timeout: float | None = None
    ) -> RawRelease:
        self.calls.append(f"release_at:{release_id}")
        self.timeouts.append(timeout)
        if release_id in self.failures:
            raise self.failures[release_id]
        history = self.releases.get(operator_set, [])
        if release_id >= len(history):
            raise ReleaseNotFoundError(operator_set, release_id)
        return history[release_id]

    def latest_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        self.calls.append("latest_release")
        self.timeouts.append(timeout)
        if self.pointer_error is not None:
            raise self.pointer_error
        if operator_set in self.latest:
            return self.latest[operator_set]
        history = self.releases.get(operator_set, [])
        if not history:
            return 0, SENTINEL
        return len(history) - 1, history[-1]

    def current_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        self.calls.append("current_release")
        self.timeouts.append(timeout)
        if self.pointer_error is not None:
            raise self.pointer_error
        if operator_set in self.current:
            return self.current[operator_set]
        return 0, SENTINEL


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Return an empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def mock_logger() -> MagicMock:
    """Return a mock structlog logger."""
    return MagicMock()


@pytest.fixture
def aaa_set() -> OperatorSet:
    """Operator set (0xAAA, 1) with a short placeholder owner."""
    return OperatorSet(owner="0xAAA", set_id=1)


@pytest.fixture
def make_operator_set() -> Callable[..., OperatorSet]:
    """Factory fixture for operator sets owned by a well-formed address."""

    def _make(set_id: int = 0, owner: str = AVS_ADDRESS) -> OperatorSet:
        return OperatorSet(owner=owner, set_id=set_id)

    return _make


@pytest.fixture
def make_raw_release() -> Callable[..., RawRelease]:
    """Factory fixture for registry records derived from an id."""
    return raw_release


@pytest.fixture
def sentinel() -> RawRelease:
    """Record the registry returns when nothing has been published."""
    return SENTINEL
