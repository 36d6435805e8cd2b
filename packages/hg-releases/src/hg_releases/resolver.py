"""Release resolution over a registry port.

This module provides ReleaseResolver, the query facade used by the CLI and
other presentation layers:
- list_releases: Most recent window of the release history, best-effort per item
- get_latest_release: Newest published release, whether or not it is mandatory yet
- get_current_release: Release the registry designates as mandatory now

Latest and current are independent registry facts. Neither is derived from
the other here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import TYPE_CHECKING, NoReturn, TypeAlias, TypeVar

from hg_releases.errors import (
    InvalidConfigurationError,
    QueryCancelledError,
    RegistryDecodeError,
    RegistryError,
    RegistryQueryFailedError,
)
from hg_releases.models import Artifact, OperatorSet, Release
from hg_releases.observability import get_logger, release_operation

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from hg_releases.registry import RawRelease, RegistryPort

T = TypeVar("T")

DEFAULT_LIMIT = 10

# Port implementations should translate transport errors, but untranslated
# socket and timeout errors are treated the same way.
PORT_ERRORS: tuple[type[Exception], ...] = (RegistryError, OSError)


@dataclass(frozen=True)
class Fetched:
    """A release id in the history window that was fetched successfully."""

    release: Release


@dataclass(frozen=True)
class Skipped:
    """A release id in the history window whose fetch failed."""

    release_id: int
    error: Exception


FetchOutcome: TypeAlias = Fetched | Skipped


def release_window(total_releases: int, limit: int) -> range:
    """Return the ids of the most recent ``limit`` releases, ascending.

    Example:
        >>> list(release_window(5, 3))
        [2, 3, 4]
        >>> list(release_window(5, 10))
        [0, 1, 2, 3, 4]
    """
    return range(max(0, total_releases - limit), total_releases)


def to_release(release_id: int, raw: RawRelease) -> Release:
    """Attach an id to a decoded registry record."""
    return Release(
        id=release_id,
        artifacts=tuple(
            Artifact(digest=a.digest, registry_url=a.registry_url) for a in raw.artifacts
        ),
        upgrade_by_time=raw.upgrade_by_time,
    )


class _Deadline:
    """Caller deadline measured on the monotonic clock."""

    def __init__(self, operator_set: OperatorSet, timeout: float | None) -> None:
        self._operator_set = operator_set
        self._timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def cancelled(self) -> QueryCancelledError:
        assert self._timeout is not None  # Type narrowing for mypy
        return QueryCancelledError(self._operator_set, self._timeout)

    def check(self) -> None:
        if self.expired:
            raise self.cancelled()

    def remaining(self) -> float | None:
        """Seconds left for the next registry query, None when unbounded."""
        self.check()
        if self._expires_at is None:
            return None
        return self._expires_at - time.monotonic()


class ReleaseResolver:
    """Resolve release history, latest and current releases for operator sets.

    The resolver is stateless: every call issues fresh registry queries, and
    nothing is cached or retried. Retry policy belongs to the registry port.
    With a ``timeout``, every registry query is handed the time left, and a
    query failing after the deadline raises QueryCancelledError.

    Attributes:
        registry: Registry port the resolver reads from.

    Example:
        >>> from hg_releases import create_resolver, RegistryConfig, operator_set
        >>> resolver = create_resolver(
        ...     RegistryConfig(
        ...         rpc_url="http://localhost:8545",
        ...         release_manager_address="0xd9Cb89F1993292dEC2F973934bC63B0f2A702776",
        ...     )
        ... )
        >>> key = operator_set("0x1234567890123456789012345678901234567890", 0)
        >>> [r.id for r in resolver.list_releases(key, limit=3)]
        [2, 3, 4]
    """

    def __init__(
        self,
        registry: RegistryPort,
        *,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize ReleaseResolver.

        Args:
            registry: Registry port implementation.
            logger: Optional structlog logger. Uses default if not provided.
        """
        self.registry = registry
        self._logger = logger or get_logger()

    def list_releases(
        self,
        operator_set: OperatorSet,
        limit: int = DEFAULT_LIMIT,
        *,
        timeout: float | None = None,
    ) -> list[Release]:
        """List the most recent releases for an operator set.

        Ids in the window are fetched one at a time in ascending order. A
        failed fetch is logged and skipped, so the result may be sparse.

        Args:
            operator_set: Operator set to list releases for.
            limit: Maximum number of releases to return (default 10).
            timeout: Optional overall deadline in seconds.

        Returns:
            Releases in ascending id order, at most ``limit`` of them.

        Raises:
            InvalidConfigurationError: If arguments are malformed.
            RegistryQueryFailedError: If the release count cannot be read.
            QueryCancelledError: If the deadline expires. Partial results are discarded.

        Example:
            >>> [r.id for r in resolver.list_releases(key, limit=3)]
            [2, 3, 4]
        """
        _validate_operator_set(operator_set)
        _validate_limit(limit)
        deadline = _Deadline(operator_set, _validate_timeout(timeout))

        with release_operation("list_releases", operator_set, limit=limit):
            total = self._query(
                "list_releases", operator_set, self.registry.total_release_count, deadline
            )
            if isinstance(total, bool) or not isinstance(total, int) or total < 0:
                self._fail(
                    "list_releases",
                    operator_set,
                    RegistryDecodeError(
                        "Malformed release count", cause=f"invalid count: {total!r}"
                    ),
                )
            if total == 0:
                self._logger.debug(
                    "releases_listed",
                    owner=operator_set.owner,
                    set_id=operator_set.set_id,
                    count=0,
                )
                return []

            outcomes: list[FetchOutcome] = []
            for release_id in release_window(total, limit):
                outcomes.append(self._fetch(operator_set, release_id, deadline))
            deadline.check()

            releases = [o.release for o in outcomes if isinstance(o, Fetched)]
            self._logger.debug(
                "releases_listed",
                owner=operator_set.owner,
                set_id=operator_set.set_id,
                total=total,
                count=len(releases),
                skipped=len(outcomes) - len(releases),
            )
            return releases

    def get_latest_release(
        self,
        operator_set: OperatorSet,
        *,
        timeout: float | None = None,
    ) -> Release | None:
        """Get the most recently published release.

        The release may not be mandatory yet; compare ``upgrade_by_time``
        against your own clock if that matters.

        Args:
            operator_set: Operator set to resolve.
            timeout: Optional overall deadline in seconds.

        Returns:
            The latest Release, or None if nothing has been published.

        Raises:
            InvalidConfigurationError: If arguments are malformed.
            RegistryQueryFailedError: If the registry query fails.
            QueryCancelledError: If the deadline expires.
        """
        return self._resolve_pointer(
            "get_latest_release", operator_set, self.registry.latest_release, timeout
        )

    def get_current_release(
        self,
        operator_set: OperatorSet,
        *,
        timeout: float | None = None,
    ) -> Release | None:
        """Get the release operators are required to run now.

        Args:
            operator_set: Operator set to resolve.
            timeout: Optional overall deadline in seconds.

        Returns:
            The current Release, or None if the registry designates none.

        Raises:
            InvalidConfigurationError: If arguments are malformed.
            RegistryQueryFailedError: If the registry query fails.
            QueryCancelledError: If the deadline expires.
        """
        return self._resolve_pointer(
            "get_current_release", operator_set, self.registry.current_release, timeout
        )

    # ==================== Helper Methods ====================

    def _resolve_pointer(
        self,
        operation: str,
        operator_set: OperatorSet,
        accessor: Callable[..., tuple[int, RawRelease]],
        timeout: float | None,
    ) -> Release | None:
        _validate_operator_set(operator_set)
        deadline = _Deadline(operator_set, _validate_timeout(timeout))

        with release_operation(operation, operator_set):
            release_id, raw = self._query(operation, operator_set, accessor, deadline)
            deadline.check()

            release = to_release(release_id, raw)
            if release.is_sentinel:
                self._logger.debug(
                    "release_absent",
                    operation=operation,
                    owner=operator_set.owner,
                    set_id=operator_set.set_id,
                )
                return None
            return release

    def _query(
        self,
        operation: str,
        operator_set: OperatorSet,
        call: Callable[..., T],
        deadline: _Deadline,
    ) -> T:
        try:
            return call(operator_set, timeout=deadline.remaining())
        except PORT_ERRORS as exc:
            if deadline.expired:
                raise deadline.cancelled() from exc
            self._fail(operation, operator_set, exc)

    def _fail(self, operation: str, operator_set: OperatorSet, exc: Exception) -> NoReturn:
        self._logger.error(
            "release_query_failed",
            operation=operation,
            owner=operator_set.owner,
            set_id=operator_set.set_id,
            error=str(exc),
        )
        raise RegistryQueryFailedError(operator_set, exc, operation=operation) from exc

    def _fetch(
        self, operator_set: OperatorSet, release_id: int, deadline: _Deadline
    ) -> FetchOutcome:
        try:
            raw = self.registry.release_at(
                operator_set, release_id, timeout=deadline.remaining()
            )
        except PORT_ERRORS as exc:
            # A failure after expiry cancels the whole listing
            if deadline.expired:
                raise deadline.cancelled() from exc
            self._logger.warning(
                "release_fetch_skipped",
                owner=operator_set.owner,
                set_id=operator_set.set_id,
                release_id=release_id,
                error=str(exc),
            )
            return Skipped(release_id=release_id, error=exc)
        return Fetched(release=to_release(release_id, raw))


def _validate_operator_set(operator_set: object) -> None:
    if not isinstance(operator_set, OperatorSet):
        raise InvalidConfigurationError(
            f"operator_set must be an OperatorSet, got {type(operator_set).__name__}",
            field="operator_set",
        )


def _validate_limit(limit: object) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidConfigurationError(
            f"limit must be a positive integer, got {limit!r}", field="limit"
        )


def _validate_timeout(timeout: float | None) -> float | None:
    if timeout is not None and timeout <= 0:
        raise InvalidConfigurationError(
            f"timeout must be positive, got {timeout!r}", field="timeout"
        )
    return timeout
