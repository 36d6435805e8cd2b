"""Custom exceptions for hg-releases.

This module defines the exception hierarchy:
- ReleaseError (base)
- InvalidConfigurationError
- RegistryError (registry port failures)
  - RegistryConnectionError
  - RegistryDecodeError
  - ReleaseNotFoundError
- RegistryQueryFailedError
- QueryCancelledError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hg_releases.models import OperatorSet


class ReleaseError(Exception):
    """Base exception for all release resolution operations.

    Attributes:
        message: Human-readable error description.
        details: Optional additional context about the error.

    Example:
        >>> try:
        ...     resolver.get_latest_release(operator_set)
        ... except ReleaseError as e:
        ...     print(f"Release error: {e}")
    """

    def __init__(self, message: str, *, details: dict[str, str] | None = None) -> None:
        """Initialize ReleaseError.

        Args:
            message: Human-readable error description.
            details: Optional additional context about the error.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details if present."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class InvalidConfigurationError(ReleaseError):
    """Operator set or connection parameters are malformed.

    Raised before any network call is attempted, for example when the
    operator set owner is empty, the limit is not positive, or the RPC URL
    is not a valid endpoint. Never retried.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        """Initialize InvalidConfigurationError.

        Args:
            message: Human-readable error description.
            field: Name of the offending parameter, if known.
        """
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class RegistryError(ReleaseError):
    """Base class for failures raised by a registry port implementation."""


class RegistryConnectionError(RegistryError):
    """Failed to reach the release registry.

    Raised when:
    - The RPC endpoint is unreachable or refuses the connection
    - A request times out
    - The provider returns a transport-level error
    """

    def __init__(
        self,
        message: str = "Failed to connect to registry",
        *,
        uri: str | None = None,
        cause: str | None = None,
    ) -> None:
        """Initialize RegistryConnectionError.

        Args:
            message: Human-readable error description.
            uri: The registry RPC URI that was unreachable.
            cause: The underlying cause of the connection failure.
        """
        details: dict[str, str] = {}
        if uri:
            details["uri"] = uri
        if cause:
            details["cause"] = cause
        super().__init__(message, details=details)
        self.uri = uri
        self.cause = cause


class RegistryDecodeError(RegistryError):
    """The registry returned a response that does not match the release shape."""

    def __init__(
        self,
        message: str = "Malformed registry response",
        *,
        cause: str | None = None,
    ) -> None:
        """Initialize RegistryDecodeError.

        Args:
            message: Human-readable error description.
            cause: Description of what could not be decoded.
        """
        super().__init__(message, details={"cause": cause} if cause else None)
        self.cause = cause


class ReleaseNotFoundError(RegistryError):
    """No release record exists for the requested id.

    Example:
        >>> try:
        ...     registry.release_at(operator_set, 42)
        ... except ReleaseNotFoundError as e:
        ...     print(f"Missing release: {e.release_id}")
    """

    def __init__(
        self,
        operator_set: OperatorSet,
        release_id: int,
        message: str | None = None,
    ) -> None:
        """Initialize ReleaseNotFoundError.

        Args:
            operator_set: Operator set that was queried.
            release_id: The release id that was not found.
            message: Optional custom error message.
        """
        msg = message or f"Release not found: {release_id}"
        super().__init__(
            msg,
            details={"operator_set": str(operator_set), "release_id": str(release_id)},
        )
        self.operator_set = operator_set
        self.release_id = release_id


class RegistryQueryFailedError(ReleaseError):
    """A registry query needed to answer the request failed.

    Carries the operator set and the underlying registry error. The
    original exception is also chained as ``__cause__``.

    Example:
        >>> try:
        ...     resolver.list_releases(operator_set)
        ... except RegistryQueryFailedError as e:
        ...     print(f"{e.operator_set}: {e.cause}")
    """

    def __init__(
        self,
        operator_set: OperatorSet,
        cause: Exception,
        *,
        operation: str | None = None,
    ) -> None:
        """Initialize RegistryQueryFailedError.

        Args:
            operator_set: Operator set the query was issued for.
            cause: The registry error that aborted the operation.
            operation: Name of the failed resolver operation.
        """
        details = {"operator_set": str(operator_set), "cause": str(cause)}
        if operation:
            details["operation"] = operation
        super().__init__("Registry query failed", details=details)
        self.operator_set = operator_set
        self.cause = cause
        self.operation = operation


class QueryCancelledError(ReleaseError):
    """The caller's deadline expired before the operation completed.

    Partial results gathered before the deadline are discarded.
    """

    def __init__(self, operator_set: OperatorSet, timeout: float) -> None:
        """Initialize QueryCancelledError.

        Args:
            operator_set: Operator set the query was issued for.
            timeout: The deadline, in seconds, that was exceeded.
        """
        super().__init__(
            f"Query cancelled after {timeout}s",
            details={"operator_set": str(operator_set)},
        )
        self.operator_set = operator_set
        self.timeout = timeout
