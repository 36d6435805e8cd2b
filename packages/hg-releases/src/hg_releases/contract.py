"""ReleaseManager contract registry adapter.

This module provides ReleaseManagerRegistry, a RegistryPort backed by the
on-chain ReleaseManager contract via web3, with added observability, retry
policies and error translation.

Every read accepts the time left in the caller's deadline. That budget stops
the retry loop and caps the timeout of each HTTP request, through
BoundedHTTPProvider and a per-thread request timeout.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from functools import partial
import threading
import time
from typing import TYPE_CHECKING, Any

from requests.exceptions import RequestException
from web3 import HTTPProvider, Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from hg_releases.config import RegistryConfig, is_address
from hg_releases.errors import (
    InvalidConfigurationError,
    RegistryConnectionError,
    RegistryDecodeError,
    RegistryError,
    ReleaseNotFoundError,
)
from hg_releases.observability import get_logger, registry_operation
from hg_releases.registry import RawRelease, decode_indexed_release, decode_release
from hg_releases.retry import CircuitBreaker, call_with_retry, remaining_seconds

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from hg_releases.models import OperatorSet

_request_timeout = threading.local()


def current_request_timeout() -> float | None:
    """Return the request timeout set for this thread, if any."""
    return getattr(_request_timeout, "seconds", None)


@contextmanager
def bounded_request_timeout(seconds: float) -> Iterator[None]:
    """Cap the timeout of HTTP requests made by this thread inside the block."""
    previous = current_request_timeout()
    _request_timeout.seconds = seconds
    try:
        yield
    finally:
        _request_timeout.seconds = previous


class BoundedHTTPProvider(HTTPProvider):
    """HTTP provider honouring the per-thread request timeout."""

    def get_request_kwargs(self) -> Any:
        kwargs = dict(super().get_request_kwargs())
        seconds = current_request_timeout()
        if seconds is not None:
            kwargs["timeout"] = min(seconds, kwargs.get("timeout", seconds))
        return kwargs


_OPERATOR_SET_INPUT: dict[str, Any] = {
    "name": "operatorSet",
    "type": "tuple",
    "internalType": "struct OperatorSet",
    "components": [
        {"name": "avs", "type": "address", "internalType": "address"},
        {"name": "id", "type": "uint32", "internalType": "uint32"},
    ],
}

_RELEASE_OUTPUT: dict[str, Any] = {
    "name": "",
    "type": "tuple",
    "internalType": "struct IReleaseManagerTypes.Release",
    "components": [
        {
            "name": "artifacts",
            "type": "tuple[]",
            "internalType": "struct IReleaseManagerTypes.Artifact[]",
            "components": [
                {"name": "digest", "type": "bytes32", "internalType": "bytes32"},
                {"name": "registry", "type": "string", "internalType": "string"},
            ],
        },
        {"name": "upgradeByTime", "type": "uint32", "internalType": "uint32"},
    ],
}

_RELEASE_ID: dict[str, Any] = {"name": "", "type": "uint256", "internalType": "uint256"}


def _view(name: str, inputs: list[dict[str, Any]], outputs: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


# Read-only subset of the ReleaseManager ABI
RELEASE_MANAGER_ABI: list[dict[str, Any]] = [
    _view("getTotalReleases", [_OPERATOR_SET_INPUT], [_RELEASE_ID]),
    _view(
        "getRelease",
        [
            _OPERATOR_SET_INPUT,
            {"name": "releaseId", "type": "uint256", "internalType": "uint256"},
        ],
        [_RELEASE_OUTPUT],
    ),
    _view("getLatestRelease", [_OPERATOR_SET_INPUT], [_RELEASE_ID, _RELEASE_OUTPUT]),
    _view("getCurrentRelease", [_OPERATOR_SET_INPUT], [_RELEASE_ID, _RELEASE_OUTPUT]),
]


class ReleaseManagerRegistry:
    """Registry port backed by the ReleaseManager contract.

    This class wraps a web3 contract handle and adds:
    - Configurable retry policies with exponential backoff
    - Circuit breaker for cascading failure prevention
    - OpenTelemetry client spans per contract call
    - Translation of web3 and transport errors into RegistryError subclasses

    Attributes:
        config: Registry configuration.

    Note:
        Use create_resolver() or create_registry() instead of direct instantiation.

    Example:
        >>> registry = ReleaseManagerRegistry(
        ...     RegistryConfig(
        ...         rpc_url="http://localhost:8545",
        ...         release_manager_address="0xd9Cb89F1993292dEC2F973934bC63B0f2A702776",
        ...     )
        ... )
        >>> registry.total_release_count(operator_set)
        5
    """

    def __init__(
        self,
        config: RegistryConfig,
        *,
        web3: Web3 | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        """Initialize ReleaseManagerRegistry.

        Args:
            config: Registry configuration with connection and retry settings.
            web3: Optional preconfigured Web3 instance. Built from config if not provided.
            logger: Optional structlog logger. Uses default if not provided.
        """
        self.config = config
        self._logger = logger or get_logger()
        self._web3 = web3 if web3 is not None else Web3(
            BoundedHTTPProvider(
                config.rpc_url,
                request_kwargs={"timeout": config.request_timeout_seconds},
            )
        )
        self._contract = self._web3.eth.contract(
            address=Web3.to_checksum_address(config.release_manager_address),
            abi=RELEASE_MANAGER_ABI,
        )
        self._circuit_breaker = CircuitBreaker(
            config.retry.circuit_breaker_threshold,
            recovery_seconds=config.retry.circuit_breaker_recovery_seconds,
        )

        self._logger.debug(
            "registry_client_created",
            uri=config.rpc_url,
            release_manager=config.release_manager_address,
        )

    def reset_circuit(self) -> None:
        """Close the circuit breaker without waiting for its cooldown."""
        self._circuit_breaker.reset()

    # ==================== Registry Port ====================

    def total_release_count(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> int:
        """Return the number of releases published for the operator set.

        Args:
            operator_set: Operator set to query.
            timeout: Seconds left in the caller's deadline, if any.

        Raises:
            RegistryConnectionError: If the registry is unreachable.
            RegistryDecodeError: If the count is not an unsigned integer.
        """
        total = self._call("getTotalReleases", operator_set, timeout=timeout)
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise RegistryDecodeError(
                "Malformed release count", cause=f"invalid count: {total!r}"
            )
        return total

    def release_at(
        self, operator_set: OperatorSet, release_id: int, *, timeout: float | None = None
    ) -> RawRelease:
        """Fetch a single release record by id.

        Failures here never count toward the circuit breaker.

        Raises:
            ReleaseNotFoundError: If the contract reverts for this id.
            RegistryConnectionError: If the registry is unreachable.
            RegistryDecodeError: If the record is malformed.
        """
        return decode_release(
            self._call("getRelease", operator_set, release_id, timeout=timeout)
        )

    def latest_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        """Fetch the id and record of the most recently published release."""
        return decode_indexed_release(
            self._call("getLatestRelease", operator_set, timeout=timeout)
        )

    def current_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        """Fetch the id and record of the release that is mandatory now."""
        return decode_indexed_release(
            self._call("getCurrentRelease", operator_set, timeout=timeout)
        )

    # ==================== Helper Methods ====================

    def _call(
        self,
        function_name: str,
        operator_set: OperatorSet,
        *args: Any,
        timeout: float | None = None,
    ) -> Any:
        key = self._operator_set_key(operator_set)
        deadline = None if timeout is None else time.monotonic() + timeout
        release_id = args[0] if args else None
        with registry_operation(
            function_name,
            uri=self.config.rpc_url,
            operator_set=operator_set,
            release_id=release_id,
        ):
            return call_with_retry(
                partial(self._call_once, function_name, operator_set, key, deadline, *args),
                self.config.retry,
                operation_name=function_name,
                deadline=deadline,
                circuit_breaker=self._circuit_breaker,
                # A missing or unreadable history entry is per item
                count_failures=function_name != "getRelease",
            )

    def _call_once(
        self,
        function_name: str,
        operator_set: OperatorSet,
        key: tuple[str, int],
        deadline: float | None,
        *args: Any,
    ) -> Any:
        request_timeout = self.config.request_timeout_seconds
        remaining = remaining_seconds(deadline)
        if remaining is not None:
            if remaining <= 0:
                raise RegistryConnectionError(
                    "Registry deadline exceeded",
                    uri=self.config.rpc_url,
                    cause=f"{function_name} not sent",
                )
            request_timeout = min(request_timeout, remaining)

        function = getattr(self._contract.functions, function_name)
        try:
            with bounded_request_timeout(request_timeout):
                return function(key, *args).call()
        except ContractLogicError as exc:
            if function_name == "getRelease":
                raise ReleaseNotFoundError(operator_set, args[0]) from exc
            raise RegistryError(
                f"{function_name} reverted", details={"cause": str(exc)}
            ) from exc
        except BadFunctionCallOutput as exc:
            raise RegistryDecodeError(
                f"Malformed {function_name} response", cause=str(exc)
            ) from exc
        except (RequestException, OSError) as exc:
            self._logger.debug("registry_request_failed", uri=self.config.rpc_url, error=str(exc))
            raise RegistryConnectionError(uri=self.config.rpc_url, cause=str(exc)) from exc
        except Web3Exception as exc:
            raise RegistryConnectionError(
                "Registry request failed", uri=self.config.rpc_url, cause=str(exc)
            ) from exc

    @staticmethod
    def _operator_set_key(operator_set: OperatorSet) -> tuple[str, int]:
        """Convert an operator set to the contract's (address, uint32) struct."""
        if not is_address(operator_set.owner):
            raise InvalidConfigurationError(
                f"Operator set owner is not a valid address: {operator_set.owner}",
                field="owner",
            )
        if operator_set.set_id > 0xFFFFFFFF:
            raise InvalidConfigurationError(
                f"Operator set id does not fit in uint32: {operator_set.set_id}",
                field="set_id",
            )
        return Web3.to_checksum_address(operator_set.owner), operator_set.set_id
