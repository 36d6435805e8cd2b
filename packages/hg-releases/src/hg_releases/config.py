"""Pydantic configuration models for hg-releases.

This module provides:
- RetryConfig: Retry policy for registry calls with exponential backoff
- RegistryConfig: ReleaseManager registry connection configuration
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ethereum address: 0x followed by 40 hex characters
ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class RetryConfig(BaseModel):
    """Retry policy configuration for registry calls.

    Implements exponential backoff with jitter for transient failures.
    Circuit breaker pattern available to prevent cascading failures.

    Attributes:
        max_attempts: Maximum retry attempts (1-10, default 3).
        initial_wait_seconds: Initial backoff wait (0.1-30s, default 1.0).
        max_wait_seconds: Maximum backoff cap (1-300s, default 30.0).
        jitter_seconds: Random jitter range (0-10s, default 1.0).
        circuit_breaker_threshold: Failures before circuit opens (default 5, 0=disabled).
        circuit_breaker_recovery_seconds: Cooldown before an open circuit lets
            a trial call through (0-3600s, default 30.0).

    Example:
        >>> config = RetryConfig(max_attempts=5, initial_wait_seconds=0.5)
        >>> config.max_attempts
        5
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of retry attempts",
    )
    initial_wait_seconds: float = Field(
        default=1.0,
        ge=0.1,
        le=30.0,
        description="Initial backoff wait time in seconds",
    )
    max_wait_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Maximum backoff wait time in seconds",
    )
    jitter_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Random jitter range in seconds",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Consecutive failures before circuit opens (0=disabled)",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=3600.0,
        description="Seconds an open circuit waits before allowing a trial call",
    )

    @field_validator("max_wait_seconds")
    @classmethod
    def max_wait_must_exceed_initial(cls, v: float, info: object) -> float:
        """Validate that max_wait_seconds >= initial_wait_seconds."""
        data = getattr(info, "data", {})
        initial = data.get("initial_wait_seconds", 1.0)
        if v < initial:
            msg = f"max_wait_seconds ({v}) must be >= initial_wait_seconds ({initial})"
            raise ValueError(msg)
        return v


class RegistryConfig(BaseModel):
    """ReleaseManager registry connection configuration.

    Attributes:
        rpc_url: JSON-RPC endpoint of the chain hosting the registry.
        release_manager_address: Address of the ReleaseManager contract.
        request_timeout_seconds: Upper bound for a single RPC request.
        retry: Retry policy configuration.

    Example:
        >>> config = RegistryConfig(
        ...     rpc_url="http://localhost:8545",
        ...     release_manager_address="0xd9Cb89F1993292dEC2F973934bC63B0f2A702776",
        ... )
        >>> config.request_timeout_seconds
        30.0
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rpc_url: str = Field(
        ...,
        min_length=1,
        description="Ethereum JSON-RPC endpoint URL",
    )
    release_manager_address: str = Field(
        ...,
        description="ReleaseManager contract address",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Timeout for a single RPC request in seconds",
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Retry policy configuration",
    )

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url_format(cls, v: str) -> str:
        """Validate URL format (must be http:// or https://)."""
        if not v.startswith(("http://", "https://")):
            msg = f"RPC URL must start with http:// or https://, got: {v}"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("release_manager_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate the contract address format."""
        if not ADDRESS_PATTERN.match(v):
            msg = f"release_manager_address must be 0x followed by 40 hex characters, got: {v}"
            raise ValueError(msg)
        return v


def is_address(value: str) -> bool:
    """Check whether a string is a well-formed 0x-prefixed address."""
    return bool(ADDRESS_PATTERN.match(value))
