"""Resolver factory.

This module provides create_registry() and create_resolver() for building
configured ReleaseManagerRegistry and ReleaseResolver instances. The registry
handle is constructed here and passed into the resolver; nothing is shared at
module level.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from hg_releases.config import RegistryConfig
from hg_releases.contract import ReleaseManagerRegistry
from hg_releases.errors import InvalidConfigurationError
from hg_releases.observability import get_logger
from hg_releases.resolver import ReleaseResolver

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger


def load_registry_config(config: RegistryConfig | Mapping[str, Any]) -> RegistryConfig:
    """Validate registry configuration, failing fast on malformed input.

    Args:
        config: A RegistryConfig, or a mapping of its fields.

    Returns:
        RegistryConfig: Validated configuration.

    Raises:
        InvalidConfigurationError: If a field is missing or malformed.
    """
    if isinstance(config, RegistryConfig):
        return config
    try:
        return RegistryConfig.model_validate(dict(config))
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise InvalidConfigurationError(
            f"Invalid registry configuration: {field}: {first['msg']}", field=field
        ) from exc


def create_registry(
    config: RegistryConfig | Mapping[str, Any],
    *,
    logger: BoundLogger | None = None,
) -> ReleaseManagerRegistry:
    """Create a ReleaseManager registry adapter from configuration.

    Args:
        config: Registry configuration or a mapping of its fields.
        logger: Optional structlog logger.

    Returns:
        ReleaseManagerRegistry with retry and observability.

    Raises:
        InvalidConfigurationError: If configuration is malformed.
    """
    registry_config = load_registry_config(config)
    return ReleaseManagerRegistry(registry_config, logger=logger)


def create_resolver(
    config: RegistryConfig | Mapping[str, Any],
    *,
    logger: BoundLogger | None = None,
) -> ReleaseResolver:
    """Create a release resolver over the ReleaseManager contract.

    This is the primary entry point for callers that do not bring their own
    registry port.

    Args:
        config: Registry configuration or a mapping of its fields.
        logger: Optional structlog logger shared by registry and resolver.

    Returns:
        ReleaseResolver: Resolver reading from a fresh registry adapter.

    Raises:
        InvalidConfigurationError: If configuration is malformed.

    Example:
        >>> from hg_releases import create_resolver, operator_set
        >>> resolver = create_resolver(
        ...     {
        ...         "rpc_url": "http://localhost:8545",
        ...         "release_manager_address": "0xd9Cb89F1993292dEC2F973934bC63B0f2A702776",
        ...     }
        ... )
        >>> resolver.get_current_release(operator_set("0x1234567890123456789012345678901234567890", 0))
    """
    log = logger or get_logger()
    registry = create_registry(config, logger=log)
    log.debug(
        "creating_resolver",
        uri=registry.config.rpc_url,
        release_manager=registry.config.release_manager_address,
    )
    return ReleaseResolver(registry, logger=log)
