"""hg-releases: release resolution for Hourglass operator sets.

This package reads the release history of an operator set from the
ReleaseManager registry and answers three questions:
- Which releases were published most recently (best-effort history window)
- Which release is the latest one published
- Which release operators are required to run now

Example:
    >>> from hg_releases import create_resolver, RegistryConfig, operator_set
    >>> resolver = create_resolver(
    ...     RegistryConfig(
    ...         rpc_url="http://localhost:8545",
    ...         release_manager_address="0xd9Cb89F1993292dEC2F973934bC63B0f2A702776",
    ...     )
    ... )
    >>> key = operator_set("0x1234567890123456789012345678901234567890", 1)
    >>> releases = resolver.list_releases(key, limit=3)
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    # Factory functions
    "create_registry",
    "create_resolver",
    # Resolver and registry port
    "ReleaseResolver",
    "RegistryPort",
    "ReleaseManagerRegistry",
    # Configuration models
    "RegistryConfig",
    "RetryConfig",
    # Data models
    "OperatorSet",
    "Artifact",
    "Release",
    "operator_set",
    # Logging
    "configure_logging",
    # Exceptions
    "ReleaseError",
    "InvalidConfigurationError",
    "RegistryError",
    "RegistryConnectionError",
    "RegistryDecodeError",
    "ReleaseNotFoundError",
    "RegistryQueryFailedError",
    "QueryCancelledError",
]

_LAZY_MODULES = {
    "create_registry": "factory",
    "create_resolver": "factory",
    "ReleaseResolver": "resolver",
    "RegistryPort": "registry",
    "ReleaseManagerRegistry": "contract",
    "RegistryConfig": "config",
    "RetryConfig": "config",
    "OperatorSet": "models",
    "Artifact": "models",
    "Release": "models",
    "operator_set": "models",
    "configure_logging": "observability",
    "ReleaseError": "errors",
    "InvalidConfigurationError": "errors",
    "RegistryError": "errors",
    "RegistryConnectionError": "errors",
    "RegistryDecodeError": "errors",
    "ReleaseNotFoundError": "errors",
    "RegistryQueryFailedError": "errors",
    "QueryCancelledError": "errors",
}


def __getattr__(name: str) -> object:
    """Lazy import of public API members.

    Keeps web3 out of the import path until the contract adapter is used.
    """
    module_name = _LAZY_MODULES.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    import importlib

    module = importlib.import_module(f"{__name__}.{module_name}")
    return getattr(module, name)
