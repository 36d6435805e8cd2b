"""Registry access port.

This module defines what the resolver needs from the release registry:
- RegistryPort: Read-only protocol keyed by operator set
- RawArtifact / RawRelease: Decoded registry records, before an id is attached
- decode_release / decode_indexed_release: Strict decoding of contract return values

Anything that satisfies RegistryPort can back a ReleaseResolver. The
ReleaseManager contract adapter lives in hg_releases.contract.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hg_releases.errors import RegistryDecodeError
from hg_releases.models import OperatorSet


class RawArtifact(BaseModel):
    """Artifact entry of a registry release record."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    digest: str
    registry_url: str


class RawRelease(BaseModel):
    """Release record as stored in the registry, without its id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifacts: tuple[RawArtifact, ...] = ()
    upgrade_by_time: int = Field(..., ge=0, strict=True)


@runtime_checkable
class RegistryPort(Protocol):
    """Read-only access to the authoritative release registry.

    Every read takes ``timeout``, the seconds left in the caller's deadline
    (None when unbounded). Implementations must not block past it.

    Implementations raise RegistryConnectionError, RegistryDecodeError or
    ReleaseNotFoundError. They must be safe for concurrent use.
    """

    def total_release_count(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> int:
        """Return how many releases have been published for the operator set."""
        ...

    def release_at(
        self, operator_set: OperatorSet, release_id: int, *, timeout: float | None = None
    ) -> RawRelease:
        """Return the release record with the given id.

        Raises:
            ReleaseNotFoundError: If no release with that id exists.
        """
        ...

    def latest_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        """Return the id and record of the most recently published release."""
        ...

    def current_release(
        self, operator_set: OperatorSet, *, timeout: float | None = None
    ) -> tuple[int, RawRelease]:
        """Return the id and record of the release operators must run now."""
        ...


def _render_digest(digest: Any) -> str:
    if isinstance(digest, (bytes, bytearray)):
        return "0x" + bytes(digest).hex()
    if isinstance(digest, str):
        return digest
    msg = f"digest must be bytes or str, got {type(digest).__name__}"
    raise TypeError(msg)


def _decode_artifact(item: Any) -> RawArtifact:
    if isinstance(item, Mapping):
        digest = item["digest"]
        url = item.get("registry_url", item.get("registryUrl", item.get("registry")))
    else:
        digest, url = item
    return RawArtifact(digest=_render_digest(digest), registry_url=url)


def decode_release(payload: Any) -> RawRelease:
    """Decode a release record returned by the registry.

    Accepts the contract tuple shape ``(artifacts, upgradeByTime)`` or a
    mapping with ``artifacts`` and ``upgradeByTime``/``upgrade_by_time``.
    Artifacts may be ``(digest, registry)`` pairs or mappings; bytes digests
    are rendered as 0x-prefixed hex. A missing artifact list becomes empty.

    Args:
        payload: Raw value returned by the contract call.

    Returns:
        Decoded RawRelease.

    Raises:
        RegistryDecodeError: If the payload does not have the release shape.

    Example:
        >>> decode_release(([(b"\\x01" * 32, "ghcr.io/app")], 1700000000)).upgrade_by_time
        1700000000
    """
    try:
        if isinstance(payload, Mapping):
            raw_artifacts = payload.get("artifacts")
            upgrade_by_time = payload.get("upgradeByTime", payload.get("upgrade_by_time"))
        else:
            raw_artifacts, upgrade_by_time = payload
        items: Iterable[Any] = raw_artifacts if raw_artifacts is not None else ()
        artifacts = tuple(_decode_artifact(item) for item in items)
        return RawRelease(artifacts=artifacts, upgrade_by_time=upgrade_by_time)
    except (TypeError, ValueError, KeyError, ValidationError) as exc:
        raise RegistryDecodeError("Malformed release record", cause=str(exc)) from exc


def decode_indexed_release(payload: Any) -> tuple[int, RawRelease]:
    """Decode an ``(id, release)`` pair from the latest/current accessors.

    Raises:
        RegistryDecodeError: If the payload is not an id/release pair.
    """
    try:
        release_id, record = payload
    except (TypeError, ValueError) as exc:
        raise RegistryDecodeError("Malformed release pair", cause=str(exc)) from exc
    if isinstance(release_id, bool) or not isinstance(release_id, int) or release_id < 0:
        raise RegistryDecodeError(
            "Malformed release pair", cause=f"invalid release id: {release_id!r}"
        )
    return release_id, decode_release(record)
