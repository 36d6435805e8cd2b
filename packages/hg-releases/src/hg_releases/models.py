"""Release data models for hg-releases.

This module provides:
- OperatorSet: Lookup key for a group of operator nodes
- Artifact: One deployable unit within a release
- Release: One published version for an operator set
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hg_releases.errors import InvalidConfigurationError


class OperatorSet(BaseModel):
    """Identifies a group of operator nodes serving one application.

    Attributes:
        owner: Address of the owning application.
        set_id: Numeric operator set id.

    Example:
        >>> OperatorSet(owner="0xAAA", set_id=1)
        OperatorSet(owner='0xAAA', set_id=1)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str = Field(
        ...,
        min_length=1,
        description="Owning application address",
    )
    set_id: int = Field(
        ...,
        ge=0,
        description="Operator set id",
    )

    @field_validator("owner")
    @classmethod
    def owner_must_not_be_blank(cls, v: str) -> str:
        """Reject whitespace-only owners."""
        if not v.strip():
            msg = "owner must not be blank"
            raise ValueError(msg)
        return v.strip()

    def __str__(self) -> str:
        return f"{self.owner}/{self.set_id}"


class Artifact(BaseModel):
    """One deployable unit within a release.

    Attributes:
        digest: Content-addressed hash of the artifact.
        registry_url: Where the artifact can be retrieved from.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    digest: str
    registry_url: str


class Release(BaseModel):
    """One published release for an operator set.

    Attributes:
        id: Registry sequence number, dense and increasing per operator set.
        artifacts: Artifacts in registry order (may be empty).
        upgrade_by_time: Adoption deadline in seconds since the epoch.

    Example:
        >>> release = Release(id=2, artifacts=(), upgrade_by_time=1700000000)
        >>> release.is_sentinel
        False
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(..., ge=0, description="Release id")
    artifacts: tuple[Artifact, ...] = Field(
        default=(),
        description="Artifacts in registry order",
    )
    upgrade_by_time: int = Field(
        ...,
        ge=0,
        description="Upgrade deadline (unix seconds)",
    )

    @property
    def is_sentinel(self) -> bool:
        """True when this value means no release has been published yet."""
        return self.id == 0 and not self.artifacts


def operator_set(owner: str, set_id: int) -> OperatorSet:
    """Build an OperatorSet, failing fast on malformed input.

    Args:
        owner: Owning application address.
        set_id: Operator set id.

    Returns:
        Validated OperatorSet.

    Raises:
        InvalidConfigurationError: If owner is empty or set_id is negative.
    """
    try:
        return OperatorSet(owner=owner, set_id=set_id)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise InvalidConfigurationError(
            f"Invalid operator set: {first['msg']}", field=field
        ) from exc
