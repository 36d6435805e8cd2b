"""Named CLI contexts stored in YAML.

A context holds connection defaults (RPC URL, ReleaseManager address,
operator set) so they do not have to be passed on every invocation. The
file lives at ``~/.hgctl/config.yaml`` unless ``HGCTL_CONFIG`` points
elsewhere, and uses camelCase keys:

    currentContext: default
    contexts:
      default:
        executorAddress: executor:9090
        rpcUrl: http://localhost:8545
        releaseManagerAddress: "0xd9Cb89F1993292dEC2F973934bC63B0f2A702776"
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel
import structlog
import yaml

from hg_cli.errors import format_pydantic_error

logger = structlog.get_logger(__name__)

CONFIG_ENV_VAR = "HGCTL_CONFIG"
DEFAULT_CONTEXT_NAME = "default"
DEFAULT_EXECUTOR_ADDRESS = "executor:9090"


class ContextError(Exception):
    """Raised when a context cannot be loaded, found or changed."""


class Context(BaseModel):
    """Connection defaults for one named context."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    executor_address: str = DEFAULT_EXECUTOR_ADDRESS
    avs_address: str | None = None
    operator_set_id: int | None = Field(default=None, ge=0)
    network_id: int | None = Field(default=None, ge=0)
    rpc_url: str | None = None
    release_manager_address: str | None = None


class ContextConfig(BaseModel):
    """All contexts plus the name of the active one."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    current_context: str = DEFAULT_CONTEXT_NAME
    contexts: dict[str, Context] = Field(default_factory=dict)

    @model_validator(mode="after")
    def ensure_default_context(self) -> ContextConfig:
        """The default context always exists."""
        if DEFAULT_CONTEXT_NAME not in self.contexts:
            self.contexts[DEFAULT_CONTEXT_NAME] = Context()
        return self

    @property
    def current(self) -> Context:
        """Active context, falling back to the default one."""
        return self.contexts.get(self.current_context, self.contexts[DEFAULT_CONTEXT_NAME])


def default_config_path() -> Path:
    """Return the context file path, honouring HGCTL_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".hgctl" / "config.yaml"


class ContextStore:
    """Load and persist CLI contexts.

    Attributes:
        path: Location of the YAML context file.

    Example:
        >>> store = ContextStore()
        >>> store.update("staging", {"rpc_url": "https://rpc.example.org"})
        >>> store.use("staging")
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_config_path()

    def load(self) -> ContextConfig:
        """Read the context file, returning defaults if it does not exist.

        Raises:
            ContextError: If the file is not valid YAML or fails validation.
        """
        if not self.path.exists():
            return ContextConfig()

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ContextError(f"Invalid YAML in {self.path}: {exc}") from exc

        try:
            return ContextConfig.model_validate(data or {})
        except ValidationError as exc:
            raise ContextError(
                f"Invalid context file {self.path}\n{format_pydantic_error(exc)}"
            ) from exc

    def save(self, config: ContextConfig) -> None:
        """Write the context file, creating its directory if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = config.model_dump(by_alias=True, exclude_none=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, sort_keys=False)
        logger.debug("context_file_saved", path=str(self.path))

    def get(self, name: str) -> Context | None:
        """Return a context by name, or None if it does not exist."""
        return self.load().contexts.get(name)

    def resolve(self, name: str | None = None) -> tuple[str, Context]:
        """Return the named context, or the current one when name is None.

        Unknown names fall back to the default context.
        """
        config = self.load()
        context_name = name or config.current_context
        if context_name not in config.contexts:
            logger.debug("context_not_found", context=context_name)
            context_name = DEFAULT_CONTEXT_NAME
        return context_name, config.contexts[context_name]

    def update(self, name: str, updates: dict[str, Any]) -> Context:
        """Merge field updates into a context, creating it if needed.

        Raises:
            ContextError: If an updated value fails validation.
        """
        config = self.load()
        existing = config.contexts.get(name, Context())
        try:
            updated = Context.model_validate({**existing.model_dump(), **updates})
        except ValidationError as exc:
            raise ContextError(
                f"Invalid value for context {name!r}\n{format_pydantic_error(exc)}"
            ) from exc

        contexts = {**config.contexts, name: updated}
        self.save(config.model_copy(update={"contexts": contexts}))
        return updated

    def use(self, name: str) -> None:
        """Make an existing context the current one.

        Raises:
            ContextError: If the context does not exist.
        """
        config = self.load()
        if name not in config.contexts:
            raise ContextError(f'Context "{name}" does not exist')
        self.save(config.model_copy(update={"current_context": name}))

    def delete(self, name: str) -> None:
        """Delete a context, switching back to default if it was current.

        Raises:
            ContextError: If the context is the default one or does not exist.
        """
        if name == DEFAULT_CONTEXT_NAME:
            raise ContextError("Cannot delete the default context")

        config = self.load()
        if name not in config.contexts:
            raise ContextError(f'Context "{name}" does not exist')

        contexts = {k: v for k, v in config.contexts.items() if k != name}
        current = config.current_context
        if current == name:
            current = DEFAULT_CONTEXT_NAME
        self.save(config.model_copy(update={"contexts": contexts, "current_context": current}))
