"""CLI entry point for hg.

This module defines the main CLI group using the LazyGroup pattern so
that `hg --help` does not import web3.
"""

from __future__ import annotations

from dataclasses import dataclass
import importlib
from typing import Any

import click
import rich_click as rclick

from hg_cli import __version__
from hg_cli.output import set_no_color

# Configure rich-click for better help formatting
rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


class LazyGroup(rclick.RichGroup):
    """Click group that loads commands lazily.

    Commands are only imported when actually invoked, not at import time.

    Attributes:
        lazy_subcommands: Mapping of command names to module paths.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize LazyGroup.

        Args:
            *args: Positional arguments for parent class.
            lazy_subcommands: Mapping of command name to module path.
                Format: {"releases": "hg_cli.commands.releases.releases"}
            **kwargs: Keyword arguments for parent class.
        """
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return sorted command names, lazy and directly registered."""
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, loading lazily if needed."""
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_path = self.lazy_subcommands[cmd_name]
        module_name, attr_name = module_path.rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


@dataclass(frozen=True)
class GlobalOptions:
    """Options given before the subcommand, shared through ctx.obj.

    Attributes:
        verbose: Emit debug logs on stderr.
        context: Context name overriding the current one.
        rpc_url: RPC endpoint overriding the context value.
        release_manager_address: ReleaseManager address overriding the context value.
    """

    verbose: bool = False
    context: str | None = None
    rpc_url: str | None = None
    release_manager_address: str | None = None


LAZY_COMMANDS = {
    "releases": "hg_cli.commands.releases.releases",
    "context": "hg_cli.commands.context.context",
}


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="hg")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.option("--context", "context_name", default=None, help="Context to use.")
@click.option("--rpc-url", default=None, help="Ethereum RPC URL.")
@click.option(
    "--release-manager-address",
    default=None,
    help="ReleaseManager contract address.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    context_name: str | None,
    rpc_url: str | None,
    release_manager_address: str | None,
) -> None:
    """Hourglass CLI - Inspect AVS releases.

    Query the ReleaseManager contract for the releases published to an
    operator set.

    **Getting Started:**

    - `hg context set --rpc-url URL --release-manager-address ADDR` - Save connection defaults
    - `hg releases <avs-address>` - List recent releases
    - `hg releases <avs-address> --current` - Show the release operators must run now
    """
    from hg_releases.observability import configure_logging

    configure_logging(
        log_level="DEBUG" if verbose else "WARNING",
        json_format=False,
        add_timestamp=verbose,
    )
    ctx.obj = GlobalOptions(
        verbose=verbose,
        context=context_name,
        rpc_url=rpc_url,
        release_manager_address=release_manager_address,
    )


if __name__ == "__main__":
    cli()
