"""hg context command - Manage named connection contexts."""

from __future__ import annotations

from typing import Any

import click
from rich.table import Table

from hg_cli import output
from hg_cli.context import ContextError, ContextStore
from hg_cli.errors import CLIError
from hg_cli.output import OUTPUT_FORMATS, print_structured, success
from hg_releases.config import is_address

_ADDRESS_FIELDS = ("avs_address", "release_manager_address")


@click.group()
def context() -> None:
    """Manage connection contexts.

    A context stores the RPC URL, ReleaseManager address and operator set
    defaults used by `hg releases`.

    **Commands:**

    - `hg context show` - Show a context
    - `hg context set` - Update fields of a context
    - `hg context use` - Switch the current context
    - `hg context delete` - Delete a context
    """
    pass


@context.command("show")
@click.argument("name", required=False)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="table",
    show_default=True,
    help="Output format.",
)
def show(name: str | None, output_format: str) -> None:
    """Show a context, the current one by default.

    Examples:

        hg context show

        hg context show staging -o yaml
    """
    store = ContextStore()
    try:
        config = store.load()
    except ContextError as e:
        raise CLIError(str(e)) from e

    context_name = name or config.current_context
    ctx = config.contexts.get(context_name)
    if ctx is None:
        raise CLIError(f'Context "{context_name}" does not exist')

    data = ctx.model_dump(by_alias=True)
    if output_format != "table":
        print_structured({"name": context_name, **data}, output_format)
        return

    marker = " (current)" if context_name == config.current_context else ""
    table = Table(title=f"{context_name}{marker}", header_style="cyan")
    table.add_column("FIELD", no_wrap=True)
    table.add_column("VALUE")
    for field, value in data.items():
        table.add_row(field, "-" if value is None else str(value))
    output.console.print(table)


@context.command("set")
@click.argument("name", required=False)
@click.option("--avs-address", default=None, help="AVS address.")
@click.option("--operator-set-id", type=click.IntRange(min=0), default=None, help="Operator set ID.")
@click.option("--network-id", type=click.IntRange(min=0), default=None, help="Chain ID.")
@click.option("--rpc-url", default=None, help="Ethereum RPC URL.")
@click.option("--release-manager-address", default=None, help="ReleaseManager contract address.")
@click.option("--executor-address", default=None, help="Executor gRPC address.")
def set_context(name: str | None, **fields: Any) -> None:
    """Update fields of a context, creating it if needed.

    Examples:

        hg context set --rpc-url http://localhost:8545

        hg context set staging --operator-set-id 1 --avs-address 0x1234567890123456789012345678901234567890
    """
    updates = {field: value for field, value in fields.items() if value is not None}
    if not updates:
        raise CLIError("No values to set. See 'hg context set --help'")

    for field in _ADDRESS_FIELDS:
        if field in updates and not is_address(updates[field]):
            raise CLIError(f"Invalid {field.replace('_', ' ')}: {updates[field]}")

    store = ContextStore()
    try:
        context_name = name or store.load().current_context
        store.update(context_name, updates)
    except ContextError as e:
        raise CLIError(str(e)) from e

    success(f'Context "{context_name}" updated')


@context.command("use")
@click.argument("name")
def use(name: str) -> None:
    """Switch the current context.

    Examples:

        hg context use staging
    """
    try:
        ContextStore().use(name)
    except ContextError as e:
        raise CLIError(str(e)) from e
    success(f'Switched to context "{name}"')


@context.command("delete")
@click.argument("name")
def delete(name: str) -> None:
    """Delete a context. The default context cannot be deleted.

    Examples:

        hg context delete staging
    """
    try:
        ContextStore().delete(name)
    except ContextError as e:
        raise CLIError(str(e)) from e
    success(f'Context "{name}" deleted')
