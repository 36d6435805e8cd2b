"""hg releases command - Show releases published for an operator set."""

from __future__ import annotations

import click

from hg_cli.context import ContextError, ContextStore
from hg_cli.errors import EXIT_SYSTEM_ERROR, CLIError, handle_release_error
from hg_cli.main import GlobalOptions
from hg_cli.output import OUTPUT_FORMATS, info, print_release, print_releases
from hg_releases.config import is_address
from hg_releases.errors import InvalidConfigurationError, ReleaseError
from hg_releases.factory import create_resolver
from hg_releases.models import operator_set as make_operator_set
from hg_releases.resolver import DEFAULT_LIMIT


@click.command()
@click.argument("avs_address")
@click.option(
    "--operator-set-id",
    type=click.IntRange(min=0),
    default=None,
    help="Operator set ID [default: context value, else 0]",
)
@click.option("--latest", is_flag=True, default=False, help="Show only the latest release.")
@click.option(
    "--current",
    is_flag=True,
    default=False,
    help="Show only the release operators must run now.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=DEFAULT_LIMIT,
    show_default=True,
    help="Number of recent releases to show.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up after this many seconds.",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_obj
def releases(
    options: GlobalOptions | None,
    avs_address: str,
    operator_set_id: int | None,
    latest: bool,
    current: bool,
    limit: int,
    timeout: float | None,
    output_format: str,
) -> None:
    """Show releases for an AVS operator set.

    Lists the most recent releases by default. Releases that cannot be
    fetched are skipped with a warning.

    Examples:

        hg releases 0x1234567890123456789012345678901234567890

        hg releases 0x1234567890123456789012345678901234567890 --operator-set-id 1 --limit 5

        hg releases 0x1234567890123456789012345678901234567890 --current -o json
    """
    options = options or GlobalOptions()

    if not is_address(avs_address):
        raise CLIError(f"Invalid AVS address: {avs_address}")
    if latest and current:
        raise CLIError("--latest and --current are mutually exclusive")

    try:
        _, context = ContextStore().resolve(options.context)
    except ContextError as e:
        raise CLIError(str(e), exit_code=EXIT_SYSTEM_ERROR) from e

    rpc_url = options.rpc_url or context.rpc_url
    if not rpc_url:
        raise CLIError(
            "RPC URL not configured. Use 'hg context set --rpc-url <url>' or pass --rpc-url"
        )
    release_manager_address = options.release_manager_address or context.release_manager_address
    if not release_manager_address:
        raise CLIError(
            "ReleaseManager address not configured. Use 'hg context set "
            "--release-manager-address <address>' or pass --release-manager-address"
        )

    if operator_set_id is None:
        operator_set_id = context.operator_set_id or 0

    try:
        resolver = create_resolver(
            {"rpc_url": rpc_url, "release_manager_address": release_manager_address}
        )
        key = make_operator_set(avs_address, operator_set_id)
    except InvalidConfigurationError as e:
        raise CLIError(f"Invalid configuration: {e}") from e

    try:
        if current:
            release = resolver.get_current_release(key, timeout=timeout)
            if release is None:
                info("No current release found")
                return
            print_release(release, output_format)
        elif latest:
            release = resolver.get_latest_release(key, timeout=timeout)
            if release is None:
                info("No releases found")
                return
            print_release(release, output_format)
        else:
            found = resolver.list_releases(key, limit, timeout=timeout)
            if not found:
                info("No releases found")
                return
            print_releases(found, output_format)
    except ReleaseError as e:
        handle_release_error(e, "get releases")
