"""Rich console output utilities for hg-cli.

This module provides formatted console output with Rich, respecting the
NO_COLOR environment variable, plus the table/JSON/YAML renderers for
releases and contexts.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
import json
import os
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.table import Table
import yaml

if TYPE_CHECKING:
    from hg_releases.models import Release

OUTPUT_FORMATS = ("table", "json", "yaml")

_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False) -> Console:
    """Create a Rich Console instance with appropriate color settings.

    Args:
        no_color: If True, disable colored output. Also respects NO_COLOR env var.

    Returns:
        Configured Console instance.
    """
    force_terminal = None
    if no_color or _force_no_color:
        force_terminal = False
    return Console(force_terminal=force_terminal, no_color=no_color or _force_no_color)


# Default console instance
console = create_console()


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark."""
    console.print(f"[green]✓[/green] {message}", **kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X."""
    console.print(f"[red]✗[/red] {message}", **kwargs)


def warning(message: str, **kwargs: Any) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow] {message}", **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message."""
    console.print(message, **kwargs)


def set_no_color(no_color: bool) -> None:
    """Update the global console to enable/disable colors.

    Args:
        no_color: If True, disable colored output.
    """
    global console
    console = create_console(no_color=no_color)


def format_digest(digest: str) -> str:
    """Shorten a digest for table display.

    Example:
        >>> format_digest("0x" + "ab" * 32)
        '0xababababab...'
    """
    if not digest:
        return "-"
    if len(digest) > 12:
        return digest[:12] + "..."
    return digest


def format_upgrade_by(upgrade_by_time: int) -> str:
    """Render an upgrade deadline as a UTC timestamp.

    Deadlines outside the platform's datetime range are shown as raw seconds.
    """
    try:
        moment = datetime.fromtimestamp(upgrade_by_time, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(upgrade_by_time)
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")


def release_to_dict(release: Release) -> dict[str, Any]:
    """Convert a release to its display shape.

    Example:
        >>> release_to_dict(Release(id=3, artifacts=(), upgrade_by_time=0))
        {'id': '3', 'artifacts': [], 'upgradeByTime': 0}
    """
    return {
        "id": str(release.id),
        "artifacts": [
            {"digest": artifact.digest, "registryUrl": artifact.registry_url}
            for artifact in release.artifacts
        ],
        "upgradeByTime": release.upgrade_by_time,
    }


def print_structured(data: Any, output_format: str) -> None:
    """Print data as JSON or YAML on stdout, without Rich markup."""
    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    elif output_format == "yaml":
        click.echo(yaml.safe_dump(data, sort_keys=False).rstrip("\n"))
    else:
        msg = f"Unsupported structured output format: {output_format}"
        raise ValueError(msg)


def releases_table(releases: Sequence[Release]) -> Table:
    """Build the releases table, one row per artifact."""
    table = Table(header_style="cyan")
    table.add_column("RELEASE ID", no_wrap=True)
    table.add_column("UPGRADE BY", no_wrap=True)
    table.add_column("ARTIFACTS")

    for release in releases:
        upgrade_by = format_upgrade_by(release.upgrade_by_time)
        if not release.artifacts:
            table.add_row(str(release.id), upgrade_by, "(no artifacts)")
            continue
        first, *rest = release.artifacts
        table.add_row(
            str(release.id),
            upgrade_by,
            f"{format_digest(first.digest)} @ {first.registry_url}",
        )
        for artifact in rest:
            table.add_row("", "", f"{format_digest(artifact.digest)} @ {artifact.registry_url}")
    return table


def print_releases(releases: Sequence[Release], output_format: str = "table") -> None:
    """Print releases in the requested format."""
    if output_format == "table":
        if not releases:
            info("No data to display")
            return
        console.print(releases_table(releases))
        return
    print_structured([release_to_dict(r) for r in releases], output_format)


def print_release(release: Release, output_format: str = "table") -> None:
    """Print a single release in the requested format."""
    if output_format == "table":
        console.print(releases_table([release]))
        return
    print_structured(release_to_dict(release), output_format)
