"""CLI error handling for hg-cli.

This module provides CLI-specific error handling that wraps hg-releases
exceptions and provides user-friendly messages with appropriate exit codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import click
from rich.markup import escape

from hg_cli.output import error

if TYPE_CHECKING:
    from pydantic import ValidationError as PydanticValidationError
    from pydantic_core import ErrorDetails

    from hg_releases.errors import ReleaseError


# Exit codes following sysexits.h convention
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User error (bad address, missing configuration)
EXIT_SYSTEM_ERROR = 2  # System error (unreadable or unwritable config file)


class CLIError(click.ClickException):
    """CLI-specific exception with exit code support.

    Attributes:
        message: User-facing error message.
        exit_code: Exit code for the CLI (default: 1).
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        """Initialize CLIError.

        Args:
            message: User-facing error message.
            exit_code: Exit code for the CLI.
        """
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        """Display the error message using Rich formatting.

        Args:
            file: Output file (unused, for Click compatibility).
        """
        error(escape(self.format_message()))


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format Pydantic validation error into user-friendly message.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - operatorSetId: Input should be greater than or equal to 0"
    """
    errors: list[ErrorDetails] = err.errors()
    lines = ["Validation failed:"]

    for e in errors:
        loc = ".".join(str(x) for x in e["loc"])
        lines.append(f"  - {loc}: {e['msg']}")

    return "\n".join(lines)


def handle_release_error(err: ReleaseError, action: str) -> NoReturn:
    """Convert a release resolution failure into a CLI error.

    Args:
        err: The hg-releases exception.
        action: What the user asked for, e.g. "get releases".

    Raises:
        CLIError: Always raises with formatted error message.
    """
    raise CLIError(f"Failed to {action}: {err}") from err
