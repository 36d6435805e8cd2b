"""Unit tests for hg_cli.errors module."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
import pytest

from hg_cli import output
from hg_cli.errors import (
    EXIT_SYSTEM_ERROR,
    EXIT_USER_ERROR,
    CLIError,
    format_pydantic_error,
    handle_release_error,
)
from hg_releases.errors import QueryCancelledError
from hg_releases.models import OperatorSet


class TestCLIError:
    """Tests for CLIError exception."""

    def test_cli_error_message(self) -> None:
        """Test CLIError stores message correctly."""
        error = CLIError("Test error message")
        assert error.message == "Test error message"
        assert str(error) == "Test error message"

    def test_cli_error_default_exit_code(self) -> None:
        """Test CLIError has default exit code of 1."""
        assert CLIError("Test error").exit_code == EXIT_USER_ERROR

    def test_cli_error_custom_exit_code(self) -> None:
        """Test CLIError accepts custom exit code."""
        assert CLIError("Test error", exit_code=EXIT_SYSTEM_ERROR).exit_code == EXIT_SYSTEM_ERROR

    def test_show_prints_markup_literally(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test bracketed text in messages is not treated as Rich markup."""
        original = output.console
        output.console = output.create_console(no_color=True)
        try:
            CLIError("bad value [/red] here").show()
        finally:
            output.console = original

        assert "bad value [/red] here" in capsys.readouterr().out


class TestFormatPydanticError:
    """Tests for format_pydantic_error function."""

    def test_format_errors_with_locations(self) -> None:
        """Test each error is listed with its field path."""

        class Sample(BaseModel):
            operator_set_id: int = Field(ge=0)

        with pytest.raises(PydanticValidationError) as exc_info:
            Sample(operator_set_id=-1)

        formatted = format_pydantic_error(exc_info.value)

        assert formatted.startswith("Validation failed:")
        assert "  - operator_set_id:" in formatted


class TestHandleReleaseError:
    """Tests for handle_release_error."""

    def test_wraps_release_error(self) -> None:
        """Test release errors become CLI errors with the action named."""
        err = QueryCancelledError(OperatorSet(owner="0xAAA", set_id=1), 5.0)

        with pytest.raises(CLIError) as exc_info:
            handle_release_error(err, "get releases")

        assert str(exc_info.value).startswith("Failed to get releases: Query cancelled after 5.0s")
        assert exc_info.value.exit_code == EXIT_USER_ERROR
        assert exc_info.value.__cause__ is err
