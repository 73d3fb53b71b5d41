"""Tests for the exception taxonomy and the CLI error handler."""

import pytest
import typer

from hunter_scheduler.cli.error_handler import handle_errors
from hunter_scheduler.cli.exit_codes import ExitCode
from hunter_scheduler.errors import (
    ConfigurationError,
    HunterError,
    NotFoundError,
    ScanTimeoutError,
    StorageError,
    StrategyError,
    UnknownPlatformError,
    ValidationError,
)


class TestHunterError:
    """Test base HunterError class."""

    def test_basic_error(self) -> None:
        error = HunterError("Test error")
        assert error.message == "Test error"
        assert error.exit_code == ExitCode.GENERAL_ERROR
        assert error.details == {}
        assert str(error) == "Test error"

    def test_custom_exit_code(self) -> None:
        error = HunterError("Test error", exit_code=ExitCode.NOT_FOUND)
        assert error.exit_code == ExitCode.NOT_FOUND

    def test_str_with_details(self) -> None:
        error = HunterError("Lease store failed", details={"error": "locked"})
        assert str(error) == "Lease store failed (error=locked)"


class TestSubclasses:
    """Test each subclass carries its exit code."""

    @pytest.mark.parametrize(
        "error,code",
        [
            (ConfigurationError("x"), ExitCode.CONFIGURATION_ERROR),
            (StrategyError("x"), ExitCode.STRATEGY_ERROR),
            (StorageError("x"), ExitCode.STORAGE_ERROR),
            (ValidationError("x"), ExitCode.INVALID_ARGUMENT),
            (NotFoundError("x"), ExitCode.NOT_FOUND),
        ],
    )
    def test_exit_codes(self, error, code) -> None:
        assert error.exit_code == code

    def test_unknown_platform(self) -> None:
        """Test UnknownPlatformError is a configuration error naming the platform."""
        error = UnknownPlatformError("myspace")
        assert isinstance(error, ConfigurationError)
        assert error.platform_type == "myspace"
        assert "myspace" in error.message

    def test_scan_timeout(self) -> None:
        error = ScanTimeoutError(30.0)
        assert isinstance(error, StrategyError)
        assert error.timeout == 30.0
        assert error.message == "Scan timed out after 30s"


class TestExitCode:
    """Test exit code values."""

    def test_values(self) -> None:
        assert ExitCode.SUCCESS == 0
        assert ExitCode.GENERAL_ERROR == 1
        assert ExitCode.CANCELLED == 130

    def test_get_name(self) -> None:
        assert ExitCode.get_name(ExitCode.STORAGE_ERROR) == "STORAGE_ERROR"


class TestHandleErrors:
    """Test the handle_errors decorator."""

    def _exit_code(self, exc: BaseException) -> int:
        @handle_errors
        def command():
            raise exc

        with pytest.raises(typer.Exit) as exc_info:
            command()
        return exc_info.value.exit_code

    def test_success_passes_through(self) -> None:
        @handle_errors
        def command():
            return "ok"

        assert command() == "ok"

    def test_hunter_error(self) -> None:
        assert self._exit_code(StorageError("database is locked")) == ExitCode.STORAGE_ERROR

    def test_value_error(self) -> None:
        assert self._exit_code(ValueError("bad")) == ExitCode.INVALID_ARGUMENT

    def test_keyboard_interrupt(self) -> None:
        assert self._exit_code(KeyboardInterrupt()) == ExitCode.CANCELLED

    def test_unexpected(self) -> None:
        assert self._exit_code(RuntimeError("boom")) == ExitCode.GENERAL_ERROR

    def test_exit_reraised(self) -> None:
        assert self._exit_code(typer.Exit(code=ExitCode.STRATEGY_ERROR)) == ExitCode.STRATEGY_ERROR

    def test_abort_reraised(self) -> None:
        @handle_errors
        def command():
            raise typer.Abort()

        with pytest.raises(typer.Abort):
            command()
