"""Exception taxonomy for the Hunter scheduler.

Each exception carries the exit code the CLI uses when it escapes a
command, so the same classes serve the scheduling core, the HTTP layer
and the command line.

Containment rules:
    - ConfigurationError / StrategyError: fatal to one unit's attempt only.
      The executor records a failed outcome and the cycle continues.
    - StorageError: fatal to the whole cycle. Raised by the lease store
      and propagated past the executor.
"""

from typing import Any

from hunter_scheduler.cli.exit_codes import ExitCode


class HunterError(Exception):
    """Base exception for the Hunter scheduler.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting the CLI
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(HunterError):
    """Invalid configuration, either global or for a single integration."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class UnknownPlatformError(ConfigurationError):
    """No strategy is registered for a platform type."""

    def __init__(self, platform_type: str) -> None:
        super().__init__(
            f"No hunter strategy registered for platform '{platform_type}'",
            details={"platform_type": platform_type},
        )
        self.platform_type = platform_type


class StrategyError(HunterError):
    """A strategy raised or reported a failed scan."""

    exit_code = ExitCode.STRATEGY_ERROR


class ScanTimeoutError(StrategyError):
    """A strategy's scan exceeded its execution budget."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Scan timed out after {timeout:g}s", details={"timeout": timeout})
        self.timeout = timeout


class StorageError(HunterError):
    """The lease store could not be read or written.

    Aborts the current cycle; the next trigger retries the whole batch.
    """

    exit_code = ExitCode.STORAGE_ERROR


class ValidationError(HunterError):
    """User input failed validation."""

    exit_code = ExitCode.INVALID_ARGUMENT


class NotFoundError(HunterError):
    """A requested integration or record does not exist."""

    exit_code = ExitCode.NOT_FOUND
