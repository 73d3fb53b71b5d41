"""Standard exit codes for the Hunter CLI.

Codes follow common Unix conventions where possible:
- 0: Success
- 1: General error
- 130: Terminated by Ctrl+C (SIGINT)

Hunter-specific codes:
- 2: Configuration error
- 3: Strategy error
- 4: Storage error
- 5: Invalid argument
- 6: Not found
"""


class ExitCode:
    """Exit codes used across the Hunter CLI."""

    SUCCESS = 0
    GENERAL_ERROR = 1

    CONFIGURATION_ERROR = 2
    STRATEGY_ERROR = 3
    STORAGE_ERROR = 4
    INVALID_ARGUMENT = 5
    NOT_FOUND = 6

    # 128 + SIGINT
    CANCELLED = 130

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the symbolic name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Name of the exit code, or UNKNOWN(<code>)
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.STRATEGY_ERROR: "STRATEGY_ERROR",
            cls.STORAGE_ERROR: "STORAGE_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")
