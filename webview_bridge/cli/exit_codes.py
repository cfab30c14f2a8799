"""Standard exit codes for the webview-bridge CLI.

This module defines standard exit codes used across the CLI for
consistent error reporting and scripting support.
"""


class ExitCode:
    """Standard exit codes for the webview-bridge CLI.

    These codes follow common Unix conventions where possible:
    - 0: Success
    - 1: General error
    - 130: Script terminated by Ctrl+C (SIGINT)

    Bridge-specific codes start at 2:
    - 2: Configuration error
    - 3: Serializer error
    - 4: Handler error (a handler could not be loaded)
    - 5: Transport error
    - 6: Simulation error (at least one call was rejected)
    - 7: Invalid argument
    - 8: Not found
    """

    # Standard success
    SUCCESS = 0

    # General errors
    GENERAL_ERROR = 1

    # Bridge-specific errors (2-8)
    CONFIGURATION_ERROR = 2
    SERIALIZER_ERROR = 3
    HANDLER_ERROR = 4
    TRANSPORT_ERROR = 5
    SIMULATION_ERROR = 6
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8

    # Signal-based exits (128 + signal number)
    CANCELLED = 130  # Ctrl+C (SIGINT = 2)

    @classmethod
    def get_name(cls, code: int) -> str:
        """Get the name of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable name for the exit code
        """
        names = {
            cls.SUCCESS: "SUCCESS",
            cls.GENERAL_ERROR: "GENERAL_ERROR",
            cls.CONFIGURATION_ERROR: "CONFIGURATION_ERROR",
            cls.SERIALIZER_ERROR: "SERIALIZER_ERROR",
            cls.HANDLER_ERROR: "HANDLER_ERROR",
            cls.TRANSPORT_ERROR: "TRANSPORT_ERROR",
            cls.SIMULATION_ERROR: "SIMULATION_ERROR",
            cls.INVALID_ARGUMENT: "INVALID_ARGUMENT",
            cls.NOT_FOUND: "NOT_FOUND",
            cls.CANCELLED: "CANCELLED",
        }
        return names.get(code, f"UNKNOWN({code})")

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get the description of an exit code.

        Args:
            code: The exit code value

        Returns:
            Human-readable description for the exit code
        """
        descriptions = {
            cls.SUCCESS: "Operation completed successfully",
            cls.GENERAL_ERROR: "An unexpected error occurred",
            cls.CONFIGURATION_ERROR: "Configuration error or invalid config file",
            cls.SERIALIZER_ERROR: "Serializer could not be loaded or is unusable",
            cls.HANDLER_ERROR: "Handler module could not be loaded",
            cls.TRANSPORT_ERROR: "Transport cannot deliver scripts",
            cls.SIMULATION_ERROR: "One or more simulated calls were rejected",
            cls.INVALID_ARGUMENT: "Invalid command-line argument",
            cls.NOT_FOUND: "Requested resource not found",
            cls.CANCELLED: "Operation cancelled by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
