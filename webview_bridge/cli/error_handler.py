"""Global exception handling for the webview-bridge CLI.

This module provides centralized error handling through custom exception
classes and a decorator that ensures consistent error reporting and
exit codes across all CLI commands.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from webview_bridge.cli.exit_codes import ExitCode
from webview_bridge.js_bridge.errors import (
    BridgeError,
    SerializerMisconfigured,
    TransportUnavailable,
)

# Console for error output (stderr)
console = Console(stderr=True)

# Logger for error logging
logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class CliError(Exception):
    """Base exception for the webview-bridge CLI.

    Attributes:
        message: Error message
        exit_code: Exit code to use when exiting
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            exit_code: Optional override for exit code
            details: Optional dictionary of additional error details
        """
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(CliError):
    """Configuration-related error.

    Examples:
        - Config file fails validation
        - Unknown transport kind in config
    """

    exit_code = ExitCode.CONFIGURATION_ERROR


class SerializerError(CliError):
    """The configured serializer could not be loaded."""

    exit_code = ExitCode.SERIALIZER_ERROR


class HandlerLoadError(CliError):
    """A ``--handlers`` module or function could not be imported."""

    exit_code = ExitCode.HANDLER_ERROR


class TransportError(CliError):
    """The selected transport cannot deliver scripts."""

    exit_code = ExitCode.TRANSPORT_ERROR


class SimulationError(CliError):
    """One or more simulated calls settled with an error."""

    exit_code = ExitCode.SIMULATION_ERROR


class ValidationError(CliError):
    """Validation error for user input.

    Examples:
        - Malformed envelope file
        - Invalid option combination
    """

    exit_code = ExitCode.INVALID_ARGUMENT


class NotFoundError(CliError):
    """Resource not found error.

    Examples:
        - Envelope file not found
        - Config file not found
    """

    exit_code = ExitCode.NOT_FOUND


def _to_cli_error(error: BridgeError) -> CliError:
    """Map a bridge error escaping a command to its CLI error."""
    if isinstance(error, SerializerMisconfigured):
        return SerializerError(error.message, details=error.details)
    if isinstance(error, TransportUnavailable):
        return TransportError(error.message, details=error.details)
    return CliError(error.message, details=error.details)


def _report(error: CliError) -> None:
    logger.error(
        f"CliError: {error.message}",
        extra={"exit_code": error.exit_code, "details": error.details},
    )

    console.print(f"[red]Error:[/red] {error.message}")
    if error.details:
        for key, value in error.details.items():
            console.print(f"  [dim]{key}:[/dim] {value}")


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    This decorator catches all exceptions and converts them to appropriate
    error messages and exit codes. It handles:

    - CliError subclasses: Display error message with appropriate exit code
    - BridgeError: Mapped to the matching CliError
    - KeyboardInterrupt: Show cancellation message with exit code 130
    - Other exceptions: Show generic error with option for verbose details

    Args:
        func: The function to wrap

    Returns:
        Wrapped function with error handling

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Invalid config")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CliError as e:
            _report(e)
            raise typer.Exit(code=e.exit_code)

        except BridgeError as e:
            cli_error = _to_cli_error(e)
            _report(cli_error)
            raise typer.Exit(code=cli_error.exit_code)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            # Re-raise typer.Exit as-is
            raise

        except Exception as e:
            # Log full exception for debugging
            logger.exception("Unexpected error occurred")

            # Display generic error to user
            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --verbose for more details[/dim]")

            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
