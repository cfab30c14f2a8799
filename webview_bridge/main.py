"""Main CLI entry point for webview-bridge."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from webview_bridge import __app_name__, __version__
from webview_bridge.cli import config, script, simulate
from webview_bridge.cli.exit_codes import ExitCode

# Create the main Typer app
app = typer.Typer(
    name=__app_name__,
    help="WebView bridge - typed calls and events between native code and embedded pages.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Console for CLI output
console = Console()

# Register command groups
app.add_typer(script.app, name="script")
app.add_typer(config.app, name="config")
app.command("simulate")(simulate.simulate)

# Global state for CLI options
_global_state: dict[str, bool] = {
    "verbose": False,
    "debug": False,
    "quiet": False,
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
    default_level: str = "WARNING",
    format_str: Optional[str] = None,
) -> None:
    """Set up logging configuration based on CLI options.

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        quiet: Suppress non-error output
        log_file: Optional log file path
        default_level: Level used when no flag is given (from config)
        format_str: Log format (from config)
    """
    # Determine log level
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(default_level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    # Configure format
    if debug:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    elif not format_str:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Set up handlers
    handlers: list[logging.Handler] = []

    # Add file handler if specified
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        handlers.append(file_handler)

    # Add console handler unless quiet mode
    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)
    elif not log_file:
        # In quiet mode without log file, add null handler to prevent warnings
        handlers.append(logging.NullHandler())

    # Configure root logger
    logging.basicConfig(
        level=logging.DEBUG if log_file else level,
        format=format_str,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, debug={debug}")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output (INFO level logging).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (DEBUG level logging with routing detail).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log to file (logs DEBUG level regardless of console settings).",
    ),
) -> None:
    """WebView bridge - typed calls and events between native code and embedded pages.

    [bold]Commands:[/bold]

    • [cyan]script[/cyan] - Print the bootstrap script or a transport polyfill
    • [cyan]simulate[/cyan] - Run recorded envelopes through a bridge
    • [cyan]config[/cyan] - Inspect and validate configuration

    [bold]Examples:[/bold]

        webview-bridge script bootstrap --plain > bridge.js
        webview-bridge script polyfill --transport router
        webview-bridge simulate calls.jsonl --transport router
        webview-bridge config validate

    For more help on a specific command, use: [cyan]webview-bridge <command> --help[/cyan]
    """
    from webview_bridge.config import get_config

    _global_state["verbose"] = verbose
    _global_state["debug"] = debug
    _global_state["quiet"] = quiet

    # Validate mutually exclusive options
    if quiet and verbose:
        console.print("[red]Error:[/red] --quiet and --verbose are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    if quiet and debug:
        console.print("[red]Error:[/red] --quiet and --debug are mutually exclusive")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    logging_config = get_config().logging
    _setup_logging(
        verbose=verbose,
        debug=debug,
        quiet=quiet,
        log_file=log_file or logging_config.file,
        default_level=logging_config.level,
        format_str=logging_config.format,
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"{__app_name__} v{__version__} starting")
    logger.debug(f"Options: verbose={verbose}, debug={debug}, quiet={quiet}")


def is_verbose() -> bool:
    """Check if verbose mode is enabled.

    Returns:
        True if verbose or debug mode is enabled
    """
    return _global_state.get("verbose", False) or _global_state.get("debug", False)


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return _global_state.get("debug", False)


def is_quiet() -> bool:
    """Check if quiet mode is enabled."""
    return _global_state.get("quiet", False)


__all__ = [
    "app",
    "console",
    "is_verbose",
    "is_debug",
    "is_quiet",
]


if __name__ == "__main__":
    app()
