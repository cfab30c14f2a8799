"""CLI command modules for webview-bridge.

This package contains all CLI command implementations and supporting
utilities for error handling and output formatting.
"""

from webview_bridge.cli import config, script, simulate

from webview_bridge.cli.exit_codes import ExitCode
from webview_bridge.cli.error_handler import (
    CliError,
    ConfigurationError,
    SerializerError,
    HandlerLoadError,
    TransportError,
    SimulationError,
    ValidationError,
    NotFoundError,
    handle_errors,
)
from webview_bridge.cli.output import (
    print_json,
    print_table,
    print_key_value,
    print_script,
)

__all__ = [
    # Command modules
    "config",
    "script",
    "simulate",
    # Exit codes
    "ExitCode",
    # Error handling
    "CliError",
    "ConfigurationError",
    "SerializerError",
    "HandlerLoadError",
    "TransportError",
    "SimulationError",
    "ValidationError",
    "NotFoundError",
    "handle_errors",
    # Output
    "print_json",
    "print_table",
    "print_key_value",
    "print_script",
]
