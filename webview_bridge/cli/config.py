"""webview-bridge config command - Configuration management."""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from webview_bridge.cli.error_handler import ConfigurationError, ValidationError, handle_errors
from webview_bridge.cli.output import print_key_value

app = typer.Typer(help="Inspect and validate bridge configuration.")
console = Console()


def _config_path() -> Path:
    from webview_bridge.config import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE, DEFAULT_ENV_PREFIX

    config_dir = Path(os.environ.get(f"{DEFAULT_ENV_PREFIX}CONFIG_DIR", DEFAULT_CONFIG_DIR))
    return config_dir / DEFAULT_CONFIG_FILE


@app.command("show")
@handle_errors
def show_config(
    section: Optional[str] = typer.Argument(
        None,
        help="Configuration section to show (bridge, transport, correlator, logging).",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format (table, json).",
    ),
) -> None:
    """Show current configuration.

    Example:
        webview-bridge config show
        webview-bridge config show transport
        webview-bridge config show --format json
    """
    from webview_bridge.config import export_config_json, get_config

    if format not in ("table", "json"):
        raise ValidationError(f"Unknown format: {format}", details={"choices": "table, json"})

    config = get_config()

    if format == "json":
        json_output = export_config_json(config)
        if console.is_terminal:
            console.print(Syntax(json_output, "json", theme="monokai"))
        else:
            console.out(json_output, highlight=False)
        return

    console.print(f"[bold]Configuration: {section}[/bold]" if section else "[bold]WebView Bridge Configuration[/bold]")
    console.print()

    sections = {
        "bridge": [
            ("js_object_name", config.bridge.js_object_name),
            ("native_interface_name", config.bridge.native_interface_name),
            ("ready_event", config.bridge.ready_event),
            ("serializer", config.bridge.serializer or "pydantic (default)"),
            ("strict_decoding", str(config.bridge.strict_decoding)),
        ],
        "transport": [
            ("kind", config.transport.kind),
            ("query_function", config.transport.query_function),
            ("target_origin", config.transport.target_origin),
            ("allowed_origins", ", ".join(config.transport.allowed_origins) or "None"),
        ],
        "correlator": [
            ("callback_prefix", config.correlator.callback_prefix),
            ("call_timeout", str(config.correlator.call_timeout) if config.correlator.call_timeout else "none"),
        ],
        "logging": [
            ("level", config.logging.level),
            ("format", config.logging.format),
            ("file", str(config.logging.file) if config.logging.file else ""),
        ],
        "paths": [
            ("config_dir", str(config.config_dir)),
        ],
    }

    if section and section not in sections:
        raise ValidationError(f"Unknown section: {section}", details={"choices": ", ".join(sections)})

    for sec in [section] if section else sections.keys():
        table = Table(title=sec.capitalize())
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in sections[sec]:
            table.add_row(key, value)

        console.print(table)
        console.print()


@app.command("path")
def config_path() -> None:
    """Show configuration file path.

    Example:
        webview-bridge config path
    """
    config_file_path = _config_path()
    print_key_value(
        {
            "Config directory": config_file_path.parent,
            "Config file": config_file_path,
            "Exists": config_file_path.exists(),
        },
        console_instance=console,
    )


@app.command("validate")
@handle_errors
def validate_config() -> None:
    """Validate current configuration.

    Warnings are reported but do not fail validation.

    Example:
        webview-bridge config validate
    """
    from webview_bridge.config import get_config, validate_config as do_validate

    config = get_config()
    config_file_path = _config_path()

    console.print("[bold]Validating configuration...[/bold]")
    console.print()

    if config_file_path.exists():
        console.print(f"  [green]✓[/green] Config file {config_file_path}")
    else:
        console.print(f"  [yellow]![/yellow] No config file at {config_file_path} [dim](using defaults)[/dim]")

    errors = do_validate(config)
    failed = 0

    if errors:
        console.print()
        console.print("[bold yellow]Validation Results:[/bold yellow]")
        for error in errors:
            if error.severity == "error":
                status = "[red]✗[/red]"
                failed += 1
            else:
                status = "[yellow]![/yellow]"
            console.print(f"  {status} [{error.severity.upper()}] {error.field}: {error.message}")

    console.print()
    if failed:
        raise ConfigurationError("Configuration has errors", details={"errors": failed})
    console.print("[green]Configuration is valid[/green]")
