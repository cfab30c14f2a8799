"""Output formatting utilities for the webview-bridge CLI.

This module provides standardized output formatting for JSON, tables,
key-value listings and generated scripts. It supports both human-readable
and machine-readable output formats.
"""

import json
from typing import Any, Dict, List

from rich.console import Console
from rich.json import JSON as RichJSON
from rich.syntax import Syntax
from rich.table import Table

# Default console for output
console = Console()


def print_json(data: Any, console_instance: Console | None = None) -> None:
    """Print data as formatted JSON.

    Args:
        data: Data to print (must be JSON-serializable)
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    json_str = json.dumps(data, indent=2, default=str)

    # Piped output stays plain so long values are never folded
    if not prog_console.is_terminal:
        prog_console.out(json_str, highlight=False)
        return

    # Use Rich's built-in JSON support for syntax highlighting
    prog_console.print(RichJSON(json_str))


def print_table(
    data: List[Dict[str, Any]],
    columns: List[str],
    title: str | None = None,
    column_styles: Dict[str, str] | None = None,
    console_instance: Console | None = None,
) -> None:
    """Print data as a formatted table.

    Args:
        data: List of dictionaries containing row data
        columns: List of column keys to display
        title: Optional table title
        column_styles: Optional dict mapping column names to Rich styles
        console_instance: Optional custom console instance

    Example:
        data = [
            {"method": "add", "input": "AddArgs", "output": "int"},
            {"method": "bridge.ping", "input": "-", "output": "str"},
        ]
        print_table(data, ["method", "input", "output"], title="Handlers")
    """
    prog_console = console_instance or console
    column_styles = column_styles or {}

    table = Table(title=title)

    for col in columns:
        style = column_styles.get(col)
        header = col.replace("_", " ").title()
        table.add_column(header, style=style)

    for row in data:
        values = []
        for col in columns:
            value = row.get(col, "")
            # Handle None values
            if value is None:
                value = ""
            # Handle boolean values with styling
            elif isinstance(value, bool):
                value = "[green]Yes[/green]" if value else "[red]No[/red]"
            values.append(str(value))

        table.add_row(*values)

    prog_console.print(table)


def print_key_value(
    data: Dict[str, Any],
    title: str | None = None,
    key_style: str = "cyan",
    console_instance: Console | None = None,
) -> None:
    """Print data as key-value pairs.

    Args:
        data: Dictionary of key-value pairs
        title: Optional title
        key_style: Style for keys
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    if title:
        prog_console.print(f"[bold]{title}[/bold]")
        prog_console.print()

    max_key_len = max(len(str(k)) for k in data.keys()) if data else 0

    for key, value in data.items():
        # Format value based on type
        if isinstance(value, bool):
            formatted = "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, (int, float)):
            formatted = f"[yellow]{value}[/yellow]"
        elif isinstance(value, (list, tuple)):
            formatted = ", ".join(str(v) for v in value) or "[dim]None[/dim]"
        else:
            formatted = str(value) if value is not None else "[dim]N/A[/dim]"

        padded_key = str(key).ljust(max_key_len)
        prog_console.print(f"  [{key_style}]{padded_key}[/{key_style}] : {formatted}")


def print_script(
    script: str,
    highlight: bool = True,
    console_instance: Console | None = None,
) -> None:
    """Print a JavaScript source.

    Args:
        script: Script source
        highlight: Syntax-highlight the script; plain output is copy-pasteable
        console_instance: Optional custom console instance
    """
    prog_console = console_instance or console

    if highlight:
        prog_console.print(Syntax(script, "javascript", theme="monokai"))
    else:
        prog_console.out(script, highlight=False)
