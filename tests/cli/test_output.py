"""Tests for output formatting module."""

import io
import json
from unittest.mock import Mock

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from webview_bridge.cli.output import print_json, print_key_value, print_script, print_table


def plain_console() -> Console:
    """A non-terminal console writing to a buffer."""
    return Console(file=io.StringIO(), force_terminal=False, width=60)


class TestPrintJson:
    """Test print_json function."""

    def test_terminal_uses_rich_json(self) -> None:
        """Test that terminals get highlighted JSON."""
        mock_console = Mock()
        mock_console.is_terminal = True

        print_json({"key": "value"}, console_instance=mock_console)

        mock_console.print.assert_called_once()
        rendered = mock_console.print.call_args[0][0]
        assert "json" in type(rendered).__module__

    def test_plain_output_is_parseable(self) -> None:
        """Test that piped output is plain, unfolded JSON."""
        console = plain_console()
        long_value = "window.AppBridge.onSuccess(" + "x" * 120 + ");"

        print_json([{"script": long_value}], console_instance=console)

        assert json.loads(console.file.getvalue()) == [{"script": long_value}]


class TestPrintTable:
    """Test print_table function."""

    def test_print_table(self) -> None:
        """Test printing a table with styled columns."""
        mock_console = Mock()
        data = [{"method": "add", "input": "AddArgs", "output": "int"}]

        print_table(data, ["method", "input", "output"], title="Handlers", console_instance=mock_console)

        table = mock_console.print.call_args[0][0]
        assert isinstance(table, Table)
        assert table.title == "Handlers"
        assert [c.header for c in table.columns] == ["Method", "Input", "Output"]
        assert table.row_count == 1


class TestPrintKeyValue:
    """Test print_key_value function."""

    def test_print_key_value(self) -> None:
        """Test printing key-value pairs."""
        console = plain_console()

        print_key_value({"transport": "router", "timeout": None}, title="Bridge", console_instance=console)

        output = console.file.getvalue()
        assert "Bridge" in output
        assert "transport : router" in output
        assert "N/A" in output


class TestPrintScript:
    """Test print_script function."""

    def test_highlighted(self) -> None:
        """Test that highlighted scripts render as syntax."""
        mock_console = Mock()

        print_script("window.AppBridge = {};", console_instance=mock_console)

        assert isinstance(mock_console.print.call_args[0][0], Syntax)

    def test_plain(self) -> None:
        """Test that plain scripts are printed verbatim."""
        console = plain_console()
        script = "/* webview-bridge:bootstrap AppBridge AppBridgeNative */\nwindow.AppBridge = {};"

        print_script(script, highlight=False, console_instance=console)

        assert console.file.getvalue() == script + "\n"
