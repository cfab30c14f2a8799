"""Tests for the config command."""

import json

from typer.testing import CliRunner

from webview_bridge.cli.exit_codes import ExitCode
from webview_bridge.config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_ENV_PREFIX,
    WebBridgeConfig,
    clear_config_cache,
    set_config,
)
from webview_bridge.main import app

runner = CliRunner()


class TestConfigShow:
    """Tests for `config show`."""

    def setup_method(self):
        self.config = WebBridgeConfig()
        set_config(self.config)

    def teardown_method(self):
        clear_config_cache()

    def test_show_json(self):
        """Test that JSON output is machine-readable."""
        self.config.transport.kind = "router"

        result = runner.invoke(app, ["config", "show", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["transport"]["kind"] == "router"
        assert data["bridge"]["js_object_name"] == "AppBridge"

    def test_show_section(self):
        """Test showing one section as a table."""
        result = runner.invoke(app, ["config", "show", "transport"])

        assert result.exit_code == 0
        assert "Transport" in result.output
        assert "cefQuery" in result.output
        assert "Correlator" not in result.output

    def test_show_unknown_section(self):
        """Test that unknown sections are rejected."""
        result = runner.invoke(app, ["config", "show", "database"])

        assert result.exit_code == ExitCode.INVALID_ARGUMENT
        assert "Unknown section: database" in result.output

    def test_show_unknown_format(self):
        """Test that unknown formats are rejected."""
        result = runner.invoke(app, ["config", "show", "--format", "yaml"])

        assert result.exit_code == ExitCode.INVALID_ARGUMENT


class TestConfigPath:
    """Tests for `config path`."""

    def test_path_from_env(self, monkeypatch, tmp_path):
        """Test that the config directory follows the environment."""
        monkeypatch.setenv(f"{DEFAULT_ENV_PREFIX}CONFIG_DIR", str(tmp_path))
        set_config(WebBridgeConfig())

        result = runner.invoke(app, ["config", "path"])

        assert result.exit_code == 0
        assert "Config file" in result.output
        assert "Exists" in result.output
        assert ": No" in result.output
        clear_config_cache()


class TestConfigValidate:
    """Tests for `config validate`."""

    def setup_method(self):
        self.config = WebBridgeConfig()
        set_config(self.config)

    def teardown_method(self):
        clear_config_cache()

    def test_valid_config(self, monkeypatch, tmp_path):
        """Test that defaults validate cleanly."""
        monkeypatch.setenv(f"{DEFAULT_ENV_PREFIX}CONFIG_DIR", str(tmp_path))

        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 0
        assert "No config file" in result.output
        assert "Configuration is valid" in result.output

    def test_warnings_do_not_fail(self, monkeypatch, tmp_path):
        """Test that warnings are reported without failing."""
        monkeypatch.setenv(f"{DEFAULT_ENV_PREFIX}CONFIG_DIR", str(tmp_path))
        (tmp_path / DEFAULT_CONFIG_FILE).write_text("")
        self.config.transport.kind = "message_channel"

        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 0
        assert "[WARNING] transport.target_origin" in result.output
        assert "Configuration is valid" in result.output

    def test_errors_fail(self, monkeypatch, tmp_path):
        """Test that errors exit with CONFIGURATION_ERROR."""
        monkeypatch.setenv(f"{DEFAULT_ENV_PREFIX}CONFIG_DIR", str(tmp_path))
        self.config.transport.kind = "websocket"

        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR
        assert "[ERROR] transport.kind" in result.output
        assert "Configuration has errors" in result.output
        assert "errors: 1" in result.output
