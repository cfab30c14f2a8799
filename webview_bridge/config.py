"""
WebView Bridge Configuration Management.

Handles loading and validating configuration from various sources:
- Default values
- Configuration files (TOML)
- Environment variables
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional, List

from webview_bridge.js_bridge.core import BridgeConfig
from webview_bridge.js_bridge.protocol import is_js_identifier
from webview_bridge.js_bridge.transports import TransportKind

# Try to import tomllib (Python 3.11+) or tomli as fallback
try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore
    except ImportError:
        tomllib = None  # type: ignore

logger = logging.getLogger(__name__)

# Default configuration location
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "webview-bridge"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_ENV_PREFIX = "WEBVIEW_BRIDGE_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class JSBridgeConfig:
    """Configuration for the bridge core."""

    # Globals installed in the embedded context
    js_object_name: str = "AppBridge"
    native_interface_name: str = "AppBridgeNative"
    ready_event: str = "AppBridgeReady"

    # Custom serializer factory as "package.module:Factory"
    serializer: Optional[str] = None
    strict_decoding: bool = False


@dataclass
class TransportConfig:
    """Configuration for the transport adapter."""

    kind: str = "direct"

    # Router transport
    query_function: str = "cefQuery"

    # Message channel transport
    target_origin: str = "*"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class CorrelatorConfig:
    """Configuration for the embedded-side correlator."""

    callback_prefix: str = "cb_"
    call_timeout: Optional[float] = None  # Seconds; None waits forever


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class WebBridgeConfig:
    """Main configuration container for the WebView bridge."""

    config_dir: Path = DEFAULT_CONFIG_DIR

    # Sub-configurations
    bridge: JSBridgeConfig = field(default_factory=JSBridgeConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    correlator: CorrelatorConfig = field(default_factory=CorrelatorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def bridge_config(self) -> BridgeConfig:
        """Build the bridge core configuration."""
        return BridgeConfig(
            js_object_name=self.bridge.js_object_name,
            native_interface_name=self.bridge.native_interface_name,
            ready_event=self.bridge.ready_event,
            callback_prefix=self.correlator.callback_prefix,
            serializer=self.bridge.serializer,
            strict_decoding=self.bridge.strict_decoding,
        )

    def transport_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_transport``."""
        return {
            "js_object_name": self.bridge.js_object_name,
            "query_function": self.transport.query_function,
            "target_origin": self.transport.target_origin,
            "allowed_origins": list(self.transport.allowed_origins),
        }


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX
) -> WebBridgeConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/webview-bridge/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = WebBridgeConfig()

    # Determine config file path
    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config.config_dir = Path(env_config_dir)
        config_path = config.config_dir / DEFAULT_CONFIG_FILE

    # Load from file if exists
    if config_path.exists() and tomllib is not None:
        config = _load_from_file(config_path, config)

    # Override with environment variables
    config = _load_from_env(config, env_prefix)

    return config


def _load_from_file(path: Path, config: WebBridgeConfig) -> WebBridgeConfig:
    """Load configuration from a TOML file."""
    if tomllib is None:
        return config

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return config

    for section in ("bridge", "transport", "correlator", "logging"):
        if section not in data:
            continue
        target = getattr(config, section)
        for key, value in data[section].items():
            if hasattr(target, key):
                setattr(target, key, value)
            else:
                logger.debug(f"Ignoring unknown config key {section}.{key}")

    if config.logging.file is not None:
        config.logging.file = Path(config.logging.file)

    return config


def _load_from_env(config: WebBridgeConfig, prefix: str) -> WebBridgeConfig:
    """Load configuration from environment variables."""

    # Bridge settings
    if env_val := os.environ.get(f"{prefix}JS_OBJECT_NAME"):
        config.bridge.js_object_name = env_val
    if env_val := os.environ.get(f"{prefix}NATIVE_INTERFACE_NAME"):
        config.bridge.native_interface_name = env_val
    if env_val := os.environ.get(f"{prefix}READY_EVENT"):
        config.bridge.ready_event = env_val
    if env_val := os.environ.get(f"{prefix}SERIALIZER"):
        config.bridge.serializer = env_val
    if env_val := os.environ.get(f"{prefix}STRICT_DECODING"):
        config.bridge.strict_decoding = env_val.lower() in ("true", "1", "yes")

    # Transport settings
    if env_val := os.environ.get(f"{prefix}TRANSPORT"):
        config.transport.kind = env_val
    if env_val := os.environ.get(f"{prefix}QUERY_FUNCTION"):
        config.transport.query_function = env_val
    if env_val := os.environ.get(f"{prefix}TARGET_ORIGIN"):
        config.transport.target_origin = env_val
    if env_val := os.environ.get(f"{prefix}ALLOWED_ORIGINS"):
        config.transport.allowed_origins = [o.strip() for o in env_val.split(",") if o.strip()]

    # Correlator settings
    if env_val := os.environ.get(f"{prefix}CALLBACK_PREFIX"):
        config.correlator.callback_prefix = env_val
    if env_val := os.environ.get(f"{prefix}CALL_TIMEOUT"):
        try:
            config.correlator.call_timeout = float(env_val)
        except ValueError:
            logger.warning(f"Ignoring invalid {prefix}CALL_TIMEOUT: {env_val}")

    # Logging
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()
    if env_val := os.environ.get(f"{prefix}LOG_FILE"):
        config.logging.file = Path(env_val)

    return config


# Global configuration instance (lazy-loaded)
_global_config: Optional[WebBridgeConfig] = None


def get_config() -> WebBridgeConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: WebBridgeConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None


def validate_config(config: Optional[WebBridgeConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors/warnings.

    Args:
        config: Configuration to validate (default: load from file)

    Returns:
        List of validation errors and warnings
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []

    # Names must be usable as window properties
    for key in ("js_object_name", "native_interface_name"):
        value = getattr(config.bridge, key)
        if not is_js_identifier(value):
            errors.append(ValidationError(
                field=f"bridge.{key}",
                message=f"Not a valid JavaScript identifier: {value!r}",
                severity="error"
            ))

    if config.bridge.js_object_name == config.bridge.native_interface_name:
        errors.append(ValidationError(
            field="bridge.native_interface_name",
            message="Must differ from bridge.js_object_name",
            severity="error"
        ))

    if not config.bridge.ready_event:
        errors.append(ValidationError(
            field="bridge.ready_event",
            message="Ready event name is empty",
            severity="error"
        ))

    if config.bridge.serializer and ":" not in config.bridge.serializer:
        errors.append(ValidationError(
            field="bridge.serializer",
            message=f"Expected 'module:Factory', got {config.bridge.serializer!r}",
            severity="error"
        ))

    # Transport validation
    try:
        kind = TransportKind.parse(config.transport.kind)
    except ValueError:
        kind = None
        errors.append(ValidationError(
            field="transport.kind",
            message=f"Unknown transport: {config.transport.kind}",
            severity="error"
        ))

    if kind is TransportKind.ROUTER and not is_js_identifier(config.transport.query_function):
        errors.append(ValidationError(
            field="transport.query_function",
            message=f"Not a valid JavaScript identifier: {config.transport.query_function!r}",
            severity="error"
        ))

    if kind is TransportKind.MESSAGE_CHANNEL:
        if config.transport.target_origin == "*":
            errors.append(ValidationError(
                field="transport.target_origin",
                message="Calls are posted to any origin; set the host page origin",
                severity="warning"
            ))
        if "*" in config.transport.allowed_origins:
            errors.append(ValidationError(
                field="transport.allowed_origins",
                message="Messages are accepted from any origin",
                severity="warning"
            ))

    if kind is TransportKind.UNSUPPORTED:
        errors.append(ValidationError(
            field="transport.kind",
            message="Unsupported transport: every embedded call will be rejected",
            severity="warning"
        ))

    # Correlator validation
    if not config.correlator.callback_prefix:
        errors.append(ValidationError(
            field="correlator.callback_prefix",
            message="Callback prefix is empty",
            severity="warning"
        ))

    timeout = config.correlator.call_timeout
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        errors.append(ValidationError(
            field="correlator.call_timeout",
            message=f"Timeout must be a positive number of seconds, got {timeout!r}",
            severity="error"
        ))

    # Logging validation
    if str(config.logging.level).upper() not in _LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error"
        ))

    return errors


def _config_to_dict(config: WebBridgeConfig) -> dict[str, Any]:
    """
    Convert configuration to dictionary.

    Args:
        config: Configuration to convert

    Returns:
        Dictionary representation of config
    """
    result = asdict(config)
    result["config_dir"] = str(config.config_dir)
    result["logging"]["file"] = str(config.logging.file) if config.logging.file else None
    return result


def export_config_json(config: WebBridgeConfig) -> str:
    """
    Export configuration as JSON string.

    Args:
        config: Configuration to export

    Returns:
        JSON string representation of config
    """
    return json.dumps(_config_to_dict(config), indent=2)
