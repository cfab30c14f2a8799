"""webview-bridge simulate command - Drive a bridge with recorded envelopes.

Each non-blank line of the input file is one envelope as the embedded
context would send it, for example::

    {"method": "bridge.ping", "callbackId": "cb_1"}
    {"method": "add", "data": "{\\"a\\": 1, \\"b\\": 2}", "callbackId": "cb_2"}

Envelopes enter through the selected transport's inbound path, the bridge
runs the handlers, and the scripts delivered back to the page are printed.
"""

import asyncio
import importlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer

from webview_bridge.cli.error_handler import (
    HandlerLoadError,
    NotFoundError,
    SimulationError,
    TransportError,
    ValidationError,
    handle_errors,
)
from webview_bridge.cli.output import console, print_json, print_table

logger = logging.getLogger(__name__)

PING_METHOD = "bridge.ping"

HandlerInstaller = Callable[[Any], Any]


@dataclass
class SimulatedCall:
    """One input line and the scripts delivered in response."""

    line: int
    method: str
    callback_id: Optional[str]
    accepted: bool = True
    scripts: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        from webview_bridge.js_bridge.protocol import parse_script_call

        if not self.accepted:
            return "rejected"
        for script in self.scripts:
            call = parse_script_call(script)
            if call is not None and call.target == self.callback_id:
                return "error" if call.function == "onError" else "success"
        return "no reply" if self.callback_id is None else "pending"

    def to_dict(self) -> dict[str, Any]:
        return {
            "line": self.line,
            "method": self.method,
            "callbackId": self.callback_id,
            "outcome": self.outcome,
            "scripts": list(self.scripts),
        }


def load_handlers(spec: str) -> HandlerInstaller:
    """
    Resolve a ``module:function`` handler installer.

    The function is called with the bridge and registers its handlers.

    Raises:
        HandlerLoadError: If the module or function cannot be loaded
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise HandlerLoadError(f"Expected 'module:function', got {spec!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise HandlerLoadError(f"Cannot import handler module {module_name}: {e}")

    installer = getattr(module, attr, None)
    if not callable(installer):
        raise HandlerLoadError(f"{spec} is not a callable", details={"module": module_name})
    return installer


def install_builtin_handlers(bridge: Any) -> None:
    """Register the handlers every simulated bridge has."""
    bridge.register(PING_METHOD, str, lambda: "pong")


def _describe(line: str) -> tuple[str, Optional[str]]:
    try:
        envelope = json.loads(line)
    except json.JSONDecodeError:
        return "<malformed>", None
    if not isinstance(envelope, dict):
        return "<malformed>", None
    callback_id = envelope.get("callbackId")
    return str(envelope.get("method") or "<missing>"), str(callback_id) if callback_id is not None else None


def _route(transport: Any, line: str) -> bool:
    """Feed one envelope into the transport's inbound path."""
    from webview_bridge.js_bridge.protocol import CHANNEL_MESSAGE_TYPE
    from webview_bridge.js_bridge.transports import TransportKind

    if transport.kind is TransportKind.ROUTER:
        return transport.on_query(line)

    if transport.kind is TransportKind.MESSAGE_CHANNEL:
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            return False
        if isinstance(message, dict):
            message.setdefault("type", CHANNEL_MESSAGE_TYPE)
        return transport.on_message(message)

    transport.send_from_embedded(line)
    return True


async def run_simulation(
    lines: List[str],
    transport_kind: str,
    handler_specs: Optional[List[str]] = None,
    config: Any = None,
) -> List[SimulatedCall]:
    """
    Run envelopes through a bridge attached to an in-process page.

    Args:
        lines: Envelope lines (blank lines are skipped)
        transport_kind: Transport kind name
        handler_specs: ``module:function`` handler installers
        config: Configuration (default: global config)

    Returns:
        One entry per envelope

    Raises:
        TransportError: If the transport cannot deliver scripts
    """
    from webview_bridge.config import get_config
    from webview_bridge.js_bridge import EmbeddedPage, WebViewJsBridge

    config = config or get_config()
    installers = [load_handlers(spec) for spec in handler_specs or []]

    page = EmbeddedPage.with_transport(
        transport_kind,
        native_interface_name=config.bridge.native_interface_name,
        callback_prefix=config.correlator.callback_prefix,
        call_timeout=config.correlator.call_timeout,
        **config.transport_options(),
    )
    transport = page.transport
    if not transport.is_available:
        raise TransportError(
            f"The {transport.name} transport cannot deliver scripts",
            details={"transport": transport.name},
        )

    results: List[SimulatedCall] = []

    async with WebViewJsBridge(config=config.bridge_config()) as bridge:
        install_builtin_handlers(bridge)
        for installer in installers:
            installer(bridge)

        bridge.attach(transport)
        bridge.on_navigation_finished()
        await bridge.drain()
        seen = len(page.evaluated)

        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue

            method, callback_id = _describe(line)
            call = SimulatedCall(line=number, method=method, callback_id=callback_id)
            call.accepted = _route(transport, line)
            await bridge.drain()

            call.scripts = page.evaluated[seen:]
            seen = len(page.evaluated)
            logger.debug(f"Line {number}: {method} -> {call.outcome}")
            results.append(call)

    return results


@handle_errors
def simulate(
    envelopes: Path = typer.Argument(
        ...,
        help="File with one JSON envelope per line.",
        dir_okay=False,
    ),
    transport: Optional[str] = typer.Option(
        None,
        "--transport",
        "-t",
        help="Transport kind (direct, router, message_channel; default: from config).",
    ),
    handlers: Optional[List[str]] = typer.Option(
        None,
        "--handlers",
        "-H",
        help="Handler installer as module:function (repeatable).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results as JSON.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with an error if any call is rejected.",
    ),
) -> None:
    """Run recorded envelopes through a bridge and show the delivered scripts.

    The built-in handler bridge.ping returns "pong".

    Example:
        webview-bridge simulate calls.jsonl
        webview-bridge simulate calls.jsonl --transport router --json
        webview-bridge simulate calls.jsonl --handlers myapp.bridge:install
    """
    from webview_bridge.config import get_config
    from webview_bridge.js_bridge.transports import TransportKind

    if not envelopes.exists():
        raise NotFoundError(f"Envelope file not found: {envelopes}")

    config = get_config()
    try:
        kind = TransportKind.parse(transport or config.transport.kind)
    except ValueError as e:
        raise ValidationError(str(e))

    lines = envelopes.read_text(encoding="utf-8").splitlines()
    results = asyncio.run(run_simulation(lines, kind.value, handlers, config))

    if json_output:
        print_json([call.to_dict() for call in results])
    else:
        rows = [
            {
                "line": call.line,
                "method": call.method,
                "outcome": call.outcome,
                "scripts": "\n".join(call.scripts) or "-",
            }
            for call in results
        ]
        print_table(
            rows,
            ["line", "method", "outcome", "scripts"],
            title=f"Simulation ({kind.value})",
            column_styles={"method": "cyan"},
        )
        console.print(f"[dim]{len(results)} envelope(s) processed[/dim]")

    failed = [call for call in results if call.outcome in ("error", "rejected")]
    if strict and failed:
        raise SimulationError(
            f"{len(failed)} call(s) rejected",
            details={"lines": ", ".join(str(call.line) for call in failed)},
        )
