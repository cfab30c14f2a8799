"""webview-bridge script command - Print the scripts installed into pages."""

from typing import Optional

import typer

from webview_bridge.cli.error_handler import ValidationError, handle_errors
from webview_bridge.cli.output import console, print_script

app = typer.Typer(help="Print the scripts the bridge installs into the embedded context.")


def _highlight(plain: bool) -> bool:
    return not plain and console.is_terminal


@app.command("bootstrap")
@handle_errors
def bootstrap(
    js_object_name: Optional[str] = typer.Option(
        None,
        "--js-object-name",
        help="Global the page uses (default: from config).",
    ),
    native_interface_name: Optional[str] = typer.Option(
        None,
        "--native-interface-name",
        help="Global exposing call() to the page (default: from config).",
    ),
    plain: bool = typer.Option(
        False,
        "--plain",
        help="Print without syntax highlighting.",
    ),
) -> None:
    """Print the bootstrap script.

    Example:
        webview-bridge script bootstrap
        webview-bridge script bootstrap --js-object-name MyBridge --plain > bridge.js
    """
    from webview_bridge.config import get_config
    from webview_bridge.js_bridge.scripts import bootstrap_script

    config = get_config()

    try:
        script = bootstrap_script(
            js_object_name or config.bridge.js_object_name,
            native_interface_name or config.bridge.native_interface_name,
            config.bridge.ready_event,
            config.correlator.callback_prefix,
        )
    except ValueError as e:
        raise ValidationError(str(e))

    print_script(script, highlight=_highlight(plain))


@app.command("polyfill")
@handle_errors
def polyfill(
    transport: Optional[str] = typer.Option(
        None,
        "--transport",
        "-t",
        help="Transport kind (router, message_channel; default: from config).",
    ),
    plain: bool = typer.Option(
        False,
        "--plain",
        help="Print without syntax highlighting.",
    ),
) -> None:
    """Print the polyfill a transport installs before the bootstrap script.

    Example:
        webview-bridge script polyfill --transport router
    """
    from webview_bridge.config import get_config
    from webview_bridge.js_bridge.transports import TransportKind, create_transport

    config = get_config()

    try:
        kind = TransportKind.parse(transport or config.transport.kind)
        adapter = create_transport(
            kind,
            None,
            config.bridge.native_interface_name,
            **config.transport_options(),
        )
        scripts = adapter.navigation_scripts()
    except ValueError as e:
        raise ValidationError(str(e))

    if not scripts:
        raise ValidationError(
            f"The {kind.value} transport installs no polyfill",
            details={"transports with polyfills": "router, message_channel"},
        )

    for script in scripts:
        print_script(script, highlight=_highlight(plain))
