"""
Scripts installed into the embedded context.

The bootstrap script defines ``window.<jsObjectName>``: the embedded-side
correlator that issues callback ids, keeps pending promises and event
listeners, and is settled by the scripts native code evaluates. Polyfills
adapt restrictive host primitives to the ``window.<nativeInterfaceName>.call``
interface the bootstrap expects.

Each script starts with a marker comment naming its role so that hosts
(and :class:`~webview_bridge.js_bridge.correlator.EmbeddedPage`) can
recognise it.
"""

from __future__ import annotations

import json
from string import Template

from .protocol import CHANNEL_MESSAGE_TYPE, is_js_identifier

BOOTSTRAP_MARKER = "webview-bridge:bootstrap"
POLYFILL_MARKER = "webview-bridge:polyfill"

DEFAULT_JS_OBJECT_NAME = "AppBridge"
DEFAULT_NATIVE_INTERFACE_NAME = "AppBridgeNative"
DEFAULT_READY_EVENT = "AppBridgeReady"
DEFAULT_CALLBACK_PREFIX = "cb_"

_BOOTSTRAP = Template("""\
/* ${marker} ${obj} ${native} */
(() => {
    if (window.${obj}) return;

    const callbacks = {};
    const listeners = {};
    let sequence = 0;

    const nextCallbackId = () =>
        ${prefix} + (++sequence) + '_' + Math.random().toString(36).slice(2, 10);

    const send = (method, data, callbackId) => {
        const native = window.${native};
        if (!native || typeof native.call !== 'function') return false;
        const dataStr = (data === undefined || data === null) ? null : JSON.stringify(data);
        native.call(method, dataStr, callbackId);
        return true;
    };

    const settle = (id, action, value) => {
        const callback = callbacks[id];
        if (!callback) return;
        delete callbacks[id];
        if (callback.timer) clearTimeout(callback.timer);
        callback[action](value);
    };

    window.${obj} = {
        call: (method, data, options) => new Promise((resolve, reject) => {
            const callbackId = nextCallbackId();
            callbacks[callbackId] = { resolve, reject };

            const timeout = options && options.timeout;
            if (timeout > 0) {
                callbacks[callbackId].timer = setTimeout(
                    () => settle(callbackId, 'reject', 'Call timed out: ' + method),
                    timeout
                );
            }

            try {
                if (!send(method, data, callbackId)) {
                    settle(callbackId, 'reject', ${missing});
                }
            } catch (e) {
                settle(callbackId, 'reject', String((e && e.message) || e));
            }
        }),
        notify: (method, data) => {
            send(method, data, null);
        },
        on: (event, callback) => {
            if (!listeners[event]) listeners[event] = [];
            if (listeners[event].indexOf(callback) === -1) listeners[event].push(callback);
        },
        off: (event, callback) => {
            if (!listeners[event]) return;
            listeners[event] = listeners[event].filter(cb => cb !== callback);
        },
        trigger: (event, data) => {
            (listeners[event] || []).slice().forEach(cb => {
                try {
                    cb(data);
                } catch (e) {
                    console.error('${obj} listener failed for ' + event, e);
                }
            });
        },
        onSuccess: (id, result) => settle(id, 'resolve', result),
        onError: (id, error) => settle(id, 'reject', error),
        pendingCount: () => Object.keys(callbacks).length
    };

    window.dispatchEvent(new Event(${ready}));
})();
""")

_ROUTER_POLYFILL = Template("""\
/* ${marker} router ${native} */
window.${native} = {
    call: function(method, data, callbackId) {
        var fail = function(message) {
            console.error('${native} query failed: ' + message);
            if (callbackId && window.${obj}) window.${obj}.onError(callbackId, message);
        };
        if (!window.${query}) {
            fail('window.${query} is not available');
            return;
        }
        window.${query}({
            request: JSON.stringify({ method: method, data: data, callbackId: callbackId }),
            persistent: false,
            onSuccess: function(response) {},
            onFailure: function(errorCode, errorMessage) {
                fail(errorMessage || ('query failed with code ' + errorCode));
            }
        });
    }
};
""")

_CHANNEL_POLYFILL = Template("""\
/* ${marker} message_channel ${native} */
window.${native} = {
    call: function(method, data, callbackId) {
        window.parent.postMessage({
            type: ${message_type},
            method: method,
            data: data,
            callbackId: callbackId
        }, ${target_origin});
    }
};
""")


def _check_identifier(kind: str, name: str) -> str:
    if not is_js_identifier(name):
        raise ValueError(f"Invalid JavaScript identifier for {kind}: {name!r}")
    return name


def bootstrap_script(
    js_object_name: str = DEFAULT_JS_OBJECT_NAME,
    native_interface_name: str = DEFAULT_NATIVE_INTERFACE_NAME,
    ready_event: str = DEFAULT_READY_EVENT,
    callback_prefix: str = DEFAULT_CALLBACK_PREFIX,
) -> str:
    """
    Build the bootstrap script defining the embedded-side bridge object.

    Installation is idempotent: the script returns early if
    ``window.<js_object_name>`` already exists. Once installed it
    dispatches ``ready_event`` on ``window``.

    Args:
        js_object_name: Global the page uses (``window.AppBridge``)
        native_interface_name: Global exposing ``call(method, data, callbackId)``
        ready_event: DOM event dispatched after installation
        callback_prefix: Prefix of generated callback ids

    Returns:
        JavaScript source
    """
    return _BOOTSTRAP.substitute(
        marker=BOOTSTRAP_MARKER,
        obj=_check_identifier("js_object_name", js_object_name),
        native=_check_identifier("native_interface_name", native_interface_name),
        prefix=json.dumps(callback_prefix),
        missing=json.dumps(f"{native_interface_name} not found"),
        ready=json.dumps(ready_event),
    )


def router_polyfill(
    native_interface_name: str = DEFAULT_NATIVE_INTERFACE_NAME,
    query_function: str = "cefQuery",
    js_object_name: str = DEFAULT_JS_OBJECT_NAME,
) -> str:
    """
    Build the polyfill adapting ``call`` onto a single query primitive.

    The query's failure callback settles the call with ``onError`` so a
    rejected query never leaves a pending promise behind.
    """
    return _ROUTER_POLYFILL.substitute(
        marker=POLYFILL_MARKER,
        native=_check_identifier("native_interface_name", native_interface_name),
        query=_check_identifier("query_function", query_function),
        obj=_check_identifier("js_object_name", js_object_name),
    )


def message_channel_polyfill(
    native_interface_name: str = DEFAULT_NATIVE_INTERFACE_NAME,
    target_origin: str = "*",
) -> str:
    """Build the polyfill adapting ``call`` onto ``window.parent.postMessage``."""
    return _CHANNEL_POLYFILL.substitute(
        marker=POLYFILL_MARKER,
        native=_check_identifier("native_interface_name", native_interface_name),
        message_type=json.dumps(CHANNEL_MESSAGE_TYPE),
        target_origin=json.dumps(target_origin),
    )


def script_role(script: str) -> tuple[str, list[str]]:
    """
    Identify a generated script from its marker comment.

    Returns:
        ``("bootstrap", [obj, native])``, ``("polyfill", [kind, native])``,
        or ``("", [])`` for anything else
    """
    first_line = script.lstrip().split("\n", 1)[0].strip()
    if not (first_line.startswith("/*") and first_line.endswith("*/")):
        return "", []

    words = first_line[2:-2].split()
    if not words:
        return "", []
    if words[0] == BOOTSTRAP_MARKER:
        return "bootstrap", words[1:]
    if words[0] == POLYFILL_MARKER:
        return "polyfill", words[1:]
    return "", []
