"""WebView bridge: typed calls and events between native code and embedded pages."""

__app_name__ = "webview-bridge"
__version__ = "0.1.0"
