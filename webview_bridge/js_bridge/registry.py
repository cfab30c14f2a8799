"""Handler registry for methods callable from the embedded context.

The HandlerRegistry maps method names to typed handlers and executes them
against raw wire input:

- Registration is "last write wins": re-registering a method silently
  replaces the previous handler
- Input is decoded with the handler's input descriptor, or skipped
  entirely for handlers that take no input
- Handler exceptions are caught here and reported as ``HandlerThrew``
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import DecodeError, HandlerNotFound, HandlerThrew, SerializationError
from .protocol import DispatchResult
from .serialization import NO_INPUT, SerializationAdapter, descriptor_name

logger = logging.getLogger(__name__)

# Handlers take zero or one argument and may return an awaitable
Handler = Callable[..., Any]


@dataclass
class RegisteredHandler:
    """A handler together with its type descriptors."""

    method: str
    handler: Handler
    output_type: Any
    input_type: Any = NO_INPUT

    @property
    def takes_input(self) -> bool:
        """Whether the handler is called with a decoded argument."""
        return self.input_type is not NO_INPUT

    def describe(self) -> Dict[str, str]:
        """Describe the handler signature for display."""
        return {
            "method": self.method,
            "input": descriptor_name(self.input_type) if self.takes_input else "-",
            "output": descriptor_name(self.output_type),
        }


class HandlerRegistry:
    """Registry of typed handlers keyed by method name.

    Example:
        registry = HandlerRegistry(PydanticSerializationAdapter())
        registry.register("add", int, lambda args: args.a + args.b, input_type=AddArgs)

        result = await registry.dispatch("add", '{"a": 1, "b": 2}')
        assert result.output == "3"
    """

    def __init__(self, serializer: SerializationAdapter) -> None:
        """Initialize the registry.

        Args:
            serializer: Adapter used to decode input and encode output
        """
        self._serializer = serializer
        self._handlers: Dict[str, RegisteredHandler] = {}

    def register(
        self,
        method: str,
        output_type: Any,
        handler: Handler,
        input_type: Any = NO_INPUT,
    ) -> None:
        """Register a handler, replacing any previous one for ``method``.

        Args:
            method: Method name used by the embedded side
            output_type: Type descriptor for the handler's return value
            handler: Callable taking the decoded input (or nothing)
            input_type: Type descriptor for the input; omit for zero-argument handlers
        """
        if not method:
            raise ValueError("Method name must not be empty")
        if not callable(handler):
            raise TypeError(f"Handler for '{method}' is not callable")

        if method in self._handlers:
            logger.debug(f"Replacing handler for method: {method}")

        self._handlers[method] = RegisteredHandler(
            method=method,
            handler=handler,
            output_type=output_type,
            input_type=input_type,
        )

    def unregister(self, method: str) -> bool:
        """Remove the handler for ``method``.

        Returns:
            True if a handler was removed
        """
        return self._handlers.pop(method, None) is not None

    def get(self, method: str) -> Optional[RegisteredHandler]:
        """Get the registered handler for ``method``, if any."""
        return self._handlers.get(method)

    @property
    def methods(self) -> List[str]:
        """Registered method names, in registration order."""
        return list(self._handlers.keys())

    def describe(self) -> List[Dict[str, str]]:
        """Describe every registered handler."""
        return [entry.describe() for entry in self._handlers.values()]

    def __contains__(self, method: object) -> bool:
        return method in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    async def dispatch(self, method: str, raw_input: Optional[str]) -> DispatchResult:
        """Execute the handler for ``method`` against raw wire input.

        The handler runs at most once. Every failure is returned as a
        failed result rather than raised.

        Args:
            method: The method name
            raw_input: JSON text of the input, or None

        Returns:
            The encoded output, or the error describing the failure
        """
        entry = self._handlers.get(method)
        if entry is None:
            return DispatchResult.failure(HandlerNotFound(method))

        args: tuple = ()
        if entry.takes_input:
            try:
                args = (self._decode_input(entry, raw_input),)
            except SerializationError as e:
                logger.debug(f"Input for {method} rejected: {e}")
                return DispatchResult.failure(e)

        try:
            result = entry.handler(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.debug(f"Handler for {method} raised {type(e).__name__}: {e}")
            return DispatchResult.failure(HandlerThrew(method, e))

        try:
            return DispatchResult.success(self._serializer.encode(result, entry.output_type))
        except SerializationError as e:
            logger.warning(f"Result of {method} could not be encoded: {e}")
            return DispatchResult.failure(e)

    def _decode_input(self, entry: RegisteredHandler, raw_input: Optional[str]) -> Any:
        """Decode raw input against the handler's input descriptor."""
        if raw_input is not None:
            return self._serializer.decode(raw_input, entry.input_type)

        # A missing payload decodes as the literal null, which only
        # nullable descriptors accept
        try:
            return self._serializer.decode("null", entry.input_type)
        except DecodeError:
            raise DecodeError(
                None,
                descriptor_name(entry.input_type),
                "input data is null but type is not nullable",
            )
