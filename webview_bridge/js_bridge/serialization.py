"""
Serialization adapters for the JS bridge.

Values cross the bridge as JSON text. Each handler declares explicit type
descriptors (plain Python type expressions such as ``int``,
``Optional[str]``, ``list[Point]`` or a dataclass/pydantic model) and the
adapter encodes/decodes against them.
"""

from __future__ import annotations

import importlib
import logging
import typing
from abc import ABC, abstractmethod
from typing import Any, Optional

from .errors import DecodeError, EncodeError, SerializerMisconfigured

# pydantic is the default serialization backend; its absence is reported
# as SerializerMisconfigured when a bridge is constructed.
try:
    import pydantic
except ImportError:
    pydantic = None  # type: ignore

logger = logging.getLogger(__name__)


class _NoInput:
    """Marker for handlers that take no input."""

    _instance: Optional["_NoInput"] = None

    def __new__(cls) -> "_NoInput":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_INPUT"

    def __bool__(self) -> bool:
        return False


NO_INPUT: Any = _NoInput()


def descriptor_name(descriptor: Any) -> str:
    """Get a readable name for a type descriptor."""
    if descriptor is None or descriptor is type(None):
        return "None"
    name = getattr(descriptor, "__name__", None)
    if name and not typing.get_args(descriptor):
        return name
    return repr(descriptor).replace("typing.", "")


class SerializationAdapter(ABC):
    """Encodes and decodes typed values to and from wire strings."""

    @abstractmethod
    def encode(self, value: Any, type_descriptor: Any) -> str:
        """
        Encode a value to its JSON wire form.

        Raises:
            EncodeError: If the value does not fit the descriptor
        """

    @abstractmethod
    def decode(self, wire: str, type_descriptor: Any) -> Any:
        """
        Decode a JSON wire string against a type descriptor.

        The literal ``null`` decodes to ``None`` for nullable descriptors.

        Raises:
            DecodeError: If the wire string is malformed or mismatched
        """


class PydanticSerializationAdapter(SerializationAdapter):
    """
    Default adapter backed by pydantic ``TypeAdapter``.

    One TypeAdapter is built per descriptor and cached. Unknown keys in
    record payloads are ignored.

    Example:
        adapter = PydanticSerializationAdapter()
        adapter.encode(Point(1, 2), Point)      # '{"x":1,"y":2}'
        adapter.decode('{"x":1,"y":2}', Point)  # Point(x=1, y=2)
    """

    def __init__(self, strict: bool = False):
        if pydantic is None:
            raise SerializerMisconfigured(
                "pydantic is not installed. Install 'pydantic>=2.7' or "
                "provide a custom serializer."
            )
        self._strict = strict
        self._adapters: dict[Any, Any] = {}

    @property
    def strict(self) -> bool:
        """Whether decoding disables type coercion."""
        return self._strict

    def encode(self, value: Any, type_descriptor: Any) -> str:
        name = descriptor_name(type_descriptor)
        try:
            adapter = self._adapter_for(type_descriptor)
            return adapter.dump_json(value, warnings="error").decode("utf-8")
        except EncodeError:
            raise
        except Exception as e:
            raise EncodeError(name, str(e)) from e

    def decode(self, wire: str, type_descriptor: Any) -> Any:
        name = descriptor_name(type_descriptor)
        try:
            adapter = self._adapter_for(type_descriptor)
        except EncodeError as e:
            raise DecodeError(wire, name, e.reason) from e
        try:
            return adapter.validate_json(wire, strict=self._strict)
        except pydantic.ValidationError as e:
            raise DecodeError(wire, name, _summarize(e)) from e
        except ValueError as e:
            raise DecodeError(wire, name, str(e)) from e

    def _adapter_for(self, type_descriptor: Any) -> Any:
        """Get (or build) the TypeAdapter for a descriptor."""
        try:
            cached = self._adapters.get(type_descriptor)
        except TypeError:
            # Unhashable descriptor; build without caching
            return self._build(type_descriptor)
        if cached is None:
            cached = self._build(type_descriptor)
            self._adapters[type_descriptor] = cached
        return cached

    def _build(self, type_descriptor: Any) -> Any:
        try:
            return pydantic.TypeAdapter(type_descriptor)
        except pydantic.PydanticUserError as e:
            # Includes PydanticSchemaGenerationError for unsupported types
            raise EncodeError(descriptor_name(type_descriptor), str(e)) from e


def _summarize(error: Any) -> str:
    """Produce a one-line summary of a pydantic ValidationError."""
    parts = []
    for item in error.errors()[:3]:
        loc = ".".join(str(p) for p in item.get("loc", ())) or "value"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    if error.error_count() > 3:
        parts.append(f"... {error.error_count() - 3} more")
    return "; ".join(parts)


def ensure_serializer(serializer: Any) -> SerializationAdapter:
    """
    Check that an object can serve as a serialization adapter.

    Raises:
        SerializerMisconfigured: If encode/decode are missing
    """
    if serializer is None:
        raise SerializerMisconfigured("No serializer configured")
    for attr in ("encode", "decode"):
        if not callable(getattr(serializer, attr, None)):
            raise SerializerMisconfigured(
                f"Serializer {type(serializer).__name__} has no callable '{attr}'"
            )
    return serializer


def load_serializer(spec: Optional[str] = None, strict: bool = False) -> SerializationAdapter:
    """
    Resolve a serializer from a ``"package.module:Factory"`` reference.

    Args:
        spec: Import reference; ``None`` selects the pydantic adapter
        strict: Passed to the default adapter

    Returns:
        A usable serialization adapter

    Raises:
        SerializerMisconfigured: If the reference cannot be imported or
            does not produce a usable adapter
    """
    if not spec:
        return PydanticSerializationAdapter(strict=strict)

    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise SerializerMisconfigured(
            f"Invalid serializer reference '{spec}' (expected 'module:Factory')"
        )

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise SerializerMisconfigured(f"Cannot load serializer '{spec}': {e}") from e

    logger.debug(f"Loading serializer from {spec}")
    try:
        serializer = factory()
    except SerializerMisconfigured:
        raise
    except Exception as e:
        raise SerializerMisconfigured(f"Serializer factory '{spec}' failed: {e}") from e

    return ensure_serializer(serializer)
