"""Translation between CEL values and JSON-compatible structured data.

CEL results are ``celpy.celtypes`` instances. ``to_structured`` maps them onto
plain JSON data for the wire and never fails. The mapping is lossy in three
places:

- ``bytes`` are decoded as UTF-8 with replacement characters;
- map keys that are not strings are replaced by their ``repr``;
- values with no JSON counterpart (timestamps, durations, type values) are
  replaced by their ``repr``.

Non-finite doubles become ``None``.

``to_expression`` goes the other way for context injection and rejects
anything CEL cannot represent.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, TypeAlias, assert_never

from celpy import celtypes

from cel_mcp.errors import ContextError

StructuredValue: TypeAlias = "None | bool | int | float | str | list[StructuredValue] | dict[str, StructuredValue]"
Activation: TypeAlias = dict[str, Any]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1

IDENTIFIER_RE = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")
RESERVED_WORDS = frozenset({
    "true",
    "false",
    "null",
    "in",
    "as",
    "break",
    "const",
    "continue",
    "else",
    "for",
    "function",
    "if",
    "import",
    "let",
    "loop",
    "package",
    "namespace",
    "return",
    "var",
    "void",
    "while",
})


class ValueKind(Enum):
    """Closed set of CEL value shapes known to the translator."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "double"
    STRING = "string"
    BYTES = "bytes"
    LIST = "list"
    MAP = "map"
    OTHER = "other"


def classify(value: Any) -> ValueKind:
    # BoolType subclasses int, so it goes before the integer kinds.
    if value is None:
        return ValueKind.NULL
    if isinstance(value, (celtypes.BoolType, bool)):
        return ValueKind.BOOL
    if isinstance(value, celtypes.UintType):
        return ValueKind.UINT
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, bytes):
        return ValueKind.BYTES
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, Mapping):
        return ValueKind.MAP
    return ValueKind.OTHER


def to_structured(value: Any) -> StructuredValue:
    """Convert a CEL value into JSON-compatible data."""
    kind = classify(value)
    match kind:
        case ValueKind.NULL:
            return None
        case ValueKind.BOOL:
            return bool(value)
        case ValueKind.INT | ValueKind.UINT:
            return int(value)
        case ValueKind.FLOAT:
            number = float(value)
            return number if math.isfinite(number) else None
        case ValueKind.STRING:
            return str(value)
        case ValueKind.BYTES:
            return bytes(value).decode("utf-8", errors="replace")
        case ValueKind.LIST:
            return [to_structured(item) for item in value]
        case ValueKind.MAP:
            return {map_key(key): to_structured(item) for key, item in value.items()}
        case ValueKind.OTHER:
            return repr(value)
        case _:
            assert_never(kind)


def map_key(key: Any) -> str:
    """Render a CEL map key as a JSON object key.

    Non-string keys fall back to ``repr``; ``{1: "a"}`` and ``{"IntType(1)": "a"}``
    are indistinguishable once converted.
    """
    if classify(key) is ValueKind.STRING:
        return str(key)
    return repr(key)


def to_expression(value: Any, *, path: str) -> Any:
    """Convert JSON-compatible data into a CEL value.

    ``path`` names the context entry being converted and is used in errors.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return celtypes.BoolType(value)
    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            return celtypes.IntType(value)
        if INT64_MAX < value <= UINT64_MAX:
            return celtypes.UintType(value)
        raise ContextError(path, f"integer {value} does not fit in 64 bits")
    if isinstance(value, float):
        return celtypes.DoubleType(value)
    if isinstance(value, str):
        return celtypes.StringType(value)
    if isinstance(value, (bytes, bytearray)):
        return celtypes.BytesType(bytes(value))
    if isinstance(value, (list, tuple)):
        return celtypes.ListType([to_expression(item, path=f"{path}[{index}]") for index, item in enumerate(value)])
    if isinstance(value, Mapping):
        items: dict[Any, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ContextError(path, f"map key {key!r} is not a string")
            items[celtypes.StringType(key)] = to_expression(item, path=f"{path}.{key}")
        return celtypes.MapType(items)
    raise ContextError(path, f"unsupported value type {type(value).__name__}")


def check_identifier(name: Any) -> None:
    if not isinstance(name, str) or not IDENTIFIER_RE.match(name):
        raise ContextError(str(name), "not a valid CEL identifier")
    if name in RESERVED_WORDS:
        raise ContextError(name, "reserved word cannot be used as a variable name")


def inject_context(activation: Activation, context: Mapping[str, Any]) -> None:
    """Bind every entry of ``context`` as a CEL variable in ``activation``."""
    for key, value in context.items():
        check_identifier(key)
        activation[key] = to_expression(value, path=key)


__all__ = [
    "Activation",
    "StructuredValue",
    "ValueKind",
    "check_identifier",
    "classify",
    "inject_context",
    "map_key",
    "to_expression",
    "to_structured",
]
