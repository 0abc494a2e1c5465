"""Codec for the JSON item array embedded in the orders table.

The stored documents are flat: an array of objects whose values are strings,
integers or two-decimal money amounts. Only that shape is supported here, so
the encoder and the field readers stay small and auditable instead of
pulling in a general-purpose JSON grammar.

Decoding is lenient. A field that is missing or does not parse yields a
zero value ("" / 0 / Decimal("0")) so that a single damaged row cannot
break order listing. Callers needing strict validation must test for the
zero value themselves.

The array splitter counts braces without tracking string literals, so a
value containing "{" or "}" (a name like "Smile :}") splits its element in
two. Stored arrays written by earlier releases are split the same way, and
round trips hold only for values free of braces.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from restaurant_order_service.exceptions import MalformedEmbeddedData

Scalar = Union[str, int, float, Decimal, None]

CENTS = Decimal("0.01")

# Checked in this order; backslash must come first.
_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)

_UNESCAPES = {"n": "\n", "r": "\r", "t": "\t"}

_NUMBER_CHARS = frozenset("0123456789.")


def escape_string(text: str | None) -> str:
    """Escape text for use inside a JSON string literal.

    Backslash, double quote, newline, carriage return and tab become their
    two-character escapes. Everything else passes through unchanged.

    Args:
        text: Text to escape, None is treated as empty

    Returns:
        str: Escaped text without surrounding quotes
    """
    if text is None:
        return ""
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def format_money(value: Decimal | float) -> str:
    """Render a money amount with exactly two decimals (half-up)."""
    amount = Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return f"{amount:f}"


def encode_value(value: Scalar) -> str:
    """Encode one scalar value.

    Strings (and None) are quoted and escaped, integers are written as-is,
    Decimal and float values are treated as money.
    """
    if isinstance(value, bool):
        raise TypeError("Boolean values are not supported in embedded documents")
    if value is None or isinstance(value, str):
        return f'"{escape_string(value)}"'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (Decimal, float)):
        return format_money(value)
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def encode_object(fields: Sequence[tuple[str, Scalar]]) -> str:
    """Encode ordered (key, value) pairs as a flat JSON object.

    Output order follows input order. Keys are not checked for uniqueness.
    """
    members = ",".join(f'"{escape_string(key)}":{encode_value(value)}' for key, value in fields)
    return "{" + members + "}"


def encode_array(fragments: Sequence[str]) -> str:
    """Join already-encoded object fragments into a JSON array."""
    return "[" + ",".join(fragments) + "]"


def split_top_level_array(text: str | None) -> list[str]:
    """Split a JSON array into the text of its top-level elements.

    Commas only separate elements at brace depth zero, so commas inside
    object values are left alone. Braces inside string values still count
    toward the depth.

    Args:
        text: JSON array text such as '[{"id":1},{"id":2}]'

    Returns:
        list: Trimmed element fragments, empty for None, "" or "[]"
    """
    if not text:
        return []

    content = text.strip()
    if content.startswith("["):
        content = content[1:]
    if content.endswith("]"):
        content = content[:-1]

    fragments: list[str] = []
    depth = 0
    start = 0
    for index, char in enumerate(content):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            fragments.append(content[start:index])
            start = index + 1
    fragments.append(content[start:])

    return [fragment.strip() for fragment in fragments if fragment.strip()]


def _value_start(fragment: str, pattern: str) -> int:
    index = fragment.find(pattern)
    if index == -1:
        raise MalformedEmbeddedData(f"Pattern {pattern} not present")
    return index + len(pattern)


def _read_string(fragment: str, key: str) -> str:
    index = _value_start(fragment, f'"{key}":"')
    chars: list[str] = []
    while index < len(fragment):
        char = fragment[index]
        if char == '"':
            return "".join(chars)
        if char == "\\":
            if index + 1 >= len(fragment):
                break
            escaped = fragment[index + 1]
            chars.append(_UNESCAPES.get(escaped, escaped))
            index += 2
            continue
        chars.append(char)
        index += 1
    raise MalformedEmbeddedData(f"Unterminated string for key {key!r}")


def _read_number(fragment: str, key: str) -> str:
    index = _value_start(fragment, f'"{key}":')
    start = index
    while index < len(fragment):
        char = fragment[index]
        if char in _NUMBER_CHARS or (char == "-" and index == start):
            index += 1
            continue
        break
    if index == start:
        raise MalformedEmbeddedData(f"Empty numeric value for key {key!r}")
    return fragment[start:index]


def extract_string(fragment: str, key: str) -> str:
    """Read a string field from an object fragment, "" when absent or malformed."""
    try:
        return _read_string(fragment, key)
    except MalformedEmbeddedData:
        return ""


def extract_int(fragment: str, key: str) -> int:
    """Read an integer field from an object fragment, 0 when absent or malformed."""
    try:
        return int(_read_number(fragment, key))
    except (MalformedEmbeddedData, ValueError):
        return 0


def extract_decimal(fragment: str, key: str) -> Decimal:
    """Read a numeric field as Decimal, Decimal("0") when absent or malformed."""
    try:
        return Decimal(_read_number(fragment, key))
    except (MalformedEmbeddedData, InvalidOperation):
        return Decimal("0")
