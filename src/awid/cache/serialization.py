"""Value encoding for cached entries and channel messages.

Strings are stored as-is; every other value is encoded to JSON. Reads try a
structured decode first and fall back to the raw text, so a key may hold
either form. The outcome is a tagged result rather than an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import orjson


@dataclass(frozen=True)
class Structured:
    """Value decoded from JSON."""

    value: Any


@dataclass(frozen=True)
class Raw:
    """Text that is not valid JSON, delivered unchanged."""

    value: str


Decoded = Structured | Raw


def encode(value: Any) -> str:
    """Encode a value for storage. Strings pass through untouched."""
    if isinstance(value, str):
        return value
    return orjson.dumps(value).decode("utf-8")


def decode(data: str | bytes) -> Decoded:
    """Decode stored text, returning Raw when it is not valid JSON."""
    try:
        return Structured(orjson.loads(data))
    except orjson.JSONDecodeError:
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        return Raw(text)
