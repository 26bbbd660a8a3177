"""Untyped JSON messages and safe accessors into them.

Bodies are decoded with the stdlib json module into plain dicts/lists.
Nothing here knows the LSP schema; the accessors only answer "is this
the shape I expected?" and return None otherwise, so walking a message
that doesn't match is a normal negative case, not an exception.
"""
from __future__ import annotations

import json
from typing import Any, TypeAlias

Message: TypeAlias = Any  # dict | list | str | int | float | bool | None
JsonObject: TypeAlias = dict[str, Any]


def as_object(value: Any) -> JsonObject | None:
    """Return value if it is a JSON object, else None."""
    return value if isinstance(value, dict) else None


def as_bool(value: Any) -> bool | None:
    """Return value if it is a JSON boolean, else None."""
    return value if isinstance(value, bool) else None


def get_object(value: Any, *path: str) -> JsonObject | None:
    """Follow a chain of object keys, e.g. get_object(msg, "result", "capabilities").

    Returns None as soon as any step is not an object or lacks the key.
    """
    current = as_object(value)
    for key in path:
        if current is None:
            return None
        current = as_object(current.get(key))
    return current


def decode_message(body: bytes) -> Message:
    """Decode a frame body.

    Raises:
        ValueError: body is not valid JSON (json.JSONDecodeError) or
            not decodable text (UnicodeDecodeError)
        RecursionError: body nests deeper than the interpreter allows
    """
    return json.loads(body)


def encode_message(message: Message) -> bytes:
    """Serialize to compact JSON, the form written back to the client.

    Non-ASCII text is \\u-escaped, so strings holding lone surrogates
    (legal in JSON, not encodable as UTF-8) still serialize.
    """
    return json.dumps(message, separators=(",", ":")).encode("ascii")
