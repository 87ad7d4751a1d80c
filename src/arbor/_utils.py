"""Utility functions for arbor."""

import json
import re
from typing import Any

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def ensure_tuple(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Convert a single string to a 1-tuple, pass sequences through as tuples.

    Examples:
        >>> ensure_tuple("a1")
        ('a1',)
        >>> ensure_tuple(["a1", "b2"])
        ('a1', 'b2')
    """
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def canonical_json(fields: dict[str, Any]) -> str:
    """Serialize fields deterministically (sorted keys, compact separators).

    Values that JSON cannot represent are rendered with ``str()``.

    Examples:
        >>> canonical_json({"b": 1, "a": "x"})
        '{"a":"x","b":1}'
    """
    return json.dumps(fields, sort_keys=True, separators=(",", ":"), default=str)


def alnum_prefix(text: str, length: int) -> str:
    """Drop non-alphanumeric characters and keep the first *length* of the rest.

    Examples:
        >>> alnum_prefix('{"name":"Root A"}', 10)
        'nameRootA'
    """
    return _NON_ALNUM.sub("", text)[:length]
