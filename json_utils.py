"""
JSON utilities for Polish It, backed by orjson.
===============================================

Mirrors the subset of the standard ``json`` interface the project uses, so
modules can ``import json_utils as json`` and keep familiar call sites.
"""

import orjson
from typing import Any, Callable, Optional


def dumps(obj: Any, indent: Optional[int] = None, default: Optional[Callable[[Any], Any]] = None) -> str:
    """
    Serialize obj to a JSON string.

    Args:
        obj: Object to serialize
        indent: Any non-None value pretty-prints with two spaces
        default: Callable for objects orjson cannot serialize (e.g. default=str)

    Returns:
        JSON string (orjson produces bytes; they are decoded here)
    """
    option = orjson.OPT_NON_STR_KEYS
    if indent is not None:
        option |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, default=default, option=option).decode("utf-8")


def loads(s: Any) -> Any:
    """
    Deserialize a JSON document.

    Raises:
        JSONDecodeError: When ``s`` is not valid JSON (including empty input)
    """
    return orjson.loads(s)


def quote(text: str) -> str:
    """Render ``text`` as a JSON string literal, escapes and all."""
    return dumps(text)


# Compatibility constant; orjson's error subclasses ValueError
JSONDecodeError = orjson.JSONDecodeError
