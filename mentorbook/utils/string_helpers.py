"""
String Helpers: Centralized Naming Convention Converter.

Single source of truth for key conversion between the snake_case model
layer and the camelCase document shapes persisted in the store.
"""

from __future__ import annotations

import re
from typing import Union

__all__ = [
    "JsonValue",
    "to_camel_case",
    "to_snake_case",
]

# ---------------------------------------------------------------------------
# Recursive JSON value type
# ---------------------------------------------------------------------------

JsonValue = Union[
    str,
    int,
    float,
    bool,
    None,
    dict[str, "JsonValue"],
    list["JsonValue"],
]

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

# "URLPath" -> "URL_Path"
_RE_UPPER_RUN = re.compile(r"([A-Z]+)([A-Z][a-z])")

# "startTime" -> "start_Time"
_RE_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")

_RE_MULTI_UNDERSCORE = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """Convert a camelCase or PascalCase string to snake_case.

    Examples::

        startTime         -> start_time
        availabilitySlots -> availability_slots
        sessionId         -> session_id
    """
    s1 = _RE_UPPER_RUN.sub(r"\1_\2", name)
    s2 = _RE_CAMEL_BOUNDARY.sub(r"\1_\2", s1)
    s3 = _RE_MULTI_UNDERSCORE.sub("_", s2)
    return s3.lower()


def to_camel_case(name: str) -> str:
    """Convert a snake_case string to lower camelCase.

    Used as the pydantic ``alias_generator`` for every persisted model so
    documents keep the ``startTime`` / ``sessionCount`` shape.

    Examples::

        start_time    -> startTime
        session_limit -> sessionLimit
        id            -> id
    """
    head, *tail = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in tail)
