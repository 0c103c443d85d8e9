"""Name canonicalization helpers.

Every generated artifact derives its identifiers from these functions, so the
SQL column, the JSON key and the target-language field of one source field
always agree.
"""

from __future__ import annotations

import re

_UPPER = re.compile(r"([A-Z])")
_SEPARATORS = re.compile(r"[-\s]+")


def camel_to_snake(name: str) -> str:
    """Convert ``camelCase``/``PascalCase`` to ``snake_case``.

    Already-snake names pass through unchanged.
    """
    snake = _UPPER.sub(r"_\1", name).lower()
    if snake.startswith("_") and not name.startswith("_"):
        snake = snake[1:]
    return snake


def snake_to_camel(name: str) -> str:
    """Convert ``snake_case`` to ``camelCase`` (first segment stays lower)."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


def type_name_to_table_name(type_name: str) -> str:
    """``MicroblogItem`` -> ``microblog_item``."""
    return camel_to_snake(type_name)


def file_stem_to_snake(stem: str) -> str:
    """Normalize a file base name for comparison against declaration names."""
    return camel_to_snake(_SEPARATORS.sub("_", stem)).lower()


def is_round_trip_safe(canonical_name: str) -> bool:
    """True when ``canonical -> camel -> canonical`` is the identity."""
    return camel_to_snake(snake_to_camel(canonical_name)) == canonical_name
