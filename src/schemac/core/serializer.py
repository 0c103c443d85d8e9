"""IR serialization and deserialization.

This module provides functions to serialize a compiled schema to JSON and
deserialize JSON back to IR structures. Cross-entity references are plain
entity keys, so cycles never need special handling.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from schemac.core.models import CompiledSchema


class SerializationError(Exception):
    """Error during serialization or deserialization."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


def serialize(schema: CompiledSchema) -> str:
    """Serialize a compiled schema to a JSON string.

    Args:
        schema: The compiled schema to serialize.

    Returns:
        JSON string representation of the IR.

    Raises:
        SerializationError: If serialization fails.
    """
    try:
        data = schema.model_dump(mode="json")
        return json.dumps(data, indent=2, ensure_ascii=False, sort_keys=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            message="Failed to serialize IR",
            details=str(e),
        ) from e


def deserialize(json_str: str) -> CompiledSchema:
    """Deserialize a JSON string to a compiled schema.

    Args:
        json_str: JSON string representation of a compiled schema.

    Returns:
        The deserialized schema.

    Raises:
        SerializationError: If deserialization fails with detailed error info.
    """
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise SerializationError(
            message="Invalid JSON format",
            details=f"Line {e.lineno}, column {e.colno}: {e.msg}",
        ) from e
    return deserialize_from_dict(data)


def deserialize_from_dict(data: dict[str, Any]) -> CompiledSchema:
    """Deserialize a dictionary to a compiled schema.

    Raises:
        SerializationError: If the data does not describe a valid schema.
    """
    try:
        return CompiledSchema.model_validate(data)
    except ValidationError as e:
        error_details = []
        for err in e.errors():
            loc = ".".join(str(x) for x in err["loc"])
            error_details.append(f"{loc}: {err['msg']}")
        raise SerializationError(
            message="IR validation failed",
            details="; ".join(error_details),
        ) from e
