"""Base interface for backend emitters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from schemac.core.config import SchemacConfig, get_config
from schemac.core.models import CompiledSchema, Diagnostic

GENERATED_NOTICE = "DO NOT EDIT - Changes will be overwritten"


@dataclass
class EmitResult:
    """Files produced by one backend, keyed by path relative to the output root."""

    files: dict[str, str] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)


class SchemaEmitter(ABC):
    """Turn resolved IR into the text of one backend's artifacts.

    Emitters are pure: they read the schema, never mutate it, and never look
    at the clock or the environment.
    """

    def __init__(self, config: SchemacConfig | None = None) -> None:
        self.config = config or get_config()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique backend name."""

    @property
    def description(self) -> str:
        return ""

    @abstractmethod
    def emit(self, schema: CompiledSchema) -> EmitResult:
        """Render the backend's files."""
