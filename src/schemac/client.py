"""Public client interface for schemac.

schemac exposes lower-level building blocks (adapters/, services/, emitters/).
This module provides a stable, ergonomic entrypoint for external callers.
"""

from __future__ import annotations

from pathlib import Path

from schemac.core.config import SchemacConfig, get_config
from schemac.core.models import CompiledSchema
from schemac.core.serializer import serialize
from schemac.emitters import backend_names
from schemac.services.compiler_service import CompileResult, CompilerService


class SchemaCompiler:
    """High-level facade over the compile pipeline."""

    def __init__(self, config: SchemacConfig | None = None) -> None:
        """Create a compiler.

        Args:
            config: Optional settings (defaults to the cached environment config).
        """
        self._config = config or get_config()
        self._service: CompilerService | None = None

    @property
    def config(self) -> SchemacConfig:
        return self._config

    @property
    def service(self) -> CompilerService:
        """Underlying compile pipeline service."""
        if self._service is None:
            self._service = CompilerService(self._config)
        return self._service

    @staticmethod
    def backends() -> list[str]:
        """Names of the built-in backends."""
        return backend_names()

    def analyze(self, source: str | Path) -> CompiledSchema:
        """Resolved and validated IR of a model tree."""
        return self.service.analyze(Path(source))

    def compile(
        self,
        source: str | Path,
        output: str | Path | None = None,
        backends: list[str] | None = None,
    ) -> CompileResult:
        """Compile a model tree; artifacts are written when ``output`` is given."""
        return self.service.compile(
            Path(source),
            Path(output) if output is not None else None,
            backends=backends,
        )

    def export_ir(self, source: str | Path) -> str:
        """JSON form of the resolved IR."""
        return serialize(self.analyze(source))
