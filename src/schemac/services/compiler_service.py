"""Compiler service coordinating the whole pipeline.

This module provides the CompilerService: read the model tree through the Elm
adapter, resolve cross-model references, validate the IR, then run the
backend emitters and optionally write their artifacts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from schemac.adapters import ElmAdapter, SourceAdapter
from schemac.core.config import SchemacConfig, get_config
from schemac.core.models import CompiledSchema, Diagnostic, Severity
from schemac.core.validator import validate_schema
from schemac.emitters import (
    ArtifactWriter,
    SchemaEmitter,
    WriteResult,
    get_default_emitters,
    run_emitters,
)
from schemac.services.reference_resolver import ReferenceResolver

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Result of a compile operation."""

    schema: CompiledSchema
    artifacts: dict[str, dict[str, str]] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    write_result: WriteResult | None = None

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def files(self) -> dict[str, str]:
        """All generated files across backends, keyed by relative path."""
        merged: dict[str, str] = {}
        for files in self.artifacts.values():
            merged.update(files)
        return merged

    @property
    def success(self) -> bool:
        """Check if compilation produced no Error diagnostics."""
        return len(self.errors) == 0

    def passes(self, strict: bool = False) -> bool:
        """Success, additionally requiring zero warnings when ``strict``."""
        return self.success and not (strict and self.warnings)


class CompilerService:
    """Service for compiling an Elm model tree into generated artifacts."""

    def __init__(
        self,
        config: SchemacConfig | None = None,
        *,
        adapter: SourceAdapter | None = None,
        resolver: ReferenceResolver | None = None,
        emitters: list[SchemaEmitter] | None = None,
    ) -> None:
        self._config = config or get_config()
        self._adapter = adapter or ElmAdapter(self._config)
        self._resolver = resolver or ReferenceResolver()
        self._emitters = emitters if emitters is not None else get_default_emitters(self._config)

    @property
    def config(self) -> SchemacConfig:
        return self._config

    @property
    def emitters(self) -> list[SchemaEmitter]:
        return list(self._emitters)

    def analyze(self, source_path: Path) -> CompiledSchema:
        """Read, resolve and validate a model tree without emitting anything."""
        schema = self._adapter.analyze(source_path)
        schema = self._resolver.resolve(schema)
        validation = validate_schema(schema)
        if validation.errors:
            extra = [
                error.to_diagnostic(self._source_file(schema, error.entity_key))
                for error in validation.errors
            ]
            schema = schema.model_copy(update={"diagnostics": schema.diagnostics + extra})
        logger.info(
            f"Analyzed {len(schema.entities)} entities, {len(schema.edges)} references, "
            f"{len(schema.diagnostics)} diagnostics"
        )
        return schema

    def compile(
        self,
        source_path: Path,
        output_path: Path | None = None,
        backends: list[str] | None = None,
    ) -> CompileResult:
        """Compile a model tree, optionally writing artifacts under ``output_path``.

        Args:
            source_path: Root of the model tree (holding ``Schema/``, ``Api/``, ...).
            output_path: Output root; nothing is written when None.
            backends: Names of the backends to run (all when None).

        Returns:
            CompileResult with the generated artifacts and every diagnostic.

        Raises:
            ValueError: If a requested backend does not exist.
        """
        emitters = self.select_emitters(backends)
        schema = self.analyze(source_path)
        result = CompileResult(schema=schema, diagnostics=list(schema.diagnostics))

        if not source_path.is_dir():
            return result

        outcome = run_emitters(schema, emitters)
        result.artifacts = outcome.artifacts
        result.diagnostics.extend(outcome.diagnostics)

        if output_path is not None:
            write_result = ArtifactWriter(output_path).write(outcome.artifacts)
            result.write_result = write_result
            result.diagnostics.extend(write_result.diagnostics)
            logger.info(
                f"Wrote {write_result.files_written} file(s) to {output_path} "
                f"({len(write_result.unchanged)} unchanged)"
            )
        return result

    def select_emitters(self, backends: list[str] | None) -> list[SchemaEmitter]:
        if not backends:
            return list(self._emitters)
        by_name = {emitter.name: emitter for emitter in self._emitters}
        unknown = [name for name in backends if name not in by_name]
        if unknown:
            raise ValueError(
                f"Unknown backend(s): {', '.join(unknown)}. "
                f"Available: {', '.join(by_name)}"
            )
        return [by_name[name] for name in backends]

    @staticmethod
    def _source_file(schema: CompiledSchema, key: str) -> str | None:
        entity = schema.entities.get(key)
        return entity.source_file if entity else None
