"""Elm model adapter.

This module implements the SourceAdapter interface for a tree of Elm model
files laid out one directory per domain (``Schema/``, ``Api/``, ``Kv/``,
``Sse/``, ``Storage/``).
"""

from __future__ import annotations

import logging
from pathlib import Path

from schemac.adapters.base import SourceAdapter, SymbolTable
from schemac.adapters.elm.extractor import ElmExtractor
from schemac.adapters.elm.normalizer import ElmNormalizer
from schemac.core.config import SchemacConfig, get_config
from schemac.core.models import (
    CompiledSchema,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    UnresolvedReference,
)

logger = logging.getLogger(__name__)

SKIPPED_FILES = {"Schema"}
SKIPPED_PREFIXES = ("Framework",)


class ElmAdapter(SourceAdapter):
    """Elm source adapter.

    Implements two-phase reading:
    - Phase 1: Extract every file of every domain into a symbol table
    - Phase 2: Normalize each entity against the symbol table
    """

    def __init__(self, config: SchemacConfig | None = None) -> None:
        self._config = config or get_config()
        self._extractor = ElmExtractor()

    @property
    def source_extension(self) -> str:
        return self._config.source_extension

    def analyze(self, source_path: Path) -> CompiledSchema:
        """Read an Elm model tree and return normalized IR (without edges)."""
        if not source_path.is_dir():
            return CompiledSchema(
                diagnostics=[
                    Diagnostic.error(
                        DiagnosticCode.IO_ERROR,
                        f"Source directory not found: {source_path}",
                        file=str(source_path),
                    )
                ]
            )
        symbol_table = self.build_symbol_table(source_path)
        return self.normalize(symbol_table)

    def discover(self, source_path: Path) -> list[tuple[Domain, Path]]:
        """List model files in generation order (domain, then relative path)."""
        found: list[tuple[Domain, Path]] = []
        for domain in Domain:
            domain_dir = source_path / domain.directory
            if not domain_dir.is_dir():
                logger.debug(f"No {domain.value} models at {domain_dir}")
                continue
            files = sorted(
                domain_dir.rglob(f"*{self.source_extension}"),
                key=lambda p: p.relative_to(domain_dir).as_posix(),
            )
            for model_file in files:
                if model_file.stem in SKIPPED_FILES or model_file.name.startswith(
                    SKIPPED_PREFIXES
                ):
                    continue
                found.append((domain, model_file))
        return found

    def build_symbol_table(self, source_path: Path) -> SymbolTable:
        """Phase 1: Extract all model files and register their declarations."""
        symbol_table = SymbolTable()
        for domain, model_file in self.discover(source_path):
            rel = model_file.relative_to(source_path).as_posix()
            try:
                content = model_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {model_file}: {e}")
                symbol_table.diagnostics.append(
                    Diagnostic.error(DiagnosticCode.IO_ERROR, f"Cannot read file: {e}", file=rel)
                )
                continue

            extraction = self._extractor.extract(content, rel, domain)
            symbol_table.diagnostics.extend(extraction.diagnostics)
            for name, expr in extraction.aliases.items():
                symbol_table.add_alias(domain, name, expr)
            for raw in extraction.entities:
                if not symbol_table.add_entity(raw):
                    symbol_table.diagnostics.append(
                        Diagnostic.error(
                            DiagnosticCode.NAME_COLLISION,
                            f"{domain.value} entity {raw.name} is already declared; "
                            f"this declaration is ignored",
                            file=rel,
                            entity=raw.name,
                        )
                    )
        return symbol_table

    def normalize(self, symbol_table: SymbolTable) -> CompiledSchema:
        """Phase 2: Normalize every registered entity in isolation."""
        normalizer = ElmNormalizer(symbol_table, self._config)
        entities: dict[str, EntityIR] = {}
        diagnostics = list(symbol_table.diagnostics)
        unresolved: list[UnresolvedReference] = []
        for key, raw in symbol_table.entities.items():
            try:
                result = normalizer.normalize(raw)
            except Exception as e:
                logger.warning(f"Failed to normalize {key}: {e}")
                diagnostics.append(
                    Diagnostic.error(
                        DiagnosticCode.PARSE_ERROR,
                        f"Normalization failed: {e}",
                        file=raw.source_file,
                        entity=raw.name,
                    )
                )
                continue
            entities[key] = result.entity
            diagnostics.extend(result.diagnostics)
            unresolved.extend(result.unresolved)
        return CompiledSchema(entities=entities, unresolved=unresolved, diagnostics=diagnostics)
