"""Base classes for source adapters.

This module defines the SourceAdapter abstract interface for readers of a
model source tree, along with the SymbolTable shared by the two phases:

- Phase 1 (definition scanning): extract every declaration of every file and
  register entity names, plain aliases and modules
- Phase 2 (normalization): resolve field types against the symbol table
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field

from schemac.core.models import (
    CompiledSchema,
    Diagnostic,
    Domain,
    EntityKind,
    ImportDecl,
    RawEntity,
    TypeExpr,
    entity_key,
)


class SymbolTable(BaseModel):
    """Symbol table for two-phase compilation.

    Stores definitions collected during Phase 1 for use in Phase 2.
    """

    entities: dict[str, RawEntity] = Field(
        default_factory=dict, description="entity_key -> raw entity (declaration order)"
    )
    name_map: dict[str, list[str]] = Field(
        default_factory=dict, description="short_name -> [entity_keys]"
    )
    declared_map: dict[str, list[str]] = Field(
        default_factory=dict, description="module.DeclaredName -> [entity_keys]"
    )
    aliases: dict[str, dict[str, TypeExpr]] = Field(
        default_factory=dict, description="domain -> {alias_name -> type_expr}"
    )
    module_map: dict[str, Domain] = Field(
        default_factory=dict, description="module_name -> domain"
    )
    diagnostics: list[Diagnostic] = Field(
        default_factory=list, description="Phase 1 diagnostics"
    )

    def add_entity(self, raw: RawEntity) -> bool:
        """Register an entity. Returns False if the key is already taken."""
        key = entity_key(raw.domain, raw.name)
        if key in self.entities:
            return False
        self.entities[key] = raw
        self.name_map.setdefault(raw.name, []).append(key)
        declared = f"{raw.module_name}.{raw.declared_name or raw.name}"
        self.declared_map.setdefault(declared, []).append(key)
        self.module_map.setdefault(raw.module_name, raw.domain)
        return True

    def add_alias(self, domain: Domain, name: str, expr: TypeExpr) -> None:
        self.aliases.setdefault(domain.value, {})[name] = expr

    def get_entity(self, key: str) -> RawEntity | None:
        return self.entities.get(key)

    def is_enum_like(self, key: str) -> bool:
        raw = self.entities.get(key)
        if raw is None or raw.kind != EntityKind.UNION:
            return False
        return all(not variant.arg_types for variant in raw.raw_variants)

    def resolve_entity(
        self,
        name: str,
        domain: Domain,
        imports: list[ImportDecl],
        module_name: str = "",
    ) -> str | None:
        """Resolve a (possibly qualified) type name to an entity key.

        Resolution order:
        1. Qualified name whose qualifier is an import alias or module
        2. Declaration in the same module
        3. Entity of the same domain
        4. Entity exposed by an import
        5. The only entity with that name in any domain
        """
        qualifier, _, short = name.rpartition(".")
        if qualifier:
            module = self._module_for_qualifier(qualifier, imports)
            if module is not None:
                key = self._declared(module, short)
                if key is not None:
                    return key
                target_domain = self._domain_of_module(module)
                if target_domain is not None:
                    candidate = entity_key(target_domain, short)
                    if candidate in self.entities:
                        return candidate
            return None

        if module_name:
            key = self._declared(module_name, short)
            if key is not None:
                return key

        candidate = entity_key(domain, short)
        if candidate in self.entities:
            return candidate

        for imp in imports:
            if short in imp.exposing or ".." in imp.exposing:
                key = self._declared(imp.module, short)
                if key is not None:
                    return key
                target_domain = self._domain_of_module(imp.module)
                if target_domain is not None:
                    candidate = entity_key(target_domain, short)
                    if candidate in self.entities:
                        return candidate

        keys = self.name_map.get(short, [])
        if len(keys) == 1:
            return keys[0]
        return None

    def resolve_alias(
        self, name: str, domain: Domain, imports: list[ImportDecl]
    ) -> TypeExpr | None:
        """Resolve a plain alias name (``type alias Email = String``)."""
        qualifier, _, short = name.rpartition(".")
        if qualifier:
            module = self._module_for_qualifier(qualifier, imports)
            target_domain = self._domain_of_module(module) if module else None
            if target_domain is None:
                return None
            return self.aliases.get(target_domain.value, {}).get(short)
        local = self.aliases.get(domain.value, {})
        if short in local:
            return local[short]
        for imp in imports:
            if short in imp.exposing or ".." in imp.exposing:
                target_domain = self._domain_of_module(imp.module)
                if target_domain is not None and short in self.aliases.get(
                    target_domain.value, {}
                ):
                    return self.aliases[target_domain.value][short]
        return None

    def _declared(self, module: str, short: str) -> str | None:
        keys = self.declared_map.get(f"{module}.{short}", [])
        return keys[0] if keys else None

    def _module_for_qualifier(self, qualifier: str, imports: list[ImportDecl]) -> str | None:
        for imp in imports:
            if imp.alias == qualifier or imp.module == qualifier:
                return imp.module
        if qualifier in self.module_map:
            return qualifier
        return None

    def _domain_of_module(self, module: str) -> Domain | None:
        if module in self.module_map:
            return self.module_map[module]
        return Domain.from_directory(module.split(".", 1)[0])


class SourceAdapter(ABC):
    """Abstract base class for model source readers.

    Implements a two-phase strategy:
    - Phase 1 (Definition Scanning): Scan all files to build a symbol table
    - Phase 2 (Normalization): Use the symbol table to normalize every entity
    """

    @property
    @abstractmethod
    def source_extension(self) -> str:
        """File extension of model sources (e.g. ``.elm``)."""
        ...

    @abstractmethod
    def analyze(self, source_path: Path) -> CompiledSchema:
        """Read a source tree and return normalized (not yet resolved) IR.

        Args:
            source_path: Root directory holding one directory per domain

        Returns:
            CompiledSchema with entities and diagnostics but no edges
        """
        ...

    @abstractmethod
    def build_symbol_table(self, source_path: Path) -> SymbolTable:
        """Phase 1: Extract every declaration and register its name."""
        ...

    @abstractmethod
    def normalize(self, symbol_table: SymbolTable) -> CompiledSchema:
        """Phase 2: Normalize all registered entities."""
        ...
