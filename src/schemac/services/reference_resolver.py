"""Cross-model reference resolver.

Builds the reference graph over all normalized entities and confirms foreign
keys. Two resolution paths exist:

1. Explicit references: ``ForeignKey`` wrappers, fields typed with another
   entity, and imports of persisted-record modules from dependent domains.
2. Inferred foreign keys: a persisted-record field named ``<prefix>_id`` with
   no explicit reference is matched against known table names in priority
   order (``<prefix>s``, then ``<prefix>``, then a table ending in
   ``_<prefix>s`` or ``_<prefix>``). A miss is reported, never guessed.

Edges are keyed by entity key, so self references and cycles are plain data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from schemac.core.models import (
    CompiledSchema,
    Confidence,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    FieldIR,
    KindTag,
    PrimitiveName,
    ReferenceEdge,
    ReferenceOrigin,
    SemanticKind,
    UnresolvedReference,
    entity_key,
)

logger = logging.getLogger(__name__)

EdgeSink = Callable[[ReferenceEdge], None]


@dataclass
class FkCandidate:
    """Outcome of the table-name heuristic for one ``*_id`` field."""

    table: str | None
    tier: str | None = None
    candidates: list[str] = field(default_factory=list)
    shadowed: list[str] = field(default_factory=list)

    @property
    def ambiguous(self) -> bool:
        return len(self.candidates) > 1


def infer_foreign_key_table(field_name: str, known_tables: list[str]) -> FkCandidate:
    """Pick the referenced table for a ``<prefix>_id`` column.

    Priority (first tier with a match wins):
    a. ``<prefix>s`` exact match
    b. ``<prefix>`` exact match
    c. any table ending in ``_<prefix>s`` or ``_<prefix>`` (in ``known_tables`` order)

    Matches of lower tiers that lost to the winning tier are kept in ``shadowed``.
    """
    if not field_name.endswith("_id") or field_name == "id":
        return FkCandidate(table=None)
    prefix = field_name[: -len("_id")]
    if not prefix:
        return FkCandidate(table=None)

    plural = f"{prefix}s"
    suffixed = [
        t for t in known_tables if t.endswith(f"_{prefix}s") or t.endswith(f"_{prefix}")
    ]
    if plural in known_tables:
        shadowed = [prefix, *suffixed] if prefix in known_tables else suffixed
        return FkCandidate(table=plural, tier="plural", candidates=[plural], shadowed=shadowed)
    if prefix in known_tables:
        return FkCandidate(table=prefix, tier="exact", candidates=[prefix], shadowed=suffixed)
    if suffixed:
        return FkCandidate(table=suffixed[0], tier="suffix", candidates=suffixed)
    return FkCandidate(table=None)


@dataclass
class ResolveResult:
    """Resolved entities plus the reference graph."""

    entities: dict[str, EntityIR]
    edges: list[ReferenceEdge] = field(default_factory=list)
    unresolved: list[UnresolvedReference] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


class ReferenceResolver:
    """Resolve references between entities across all domains."""

    def resolve(self, schema: CompiledSchema) -> CompiledSchema:
        """Return a copy of ``schema`` with edges and confirmed foreign keys."""
        result = self.resolve_entities(schema.entities)
        return CompiledSchema(
            version=schema.version,
            entities=result.entities,
            edges=result.edges,
            unresolved=schema.unresolved + result.unresolved,
            diagnostics=schema.diagnostics + result.diagnostics,
        )

    def resolve_entities(self, entities: dict[str, EntityIR]) -> ResolveResult:
        result = ResolveResult(entities=dict(entities))
        seen: set[tuple[str, str | None, str]] = set()

        def add_edge(edge: ReferenceEdge) -> None:
            marker = (edge.from_entity, edge.from_field, edge.to_entity)
            if marker not in seen:
                seen.add(marker)
                result.edges.append(edge)

        for key, entity in entities.items():
            self._explicit_field_edges(key, entity, result, add_edge)
        for key, entity in entities.items():
            self._import_edges(key, entity, entities, add_edge)
        self._infer_foreign_keys(result, add_edge)
        return result

    def _explicit_field_edges(
        self,
        key: str,
        entity: EntityIR,
        result: ResolveResult,
        add_edge: EdgeSink,
    ) -> None:
        """ForeignKey wrappers and entity-typed fields/variant arguments."""
        updated_fields: list[FieldIR] = []
        changed = False
        for fld in entity.fields:
            fk = _foreign_key_kind(fld.kind)
            if fk is not None and fk.target_entity in result.entities:
                target = result.entities[fk.target_entity]
                to_field = target.id_field or "id"
                add_edge(
                    ReferenceEdge(
                        from_entity=key,
                        from_field=fld.canonical_name,
                        to_entity=fk.target_entity,
                        to_field=to_field,
                        confidence=Confidence.EXPLICIT,
                        origin=ReferenceOrigin.FOREIGN_KEY_WRAPPER,
                        resolution_note=f"ForeignKey {target.name}",
                    )
                )
                if fk.target_field != to_field:
                    fld = fld.model_copy(update={"kind": _with_fk_target(fld.kind, to_field)})
                    changed = True
            else:
                for target_key in fld.kind.referenced_entities():
                    add_edge(
                        ReferenceEdge(
                            from_entity=key,
                            from_field=fld.canonical_name,
                            to_entity=target_key,
                            confidence=Confidence.EXPLICIT,
                            origin=ReferenceOrigin.FIELD_TYPE,
                            resolution_note="field type",
                        )
                    )
            updated_fields.append(fld)

        for variant in entity.variants:
            for kind in variant.arg_kinds:
                for target_key in kind.referenced_entities():
                    add_edge(
                        ReferenceEdge(
                            from_entity=key,
                            from_field=None,
                            to_entity=target_key,
                            confidence=Confidence.EXPLICIT,
                            origin=ReferenceOrigin.FIELD_TYPE,
                            resolution_note=f"variant {variant.name}",
                        )
                    )

        if changed:
            result.entities[key] = entity.model_copy(update={"fields": updated_fields})

    def _import_edges(
        self,
        key: str,
        entity: EntityIR,
        entities: dict[str, EntityIR],
        add_edge: EdgeSink,
    ) -> None:
        """Imports of persisted-record modules from dependent domains."""
        if entity.domain == Domain.DB:
            return
        for imp in entity.imports:
            if Domain.from_directory(imp.prefix) != Domain.DB:
                continue
            names = [n for n in imp.exposing if n != ".."] or [imp.last_segment]
            for name in names:
                target_key = entity_key(Domain.DB, name)
                target = entities.get(target_key)
                if target is None or target.is_union:
                    continue
                add_edge(
                    ReferenceEdge(
                        from_entity=key,
                        from_field=None,
                        to_entity=target_key,
                        to_field=target.id_field,
                        confidence=Confidence.EXPLICIT,
                        origin=ReferenceOrigin.IMPORT,
                        resolution_note=f"import {imp.module}",
                    )
                )

    def _infer_foreign_keys(self, result: ResolveResult, add_edge: EdgeSink) -> None:
        tables = [
            e for e in result.entities.values()
            if e.domain == Domain.DB and not e.is_union and e.is_primary
        ]
        known_tables = [t.table_name for t in tables]
        by_table = {t.table_name: t for t in tables}
        explicit = {(edge.from_entity, edge.from_field) for edge in result.edges}

        for entity in tables:
            key = entity.key
            entity = result.entities[key]
            updated_fields: list[FieldIR] = []
            changed = False
            for fld in entity.fields:
                if not _inferable(entity, fld) or (key, fld.canonical_name) in explicit:
                    updated_fields.append(fld)
                    continue
                choice = infer_foreign_key_table(fld.canonical_name, known_tables)
                if choice.table is None:
                    reason = f"No table found for foreign key: {fld.canonical_name}"
                    logger.warning(f"{entity.table_name}: {reason}")
                    result.unresolved.append(
                        UnresolvedReference(entity=key, field=fld.canonical_name, reason=reason)
                    )
                    result.diagnostics.append(
                        Diagnostic.warning(
                            DiagnosticCode.UNRESOLVED_REFERENCE,
                            f"{reason}; field kept as scalar",
                            file=entity.source_file,
                            entity=entity.name,
                            field=fld.canonical_name,
                        )
                    )
                    updated_fields.append(fld)
                    continue

                target = by_table[choice.table]
                note = f"inferred from column name ({choice.tier} match)"
                if choice.shadowed:
                    note = f"{note}; also matched: {', '.join(choice.shadowed)}"
                    logger.debug(
                        f"{entity.table_name}.{fld.canonical_name}: picked {choice.table} "
                        f"({choice.tier} match) over {choice.shadowed}"
                    )
                if choice.ambiguous:
                    note = f"{note}; candidates: {', '.join(choice.candidates)}"
                    logger.warning(
                        f"{entity.table_name}.{fld.canonical_name}: ambiguous foreign key, "
                        f"picked {choice.table} from {choice.candidates}"
                    )
                    result.diagnostics.append(
                        Diagnostic.warning(
                            DiagnosticCode.AMBIGUOUS_REFERENCE,
                            f"Foreign key matches {len(choice.candidates)} tables "
                            f"({', '.join(choice.candidates)}); picked {choice.table}",
                            file=entity.source_file,
                            entity=entity.name,
                            field=fld.canonical_name,
                        )
                    )
                to_field = target.id_field or "id"
                add_edge(
                    ReferenceEdge(
                        from_entity=key,
                        from_field=fld.canonical_name,
                        to_entity=target.key,
                        to_field=to_field,
                        confidence=Confidence.INFERRED,
                        origin=ReferenceOrigin.NAME_CONVENTION,
                        resolution_note=note,
                    )
                )
                confirmed = _confirmed_fk(fld, target.key, to_field)
                updated_fields.append(fld.model_copy(update={"kind": confirmed}))
                changed = True
            if changed:
                result.entities[key] = entity.model_copy(update={"fields": updated_fields})


def _foreign_key_kind(kind: SemanticKind) -> SemanticKind | None:
    if kind.tag == KindTag.FOREIGN_KEY:
        return kind
    if kind.tag == KindTag.OPTIONAL and kind.inner is not None:
        return _foreign_key_kind(kind.inner)
    return None


def _with_fk_target(kind: SemanticKind, to_field: str) -> SemanticKind:
    if kind.tag == KindTag.OPTIONAL and kind.inner is not None:
        return SemanticKind.optional(_with_fk_target(kind.inner, to_field))
    return kind.model_copy(update={"target_field": to_field})


def _inferable(entity: EntityIR, fld: FieldIR) -> bool:
    if fld.canonical_name == entity.id_field or not fld.canonical_name.endswith("_id"):
        return False
    kind = fld.kind.inner if fld.kind.tag == KindTag.OPTIONAL else fld.kind
    return kind is not None and kind.tag == KindTag.PRIMITIVE


def _confirmed_fk(fld: FieldIR, target_key: str, to_field: str) -> SemanticKind:
    base = fld.kind.inner if fld.kind.tag == KindTag.OPTIONAL else fld.kind
    id_type = base.primitive if base and base.primitive else PrimitiveName.STRING
    fk = SemanticKind.foreign_key(target_key, to_field, id_type=id_type)
    if fld.kind.tag == KindTag.OPTIONAL:
        return SemanticKind.optional(fk)
    return fk
