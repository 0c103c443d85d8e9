"""Relational DDL emitter (``sql/schema.sql``)."""

from __future__ import annotations

from schemac.core.models import (
    CompiledSchema,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    FieldIR,
    FieldRole,
    KindTag,
    ReferenceEdge,
    ReferenceOrigin,
)
from schemac.emitters.base import EmitResult, SchemaEmitter

SCHEMA_PATH = "sql/schema.sql"

HEADER = """-- schemac Generated Schema
-- Generated from database models
--
-- DO NOT EDIT THIS FILE MANUALLY
-- Changes will be overwritten during next generation
--
-- Use this file for fresh database initialization:
--   psql $DATABASE_URL < schema.sql

"""

FK_ORIGINS = (ReferenceOrigin.FOREIGN_KEY_WRAPPER, ReferenceOrigin.NAME_CONVENTION)


def enum_values(schema: CompiledSchema, fld: FieldIR) -> list[str] | None:
    """Variant names when ``fld`` stores an enum-like union, else None."""
    kind = fld.kind.inner if fld.kind.tag == KindTag.OPTIONAL else fld.kind
    if kind is None or kind.tag != KindTag.UNION_REF or kind.target_entity is None:
        return None
    target = schema.entities.get(kind.target_entity)
    if target is None or not target.is_enum_like:
        return None
    return [variant.name for variant in target.variants]


def _fk_edges(schema: CompiledSchema, entity: EntityIR) -> dict[str, ReferenceEdge]:
    by_field: dict[str, ReferenceEdge] = {}
    for edge in schema.edges_from(entity.key):
        if edge.origin in FK_ORIGINS and edge.from_field and edge.from_field not in by_field:
            target = schema.entities.get(edge.to_entity)
            if target is not None and target.domain == Domain.DB:
                by_field[edge.from_field] = edge
    return by_field


def foreign_key_edges(schema: CompiledSchema, entity: EntityIR) -> list[ReferenceEdge]:
    """FK edges leaving ``entity`` in field order, one per column.

    Only edges to primary records count: helper records have no table.
    """
    by_field = _fk_edges(schema, entity)
    return [
        by_field[f.canonical_name]
        for f in entity.fields
        if f.canonical_name in by_field
        and schema.entities[by_field[f.canonical_name].to_entity].is_primary
    ]


def helper_reference_diagnostics(schema: CompiledSchema, entity: EntityIR) -> list[Diagnostic]:
    """Warnings for FK columns whose target is a helper record without a table."""
    by_field = _fk_edges(schema, entity)
    diagnostics = []
    for fld in entity.fields:
        edge = by_field.get(fld.canonical_name)
        if edge is None:
            continue
        target = schema.entities[edge.to_entity]
        if not target.is_primary:
            diagnostics.append(
                Diagnostic.warning(
                    DiagnosticCode.UNRESOLVED_REFERENCE,
                    f"{target.name} is a helper record with no table; "
                    f"no FOREIGN KEY constraint is generated",
                    file=entity.source_file,
                    entity=entity.key,
                    field=fld.canonical_name,
                )
            )
    return diagnostics


class DdlEmitter(SchemaEmitter):
    """CREATE TABLE statements for every primary persisted record."""

    @property
    def name(self) -> str:
        return "ddl"

    @property
    def description(self) -> str:
        return "PostgreSQL schema (sql/schema.sql)"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        entities = schema.records(Domain.DB, primary_only=True)
        tables = [self.create_table(schema, entity) for entity in entities]
        diagnostics = [
            diag for entity in entities for diag in helper_reference_diagnostics(schema, entity)
        ]
        return EmitResult(
            files={SCHEMA_PATH: HEADER + "\n\n".join(tables) + "\n"},
            diagnostics=diagnostics,
        )

    def tenant_column(self, entity: EntityIR) -> str:
        tenant = entity.field_with_role(FieldRole.TENANT)
        return tenant.canonical_name if tenant else self.config.tenant_column

    def create_table(self, schema: CompiledSchema, entity: EntityIR) -> str:
        """Render one table with its constraints and tenant index."""
        cfg = self.config
        names = {f.canonical_name for f in entity.fields}
        roles = {f.role for f in entity.fields}

        definitions = [
            "    " + " ".join([f.canonical_name, f.sql_type, *f.default_constraints])
            for f in entity.fields
        ]
        if FieldRole.TENANT not in roles and cfg.tenant_column not in names:
            definitions.append(f"    {cfg.tenant_column} TEXT NOT NULL")
        if FieldRole.CREATED_AT not in roles and cfg.created_at_column not in names:
            definitions.append(
                f"    {cfg.created_at_column} TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()"
            )
        if FieldRole.UPDATED_AT not in roles and cfg.updated_at_column not in names:
            definitions.append(f"    {cfg.updated_at_column} TIMESTAMP WITH TIME ZONE")
        if FieldRole.SOFT_DELETE not in roles and cfg.soft_delete_column not in names:
            definitions.append(f"    {cfg.soft_delete_column} TIMESTAMP WITH TIME ZONE")

        for edge in foreign_key_edges(schema, entity):
            target = schema.entities[edge.to_entity]
            definitions.append(
                f"    FOREIGN KEY ({edge.from_field}) REFERENCES "
                f"{target.table_name}({edge.to_field or 'id'})"
            )

        for fld in entity.fields:
            values = enum_values(schema, fld)
            if values:
                listed = ", ".join(f"'{v}'" for v in values)
                definitions.append(f"    CHECK ({fld.canonical_name} IN ({listed}))")

        table = entity.table_name
        tenant = self.tenant_column(entity)
        body = ",\n".join(definitions)
        return (
            f"-- Generated from {entity.source_file.rsplit('/', 1)[-1]}\n"
            f"CREATE TABLE {table} (\n{body}\n);\n\n"
            f"-- Index for tenant isolation\n"
            f"CREATE INDEX idx_{table}_{tenant} ON {table}({tenant});"
        )
