"""Schema introspection emitter (``server/schema.json``).

Describes the persisted tables for runtime consumers (admin tooling, query
builders): columns, keys, relationships, join tables and enum types. The
document carries no generation timestamp so regeneration is byte-identical.
"""

from __future__ import annotations

import json
from typing import Any

from schemac.core.models import CompiledSchema, Domain, EntityIR, FieldRole, KindTag
from schemac.emitters.base import EmitResult, SchemaEmitter
from schemac.emitters.ddl import enum_values, foreign_key_edges

INTROSPECTION_PATH = "server/schema.json"


class IntrospectionEmitter(SchemaEmitter):
    """JSON description of every persisted table."""

    @property
    def name(self) -> str:
        return "introspection"

    @property
    def description(self) -> str:
        return "Schema introspection document (server/schema.json)"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        document = self.build(schema)
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
        return EmitResult(files={INTROSPECTION_PATH: text})

    def build(self, schema: CompiledSchema) -> dict[str, Any]:
        cfg = self.config
        tables: dict[str, dict[str, Any]] = {}
        relationships: list[dict[str, Any]] = []

        for entity in schema.records(Domain.DB, primary_only=True):
            info = self._table_info(schema, entity)
            for edge in foreign_key_edges(schema, entity):
                target = schema.entities[edge.to_entity]
                column = edge.to_field or "id"
                info["foreignKeys"].append(
                    {
                        "column": edge.from_field,
                        "references": {"table": target.table_name, "column": column},
                        "confidence": edge.confidence.value,
                    }
                )
                relationships.append(
                    {
                        "from": {"table": entity.table_name, "column": edge.from_field},
                        "to": {"table": target.table_name, "column": column},
                        "type": "many-to-one",
                    }
                )
            tables[entity.table_name] = info

        for rel in relationships:
            target_table = tables.get(rel["to"]["table"])
            if target_table is not None:
                target_table["referencedBy"].append(
                    {"table": rel["from"]["table"], "column": rel["from"]["column"]}
                )

        # Join table: no primary key, two or more FKs, nothing but FK and standard columns.
        standard = {
            cfg.tenant_column,
            cfg.created_at_column,
            cfg.updated_at_column,
            cfg.soft_delete_column,
        }
        many_to_many: list[dict[str, str]] = []
        for table_name, table in tables.items():
            fk_columns = {fk["column"] for fk in table["foreignKeys"]}
            table["isJoinTable"] = (
                table["primaryKey"] is None
                and len(table["foreignKeys"]) >= 2
                and all(c in fk_columns or c in standard for c in table["fields"])
            )
            if table["isJoinTable"] and len(table["foreignKeys"]) == 2:
                first, second = table["foreignKeys"]
                many_to_many.append(
                    {
                        "table1": first["references"]["table"],
                        "table2": second["references"]["table"],
                        "joinTable": table_name,
                    }
                )

        enum_types = [self._enum_type(u) for u in schema.unions() if u.domain == Domain.DB]
        return {
            "version": schema.version,
            "tables": tables,
            "relationships": relationships,
            "manyToManyRelationships": many_to_many,
            "enumTypes": enum_types,
            "summary": {
                "tableCount": len(tables),
                "relationshipCount": len(relationships),
                "joinTableCount": sum(1 for t in tables.values() if t["isJoinTable"]),
                "manyToManyCount": len(many_to_many),
                "enumTypeCount": len(enum_types),
                "enumLikeCount": sum(1 for e in enum_types if e["isEnumLike"]),
            },
        }

    def _table_info(self, schema: CompiledSchema, entity: EntityIR) -> dict[str, Any]:
        cfg = self.config
        tenant = entity.field_with_role(FieldRole.TENANT)
        soft_delete = entity.field_with_role(FieldRole.SOFT_DELETE)
        fields: dict[str, dict[str, Any]] = {}
        for fld in entity.fields:
            base = fld.kind.inner if fld.kind.tag == KindTag.OPTIONAL else fld.kind
            info: dict[str, Any] = {
                "displayName": fld.display_name,
                "kind": fld.kind.describe(),
                "sqlType": fld.sql_type,
                "nullable": fld.nullable,
                "isPrimaryKey": fld.canonical_name == entity.id_field,
                "isTimestamp": base is not None and base.tag == KindTag.TIMESTAMP,
                "isForeignKey": base is not None and base.tag == KindTag.FOREIGN_KEY,
                "isRichContent": base is not None and base.tag == KindTag.RICH_CONTENT,
            }
            if base is not None and base.tag == KindTag.UNION_REF and base.target_entity:
                target = schema.entities.get(base.target_entity)
                if target is not None and target.is_union:
                    info["isUnionType"] = True
                    info["unionTypeName"] = target.name
                    info["isEnumLike"] = target.is_enum_like
                    values = enum_values(schema, fld)
                    if values:
                        info["enumValues"] = values
            if fld.annotations:
                info["annotations"] = list(fld.annotations)
            fields[fld.canonical_name] = info

        return {
            "structName": entity.name,
            "tableName": entity.table_name,
            "sourceFile": entity.source_file,
            "fields": fields,
            "primaryKey": entity.id_field,
            "foreignKeys": [],
            "referencedBy": [],
            "isMultiTenant": tenant is not None,
            "isSoftDelete": soft_delete is not None,
            "multiTenantFieldName": tenant.canonical_name if tenant else cfg.tenant_column,
            "softDeleteFieldName": (
                soft_delete.canonical_name if soft_delete else cfg.soft_delete_column
            ),
        }

    @staticmethod
    def _enum_type(union: EntityIR) -> dict[str, Any]:
        return {
            "name": union.name,
            "filename": union.source_file,
            "isEnumLike": union.is_enum_like,
            "variants": [
                {"name": v.name, "args": [t.to_source() for t in v.arg_types]}
                for v in union.variants
            ],
            "enumValues": [v.name for v in union.variants] if union.is_enum_like else None,
        }
