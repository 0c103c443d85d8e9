"""Unit tests for kind resolution in the Elm normalizer."""

from __future__ import annotations

import pytest

from schemac.adapters.elm.adapter import ElmAdapter
from schemac.adapters.elm.normalizer import peel_api_annotations
from schemac.adapters.elm.reader import parse_type_expr
from schemac.core.models import (
    CompiledSchema,
    DiagnosticCode,
    FieldRole,
    KindTag,
    PrimitiveName,
    SemanticKind,
)

RECORD = """module Schema.{name} exposing (..)


type alias {name} =
    {{ {fields}
    }}
"""


def record_source(name: str, *fields: str) -> str:
    return RECORD.format(name=name, fields="\n    , ".join(fields))


@pytest.fixture
def analyze(write_models, config):
    def _analyze(files: dict[str, str]) -> CompiledSchema:
        return ElmAdapter(config).analyze(write_models(files))

    return _analyze


class TestKindResolution:
    """Tests for the ordered wrapper rules."""

    def test_primary_key(self, analyze) -> None:
        schema = analyze({"Schema/Item.elm": record_source("Item", "id : DatabaseId Int")})
        fld = schema.entities["db:Item"].fields[0]
        assert fld.kind == SemanticKind.primary_key(PrimitiveName.INT)
        assert fld.default_constraints == ["PRIMARY KEY", "DEFAULT gen_random_uuid()"]
        assert schema.entities["db:Item"].id_field == "id"

    def test_timestamps(self, analyze) -> None:
        schema = analyze(
            {
                "Schema/Item.elm": record_source(
                    "Item",
                    "createdAt : CreateTimestamp",
                    "updatedAt : UpdateTimestamp",
                    "publishedAt : Timestamp",
                    "deletedAt : SoftDelete",
                )
            }
        )
        created, updated, published, deleted = schema.entities["db:Item"].fields
        assert created.role == FieldRole.CREATED_AT
        assert created.sql_type == "TIMESTAMP WITH TIME ZONE"
        assert updated.role == FieldRole.UPDATED_AT
        assert updated.nullable
        assert updated.kind.describe() == "Optional(Timestamp)"
        assert published.kind == SemanticKind.timestamp()
        assert published.sql_type == "BIGINT"
        assert deleted.role == FieldRole.SOFT_DELETE
        assert deleted.nullable

    def test_nested_maybe_list(self, analyze) -> None:
        schema = analyze(
            {"Schema/Item.elm": record_source("Item", "scores : Maybe (List (List Int))")}
        )
        fld = schema.entities["db:Item"].fields[0]
        assert fld.kind.describe() == "Optional(List(List(Int)))"
        assert fld.nullable
        assert fld.sql_type == "JSONB"

    def test_tenant_and_rich_content(self, analyze) -> None:
        schema = analyze(
            {"Schema/Item.elm": record_source("Item", "host : MultiTenant", "body : RichContent")}
        )
        host, body = schema.entities["db:Item"].fields
        assert host.role == FieldRole.TENANT
        assert host.kind == SemanticKind.scalar(PrimitiveName.STRING)
        assert body.kind.tag == KindTag.RICH_CONTENT
        assert body.sql_type == "JSONB"

    def test_enum_like_union_stored_as_text(self, analyze) -> None:
        source = record_source("Item", "status : Status") + "\n\ntype Status\n    = On\n    | Off\n"
        schema = analyze({"Schema/Item.elm": source})
        fld = schema.entities["db:Item"].fields[0]
        assert fld.kind == SemanticKind.union_ref("db:Status")
        assert fld.sql_type == "TEXT"

    def test_payload_union_stored_as_json(self, analyze) -> None:
        source = record_source("Item", "state : State") + "\n\ntype State\n    = Idle\n    | Busy Int\n"
        schema = analyze({"Schema/Item.elm": source})
        assert schema.entities["db:Item"].fields[0].sql_type == "JSONB"

    def test_foreign_key(self, analyze) -> None:
        schema = analyze(
            {
                "Schema/Tag.elm": record_source("Tag", "id : DatabaseId String"),
                "Schema/ItemTag.elm": record_source("ItemTag", "tagId : ForeignKey Tag String"),
            }
        )
        fld = schema.entities["db:ItemTag"].fields[0]
        assert fld.kind.tag == KindTag.FOREIGN_KEY
        assert fld.kind.target_entity == "db:Tag"
        assert fld.kind.primitive == PrimitiveName.STRING

    def test_unresolved_foreign_key_kept_as_scalar(self, analyze) -> None:
        schema = analyze(
            {"Schema/ItemTag.elm": record_source("ItemTag", "tagId : ForeignKey Missing Int")}
        )
        fld = schema.entities["db:ItemTag"].fields[0]
        assert fld.kind == SemanticKind.scalar(PrimitiveName.INT)
        assert schema.unresolved[0].field == "tag_id"
        assert schema.diagnostics[0].code == DiagnosticCode.UNRESOLVED_REFERENCE

    def test_unknown_wrapper_falls_back(self, analyze) -> None:
        schema = analyze({"Schema/Item.elm": record_source("Item", "when : Posix")})
        fld = schema.entities["db:Item"].fields[0]
        assert fld.kind == SemanticKind.scalar(PrimitiveName.STRING)
        (diag,) = schema.diagnostics
        assert diag.code == DiagnosticCode.UNKNOWN_WRAPPER_FALLBACK
        assert diag.field == "when"
        assert "Posix" in diag.message

    def test_plain_alias_expanded(self, analyze) -> None:
        source = record_source("Item", "email : Email") + "\n\ntype alias Email =\n    String\n"
        schema = analyze({"Schema/Item.elm": source})
        fld = schema.entities["db:Item"].fields[0]
        assert fld.kind == SemanticKind.scalar(PrimitiveName.STRING)
        assert schema.diagnostics == []

    def test_canonical_names(self, analyze) -> None:
        schema = analyze({"Schema/Item.elm": record_source("Item", "viewCount : Int")})
        fld = schema.entities["db:Item"].fields[0]
        assert (fld.canonical_name, fld.display_name, fld.source_name) == (
            "view_count",
            "viewCount",
            "viewCount",
        )


class TestUnions:
    """Tests for union normalization."""

    def test_variant_kinds(self, analyze) -> None:
        source = "type Status\n    = Active\n    | Pending String\n    | Pair Int String\n"
        schema = analyze({"Schema/Status.elm": source})
        union = schema.entities["db:Status"]
        assert union.is_union
        assert not union.is_enum_like
        assert [len(v.arg_kinds) for v in union.variants] == [0, 1, 2]

    def test_type_params_warn(self, analyze) -> None:
        source = "type Wrapped a\n    = Wrapped a\n    | Empty\n"
        schema = analyze({"Schema/Wrapped.elm": source})
        codes = [d.code for d in schema.diagnostics]
        assert codes == [DiagnosticCode.AMBIGUOUS_UNION]


class TestApiAnnotations:
    """Tests for API validation wrappers."""

    def test_peel(self) -> None:
        expr, annotations = peel_api_annotations(
            parse_type_expr("Required (MinLength 3 (Trim String))")
        )
        assert expr.to_source() == "String"
        assert annotations == ["required", "min_length=3", "trim"]

    def test_annotations_recorded(self, analyze) -> None:
        source = (
            "module Api.Login exposing (..)\n\n"
            "type alias Request =\n    { user : Required String\n    , host : Inject String\n    }\n"
        )
        schema = analyze({"Api/Login.elm": source})
        entity = schema.entities["api:LoginReq"]
        assert [f.annotations for f in entity.fields] == [["required"], ["inject"]]
        assert entity.fields[0].kind == SemanticKind.scalar(PrimitiveName.STRING)
