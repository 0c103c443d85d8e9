"""Unit tests for the Elm declaration extractor."""

from __future__ import annotations

from schemac.adapters.elm.extractor import ElmExtractor, is_primary_name, split_declarations
from schemac.core.models import DiagnosticCode, Domain, EntityKind, PrimitiveType, Severity

ITEM_SOURCE = """module Schema.MicroblogItem exposing (..)

import Framework.Schema exposing (..)
import Schema.Tag as T exposing (Tag)


type alias MicroblogItem =
    { id : DatabaseId String
    , title : String -- shown in the feed
    }


type ItemStatus
    = Draft
    | Published


type alias Title =
    String
"""


class TestSplitDeclarations:
    """Tests for top-level declaration grouping."""

    def test_groups_indented_lines(self) -> None:
        declarations = split_declarations(ITEM_SOURCE)
        heads = [d.text.split()[0] for d in declarations]
        assert heads == ["module", "import", "import", "type", "type", "type"]

    def test_line_numbers(self) -> None:
        declarations = split_declarations(ITEM_SOURCE)
        assert declarations[0].line == 1
        assert declarations[3].line == 7

    def test_primary_marker(self) -> None:
        source = "{-| @primary -}\ntype alias Feed =\n    { name : String }\n"
        declarations = split_declarations(source)
        assert len(declarations) == 1
        assert declarations[0].primary_marker


class TestPrimaryClassification:
    """Tests for the filename convention."""

    def test_matching_names(self) -> None:
        assert is_primary_name("MicroblogItem", "MicroblogItem")
        assert is_primary_name("MicroblogItem", "microblog_item")
        assert is_primary_name("MicroblogItem", "microblog-item")

    def test_helper_name(self) -> None:
        assert not is_primary_name("ItemStatus", "MicroblogItem")


class TestElmExtractor:
    """Tests for ElmExtractor.extract."""

    def test_entities_in_declaration_order(self) -> None:
        result = ElmExtractor().extract(ITEM_SOURCE, "Schema/MicroblogItem.elm", Domain.DB)
        assert [e.name for e in result.entities] == ["MicroblogItem", "ItemStatus"]
        assert result.module_name == "Schema.MicroblogItem"
        assert result.diagnostics == []

    def test_record_and_union(self) -> None:
        result = ElmExtractor().extract(ITEM_SOURCE, "Schema/MicroblogItem.elm", Domain.DB)
        record, union = result.entities
        assert record.kind == EntityKind.RECORD
        assert record.is_primary
        assert [f.name for f in record.raw_fields] == ["id", "title"]
        assert union.kind == EntityKind.UNION
        assert not union.is_primary
        assert [v.name for v in union.raw_variants] == ["Draft", "Published"]

    def test_plain_alias_is_not_an_entity(self) -> None:
        result = ElmExtractor().extract(ITEM_SOURCE, "Schema/MicroblogItem.elm", Domain.DB)
        assert result.aliases == {"Title": PrimitiveType(name="String")}

    def test_imports(self) -> None:
        result = ElmExtractor().extract(ITEM_SOURCE, "Schema/MicroblogItem.elm", Domain.DB)
        tag_import = result.imports[1]
        assert tag_import.module == "Schema.Tag"
        assert tag_import.alias == "T"
        assert tag_import.exposing == ["Tag"]
        assert result.entities[0].imports == result.imports

    def test_type_params(self) -> None:
        source = "type Wrapped a\n    = Wrapped a\n    | Empty\n"
        result = ElmExtractor().extract(source, "Schema/Wrapped.elm", Domain.DB)
        assert result.entities[0].type_params == ["a"]

    def test_module_name_defaults_to_path(self) -> None:
        source = "type alias Tag =\n    { name : String }\n"
        result = ElmExtractor().extract(source, "Schema/Tag.elm", Domain.DB)
        assert result.module_name == "Schema.Tag"

    def test_api_envelopes_are_qualified(self) -> None:
        source = (
            "module Api.SubmitItem exposing (..)\n\n"
            "type alias Request =\n    { title : String }\n\n"
            "type alias Response =\n    { ok : Bool }\n\n"
            "type alias ServerContext =\n    { host : String }\n"
        )
        result = ElmExtractor().extract(source, "Api/SubmitItem.elm", Domain.API)
        names = [(e.name, e.declared_name, e.is_primary) for e in result.entities]
        assert names == [
            ("SubmitItemReq", "Request", True),
            ("SubmitItemRes", "Response", True),
            ("SubmitItemData", "ServerContext", False),
        ]


class TestPartialFailure:
    """Malformed declarations are reported and skipped, never fatal."""

    def test_malformed_declaration_skipped(self) -> None:
        source = (
            "type alias First =\n    { a : Int }\n\n"
            "type alias Broken =\n    { name String }\n\n"
            "type alias Second =\n    { b : String }\n"
        )
        result = ElmExtractor().extract(source, "Kv/Mixed.elm", Domain.KV)
        assert [e.name for e in result.entities] == ["First", "Second"]
        assert len(result.diagnostics) == 1
        diag = result.diagnostics[0]
        assert diag.severity == Severity.ERROR
        assert diag.code == DiagnosticCode.PARSE_ERROR
        assert diag.entity == "Broken"
        assert diag.file == "Kv/Mixed.elm"
        assert "line 4" in diag.message

    def test_malformed_field_kept_with_error(self) -> None:
        source = "type alias Handler =\n    { name : String\n    , onSave : Int -> Bool\n    }\n"
        result = ElmExtractor().extract(source, "Sse/Handler.elm", Domain.SSE)
        (entity,) = result.entities
        assert [f.name for f in entity.raw_fields] == ["name", "onSave"]
        assert entity.raw_fields[1].parse_error is not None
        assert result.diagnostics[0].field == "onSave"

    def test_union_without_variants(self) -> None:
        result = ElmExtractor().extract("type Nothing =\n", "Schema/Nothing.elm", Domain.DB)
        assert result.entities == []
        assert result.diagnostics[0].code == DiagnosticCode.PARSE_ERROR
