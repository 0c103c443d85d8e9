"""Integration tests for the full compile pipeline.

Runs adapter, resolver, validator, emitters and writer together over real
model trees on disk.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from schemac.client import SchemaCompiler
from schemac.core.models import (
    Confidence,
    DiagnosticCode,
    KindTag,
    ReferenceOrigin,
    Severity,
)
from schemac.core.serializer import deserialize
from schemac.services.compiler_service import CompilerService


class TestSampleTree:
    """Compile the sample microblog models end to end."""

    def test_compile_writes_every_backend(self, models_root, config, tmp_path: Path) -> None:
        result = CompilerService(config).compile(models_root, tmp_path)
        assert result.success
        assert result.passes(strict=True)
        for relative in (
            "sql/schema.sql",
            "server/schema.json",
            "server/database-queries.js",
            "server/kv-store.js",
            "server/sse-events.js",
            "web/browser-storage.js",
            "elm/Generated/Db.elm",
            "elm/Generated/Unions.elm",
            "ts/db.ts",
            "ts/unions.ts",
        ):
            assert (tmp_path / relative).is_file(), relative

    def test_reference_graph(self, models_root, config) -> None:
        schema = CompilerService(config).analyze(models_root)
        edges = {(e.from_entity, e.from_field, e.to_entity): e for e in schema.edges}

        explicit = edges[("db:ItemTag", "item_id", "db:MicroblogItem")]
        assert explicit.origin == ReferenceOrigin.FOREIGN_KEY_WRAPPER

        inferred = edges[("db:ItemTag", "tag_id", "db:Tag")]
        assert inferred.confidence == Confidence.INFERRED
        assert "exact" in inferred.resolution_note

        suffix = edges[("db:ItemComment", "item_id", "db:MicroblogItem")]
        assert "suffix" in suffix.resolution_note

        assert edges[("kv:UserSession", None, "db:MicroblogItem")].origin == ReferenceOrigin.IMPORT
        assert ("kv:UserSession", "last_item", "db:MicroblogItem") in edges
        assert ("api:SubmitItemRes", "item", "db:MicroblogItem") in edges

    def test_confirmed_foreign_key_kind(self, models_root, config) -> None:
        schema = CompilerService(config).analyze(models_root)
        kind = schema.entities["db:ItemComment"].get_field("item_id").kind
        assert kind.tag == KindTag.FOREIGN_KEY
        assert kind.target_entity == "db:MicroblogItem"
        assert kind.target_field == "id"

    def test_select_backends(self, models_root, config) -> None:
        result = CompilerService(config).compile(models_root, backends=["ddl"])
        assert list(result.artifacts) == ["ddl"]
        assert result.write_result is None

    def test_unknown_backend(self, models_root, config) -> None:
        with pytest.raises(ValueError, match="Unknown backend"):
            CompilerService(config).compile(models_root, backends=["graphql"])


class TestPartialFailure:
    """One bad declaration never aborts the build."""

    def test_malformed_declaration_isolated(self, write_models, config, tmp_path: Path) -> None:
        root = write_models(
            {
                "Kv/Cache.elm": (
                    "module Kv.Cache exposing (..)\n\n\n"
                    "type alias Cache =\n    { key : String\n    , hits : Int\n    }\n\n\n"
                    "type alias Broken =\n    { value String }\n\n\n"
                    "type alias Entry =\n    { label : String }\n"
                )
            }
        )
        result = CompilerService(config).compile(root, tmp_path / "out")
        assert sorted(result.schema.entities) == ["kv:Cache", "kv:Entry"]
        parse_errors = [d for d in result.diagnostics if d.code == DiagnosticCode.PARSE_ERROR]
        assert len(parse_errors) == 1
        assert parse_errors[0].entity == "Broken"
        assert not result.success
        assert "setCache" in result.files["server/kv-store.js"]

    def test_unresolved_foreign_key_warns(self, write_models, config) -> None:
        root = write_models(
            {
                "Schema/Comment.elm": (
                    "type alias Comment =\n"
                    "    { id : DatabaseId String\n    , parentId : Maybe String\n    }\n"
                )
            }
        )
        result = CompilerService(config).compile(root)
        assert result.success
        assert not result.passes(strict=True)
        (warning,) = result.warnings
        assert warning.code == DiagnosticCode.UNRESOLVED_REFERENCE
        assert warning.field == "parent_id"
        assert "FOREIGN KEY" not in result.files["sql/schema.sql"]

    def test_missing_source_directory(self, config, tmp_path: Path) -> None:
        result = CompilerService(config).compile(tmp_path / "nope", tmp_path / "out")
        assert result.artifacts == {}
        assert result.errors[0].code == DiagnosticCode.IO_ERROR
        assert not (tmp_path / "out").exists()

    def test_duplicate_entity_name(self, write_models, config) -> None:
        root = write_models(
            {
                "Sse/A.elm": "type alias Ping =\n    { at : Int }\n",
                "Sse/B.elm": "type alias Ping =\n    { at : Int }\n",
            }
        )
        schema = CompilerService(config).analyze(root)
        assert list(schema.entities) == ["sse:Ping"]
        (diag,) = schema.diagnostics
        assert diag.code == DiagnosticCode.NAME_COLLISION
        assert diag.severity == Severity.ERROR
        assert diag.file == "Sse/B.elm"


class TestSchemaCompiler:
    """Tests for the public client facade."""

    def test_backends(self) -> None:
        assert "union_codec" in SchemaCompiler.backends()

    def test_export_ir(self, models_root, config) -> None:
        compiler = SchemaCompiler(config)
        schema = deserialize(compiler.export_ir(models_root))
        assert schema == compiler.analyze(models_root)
