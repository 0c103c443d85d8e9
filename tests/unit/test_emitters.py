"""Unit tests for the backend emitters, driven by the sample model tree."""

from __future__ import annotations

import json

import pytest

from schemac.core.models import CompiledSchema, DiagnosticCode, Severity
from schemac.emitters import (
    DdlEmitter,
    IntrospectionEmitter,
    RuntimeEmitter,
    TypedModuleEmitter,
    UnionCodecEmitter,
)
from schemac.emitters.ddl import SCHEMA_PATH
from schemac.emitters.introspection import INTROSPECTION_PATH
from schemac.emitters.runtime import (
    BROWSER_STORAGE_PATH,
    DB_QUERIES_PATH,
    KV_STORE_PATH,
    SSE_EVENTS_PATH,
    cache_targets,
    db_function_names,
)
from schemac.emitters.typed_module import TS_CODEC_PATH, ts_codec_module
from schemac.services.compiler_service import CompilerService

HELPER_RECORD_MODELS = {
    "Schema/Post.elm": (
        "module Schema.Post exposing (..)\n\n\n"
        "type alias Post =\n    { id : DatabaseId String\n    , title : String\n    }\n\n\n"
        "type alias Author =\n    { name : String }\n"
    ),
}


@pytest.fixture
def schema(models_root, config) -> CompiledSchema:
    return CompilerService(config).analyze(models_root)


class TestSampleSchema:
    """Sanity checks on the tree every emitter test uses."""

    def test_clean(self, schema) -> None:
        assert schema.diagnostics == []

    def test_entities(self, schema) -> None:
        assert list(schema.entities) == [
            "db:ItemComment",
            "db:ItemTag",
            "db:MicroblogItem",
            "db:ItemStatus",
            "db:Tag",
            "api:SubmitItemReq",
            "api:SubmitItemRes",
            "kv:UserSession",
            "sse:NewCommentEvent",
            "storage:ViewportState",
        ]


class TestDdlEmitter:
    """Tests for sql/schema.sql."""

    def test_table_columns(self, schema, config) -> None:
        sql = DdlEmitter(config).emit(schema).files[SCHEMA_PATH]
        assert "CREATE TABLE microblog_item (\n    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()," in sql
        assert "    host TEXT NOT NULL,\n" in sql
        assert "    body JSONB NOT NULL,\n" in sql
        assert "    link TEXT,\n" in sql
        assert "    tags JSONB NOT NULL DEFAULT '[]'::jsonb,\n" in sql
        assert "    view_count INTEGER NOT NULL DEFAULT 0,\n" in sql
        assert "    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),\n" in sql

    def test_enum_check(self, schema, config) -> None:
        sql = DdlEmitter(config).emit(schema).files[SCHEMA_PATH]
        assert "CHECK (status IN ('Draft', 'Published', 'Archived'))" in sql

    def test_foreign_keys(self, schema, config) -> None:
        sql = DdlEmitter(config).emit(schema).files[SCHEMA_PATH]
        assert "FOREIGN KEY (item_id) REFERENCES microblog_item(id)" in sql
        assert "FOREIGN KEY (tag_id) REFERENCES tag(id)" in sql

    def test_standard_columns_added(self, schema, config) -> None:
        ddl = DdlEmitter(config)
        table = ddl.create_table(schema, schema.entities["db:ItemTag"])
        assert "    updated_at TIMESTAMP WITH TIME ZONE" in table
        assert table.count("host TEXT NOT NULL") == 1
        assert "CREATE INDEX idx_item_tag_host ON item_tag(host);" in table

    def test_only_primary_records(self, schema, config) -> None:
        sql = DdlEmitter(config).emit(schema).files[SCHEMA_PATH]
        assert sql.count("CREATE TABLE") == 4
        assert "item_status" not in sql
        assert "user_session" not in sql

    def test_helper_record_reference(self, write_models, config) -> None:
        models = dict(HELPER_RECORD_MODELS)
        models["Schema/ItemRef.elm"] = (
            "module Schema.ItemRef exposing (..)\n\n"
            "import Schema.Post exposing (Author)\n\n\n"
            "type alias ItemRef =\n"
            "    { id : DatabaseId String\n    , authorId : ForeignKey Author String\n    }\n"
        )
        schema = CompilerService(config).analyze(write_models(models))
        result = DdlEmitter(config).emit(schema)
        sql = result.files[SCHEMA_PATH]
        assert "REFERENCES author" not in sql
        assert "CREATE TABLE author" not in sql
        (warning,) = result.diagnostics
        assert warning.severity == Severity.WARNING
        assert warning.entity == "db:ItemRef"
        assert warning.field == "author_id"
        assert "Author is a helper record with no table" in warning.message


class TestRuntimeEmitter:
    """Tests for the JavaScript runtime glue."""

    def test_files(self, schema, config) -> None:
        files = RuntimeEmitter(config).emit(schema).files
        assert set(files) == {DB_QUERIES_PATH, KV_STORE_PATH, BROWSER_STORAGE_PATH, SSE_EVENTS_PATH}

    def test_db_function_names(self) -> None:
        assert db_function_names("Tag") == [
            "insertTag",
            "createTag",
            "getTagsByHost",
            "findTagsByHost",
            "getTagById",
            "findTagById",
            "updateTag",
            "killTag",
            "deleteTag",
        ]

    def test_database_queries(self, schema, config) -> None:
        js = RuntimeEmitter(config).emit(schema).files[DB_QUERIES_PATH]
        assert "export default function createDbQueries(pool) {" in js
        for name in db_function_names("MicroblogItem"):
            assert f"async function {name}(" in js
        assert "WHERE host = $1 AND deleted_at IS NULL" in js
        assert "'DELETE FROM tag WHERE id = $1 AND host = $2 RETURNING *'" in js

    def test_kv_store(self, schema, config) -> None:
        js = RuntimeEmitter(config).emit(schema).files[KV_STORE_PATH]
        assert "async function setUserSession(usersession, key, host) {" in js
        assert "`${host}:usersession:${key}`" in js
        assert f"usersession.ttl || {config.default_kv_ttl}" in js

    def test_cache_primitives(self, schema, config) -> None:
        assert [e.name for e in cache_targets(schema)] == ["MicroblogItem"]
        js = RuntimeEmitter(config).emit(schema).files[KV_STORE_PATH]
        for verb in ("store", "load", "remove", "clear"):
            assert f"async function {verb}MicroblogItemCache(" in js
        assert "`${host}:cache:microblog_item:${id}`" in js

    def test_helper_records_not_cached(self, write_models, config) -> None:
        models = dict(HELPER_RECORD_MODELS)
        models["Kv/AuthorCache.elm"] = (
            "module Kv.AuthorCache exposing (..)\n\n"
            "import Schema.Post exposing (Author)\n\n\n"
            "type alias AuthorCache =\n    { key : String\n    , author : Author\n    }\n"
        )
        schema = CompilerService(config).analyze(write_models(models))
        assert cache_targets(schema) == []
        js = RuntimeEmitter(config).emit(schema).files[KV_STORE_PATH]
        assert "AuthorCache(" in js
        assert "storeAuthorCache" not in js
        assert ":cache:author:" not in js

    def test_browser_storage(self, schema, config) -> None:
        js = RuntimeEmitter(config).emit(schema).files[BROWSER_STORAGE_PATH]
        assert "class ViewportStateStorage {" in js
        assert "static storageKey = 'viewport_state';" in js
        assert "app.ports.viewportstateChanged.send(viewportstate);" in js
        assert "export { ViewportStateStorage };" in js

    def test_sse_events(self, schema, config) -> None:
        js = RuntimeEmitter(config).emit(schema).files[SSE_EVENTS_PATH]
        assert "    NewCommentEvent: 'new_comment_event'\n" in js
        assert "export function broadcastNewCommentEvent(sseManager, host, payload) {" in js
        assert "export function sendNewCommentEvent(connection, payload) {" in js

    def test_empty_schema(self, config) -> None:
        files = RuntimeEmitter(config).emit(CompiledSchema()).files
        assert "    return {};" in files[DB_QUERIES_PATH]
        assert "export const SSE_EVENT_NAMES = {\n};" in files[SSE_EVENTS_PATH]


class TestTypedModuleEmitter:
    """Tests for the Elm and TypeScript record modules."""

    def test_one_module_per_domain(self, schema, config) -> None:
        files = TypedModuleEmitter(config).emit(schema).files
        assert sorted(files) == [
            "elm/Generated/Api.elm",
            "elm/Generated/Db.elm",
            "elm/Generated/Kv.elm",
            "elm/Generated/Sse.elm",
            "elm/Generated/Storage.elm",
            "ts/api.ts",
            "ts/codec.ts",
            "ts/db.ts",
            "ts/kv.ts",
            "ts/sse.ts",
            "ts/storage.ts",
        ]

    def test_elm_record(self, schema, config) -> None:
        elm = TypedModuleEmitter(config).emit(schema).files["elm/Generated/Db.elm"]
        assert elm.startswith("module Generated.Db exposing\n")
        assert "import Generated.Unions exposing (..)" in elm
        assert "    , viewCount : Int\n" in elm
        assert '( "view_count", Json.Encode.int value.viewCount )' in elm
        assert '|> andMap (Json.Decode.field "view_count" Json.Decode.int)' in elm
        assert '|> andMap (optionalField "link" Json.Decode.string)' in elm
        assert "optionalField : String -> Json.Decode.Decoder a -> Json.Decode.Decoder (Maybe a)" in elm
        assert '( "status", itemStatusEncoder value.status )' in elm

    def test_elm_cross_domain_reference(self, schema, config) -> None:
        elm = TypedModuleEmitter(config).emit(schema).files["elm/Generated/Kv.elm"]
        assert "import Generated.Db\n" in elm
        assert "lastItem : Maybe Generated.Db.MicroblogItem" in elm
        assert '(optionalField "last_item" Generated.Db.microblogItemDecoder)' in elm

    def test_typescript_record(self, schema, config) -> None:
        ts = TypedModuleEmitter(config).emit(schema).files["ts/db.ts"]
        assert "export interface MicroblogItem {" in ts
        assert "    viewCount: number;\n" in ts
        assert "    link: string | null;\n" in ts
        assert "        view_count: value.viewCount,\n" in ts
        assert "        viewCount: asInt(obj.view_count),\n" in ts
        assert "        status: encodeItemStatus(value.status),\n" in ts
        assert "from './unions';" in ts
        assert "import { asArray, asInt, asObject, asString } from './codec';" in ts
        assert "export class DecodeError" not in ts

    def test_typescript_cross_domain_import(self, schema, config) -> None:
        ts = TypedModuleEmitter(config).emit(schema).files["ts/kv.ts"]
        assert (
            "import { MicroblogItem, decodeMicroblogItem, encodeMicroblogItem } from './db';"
        ) in ts

    def test_module_prefix_setting(self, schema) -> None:
        from schemac.core.config import SchemacConfig

        files = TypedModuleEmitter(SchemacConfig(_env_file=None, elm_module_prefix="Gen")).emit(
            schema
        ).files
        assert "elm/Gen/Db.elm" in files
        assert files["elm/Gen/Db.elm"].startswith("module Gen.Db exposing")

    def test_codec_module(self, schema, config) -> None:
        result = TypedModuleEmitter(config).emit(schema)
        codec = result.files[TS_CODEC_PATH]
        assert codec == ts_codec_module()
        assert "export class DecodeError extends Error {" in codec
        assert "export function asObject(value: unknown)" in codec
        for path in ("ts/api.ts", "ts/kv.ts", "ts/sse.ts", "ts/storage.ts"):
            assert "from './codec';" in result.files[path]

    def test_parameterized_union_reference(self, write_models, config) -> None:
        schema = CompilerService(config).analyze(
            write_models(
                {
                    "Schema/Wrap.elm": "type Wrap a\n    = Wrap a\n    | Empty\n",
                    "Sse/Ping.elm": "type alias Ping =\n    { w : Wrap Int\n    }\n",
                }
            )
        )
        result = TypedModuleEmitter(config).emit(schema)
        elm = result.files["elm/Generated/Sse.elm"]
        assert "    { w : Wrap Int\n" in elm
        assert "pingEncoder" not in elm
        assert "wrapEncoder" not in elm
        assert "wrapDecoder" not in elm
        ts = result.files["ts/sse.ts"]
        assert "    w: Wrap<number>;\n" in ts
        assert "import { Wrap } from './unions';" in ts
        assert "decodeWrap" not in ts
        assert "function decodePing" not in ts
        (warning,) = result.diagnostics
        assert warning.code == DiagnosticCode.AMBIGUOUS_UNION
        assert warning.entity == "sse:Ping"

    def test_missing_optional_key_decodes_to_nothing(self, write_models, config) -> None:
        schema = CompilerService(config).analyze(
            write_models({"Kv/Note.elm": "type alias Note =\n    { body : Maybe String\n    }\n"})
        )
        elm = TypedModuleEmitter(config).emit(schema).files["elm/Generated/Kv.elm"]
        assert (
            "noteDecoder =\n    Json.Decode.succeed Note\n"
            '        |> andMap (optionalField "body" Json.Decode.string)'
        ) in elm
        assert "                    Err _ ->\n                        Json.Decode.succeed Nothing" in elm
        assert elm.count("optionalField : ") == 1


class TestUnionCodecEmitter:
    """Tests for the tagged-envelope union modules."""

    def test_elm_codec(self, schema, config) -> None:
        elm = UnionCodecEmitter(config).emit(schema).files["elm/Generated/Unions.elm"]
        assert "type ItemStatus\n    = Draft\n    | Published\n    | Archived" in elm
        assert 'Json.Encode.object [ ( "tag", Json.Encode.string "Draft" ) ]' in elm
        assert '"Published" ->\n' in elm
        assert 'Json.Decode.fail ("Unknown ItemStatus variant: " ++ tag)' in elm

    def test_typescript_codec(self, schema, config) -> None:
        ts = UnionCodecEmitter(config).emit(schema).files["ts/unions.ts"]
        assert "import { DecodeError, asObject, asString } from './codec';" in ts
        assert "export class DecodeError" not in ts
        assert "export type ItemStatus =\n    | { tag: 'Draft' }" in ts
        assert "throw new DecodeError(`Unknown ItemStatus variant: ${tag}`);" in ts

    def test_parameterized_union_has_no_codec(self, write_models, config) -> None:
        schema = CompilerService(config).analyze(
            write_models({"Schema/Wrapped.elm": "type Wrapped a\n    = Wrapped a\n    | Empty\n"})
        )
        files = UnionCodecEmitter(config).emit(schema).files
        elm = files["elm/Generated/Unions.elm"]
        assert "type Wrapped a\n    = Wrapped a\n    | Empty" in elm
        assert "wrappedEncoder" not in elm
        assert "export type Wrapped<a> =" in files["ts/unions.ts"]
        assert "decodeWrapped" not in files["ts/unions.ts"]

    def test_multi_argument_variant(self, write_models, config) -> None:
        source = "type Status\n    = Active\n    | Pending String\n    | Pair Int String\n"
        schema = CompilerService(config).analyze(write_models({"Schema/Status.elm": source}))
        files = UnionCodecEmitter(config).emit(schema).files
        elm = files["elm/Generated/Unions.elm"]
        assert (
            '( "value", Json.Encode.list identity '
            "[ Json.Encode.int value0, Json.Encode.string value1 ] )"
        ) in elm
        assert '(Json.Decode.field "value" (Json.Decode.index 1 Json.Decode.string))' in elm
        ts = files["ts/unions.ts"]
        assert "| { tag: 'Pair'; value: [number, string] }" in ts
        assert "const items = asArray(obj.value);" in ts

    def test_union_name_collision(self, write_models, config) -> None:
        root = write_models(
            {
                "Schema/Status.elm": "type Status\n    = Active\n    | Closed\n",
                "Api/Status.elm": "type Status\n    = Accepted\n    | Failed String\n",
            }
        )
        result = CompilerService(config).compile(root)
        elm = result.files["elm/Generated/Unions.elm"]
        assert elm.count("type Status\n") == 1
        assert result.files["ts/unions.ts"].count("export type Status =") == 1
        collisions = [d for d in result.errors if d.code == DiagnosticCode.NAME_COLLISION]
        assert len(collisions) == 1
        assert collisions[0].entity in ("db:Status", "api:Status")
        assert not result.success


class TestIntrospectionEmitter:
    """Tests for server/schema.json."""

    @pytest.fixture
    def document(self, schema, config) -> dict:
        text = IntrospectionEmitter(config).emit(schema).files[INTROSPECTION_PATH]
        return json.loads(text)

    def test_tables(self, document) -> None:
        assert list(document["tables"]) == ["item_comment", "item_tag", "microblog_item", "tag"]
        item = document["tables"]["microblog_item"]
        assert item["primaryKey"] == "id"
        assert item["isMultiTenant"]
        assert item["isSoftDelete"]
        assert item["fields"]["status"]["enumValues"] == ["Draft", "Published", "Archived"]

    def test_foreign_keys_and_back_references(self, document) -> None:
        comment = document["tables"]["item_comment"]
        assert comment["foreignKeys"] == [
            {
                "column": "item_id",
                "references": {"table": "microblog_item", "column": "id"},
                "confidence": "inferred",
            }
        ]
        referenced_by = document["tables"]["microblog_item"]["referencedBy"]
        assert {"table": "item_comment", "column": "item_id"} in referenced_by
        assert {"table": "item_tag", "column": "item_id"} in referenced_by

    def test_join_table(self, document) -> None:
        assert document["tables"]["item_tag"]["isJoinTable"]
        assert document["manyToManyRelationships"] == [
            {"table1": "microblog_item", "table2": "tag", "joinTable": "item_tag"}
        ]

    def test_summary(self, document) -> None:
        assert document["summary"]["tableCount"] == 4
        assert document["summary"]["relationshipCount"] == 3
        assert document["summary"]["enumTypeCount"] == 1
        assert document["enumTypes"][0]["name"] == "ItemStatus"
