"""Unit tests for emitter orchestration and artifact writing."""

from __future__ import annotations

from pathlib import Path

from schemac.core.models import CompiledSchema, DiagnosticCode, Severity
from schemac.emitters import (
    ArtifactWriter,
    DdlEmitter,
    EmitResult,
    SchemaEmitter,
    backend_names,
    get_default_emitters,
    run_emitters,
)


class ExplodingEmitter(SchemaEmitter):
    """Backend that always fails."""

    @property
    def name(self) -> str:
        return "exploding"

    @property
    def description(self) -> str:
        return "Always raises"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        raise RuntimeError("template missing")


class TestRegistry:
    """Tests for the built-in backend list and run_emitters."""

    def test_backend_names(self) -> None:
        assert backend_names() == ["ddl", "introspection", "runtime", "typed_module", "union_codec"]

    def test_default_emitters_share_config(self, config) -> None:
        emitters = get_default_emitters(config)
        assert all(emitter.config is config for emitter in emitters)

    def test_failure_is_isolated(self, config) -> None:
        outcome = run_emitters(CompiledSchema(), [ExplodingEmitter(config), DdlEmitter(config)])
        assert list(outcome.artifacts) == ["ddl"]
        (diag,) = outcome.diagnostics
        assert diag.code == DiagnosticCode.EMITTER_FAILURE
        assert diag.severity == Severity.ERROR
        assert "exploding: template missing" in diag.message
        assert not outcome.success

    def test_success(self, config) -> None:
        outcome = run_emitters(CompiledSchema(), get_default_emitters(config))
        assert outcome.success
        assert len(outcome.artifacts) == 5


class TestArtifactWriter:
    """Tests for ArtifactWriter."""

    def test_writes_files(self, tmp_path: Path) -> None:
        result = ArtifactWriter(tmp_path).write({"ddl": {"sql/schema.sql": "CREATE TABLE t ();\n"}})
        assert result.success
        assert result.files_written == 1
        assert (tmp_path / "sql" / "schema.sql").read_text(encoding="utf-8") == "CREATE TABLE t ();\n"

    def test_unchanged_files_skipped(self, tmp_path: Path) -> None:
        artifacts = {"ddl": {"sql/schema.sql": "x\n"}}
        ArtifactWriter(tmp_path).write(artifacts)
        second = ArtifactWriter(tmp_path).write(artifacts)
        assert second.files_written == 0
        assert second.unchanged == [tmp_path / "sql" / "schema.sql"]

    def test_io_error_aborts_only_that_backend(self, tmp_path: Path) -> None:
        (tmp_path / "blocked").write_text("not a directory", encoding="utf-8")
        result = ArtifactWriter(tmp_path).write(
            {
                "runtime": {"blocked/kv-store.js": "export {};\n"},
                "ddl": {"sql/schema.sql": "x\n"},
            }
        )
        assert result.failed_backends == ["runtime"]
        assert (tmp_path / "sql" / "schema.sql").is_file()
        (diag,) = result.diagnostics
        assert diag.code == DiagnosticCode.IO_ERROR
        assert diag.message.startswith("runtime:")
        assert not result.success

    def test_undecodable_existing_file_rewritten(self, tmp_path: Path) -> None:
        target = tmp_path / "sql" / "schema.sql"
        target.parent.mkdir(parents=True)
        target.write_bytes(b"\xff\xfe not utf-8")
        result = ArtifactWriter(tmp_path).write(
            {
                "ddl": {"sql/schema.sql": "CREATE TABLE t ();\n"},
                "runtime": {"server/kv-store.js": "export {};\n"},
            }
        )
        assert result.success
        assert result.written == [target, tmp_path / "server" / "kv-store.js"]
        assert target.read_text(encoding="utf-8") == "CREATE TABLE t ();\n"

    def test_shared_file_from_two_backends(self, tmp_path: Path) -> None:
        shared = {"ts/codec.ts": "export {};\n"}
        result = ArtifactWriter(tmp_path).write({"typed_module": shared, "union_codec": shared})
        assert result.written == [tmp_path / "ts" / "codec.ts"]
        assert result.unchanged == [tmp_path / "ts" / "codec.ts"]
