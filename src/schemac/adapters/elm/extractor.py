"""Struct/union extractor for Elm model files.

Walks the top-level declarations of one source file and produces one
:class:`~schemac.core.models.RawEntity` per record alias or union type, plus
the file's plain aliases and imports. A malformed declaration becomes a
``parse_error`` diagnostic and never hides its siblings.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from schemac.adapters.elm.reader import (
    PRIMARY_MARKER,
    ParseError,
    parse_record_body,
    parse_type_expr,
    parse_variant,
    split_top_level,
    strip_comments,
)
from schemac.core.models import (
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityKind,
    ImportDecl,
    PrimitiveType,
    RawEntity,
    RawField,
    RawVariant,
    TypeExpr,
)
from schemac.core.naming import camel_to_snake, file_stem_to_snake

logger = logging.getLogger(__name__)

_MODULE = re.compile(r"^(?:port\s+|effect\s+)?module\s+([A-Z][\w.]*)", re.DOTALL)
_IMPORT = re.compile(
    r"^import\s+(?P<module>[A-Z][\w.]*)"
    r"(?:\s+as\s+(?P<alias>[A-Z]\w*))?"
    r"(?:\s+exposing\s*\((?P<exposing>.*)\))?\s*$",
    re.DOTALL,
)
_ALIAS = re.compile(
    r"^type\s+alias\s+(?P<name>[A-Z]\w*)(?P<params>(?:\s+[a-z]\w*)*)\s*=\s*(?P<body>.*)$",
    re.DOTALL,
)
_UNION = re.compile(
    r"^type\s+(?P<name>[A-Z]\w*)(?P<params>(?:\s+[a-z]\w*)*)\s*=\s*(?P<body>.*)$",
    re.DOTALL,
)
_TYPE_START = re.compile(r"type\s")
_IMPORT_START = re.compile(r"import\s")

# API envelope names qualified with their endpoint (module) name.
API_ENVELOPES = {
    "Request": "Req",
    "Response": "Res",
    "ServerContext": "Data",
}
API_PRIMARY = {"Request", "Response"}


@dataclass
class Declaration:
    """One top-level block of source text."""

    text: str
    line: int
    primary_marker: bool = False


@dataclass
class ExtractionResult:
    """Everything extracted from one source file."""

    file: str
    module_name: str
    entities: list[RawEntity] = field(default_factory=list)
    aliases: dict[str, TypeExpr] = field(default_factory=dict)
    imports: list[ImportDecl] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def split_declarations(source: str) -> list[Declaration]:
    """Group comment-free source lines into top-level declarations.

    A declaration starts at every non-blank line that begins in column 0 and
    runs until the next such line.
    """
    declarations: list[Declaration] = []
    current: list[str] = []
    start = 0
    marker = False
    pending_marker = False

    def flush() -> None:
        text = "\n".join(current).strip()
        if text:
            declarations.append(Declaration(text=text, line=start, primary_marker=marker))

    for number, line in enumerate(strip_comments(source).splitlines(), start=1):
        if line.startswith(PRIMARY_MARKER):
            pending_marker = True
            line = line[len(PRIMARY_MARKER):]
            if not line.strip():
                continue
        if line[:1] and not line[:1].isspace():
            flush()
            current = [line]
            start = number
            marker = pending_marker
            pending_marker = False
        else:
            current.append(line)
    flush()
    return declarations


class ElmExtractor:
    """Extract raw entities from the text of one Elm module."""

    def extract(self, source: str, file_path: str, domain: Domain) -> ExtractionResult:
        """Extract all declarations of one file.

        Args:
            source: File contents.
            file_path: Path relative to the source root (used in diagnostics).
            domain: Domain the file belongs to.

        Returns:
            ExtractionResult with entities in declaration order.
        """
        stem = PurePosixPath(file_path).stem
        try:
            declarations = split_declarations(source)
        except ParseError as e:
            return ExtractionResult(
                file=file_path,
                module_name=f"{domain.directory}.{stem}",
                diagnostics=[
                    Diagnostic.error(DiagnosticCode.PARSE_ERROR, e.reason, file=file_path)
                ],
            )

        result = ExtractionResult(file=file_path, module_name=f"{domain.directory}.{stem}")
        for decl in declarations:
            module = _MODULE.match(decl.text)
            if module:
                result.module_name = module.group(1)
                continue
            if _IMPORT_START.match(decl.text):
                imported = _parse_import(decl.text)
                if imported is None:
                    result.diagnostics.append(
                        Diagnostic.warning(
                            DiagnosticCode.PARSE_ERROR,
                            f"line {decl.line}: unreadable import",
                            file=file_path,
                        )
                    )
                else:
                    result.imports.append(imported)

        for decl in declarations:
            if not _TYPE_START.match(decl.text):
                continue
            try:
                self._extract_declaration(decl, result, stem, domain)
            except ParseError as e:
                name = e.declaration or _declaration_name(decl.text)
                logger.warning(f"Skipping declaration {name} in {file_path}: {e.reason}")
                result.diagnostics.append(
                    Diagnostic.error(
                        DiagnosticCode.PARSE_ERROR,
                        f"line {decl.line}: {e.reason}",
                        file=file_path,
                        entity=name,
                    )
                )
        return result

    def _extract_declaration(
        self,
        decl: Declaration,
        result: ExtractionResult,
        stem: str,
        domain: Domain,
    ) -> None:
        alias = _ALIAS.match(decl.text)
        if alias:
            name = alias.group("name")
            params = alias.group("params").split()
            body = alias.group("body").strip()
            if body.startswith("{"):
                result.entities.append(
                    self._record(name, params, body, decl, result, stem, domain)
                )
            else:
                try:
                    result.aliases[name] = parse_type_expr(body)
                except ParseError as e:
                    e.declaration = name
                    raise
            return

        if decl.text.startswith("type alias"):
            raise ParseError("malformed type alias", declaration=_declaration_name(decl.text))

        union = _UNION.match(decl.text)
        if union is None:
            raise ParseError("malformed type declaration", declaration=_declaration_name(decl.text))
        name = union.group("name")
        try:
            variants = [
                RawVariant(name=variant_name, arg_types=args)
                for variant_name, args in (
                    parse_variant(text)
                    for text in split_top_level(union.group("body"), "|")
                )
            ]
        except ParseError as e:
            e.declaration = name
            raise
        if not variants:
            raise ParseError("union type without variants", declaration=name)
        entity_name, is_primary = self._classify(name, stem, domain, result.module_name)
        result.entities.append(
            RawEntity(
                name=entity_name,
                declared_name=name,
                domain=domain,
                source_file=result.file,
                module_name=result.module_name,
                kind=EntityKind.UNION,
                is_primary=is_primary or decl.primary_marker,
                type_params=union.group("params").split(),
                raw_variants=variants,
                imports=result.imports,
            )
        )

    def _record(
        self,
        name: str,
        params: list[str],
        body: str,
        decl: Declaration,
        result: ExtractionResult,
        stem: str,
        domain: Domain,
    ) -> RawEntity:
        try:
            pairs = parse_record_body(body)
        except ParseError as e:
            e.declaration = name
            raise

        entity_name, is_primary = self._classify(name, stem, domain, result.module_name)
        fields: list[RawField] = []
        for field_name, type_text in pairs:
            try:
                expr = parse_type_expr(type_text)
                fields.append(RawField(name=field_name, type_expr=expr, raw_text=type_text))
            except ParseError as e:
                result.diagnostics.append(
                    Diagnostic.error(
                        DiagnosticCode.PARSE_ERROR,
                        f"line {decl.line}: {e.reason}",
                        file=result.file,
                        entity=entity_name,
                        field=field_name,
                    )
                )
                fields.append(
                    RawField(
                        name=field_name,
                        type_expr=PrimitiveType(name=type_text or "?"),
                        raw_text=type_text,
                        parse_error=e.reason,
                    )
                )
        return RawEntity(
            name=entity_name,
            declared_name=name,
            domain=domain,
            source_file=result.file,
            module_name=result.module_name,
            kind=EntityKind.RECORD,
            is_primary=is_primary or decl.primary_marker,
            type_params=params,
            raw_fields=fields,
            imports=result.imports,
        )

    def _classify(
        self, name: str, stem: str, domain: Domain, module_name: str
    ) -> tuple[str, bool]:
        """Return the entity name and whether it is the file's primary entity."""
        if domain == Domain.API and name in API_ENVELOPES:
            endpoint = module_name.rsplit(".", 1)[-1]
            return f"{endpoint}{API_ENVELOPES[name]}", name in API_PRIMARY
        return name, is_primary_name(name, stem)


def is_primary_name(declaration_name: str, file_stem: str) -> bool:
    """Filename convention: ``MicroblogItem`` is primary in ``MicroblogItem.elm``
    and ``microblog_item.elm``."""
    return camel_to_snake(declaration_name).lower() == file_stem_to_snake(file_stem)


def _parse_import(text: str) -> ImportDecl | None:
    match = _IMPORT.match(" ".join(text.split()))
    if match is None:
        return None
    exposing_text = match.group("exposing")
    exposing: list[str] = []
    if exposing_text is not None:
        for item in exposing_text.split(","):
            item = item.strip()
            if item:
                exposing.append(item.split("(", 1)[0].strip())
    return ImportDecl(module=match.group("module"), alias=match.group("alias"), exposing=exposing)


def _declaration_name(text: str) -> str:
    words = text.split()
    for word in words[1:4]:
        if word[:1].isupper():
            return word.rstrip("=")
    return words[0] if words else "?"
