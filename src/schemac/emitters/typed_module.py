"""Typed module emitter.

One Elm module and one TypeScript module per non-empty domain, each holding a
type declaration plus an encoder and a decoder for every record of that
domain (primary and helper). JSON keys are canonical snake_case names, target
language fields use the camelCase display names.

Records that store a union with type parameters, directly or through another
generated type, keep their type declaration but get no codec.

The kind renderers here are shared with the union codec emitter so both
backends agree on the wire shape of every semantic kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from schemac.core.config import SchemacConfig
from schemac.core.models import (
    CompiledSchema,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    KindTag,
    PrimitiveName,
    SemanticKind,
)
from schemac.core.naming import lower_first
from schemac.emitters.base import GENERATED_NOTICE, EmitResult, SchemaEmitter

UNIONS_MODULE = "Unions"
TS_UNIONS_MODULE = "unions"
TS_CODEC_MODULE = "codec"
TS_CODEC_PATH = f"ts/{TS_CODEC_MODULE}.ts"

_ELM_TYPES = {
    PrimitiveName.STRING: "String",
    PrimitiveName.INT: "Int",
    PrimitiveName.FLOAT: "Float",
    PrimitiveName.BOOL: "Bool",
}
_ELM_ENCODERS = {
    PrimitiveName.STRING: "Json.Encode.string",
    PrimitiveName.INT: "Json.Encode.int",
    PrimitiveName.FLOAT: "Json.Encode.float",
    PrimitiveName.BOOL: "Json.Encode.bool",
}
_ELM_DECODERS = {
    PrimitiveName.STRING: "Json.Decode.string",
    PrimitiveName.INT: "Json.Decode.int",
    PrimitiveName.FLOAT: "Json.Decode.float",
    PrimitiveName.BOOL: "Json.Decode.bool",
}
_TS_TYPES = {
    PrimitiveName.STRING: "string",
    PrimitiveName.INT: "number",
    PrimitiveName.FLOAT: "number",
    PrimitiveName.BOOL: "boolean",
}
_TS_DECODERS = {
    PrimitiveName.STRING: "asString",
    PrimitiveName.INT: "asInt",
    PrimitiveName.FLOAT: "asNumber",
    PrimitiveName.BOOL: "asBool",
}

TS_PRELUDE = """export class DecodeError extends Error {
    constructor(message: string) {
        super(message);
        this.name = 'DecodeError';
    }
}

export function asString(value: unknown): string {
    if (typeof value !== 'string') {
        throw new DecodeError(`Expected string, got ${JSON.stringify(value)}`);
    }
    return value;
}

export function asInt(value: unknown): number {
    if (typeof value !== 'number' || !Number.isInteger(value)) {
        throw new DecodeError(`Expected integer, got ${JSON.stringify(value)}`);
    }
    return value;
}

export function asNumber(value: unknown): number {
    if (typeof value !== 'number') {
        throw new DecodeError(`Expected number, got ${JSON.stringify(value)}`);
    }
    return value;
}

export function asBool(value: unknown): boolean {
    if (typeof value !== 'boolean') {
        throw new DecodeError(`Expected boolean, got ${JSON.stringify(value)}`);
    }
    return value;
}

export function asArray(value: unknown): unknown[] {
    if (!Array.isArray(value)) {
        throw new DecodeError(`Expected array, got ${JSON.stringify(value)}`);
    }
    return value;
}

export function asObject(value: unknown): Record<string, unknown> {
    if (typeof value !== 'object' || value === null || Array.isArray(value)) {
        throw new DecodeError(`Expected object, got ${JSON.stringify(value)}`);
    }
    return value as Record<string, unknown>;
}"""


def ts_codec_module() -> str:
    """Decode helpers shared by every generated TypeScript module."""
    return f"// Generated JSON decode helpers.\n// {GENERATED_NOTICE}\n\n{TS_PRELUDE}\n"


def elm_module_name(config: SchemacConfig, module: str) -> str:
    return f"{config.elm_module_prefix}.{module}"


def elm_module_path(config: SchemacConfig, module: str) -> str:
    return "elm/" + elm_module_name(config, module).replace(".", "/") + ".elm"


def elm_paren(text: str) -> str:
    return f"({text})" if " " in text and not text.startswith("(") else text


def _base(kind: SemanticKind) -> PrimitiveName:
    return kind.primitive or PrimitiveName.STRING


def _stored_entities(kind: SemanticKind) -> list[str]:
    """Entities whose values are embedded in a value of ``kind``."""
    if kind.tag == KindTag.UNION_REF and kind.target_entity:
        return [kind.target_entity, *(k for arg in kind.args for k in _stored_entities(arg))]
    if kind.inner is not None:
        return _stored_entities(kind.inner)
    return []


def codecless_entities(schema: CompiledSchema) -> set[str]:
    """Keys of entities that get a type declaration but no JSON codec.

    Types with parameters have no codec, and neither does any entity that
    stores one of them through a field or a variant argument.
    """
    blocked = {e.key for e in schema.entities.values() if e.type_params}
    changed = True
    while changed:
        changed = False
        for entity in schema.entities.values():
            if entity.key in blocked:
                continue
            kinds = [f.kind for f in entity.fields]
            kinds += [k for variant in entity.variants for k in variant.arg_kinds]
            if any(key in blocked for kind in kinds for key in _stored_entities(kind)):
                blocked.add(entity.key)
                changed = True
    return blocked


def codecless_warning(entity: EntityIR) -> Diagnostic:
    return Diagnostic.warning(
        DiagnosticCode.AMBIGUOUS_UNION,
        f"{entity.name} stores a type with type parameters; no JSON codec is generated",
        file=entity.source_file,
        entity=entity.key,
    )


@dataclass
class ElmRenderer:
    """Render Elm types, encoders and decoders for semantic kinds.

    ``home`` is the domain whose module is being written, or None for the
    shared unions module. Cross-module references are qualified and recorded
    in ``imports``.
    """

    schema: CompiledSchema
    config: SchemacConfig
    home: Domain | None
    current: str | None = None
    imports: set[str] = field(default_factory=set)

    def _reference(self, key: str | None, suffix: str = "") -> str | None:
        target = self.schema.entities.get(key) if key else None
        if target is None:
            return None
        base = target.name if not suffix else lower_first(target.name) + suffix
        if target.is_union:
            if self.home is not None:
                self.imports.add(UNIONS_MODULE)
            return base
        if target.domain == self.home:
            return base
        module = elm_module_name(self.config, target.domain.module_name)
        self.imports.add(target.domain.module_name)
        return f"{module}.{base}"

    def type_of(self, kind: SemanticKind) -> str:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            return _ELM_TYPES[_base(kind)]
        if tag == KindTag.TIMESTAMP:
            return "Int"
        if tag == KindTag.RICH_CONTENT:
            return "Json.Encode.Value"
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return f"Maybe {elm_paren(self.type_of(kind.inner))}"
        if tag == KindTag.LIST and kind.inner is not None:
            return f"List {elm_paren(self.type_of(kind.inner))}"
        name = self._reference(kind.target_entity)
        if name is None:
            return "String"
        if not kind.args or not self.schema.entities[kind.target_entity].is_union:
            return name
        return " ".join([name, *(elm_paren(self.type_of(arg)) for arg in kind.args)])

    def encoder(self, kind: SemanticKind) -> str:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            return _ELM_ENCODERS[_base(kind)]
        if tag == KindTag.TIMESTAMP:
            return "Json.Encode.int"
        if tag == KindTag.RICH_CONTENT:
            return "identity"
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return f"(Maybe.map {self.encoder(kind.inner)} >> Maybe.withDefault Json.Encode.null)"
        if tag == KindTag.LIST and kind.inner is not None:
            return f"(Json.Encode.list {self.encoder(kind.inner)})"
        return self._reference(kind.target_entity, "Encoder") or "Json.Encode.string"

    def decoder(self, kind: SemanticKind) -> str:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            return _ELM_DECODERS[_base(kind)]
        if tag == KindTag.TIMESTAMP:
            return "Json.Decode.int"
        if tag == KindTag.RICH_CONTENT:
            return "Json.Decode.value"
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return f"(Json.Decode.nullable {self.decoder(kind.inner)})"
        if tag == KindTag.LIST and kind.inner is not None:
            return f"(Json.Decode.list {self.decoder(kind.inner)})"
        name = self._reference(kind.target_entity, "Decoder")
        if name is None:
            return "Json.Decode.string"
        if kind.target_entity == self.current:
            # Recursive types must not evaluate their decoder eagerly.
            return f"(Json.Decode.lazy (\\_ -> {name}))"
        return name

    def field_decoder(self, key: str, kind: SemanticKind) -> str:
        """Decoder for one record key; a missing optional key decodes to Nothing."""
        if kind.tag == KindTag.OPTIONAL and kind.inner is not None:
            return f'(optionalField "{key}" {self.decoder(kind.inner)})'
        return f'(Json.Decode.field "{key}" {self.decoder(kind)})'


@dataclass
class TsRenderer:
    """Render TypeScript types and encode/decode expressions for semantic kinds."""

    schema: CompiledSchema
    home: Domain | None
    imports: dict[str, set[str]] = field(default_factory=dict)
    helpers: set[str] = field(default_factory=set)

    def _reference(self, key: str | None, prefix: str = "") -> str | None:
        target = self.schema.entities.get(key) if key else None
        if target is None:
            return None
        name = f"{prefix}{target.name}"
        if target.is_union:
            if self.home is not None:
                self.imports.setdefault(TS_UNIONS_MODULE, set()).add(name)
        elif target.domain != self.home:
            self.imports.setdefault(target.domain.value, set()).add(name)
        return name

    def _helper(self, name: str) -> str:
        self.helpers.add(name)
        return name

    def type_of(self, kind: SemanticKind) -> str:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            return _TS_TYPES[_base(kind)]
        if tag == KindTag.TIMESTAMP:
            return "number"
        if tag == KindTag.RICH_CONTENT:
            return "unknown"
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return f"{self.type_of(kind.inner)} | null"
        if tag == KindTag.LIST and kind.inner is not None:
            inner = self.type_of(kind.inner)
            return f"({inner})[]" if " " in inner else f"{inner}[]"
        name = self._reference(kind.target_entity)
        if name is None:
            return "string"
        if kind.args and self.schema.entities[kind.target_entity].is_union:
            return f"{name}<{', '.join(self.type_of(arg) for arg in kind.args)}>"
        return name

    def encode(self, kind: SemanticKind, expr: str, depth: int = 0) -> str:
        tag = kind.tag
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            inner = self.encode(kind.inner, expr, depth)
            if inner == expr:
                return f"{expr} ?? null"
            return f"({expr} == null ? null : {inner})"
        if tag == KindTag.LIST and kind.inner is not None:
            item = f"item{depth}"
            inner = self.encode(kind.inner, item, depth + 1)
            if inner == item:
                return f"[...{expr}]"
            return f"{expr}.map(({item}) => {inner})"
        if tag == KindTag.UNION_REF:
            name = self._reference(kind.target_entity, "encode")
            return f"{name}({expr})" if name else expr
        return expr

    def decode(self, kind: SemanticKind, expr: str, depth: int = 0) -> str:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            return f"{self._helper(_TS_DECODERS[_base(kind)])}({expr})"
        if tag == KindTag.TIMESTAMP:
            return f"{self._helper('asInt')}({expr})"
        if tag == KindTag.RICH_CONTENT:
            return expr
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return f"({expr} == null ? null : {self.decode(kind.inner, expr, depth)})"
        if tag == KindTag.LIST and kind.inner is not None:
            item = f"item{depth}"
            inner = self.decode(kind.inner, item, depth + 1)
            return f"{self._helper('asArray')}({expr}).map(({item}: unknown) => {inner})"
        name = self._reference(kind.target_entity, "decode")
        if name is None:
            return f"{self._helper('asString')}({expr})"
        return f"{name}({expr})"


def elm_header(module: str, exposing: list[str], source_dir: str) -> str:
    listed = "\n    , ".join(exposing) if exposing else ".."
    return (
        f"module {module} exposing\n    ( {listed}\n    )\n\n"
        f"{{-| Generated from {source_dir} models.\n\n{GENERATED_NOTICE}\n\n-}}\n"
    )


def elm_imports(config: SchemacConfig, modules: set[str], home: Domain | None) -> str:
    lines = []
    for module in sorted(modules):
        qualified = elm_module_name(config, module)
        if module == UNIONS_MODULE:
            lines.append(f"import {qualified} exposing (..)")
        elif home is None or module != home.module_name:
            lines.append(f"import {qualified}")
    lines += ["import Json.Decode", "import Json.Encode"]
    return "\n".join(lines)


ELM_AND_MAP = """andMap : Json.Decode.Decoder a -> Json.Decode.Decoder (a -> b) -> Json.Decode.Decoder b
andMap =
    Json.Decode.map2 (|>)"""

ELM_OPTIONAL_FIELD = """optionalField : String -> Json.Decode.Decoder a -> Json.Decode.Decoder (Maybe a)
optionalField key decoder =
    Json.Decode.value
        |> Json.Decode.andThen
            (\\object ->
                case Json.Decode.decodeValue (Json.Decode.field key Json.Decode.value) object of
                    Ok _ ->
                        Json.Decode.field key (Json.Decode.nullable decoder)

                    Err _ ->
                        Json.Decode.succeed Nothing
            )"""


def ts_imports(imports: dict[str, set[str]], helpers: set[str]) -> str:
    lines = []
    if helpers:
        lines.append(f"import {{ {', '.join(sorted(helpers))} }} from './{TS_CODEC_MODULE}';")
    for module in sorted(imports):
        lines.append(f"import {{ {', '.join(sorted(imports[module]))} }} from './{module}';")
    return "\n".join(lines)


class TypedModuleEmitter(SchemaEmitter):
    """Elm and TypeScript record modules, one per non-empty domain."""

    @property
    def name(self) -> str:
        return "typed_module"

    @property
    def description(self) -> str:
        return "Elm and TypeScript types with JSON encoders/decoders per domain"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        blocked = codecless_entities(schema)
        result = EmitResult(files={TS_CODEC_PATH: ts_codec_module()})
        for domain in Domain:
            records = schema.records(domain)
            if not records:
                continue
            result.files[elm_module_path(self.config, domain.module_name)] = self.elm_module(
                schema, domain, records, blocked
            )
            result.files[f"ts/{domain.value}.ts"] = self.ts_module(
                schema, domain, records, blocked
            )
            result.diagnostics += [codecless_warning(e) for e in records if e.key in blocked]
        return result

    # -- Elm --------------------------------------------------------------

    def elm_module(
        self,
        schema: CompiledSchema,
        domain: Domain,
        records: list[EntityIR],
        blocked: set[str],
    ) -> str:
        renderer = ElmRenderer(schema, self.config, domain)
        blocks = [
            self.elm_record(renderer, entity, entity.key not in blocked) for entity in records
        ]
        exposing: list[str] = []
        for entity in records:
            exposing.append(entity.name)
            if entity.key not in blocked:
                var = lower_first(entity.name)
                exposing += [f"{var}Encoder", f"{var}Decoder"]
        helpers = [ELM_AND_MAP]
        if any("optionalField" in block for block in blocks):
            helpers.append(ELM_OPTIONAL_FIELD)
        module = elm_module_name(self.config, domain.module_name)
        return (
            elm_header(module, exposing, domain.directory)
            + "\n"
            + elm_imports(self.config, renderer.imports, domain)
            + "\n\n\n"
            + "\n\n\n".join(blocks + helpers)
            + "\n"
        )

    def elm_record(self, renderer: ElmRenderer, entity: EntityIR, with_codec: bool) -> str:
        renderer.current = entity.key
        name = entity.name
        var = lower_first(name)

        if entity.fields:
            members = [f"{f.display_name} : {renderer.type_of(f.kind)}" for f in entity.fields]
            type_decl = f"type alias {name} =\n    {{ " + "\n    , ".join(members) + "\n    }"
        else:
            type_decl = f"type alias {name} =\n    {{}}"
        if not with_codec:
            renderer.current = None
            return (
                f"{{-| {name} stores a type with type parameters; "
                f"no JSON codec is generated.\n-}}\n{type_decl}"
            )

        if entity.fields:
            pairs = [
                f'( "{f.canonical_name}", {renderer.encoder(f.kind)} value.{f.display_name} )'
                for f in entity.fields
            ]
            encode_body = (
                "Json.Encode.object\n        [ " + "\n        , ".join(pairs) + "\n        ]"
            )
            steps = [
                f"|> andMap {renderer.field_decoder(f.canonical_name, f.kind)}"
                for f in entity.fields
            ]
            decode_body = f"Json.Decode.succeed {name}\n        " + "\n        ".join(steps)
        else:
            encode_body = "Json.Encode.object []"
            decode_body = "Json.Decode.succeed {}"

        renderer.current = None
        return (
            f"{type_decl}\n\n\n"
            f"{var}Encoder : {name} -> Json.Encode.Value\n"
            f"{var}Encoder value =\n    {encode_body}\n\n\n"
            f"{var}Decoder : Json.Decode.Decoder {name}\n"
            f"{var}Decoder =\n    {decode_body}"
        )

    # -- TypeScript -------------------------------------------------------

    def ts_module(
        self,
        schema: CompiledSchema,
        domain: Domain,
        records: list[EntityIR],
        blocked: set[str],
    ) -> str:
        renderer = TsRenderer(schema, domain)
        blocks = [
            self.ts_record(renderer, entity, entity.key not in blocked) for entity in records
        ]
        imports = ts_imports(renderer.imports, renderer.helpers)
        return (
            f"// Generated from {domain.directory} models.\n"
            f"// {GENERATED_NOTICE}\n\n"
            + (f"{imports}\n\n" if imports else "")
            + "\n\n".join(blocks)
            + "\n"
        )

    def ts_record(self, renderer: TsRenderer, entity: EntityIR, with_codec: bool) -> str:
        name = entity.name
        members = "".join(
            f"    {f.display_name}: {renderer.type_of(f.kind)};\n" for f in entity.fields
        )
        interface = f"export interface {name} {{\n{members}}}"
        if not with_codec:
            return (
                f"// {name} stores a type with type parameters; no JSON codec is generated.\n"
                + interface
            )

        renderer.helpers.add("asObject")
        encoded = "".join(
            f"        {f.canonical_name}: "
            f"{renderer.encode(f.kind, f'value.{f.display_name}')},\n"
            for f in entity.fields
        )
        decoded = "".join(
            f"        {f.display_name}: "
            f"{renderer.decode(f.kind, f'obj.{f.canonical_name}')},\n"
            for f in entity.fields
        )
        return (
            f"{interface}\n\n"
            f"export function encode{name}(value: {name}): Record<string, unknown> {{\n"
            f"    return {{\n{encoded}    }};\n}}\n\n"
            f"export function decode{name}(data: unknown): {name} {{\n"
            f"    const obj = asObject(data);\n"
            f"    return {{\n{decoded}    }};\n}}"
        )
