"""Union codec emitter.

Every union is encoded as a tagged envelope::

    {"tag": "Active"}                      zero-argument variant
    {"tag": "Pending", "value": "x"}       single-argument variant
    {"tag": "Pair", "value": [1, "x"]}     multi-argument variant

Decoders dispatch on ``tag`` and fail with ``Unknown <Union> variant: <tag>``
on anything unrecognised. Unions with type parameters, and unions whose
variants store one, keep their type definition but get no codec.

All unions share one Elm module and one TypeScript module, so two unions of
the same name in different domains cannot both be generated: the first in
generation order wins and the other is reported as a name collision.
"""

from __future__ import annotations

from schemac.core.models import CompiledSchema, Diagnostic, DiagnosticCode, EntityIR, VariantIR
from schemac.core.naming import lower_first
from schemac.emitters.base import GENERATED_NOTICE, EmitResult, SchemaEmitter
from schemac.emitters.typed_module import (
    ELM_AND_MAP,
    TS_CODEC_PATH,
    TS_UNIONS_MODULE,
    UNIONS_MODULE,
    ElmRenderer,
    TsRenderer,
    codecless_entities,
    codecless_warning,
    elm_header,
    elm_imports,
    elm_module_name,
    elm_module_path,
    elm_paren,
    ts_codec_module,
    ts_imports,
)


def unknown_variant_message(union_name: str) -> str:
    return f"Unknown {union_name} variant: "


def distinct_unions(schema: CompiledSchema) -> tuple[list[EntityIR], list[Diagnostic]]:
    """Unions with unique names, plus an error for every clashing declaration."""
    seen: dict[str, EntityIR] = {}
    diagnostics: list[Diagnostic] = []
    for union in schema.unions():
        first = seen.get(union.name)
        if first is None:
            seen[union.name] = union
            continue
        diagnostics.append(
            Diagnostic.error(
                DiagnosticCode.NAME_COLLISION,
                f"Union {union.name} is already declared in {first.source_file}; "
                f"generated unions share one module, so this declaration is skipped",
                file=union.source_file,
                entity=union.key,
            )
        )
    return list(seen.values()), diagnostics


class UnionCodecEmitter(SchemaEmitter):
    """Tagged-envelope codecs for every parameter-free union."""

    @property
    def name(self) -> str:
        return "union_codec"

    @property
    def description(self) -> str:
        return "Tagged-envelope union codecs (Elm and TypeScript)"

    def emit(self, schema: CompiledSchema) -> EmitResult:
        unions, diagnostics = distinct_unions(schema)
        blocked = codecless_entities(schema)
        diagnostics += [
            codecless_warning(union)
            for union in unions
            if union.key in blocked and not union.type_params
        ]
        return EmitResult(
            files={
                elm_module_path(self.config, UNIONS_MODULE): self.elm_module(
                    schema, unions, blocked
                ),
                f"ts/{TS_UNIONS_MODULE}.ts": self.ts_module(schema, unions, blocked),
                TS_CODEC_PATH: ts_codec_module(),
            },
            diagnostics=diagnostics,
        )

    # -- Elm --------------------------------------------------------------

    def elm_module(
        self, schema: CompiledSchema, unions: list[EntityIR], blocked: set[str]
    ) -> str:
        renderer = ElmRenderer(schema, self.config, None)
        blocks = [self.elm_union(renderer, union, union.key not in blocked) for union in unions]
        exposing: list[str] = []
        for union in unions:
            exposing.append(f"{union.name}(..)")
            if union.key not in blocked:
                var = lower_first(union.name)
                exposing += [f"{var}Encoder", f"{var}Decoder"]
        module = elm_module_name(self.config, UNIONS_MODULE)
        body = "\n\n\n".join(blocks)
        return (
            elm_header(module, exposing, "union")
            + "\n"
            + elm_imports(self.config, renderer.imports, None)
            + "\n\n\n"
            + (f"{body}\n\n\n" if body else "")
            + ELM_AND_MAP
            + "\n"
        )

    def elm_union(self, renderer: ElmRenderer, union: EntityIR, with_codec: bool) -> str:
        renderer.current = union.key
        try:
            if not with_codec:
                return self.elm_type(renderer, union)
            return "\n\n\n".join(
                [
                    self.elm_type(renderer, union),
                    self.elm_encoder(renderer, union),
                    self.elm_decoder(renderer, union),
                ]
            )
        finally:
            renderer.current = None

    def elm_type(self, renderer: ElmRenderer, union: EntityIR) -> str:
        head = " ".join([union.name, *union.type_params])
        variants = []
        for variant in union.variants:
            if union.type_params:
                args = [elm_paren(t.to_source()) for t in variant.arg_types]
            else:
                args = [elm_paren(renderer.type_of(k)) for k in variant.arg_kinds]
            variants.append(" ".join([variant.name, *args]))
        lines = f"type {head}\n    = " + "\n    | ".join(variants)
        if union.type_params:
            lines = (
                f"{{-| {union.name} has type parameters; no JSON codec is generated.\n-}}\n"
                + lines
            )
        return lines

    def elm_encoder(self, renderer: ElmRenderer, union: EntityIR) -> str:
        var = lower_first(union.name)
        branches = []
        for variant in union.variants:
            names = [f"value{i}" for i in range(len(variant.arg_kinds))]
            pattern = " ".join([variant.name, *names])
            tag = f'( "tag", Json.Encode.string "{variant.name}" )'
            if not names:
                body = f"Json.Encode.object [ {tag} ]"
            else:
                encoded = [
                    f"{renderer.encoder(kind)} {name}"
                    for kind, name in zip(variant.arg_kinds, names)
                ]
                if len(encoded) == 1:
                    payload = encoded[0]
                else:
                    payload = "Json.Encode.list identity [ " + ", ".join(encoded) + " ]"
                body = (
                    f"Json.Encode.object\n                [ {tag}\n"
                    f'                , ( "value", {payload} )\n                ]'
                )
            branches.append(f"        {pattern} ->\n            {body}")
        return (
            f"{var}Encoder : {union.name} -> Json.Encode.Value\n"
            f"{var}Encoder value =\n    case value of\n"
            + "\n\n".join(branches)
        )

    def elm_decoder(self, renderer: ElmRenderer, union: EntityIR) -> str:
        var = lower_first(union.name)
        pad = " " * 20
        branches = []
        for variant in union.variants:
            branches.append(
                f'{pad}"{variant.name}" ->\n{pad}    {self._elm_variant_decoder(renderer, variant)}'
            )
        message = unknown_variant_message(union.name)
        branches.append(f'{pad}_ ->\n{pad}    Json.Decode.fail ("{message}" ++ tag)')
        return (
            f"{var}Decoder : Json.Decode.Decoder {union.name}\n"
            f"{var}Decoder =\n"
            '    Json.Decode.field "tag" Json.Decode.string\n'
            "        |> Json.Decode.andThen\n"
            "            (\\tag ->\n"
            "                case tag of\n"
            + "\n\n".join(branches)
            + "\n            )"
        )

    def _elm_variant_decoder(self, renderer: ElmRenderer, variant: VariantIR) -> str:
        kinds = variant.arg_kinds
        if not kinds:
            return f"Json.Decode.succeed {variant.name}"
        if len(kinds) == 1:
            return (
                f'Json.Decode.map {variant.name} '
                f'(Json.Decode.field "value" {renderer.decoder(kinds[0])})'
            )
        steps = [
            f'|> andMap (Json.Decode.field "value" (Json.Decode.index {i} '
            f"{renderer.decoder(kind)}))"
            for i, kind in enumerate(kinds)
        ]
        indent = " " * 28
        return f"Json.Decode.succeed {variant.name}\n{indent}" + f"\n{indent}".join(steps)

    # -- TypeScript -------------------------------------------------------

    def ts_module(self, schema: CompiledSchema, unions: list[EntityIR], blocked: set[str]) -> str:
        renderer = TsRenderer(schema, None)
        blocks = [self.ts_union(renderer, union, union.key not in blocked) for union in unions]
        imports = ts_imports(renderer.imports, renderer.helpers)
        return (
            "// Generated tagged-envelope union codecs.\n"
            f"// {GENERATED_NOTICE}\n"
            + (f"\n{imports}\n" if imports else "")
            + "".join(f"\n{block}\n" for block in blocks)
        )

    def ts_union(self, renderer: TsRenderer, union: EntityIR, with_codec: bool) -> str:
        name = union.name
        if union.type_params:
            params = ", ".join(union.type_params)
            members = "".join(
                f"\n    | {{ tag: '{v.name}'" + ("; value: unknown }" if v.arg_types else " }")
                for v in union.variants
            )
            return (
                f"// {name} has type parameters; no JSON codec is generated.\n"
                f"export type {name}<{params}> ={members};"
            )

        members = []
        for variant in union.variants:
            kinds = variant.arg_kinds
            if not kinds:
                members.append(f"{{ tag: '{variant.name}' }}")
            elif len(kinds) == 1:
                members.append(f"{{ tag: '{variant.name}'; value: {renderer.type_of(kinds[0])} }}")
            else:
                types = ", ".join(renderer.type_of(k) for k in kinds)
                members.append(f"{{ tag: '{variant.name}'; value: [{types}] }}")
        union_type = f"export type {name} =" + "".join(f"\n    | {m}" for m in members) + ";"
        if not with_codec:
            return (
                f"// {name} stores a type with type parameters; no JSON codec is generated.\n"
                + union_type
            )

        renderer.helpers.update({"DecodeError", "asObject", "asString"})
        encode_cases = []
        decode_cases = []
        for variant in union.variants:
            tag = variant.name
            kinds = variant.arg_kinds
            if not kinds:
                case = f"        case '{tag}':\n            return {{ tag: '{tag}' }};"
                encode_cases.append(case)
                decode_cases.append(case)
            elif len(kinds) == 1:
                encoded = renderer.encode(kinds[0], "value.value")
                decoded = renderer.decode(kinds[0], "obj.value")
                encode_cases.append(
                    f"        case '{tag}':\n"
                    f"            return {{ tag: '{tag}', value: {encoded} }};"
                )
                decode_cases.append(
                    f"        case '{tag}':\n"
                    f"            return {{ tag: '{tag}', value: {decoded} }};"
                )
            else:
                renderer.helpers.add("asArray")
                encoded = ", ".join(
                    renderer.encode(k, f"value.value[{i}]") for i, k in enumerate(kinds)
                )
                decoded = ", ".join(
                    renderer.decode(k, f"items[{i}]") for i, k in enumerate(kinds)
                )
                encode_cases.append(
                    f"        case '{tag}':\n"
                    f"            return {{ tag: '{tag}', value: [{encoded}] }};"
                )
                decode_cases.append(
                    f"        case '{tag}': {{\n"
                    f"            const items = asArray(obj.value);\n"
                    f"            return {{ tag: '{tag}', value: [{decoded}] }};\n"
                    f"        }}"
                )

        message = unknown_variant_message(name)
        decode_cases.append(
            "        default:\n"
            f"            throw new DecodeError(`{message}${{tag}}`);"
        )
        return (
            f"{union_type}\n\n"
            f"export function encode{name}(value: {name}): unknown {{\n"
            "    switch (value.tag) {\n"
            + "\n".join(encode_cases)
            + "\n    }\n}\n\n"
            f"export function decode{name}(data: unknown): {name} {{\n"
            "    const obj = asObject(data);\n"
            "    const tag = asString(obj.tag);\n"
            "    switch (tag) {\n"
            + "\n".join(decode_cases)
            + "\n    }\n}"
        )
