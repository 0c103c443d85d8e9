"""Reference JSON codec.

Python rendition of the wire format every generated module speaks:

- records are JSON objects keyed by canonical snake_case field names
- optional values encode ``None`` as ``null``; a missing optional key decodes
  to ``None``
- lists encode element-wise
- unions use the tagged envelope ``{"tag": ..., "value": ...}``

Union values are represented by :class:`UnionValue`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from schemac.core.models import (
    CompiledSchema,
    EntityIR,
    KindTag,
    PrimitiveName,
    SemanticKind,
)


class CodecError(Exception):
    """Base error for the reference codec."""


class EncodeError(CodecError):
    """A Python value does not fit the semantic kind it is encoded as."""


class DecodeError(CodecError):
    """JSON data does not match the expected shape."""

    def __init__(self, message: str, path: str = "") -> None:
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class UnknownVariantError(DecodeError):
    """Tagged envelope carries a tag the union does not declare."""

    def __init__(self, union: str, tag: str, path: str = "") -> None:
        self.union = union
        self.tag = tag
        super().__init__(f"Unknown {union} variant: {tag}", path)


@dataclass(frozen=True)
class UnionValue:
    """A union variant with its positional arguments."""

    tag: str
    args: tuple[Any, ...] = ()

    @classmethod
    def of(cls, tag: str, *args: Any) -> UnionValue:
        return cls(tag=tag, args=tuple(args))


def _check_primitive(name: PrimitiveName | None, value: Any) -> bool:
    if name == PrimitiveName.BOOL:
        return isinstance(value, bool)
    if name == PrimitiveName.INT:
        return isinstance(value, int) and not isinstance(value, bool)
    if name == PrimitiveName.FLOAT:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, str)


class JsonCodec:
    """Encode and decode values against a compiled schema."""

    def __init__(self, schema: CompiledSchema | None = None) -> None:
        self._schema = schema or CompiledSchema()

    # -- encoding ---------------------------------------------------------

    def encode_value(self, kind: SemanticKind, value: Any) -> Any:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            primitive = kind.primitive or PrimitiveName.STRING
            if not _check_primitive(primitive, value):
                raise EncodeError(f"Expected {primitive.value}, got {value!r}")
            return float(value) if primitive == PrimitiveName.FLOAT else value
        if tag == KindTag.TIMESTAMP:
            if not _check_primitive(PrimitiveName.INT, value):
                raise EncodeError(f"Expected timestamp (Int), got {value!r}")
            return value
        if tag == KindTag.RICH_CONTENT:
            return value
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return None if value is None else self.encode_value(kind.inner, value)
        if tag == KindTag.LIST and kind.inner is not None:
            if not isinstance(value, (list, tuple)):
                raise EncodeError(f"Expected list, got {value!r}")
            return [self.encode_value(kind.inner, item) for item in value]
        target = self._target(kind)
        if target.is_union:
            return self.encode_union(target, value)
        return self.encode_record(target, value)

    def encode_record(self, entity: EntityIR, value: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise EncodeError(f"Expected {entity.name} record, got {value!r}")
        encoded: dict[str, Any] = {}
        for fld in entity.fields:
            if fld.canonical_name not in value and fld.kind.tag != KindTag.OPTIONAL:
                raise EncodeError(f"{entity.name}.{fld.canonical_name} is required")
            encoded[fld.canonical_name] = self.encode_value(
                fld.kind, value.get(fld.canonical_name)
            )
        return encoded

    def encode_union(self, entity: EntityIR, value: UnionValue) -> dict[str, Any]:
        self._require_codec(entity)
        if not isinstance(value, UnionValue):
            raise EncodeError(f"Expected {entity.name} variant, got {value!r}")
        variant = next((v for v in entity.variants if v.name == value.tag), None)
        if variant is None:
            raise EncodeError(f"{entity.name} has no variant {value.tag}")
        if len(value.args) != len(variant.arg_kinds):
            raise EncodeError(
                f"{entity.name}.{variant.name} takes {len(variant.arg_kinds)} argument(s), "
                f"got {len(value.args)}"
            )
        envelope: dict[str, Any] = {"tag": variant.name}
        encoded = [self.encode_value(k, a) for k, a in zip(variant.arg_kinds, value.args)]
        if len(encoded) == 1:
            envelope["value"] = encoded[0]
        elif encoded:
            envelope["value"] = encoded
        return envelope

    # -- decoding ---------------------------------------------------------

    def decode_value(self, kind: SemanticKind, data: Any, path: str = "") -> Any:
        tag = kind.tag
        if tag in (KindTag.PRIMITIVE, KindTag.PRIMARY_KEY, KindTag.FOREIGN_KEY):
            primitive = kind.primitive or PrimitiveName.STRING
            if not _check_primitive(primitive, data):
                raise DecodeError(f"Expected {primitive.value}, got {data!r}", path)
            return float(data) if primitive == PrimitiveName.FLOAT else data
        if tag == KindTag.TIMESTAMP:
            if not _check_primitive(PrimitiveName.INT, data):
                raise DecodeError(f"Expected timestamp (Int), got {data!r}", path)
            return data
        if tag == KindTag.RICH_CONTENT:
            return data
        if tag == KindTag.OPTIONAL and kind.inner is not None:
            return None if data is None else self.decode_value(kind.inner, data, path)
        if tag == KindTag.LIST and kind.inner is not None:
            if not isinstance(data, list):
                raise DecodeError(f"Expected list, got {data!r}", path)
            return [
                self.decode_value(kind.inner, item, f"{path}[{i}]")
                for i, item in enumerate(data)
            ]
        target = self._target(kind)
        if target.is_union:
            return self.decode_union(target, data, path)
        return self.decode_record(target, data, path)

    def decode_record(self, entity: EntityIR, data: Any, path: str = "") -> dict[str, Any]:
        if not isinstance(data, dict):
            raise DecodeError(f"Expected {entity.name} object, got {data!r}", path)
        decoded: dict[str, Any] = {}
        for fld in entity.fields:
            field_path = f"{path}.{fld.canonical_name}" if path else fld.canonical_name
            if fld.canonical_name not in data:
                if fld.kind.tag != KindTag.OPTIONAL:
                    raise DecodeError("Missing required field", field_path)
                decoded[fld.canonical_name] = None
                continue
            decoded[fld.canonical_name] = self.decode_value(
                fld.kind, data[fld.canonical_name], field_path
            )
        return decoded

    def decode_union(self, entity: EntityIR, data: Any, path: str = "") -> UnionValue:
        self._require_codec(entity)
        if not isinstance(data, dict) or not isinstance(data.get("tag"), str):
            raise DecodeError(f"Expected tagged {entity.name} envelope, got {data!r}", path)
        tag = data["tag"]
        variant = next((v for v in entity.variants if v.name == tag), None)
        if variant is None:
            raise UnknownVariantError(entity.name, tag, path)

        kinds = variant.arg_kinds
        if not kinds:
            return UnionValue(tag=tag)
        if "value" not in data:
            raise DecodeError(f"{entity.name}.{tag} envelope has no value", path)
        payload = data["value"]
        if len(kinds) == 1:
            return UnionValue(tag=tag, args=(self.decode_value(kinds[0], payload, path),))
        if not isinstance(payload, list) or len(payload) != len(kinds):
            raise DecodeError(
                f"{entity.name}.{tag} expects {len(kinds)} positional values, got {payload!r}",
                path,
            )
        return UnionValue(
            tag=tag,
            args=tuple(
                self.decode_value(k, item, f"{path}[{i}]")
                for i, (k, item) in enumerate(zip(kinds, payload))
            ),
        )

    # -- text -------------------------------------------------------------

    def dumps(self, kind: SemanticKind, value: Any) -> str:
        """Compact JSON text, the form generated encoders put on the wire."""
        return json.dumps(self.encode_value(kind, value), separators=(",", ":"))

    def loads(self, kind: SemanticKind, text: str) -> Any:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON: {exc}") from exc
        return self.decode_value(kind, data)

    # -- helpers ----------------------------------------------------------

    def _target(self, kind: SemanticKind) -> EntityIR:
        key = kind.target_entity
        target = self._schema.entities.get(key) if key else None
        if target is None:
            raise CodecError(f"Unknown entity reference: {key}")
        return target

    @staticmethod
    def _require_codec(entity: EntityIR) -> None:
        if entity.type_params:
            raise CodecError(f"{entity.name} has type parameters and no codec")


def encode_value(kind: SemanticKind, value: Any, schema: CompiledSchema | None = None) -> Any:
    return JsonCodec(schema).encode_value(kind, value)


def decode_value(kind: SemanticKind, data: Any, schema: CompiledSchema | None = None) -> Any:
    return JsonCodec(schema).decode_value(kind, data)


def encode_record(entity: EntityIR, value: dict[str, Any],
                  schema: CompiledSchema | None = None) -> dict[str, Any]:
    return JsonCodec(schema).encode_record(entity, value)


def decode_record(entity: EntityIR, data: Any,
                  schema: CompiledSchema | None = None) -> dict[str, Any]:
    return JsonCodec(schema).decode_record(entity, data)


def encode_union(entity: EntityIR, value: UnionValue,
                 schema: CompiledSchema | None = None) -> dict[str, Any]:
    return JsonCodec(schema).encode_union(entity, value)


def decode_union(entity: EntityIR, data: Any,
                 schema: CompiledSchema | None = None) -> UnionValue:
    return JsonCodec(schema).decode_union(entity, data)
