"""Reference JSON codec for the generated wire format."""

from schemac.codec.json_codec import (
    CodecError,
    DecodeError,
    EncodeError,
    JsonCodec,
    UnionValue,
    UnknownVariantError,
    decode_record,
    decode_union,
    decode_value,
    encode_record,
    encode_union,
    encode_value,
)

__all__ = [
    "CodecError",
    "DecodeError",
    "EncodeError",
    "JsonCodec",
    "UnionValue",
    "UnknownVariantError",
    "decode_record",
    "decode_union",
    "decode_value",
    "encode_record",
    "encode_union",
    "encode_value",
]
