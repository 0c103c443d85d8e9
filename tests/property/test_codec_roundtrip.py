"""Property tests for the tagged-envelope JSON codec.

For any value of a record or union compiled from Elm source, encoding to JSON
text and decoding it back yields the original value.
"""

from __future__ import annotations

import json

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from schemac.adapters.elm.adapter import ElmAdapter
from schemac.codec import JsonCodec, UnionValue, UnknownVariantError
from schemac.core.models import CompiledSchema, SemanticKind

STATUS = """module Schema.Status exposing (..)


type Status
    = Active
    | Pending String
    | Pair Int String
"""

ENTRY = """module Schema.Entry exposing (..)

import Schema.Status exposing (Status)


type alias Entry =
    { id : DatabaseId String
    , score : Float
    , visits : Int
    , note : Maybe String
    , labels : List String
    , status : Status
    , history : List (Maybe Status)
    }
"""


@pytest.fixture
def schema(write_models, config) -> CompiledSchema:
    root = write_models({"Schema/Status.elm": STATUS, "Schema/Entry.elm": ENTRY})
    return ElmAdapter(config).analyze(root)


status_values = st.one_of(
    st.just(UnionValue.of("Active")),
    st.text(max_size=20).map(lambda s: UnionValue.of("Pending", s)),
    st.tuples(st.integers(), st.text(max_size=20)).map(lambda t: UnionValue.of("Pair", *t)),
)

entry_values = st.fixed_dictionaries(
    {
        "id": st.text(min_size=1, max_size=12),
        "score": st.floats(allow_nan=False, allow_infinity=False),
        "visits": st.integers(min_value=-(2**31), max_value=2**31),
        "note": st.none() | st.text(max_size=20),
        "labels": st.lists(st.text(max_size=8), max_size=4),
        "status": status_values,
        "history": st.lists(st.none() | status_values, max_size=4),
    }
)


class TestUnionEnvelope:
    """The wire shape of each variant arity."""

    def test_envelopes(self, schema) -> None:
        codec = JsonCodec(schema)
        kind = SemanticKind.union_ref("db:Status")
        assert codec.dumps(kind, UnionValue.of("Active")) == '{"tag":"Active"}'
        assert codec.dumps(kind, UnionValue.of("Pending", "x")) == '{"tag":"Pending","value":"x"}'
        assert codec.dumps(kind, UnionValue.of("Pair", 1, "x")) == '{"tag":"Pair","value":[1,"x"]}'

    def test_unknown_variant(self, schema) -> None:
        codec = JsonCodec(schema)
        with pytest.raises(UnknownVariantError, match="Unknown Status variant: Bogus"):
            codec.loads(SemanticKind.union_ref("db:Status"), '{"tag":"Bogus"}')

    def test_missing_optional_key(self, schema) -> None:
        codec = JsonCodec(schema)
        data = {
            "id": "a",
            "score": 1,
            "visits": 2,
            "labels": [],
            "status": {"tag": "Active"},
            "history": [],
        }
        decoded = codec.decode_record(schema.entities["db:Entry"], data)
        assert decoded["note"] is None
        assert decoded["score"] == 1.0


class TestCodecRoundTrip:
    """decode(encode(v)) == v for generated values."""

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(value=status_values)
    def test_union_round_trip(self, schema, value: UnionValue) -> None:
        codec = JsonCodec(schema)
        kind = SemanticKind.union_ref("db:Status")
        assert codec.loads(kind, codec.dumps(kind, value)) == value

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(value=entry_values)
    def test_record_round_trip(self, schema, value: dict) -> None:
        codec = JsonCodec(schema)
        entity = schema.entities["db:Entry"]
        text = json.dumps(codec.encode_record(entity, value))
        assert codec.decode_record(entity, json.loads(text)) == value
