"""Elm model source adapter (reader, extractor, normalizer)."""

from schemac.adapters.elm.adapter import ElmAdapter
from schemac.adapters.elm.extractor import ElmExtractor, ExtractionResult
from schemac.adapters.elm.normalizer import ElmNormalizer
from schemac.adapters.elm.reader import ParseError, parse_type_expr, split_top_level

__all__ = [
    "ElmAdapter",
    "ElmExtractor",
    "ElmNormalizer",
    "ExtractionResult",
    "ParseError",
    "parse_type_expr",
    "split_top_level",
]
