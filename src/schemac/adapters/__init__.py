"""Source adapters for reading model definitions.

This module provides the base classes for readers that turn a model source
tree into IR (Intermediate Representation) data.
"""

from schemac.adapters.base import SourceAdapter, SymbolTable
from schemac.adapters.elm import ElmAdapter

__all__ = [
    "ElmAdapter",
    "SourceAdapter",
    "SymbolTable",
]
