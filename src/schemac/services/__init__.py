"""Service layer for schemac.

This package contains the compile pipeline service and the cross-model
reference resolver.
"""

from schemac.services.compiler_service import CompileResult, CompilerService
from schemac.services.reference_resolver import (
    FkCandidate,
    ReferenceResolver,
    ResolveResult,
    infer_foreign_key_table,
)

__all__ = [
    "CompileResult",
    "CompilerService",
    "FkCandidate",
    "ReferenceResolver",
    "ResolveResult",
    "infer_foreign_key_table",
]
