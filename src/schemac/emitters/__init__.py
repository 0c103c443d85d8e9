"""Backend emitters.

Each emitter is a pure function of the resolved IR that renders one backend's
artifacts. The registry runs them independently over the shared schema.
"""

from schemac.emitters.base import EmitResult, SchemaEmitter
from schemac.emitters.ddl import DdlEmitter
from schemac.emitters.introspection import IntrospectionEmitter
from schemac.emitters.registry import (
    EmitOutcome,
    backend_names,
    get_default_emitters,
    run_emitters,
)
from schemac.emitters.runtime import RuntimeEmitter
from schemac.emitters.typed_module import TypedModuleEmitter
from schemac.emitters.union_codec import UnionCodecEmitter
from schemac.emitters.writer import ArtifactWriter, WriteResult

__all__ = [
    "ArtifactWriter",
    "DdlEmitter",
    "EmitOutcome",
    "EmitResult",
    "IntrospectionEmitter",
    "RuntimeEmitter",
    "SchemaEmitter",
    "TypedModuleEmitter",
    "UnionCodecEmitter",
    "WriteResult",
    "backend_names",
    "get_default_emitters",
    "run_emitters",
]
