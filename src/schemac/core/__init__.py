"""Core module containing IR models, naming, config, serializer, and validator."""

from schemac.core.config import SchemacConfig, get_config, reload_config
from schemac.core.models import (
    AppliedType,
    CompiledSchema,
    Confidence,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    EntityKind,
    FieldIR,
    FieldRole,
    ImportDecl,
    KindTag,
    ListType,
    PrimitiveName,
    PrimitiveType,
    RawEntity,
    RawField,
    RawVariant,
    RecordFieldExpr,
    RecordType,
    ReferenceEdge,
    ReferenceOrigin,
    SemanticKind,
    Severity,
    TupleType,
    TypeExpr,
    UnresolvedReference,
    VariantIR,
    entity_key,
)
from schemac.core.serializer import (
    SerializationError,
    deserialize,
    deserialize_from_dict,
    serialize,
)
from schemac.core.validator import (
    ValidationError,
    ValidationErrorType,
    ValidationResult,
    validate_schema,
)

__all__ = [
    "AppliedType",
    "CompiledSchema",
    "Confidence",
    "Diagnostic",
    "DiagnosticCode",
    "Domain",
    "EntityIR",
    "EntityKind",
    "FieldIR",
    "FieldRole",
    "ImportDecl",
    "KindTag",
    "ListType",
    "PrimitiveName",
    "PrimitiveType",
    "RawEntity",
    "RawField",
    "RawVariant",
    "RecordFieldExpr",
    "RecordType",
    "ReferenceEdge",
    "ReferenceOrigin",
    "SchemacConfig",
    "SemanticKind",
    "SerializationError",
    "Severity",
    "TupleType",
    "TypeExpr",
    "UnresolvedReference",
    "ValidationError",
    "ValidationErrorType",
    "ValidationResult",
    "VariantIR",
    "deserialize",
    "deserialize_from_dict",
    "entity_key",
    "get_config",
    "reload_config",
    "serialize",
    "validate_schema",
]
