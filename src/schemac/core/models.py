"""IR data models for the schemac schema compiler.

This module defines the core data structures of the Intermediate Representation
(IR) that sits between the Elm model sources and the generated artifacts:
raw type-expression trees, raw entities produced by the extractor, normalized
entities/fields/variants, reference edges and diagnostics.

All IR models are frozen. Emitters share them by reference and never copy and
mutate them.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

_FROZEN = {"frozen": True}


class Domain(str, Enum):
    """Model domains, in generation order."""

    DB = "db"
    API = "api"
    KV = "kv"
    SSE = "sse"
    STORAGE = "storage"

    @property
    def directory(self) -> str:
        """Source directory holding this domain's models."""
        return _DOMAIN_DIRECTORIES[self]

    @property
    def module_name(self) -> str:
        """Capitalized name used for generated module names."""
        return self.value.capitalize()

    @classmethod
    def from_directory(cls, directory: str) -> Domain | None:
        """Map a module prefix or directory name (e.g. ``Schema``) to a domain."""
        for domain, name in _DOMAIN_DIRECTORIES.items():
            if name == directory:
                return domain
        return None


_DOMAIN_DIRECTORIES: dict[Domain, str] = {
    Domain.DB: "Schema",
    Domain.API: "Api",
    Domain.KV: "Kv",
    Domain.SSE: "Sse",
    Domain.STORAGE: "Storage",
}


class EntityKind(str, Enum):
    """Kind of declaration an entity came from."""

    RECORD = "record"
    UNION = "union"


class KindTag(str, Enum):
    """Resolved semantic kind of a field."""

    PRIMARY_KEY = "primary_key"
    TIMESTAMP = "timestamp"
    FOREIGN_KEY = "foreign_key"
    RICH_CONTENT = "rich_content"
    OPTIONAL = "optional"
    LIST = "list"
    UNION_REF = "union_ref"
    PRIMITIVE = "primitive"


class PrimitiveName(str, Enum):
    """Scalar types understood by every backend."""

    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    BOOL = "Bool"


class FieldRole(str, Enum):
    """Storage role a field plays beyond its semantic kind."""

    NONE = "none"
    TENANT = "tenant"
    SOFT_DELETE = "soft_delete"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class Severity(str, Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


class DiagnosticCode(str, Enum):
    """Diagnostic taxonomy."""

    PARSE_ERROR = "parse_error"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    AMBIGUOUS_UNION = "ambiguous_union"
    UNKNOWN_WRAPPER_FALLBACK = "unknown_wrapper_fallback"
    AMBIGUOUS_REFERENCE = "ambiguous_reference"
    NAME_COLLISION = "name_collision"
    EMITTER_FAILURE = "emitter_failure"
    IO_ERROR = "io_error"


class Confidence(str, Enum):
    """How a reference edge was established."""

    EXPLICIT = "explicit"
    INFERRED = "inferred"


class ReferenceOrigin(str, Enum):
    """Source construct a reference edge was derived from."""

    FOREIGN_KEY_WRAPPER = "foreign_key_wrapper"
    IMPORT = "import"
    FIELD_TYPE = "field_type"
    NAME_CONVENTION = "name_convention"


# ---------------------------------------------------------------------------
# Type expressions (reader output)
# ---------------------------------------------------------------------------


class PrimitiveType(BaseModel):
    """A bare name: ``String``, ``Timestamp``, ``Db.Item`` or a type variable."""

    model_config = _FROZEN

    node: Literal["primitive"] = "primitive"
    name: str

    def to_source(self) -> str:
        return self.name


class AppliedType(BaseModel):
    """A wrapper applied to arguments, e.g. ``Maybe String``."""

    model_config = _FROZEN

    node: Literal["applied"] = "applied"
    wrapper: str
    args: list[TypeExpr] = Field(default_factory=list)

    def to_source(self) -> str:
        return " ".join([self.wrapper] + [_as_argument(arg) for arg in self.args])


class ListType(BaseModel):
    """``List inner``."""

    model_config = _FROZEN

    node: Literal["list"] = "list"
    inner: TypeExpr

    def to_source(self) -> str:
        return f"List {_as_argument(self.inner)}"


class TupleType(BaseModel):
    """``( a, b )``."""

    model_config = _FROZEN

    node: Literal["tuple"] = "tuple"
    items: list[TypeExpr] = Field(default_factory=list)

    def to_source(self) -> str:
        return "( " + ", ".join(item.to_source() for item in self.items) + " )"


class RecordFieldExpr(BaseModel):
    """One ``name : Type`` entry of a record literal."""

    model_config = _FROZEN

    name: str
    type_expr: TypeExpr


class RecordType(BaseModel):
    """``{ a : Int, b : String }`` (optionally extensible: ``{ r | a : Int }``)."""

    model_config = _FROZEN

    node: Literal["record"] = "record"
    fields: list[RecordFieldExpr] = Field(default_factory=list)
    extends: str | None = None

    def to_source(self) -> str:
        if not self.fields:
            return "{}"
        body = ", ".join(f"{f.name} : {f.type_expr.to_source()}" for f in self.fields)
        if self.extends:
            return f"{{ {self.extends} | {body} }}"
        return f"{{ {body} }}"


TypeExpr = Annotated[
    Union[PrimitiveType, AppliedType, ListType, TupleType, RecordType],
    Field(discriminator="node"),
]


def _as_argument(expr: TypeExpr) -> str:
    """Render a type expression in argument position (parenthesized if compound)."""
    text = expr.to_source()
    if isinstance(expr, (AppliedType, ListType)):
        return f"({text})"
    return text


# ---------------------------------------------------------------------------
# Raw entities (extractor output)
# ---------------------------------------------------------------------------


class ImportDecl(BaseModel):
    """An ``import`` line of a source module."""

    model_config = _FROZEN

    module: str
    alias: str | None = None
    exposing: list[str] = Field(default_factory=list)

    @property
    def last_segment(self) -> str:
        return self.module.rsplit(".", 1)[-1]

    @property
    def prefix(self) -> str:
        return self.module.split(".", 1)[0]


class RawField(BaseModel):
    """A record field as declared, before normalization."""

    model_config = _FROZEN

    name: str
    type_expr: TypeExpr
    raw_text: str
    parse_error: str | None = None


class RawVariant(BaseModel):
    """A union variant as declared."""

    model_config = _FROZEN

    name: str
    arg_types: list[TypeExpr] = Field(default_factory=list)


class RawEntity(BaseModel):
    """One record or union declaration extracted from a source file."""

    model_config = _FROZEN

    name: str
    domain: Domain
    source_file: str
    module_name: str
    kind: EntityKind
    is_primary: bool = False
    declared_name: str | None = Field(None, description="Name before endpoint qualification")
    type_params: list[str] = Field(default_factory=list)
    raw_fields: list[RawField] = Field(default_factory=list)
    raw_variants: list[RawVariant] = Field(default_factory=list)
    imports: list[ImportDecl] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Normalized IR
# ---------------------------------------------------------------------------


class SemanticKind(BaseModel):
    """Resolved meaning of a field type.

    Exactly one ``tag`` applies; the remaining attributes are populated
    according to the tag:

    - PRIMARY_KEY / FOREIGN_KEY: ``primitive`` is the id type
    - FOREIGN_KEY: ``target_entity`` / ``target_field``
    - UNION_REF: ``target_entity`` (entity key) and ``args`` for the type
      arguments of a parameterised union
    - OPTIONAL / LIST: ``inner``
    - PRIMITIVE: ``primitive``
    """

    model_config = _FROZEN

    tag: KindTag
    primitive: PrimitiveName | None = None
    target_entity: str | None = None
    target_field: str | None = None
    inner: SemanticKind | None = None
    args: list[SemanticKind] = Field(default_factory=list)

    @classmethod
    def primary_key(cls, id_type: PrimitiveName = PrimitiveName.STRING) -> SemanticKind:
        return cls(tag=KindTag.PRIMARY_KEY, primitive=id_type)

    @classmethod
    def timestamp(cls) -> SemanticKind:
        return cls(tag=KindTag.TIMESTAMP)

    @classmethod
    def foreign_key(
        cls,
        target_entity: str,
        target_field: str | None = None,
        id_type: PrimitiveName = PrimitiveName.STRING,
    ) -> SemanticKind:
        return cls(
            tag=KindTag.FOREIGN_KEY,
            primitive=id_type,
            target_entity=target_entity,
            target_field=target_field,
        )

    @classmethod
    def rich_content(cls) -> SemanticKind:
        return cls(tag=KindTag.RICH_CONTENT)

    @classmethod
    def optional(cls, inner: SemanticKind) -> SemanticKind:
        if inner.tag == KindTag.OPTIONAL:
            return inner
        return cls(tag=KindTag.OPTIONAL, inner=inner)

    @classmethod
    def list_of(cls, inner: SemanticKind) -> SemanticKind:
        return cls(tag=KindTag.LIST, inner=inner)

    @classmethod
    def union_ref(
        cls, entity_key: str, args: list[SemanticKind] | None = None
    ) -> SemanticKind:
        return cls(tag=KindTag.UNION_REF, target_entity=entity_key, args=args or [])

    @classmethod
    def scalar(cls, name: PrimitiveName) -> SemanticKind:
        return cls(tag=KindTag.PRIMITIVE, primitive=name)

    def describe(self) -> str:
        """Compact human-readable form, e.g. ``Optional(List(Int))``."""
        if self.tag == KindTag.PRIMITIVE:
            return self.primitive.value if self.primitive else "?"
        if self.tag == KindTag.PRIMARY_KEY:
            return f"PrimaryKey({self.primitive.value if self.primitive else '?'})"
        if self.tag == KindTag.FOREIGN_KEY:
            return f"ForeignKey({self.target_entity}.{self.target_field or '?'})"
        if self.tag == KindTag.UNION_REF:
            if self.args:
                listed = ", ".join(arg.describe() for arg in self.args)
                return f"UnionRef({self.target_entity}[{listed}])"
            return f"UnionRef({self.target_entity})"
        if self.tag in (KindTag.OPTIONAL, KindTag.LIST) and self.inner is not None:
            label = "Optional" if self.tag == KindTag.OPTIONAL else "List"
            return f"{label}({self.inner.describe()})"
        return self.tag.name.title().replace("_", "")

    def referenced_entities(self) -> list[str]:
        """Entity keys this kind refers to (through Optional/List)."""
        if self.tag in (KindTag.UNION_REF, KindTag.FOREIGN_KEY) and self.target_entity:
            nested = [key for arg in self.args for key in arg.referenced_entities()]
            return [self.target_entity, *nested]
        if self.inner is not None:
            return self.inner.referenced_entities()
        return []


class FieldIR(BaseModel):
    """Normalized record field."""

    model_config = _FROZEN

    canonical_name: str = Field(..., description="snake_case storage/column name")
    display_name: str = Field(..., description="camelCase target-language name")
    source_name: str = Field(..., description="Name as declared in the source")
    kind: SemanticKind
    nullable: bool = False
    sql_type: str
    default_constraints: list[str] = Field(default_factory=list)
    role: FieldRole = FieldRole.NONE
    annotations: list[str] = Field(default_factory=list)


class VariantIR(BaseModel):
    """Normalized union variant."""

    model_config = _FROZEN

    name: str
    arg_types: list[TypeExpr] = Field(default_factory=list)
    arg_kinds: list[SemanticKind] = Field(default_factory=list)


class EntityIR(BaseModel):
    """Normalized entity (record or union)."""

    model_config = _FROZEN

    name: str
    domain: Domain
    kind: EntityKind
    table_name: str = Field(..., description="snake_case table name / storage key")
    source_file: str
    module_name: str
    is_primary: bool = False
    id_field: str | None = None
    type_params: list[str] = Field(default_factory=list)
    fields: list[FieldIR] = Field(default_factory=list)
    variants: list[VariantIR] = Field(default_factory=list)
    imports: list[ImportDecl] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return entity_key(self.domain, self.name)

    @property
    def is_union(self) -> bool:
        return self.kind == EntityKind.UNION

    @property
    def is_enum_like(self) -> bool:
        """Union whose variants all take no arguments."""
        return self.is_union and all(not v.arg_types for v in self.variants)

    def get_field(self, canonical_name: str) -> FieldIR | None:
        for field in self.fields:
            if field.canonical_name == canonical_name:
                return field
        return None

    def field_with_role(self, role: FieldRole) -> FieldIR | None:
        for field in self.fields:
            if field.role == role:
                return field
        return None


class ReferenceEdge(BaseModel):
    """Directed reference between entities, keyed by entity key."""

    model_config = _FROZEN

    from_entity: str
    from_field: str | None = Field(None, description="None for import-only references")
    to_entity: str
    to_field: str | None = None
    confidence: Confidence
    origin: ReferenceOrigin
    resolution_note: str = ""


class UnresolvedReference(BaseModel):
    """An inferred reference the resolver could not confirm."""

    model_config = _FROZEN

    entity: str = Field(..., description="Entity key")
    field: str
    reason: str


class Diagnostic(BaseModel):
    """A structured compiler message."""

    model_config = _FROZEN

    severity: Severity
    code: DiagnosticCode
    message: str
    file: str | None = None
    entity: str | None = None
    field: str | None = None

    @classmethod
    def error(cls, code: DiagnosticCode, message: str, **location: str | None) -> Diagnostic:
        return cls(severity=Severity.ERROR, code=code, message=message, **location)

    @classmethod
    def warning(cls, code: DiagnosticCode, message: str, **location: str | None) -> Diagnostic:
        return cls(severity=Severity.WARNING, code=code, message=message, **location)

    def location(self) -> str:
        parts = [p for p in (self.file, self.entity, self.field) if p]
        return ":".join(parts)

    def __str__(self) -> str:
        where = self.location()
        prefix = f"{where}: " if where else ""
        return f"{prefix}{self.severity.value} [{self.code.value}] {self.message}"


class CompiledSchema(BaseModel):
    """Resolved IR root shared read-only by every emitter."""

    model_config = _FROZEN

    version: str = "1.0"
    entities: dict[str, EntityIR] = Field(default_factory=dict)
    edges: list[ReferenceEdge] = Field(default_factory=list)
    unresolved: list[UnresolvedReference] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    def in_domain(self, domain: Domain) -> list[EntityIR]:
        """Entities of one domain in generation order."""
        return [e for e in self.entities.values() if e.domain == domain]

    def records(self, domain: Domain, *, primary_only: bool = False) -> list[EntityIR]:
        return [
            e
            for e in self.in_domain(domain)
            if not e.is_union and (e.is_primary or not primary_only)
        ]

    def unions(self) -> list[EntityIR]:
        return [e for e in self.entities.values() if e.is_union]

    def edges_from(self, key: str) -> list[ReferenceEdge]:
        return [edge for edge in self.edges if edge.from_entity == key]


def entity_key(domain: Domain, name: str) -> str:
    """Stable key for an entity: ``<domain>:<Name>``."""
    return f"{domain.value}:{name}"


for _model in (AppliedType, ListType, TupleType, RecordFieldExpr, RecordType, RawField,
               RawVariant, RawEntity, SemanticKind, VariantIR):
    _model.model_rebuild()
