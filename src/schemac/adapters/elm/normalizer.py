"""IR normalizer: RawEntity -> EntityIR.

Resolves the semantic kind of every field with an ordered match over the
parsed type-expression tree. The first rule that matches wins; the order runs
from the most specific wrapper to the generic fallback:

1. ``DatabaseId a``                 -> PrimaryKey
2. ``Timestamp`` / ``CreateTimestamp`` / ``UpdateTimestamp`` -> Timestamp
3. ``SoftDelete``                   -> Optional(Timestamp), soft-delete role
4. ``RichContent``                  -> RichContent
5. ``ForeignKey Parent IdType``     -> ForeignKey
6. ``Maybe a``                      -> Optional (never double-wrapped)
7. ``List a``                       -> List
8. a known entity name              -> UnionRef
9. ``String`` / ``Int`` / ``Float`` / ``Bool`` -> Primitive
10. ``MultiTenant`` / ``Host``      -> Primitive(String), tenant role
11. a plain alias                   -> kind of the expanded alias
12. anything else                   -> Primitive(String) plus a warning
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from schemac.adapters.base import SymbolTable
from schemac.core.config import SchemacConfig, get_config
from schemac.core.models import (
    AppliedType,
    Diagnostic,
    DiagnosticCode,
    Domain,
    EntityIR,
    EntityKind,
    FieldIR,
    FieldRole,
    KindTag,
    ListType,
    PrimitiveName,
    PrimitiveType,
    RawEntity,
    RawField,
    SemanticKind,
    TypeExpr,
    UnresolvedReference,
    VariantIR,
    entity_key,
)
from schemac.core.naming import camel_to_snake, snake_to_camel, type_name_to_table_name

logger = logging.getLogger(__name__)

API_ANNOTATIONS = ("Inject", "Required", "Trim", "MinLength", "MaxLength")

TIMESTAMP_WRAPPERS = {
    "Timestamp": FieldRole.NONE,
    "CreateTimestamp": FieldRole.CREATED_AT,
    "UpdateTimestamp": FieldRole.UPDATED_AT,
}
TENANT_WRAPPERS = {"MultiTenant", "Host"}
_PRIMITIVES = {p.value for p in PrimitiveName}

_PRIMITIVE_SQL: dict[PrimitiveName, tuple[str, list[str]]] = {
    PrimitiveName.STRING: ("TEXT", ["NOT NULL"]),
    PrimitiveName.INT: ("INTEGER", ["NOT NULL", "DEFAULT 0"]),
    PrimitiveName.FLOAT: ("DOUBLE PRECISION", ["NOT NULL", "DEFAULT 0"]),
    PrimitiveName.BOOL: ("BOOLEAN", ["NOT NULL", "DEFAULT false"]),
}


@dataclass(frozen=True)
class Resolved:
    """Semantic kind plus storage mapping of one type expression."""

    kind: SemanticKind
    sql_type: str
    constraints: tuple[str, ...] = ()
    nullable: bool = False
    role: FieldRole = FieldRole.NONE


@dataclass
class NormalizeResult:
    entity: EntityIR
    diagnostics: list[Diagnostic] = field(default_factory=list)
    unresolved: list[UnresolvedReference] = field(default_factory=list)


@dataclass
class _Context:
    raw: RawEntity
    field_name: str | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    unresolved: list[UnresolvedReference] = field(default_factory=list)

    @property
    def key(self) -> str:
        return entity_key(self.raw.domain, self.raw.name)

    def warn(self, code: DiagnosticCode, message: str) -> None:
        self.diagnostics.append(
            Diagnostic.warning(
                code,
                message,
                file=self.raw.source_file,
                entity=self.raw.name,
                field=self.field_name,
            )
        )


def _head(expr: TypeExpr) -> tuple[str | None, list[TypeExpr]]:
    """Return the unqualified wrapper name and arguments of an expression."""
    if isinstance(expr, PrimitiveType):
        return expr.name.rsplit(".", 1)[-1], []
    if isinstance(expr, AppliedType):
        return expr.wrapper.rsplit(".", 1)[-1], list(expr.args)
    return None, []


def peel_api_annotations(expr: TypeExpr) -> tuple[TypeExpr, list[str]]:
    """Strip API validation wrappers (``Required (Trim String)``) off a field type.

    ``MinLength 3 String`` records ``min_length=3``.
    """
    annotations: list[str] = []
    current = expr
    while isinstance(current, AppliedType):
        name, args = _head(current)
        if name not in API_ANNOTATIONS:
            break
        label = camel_to_snake(name)
        if name in ("MinLength", "MaxLength") and len(args) == 2:
            bound, args = args[0], args[1:]
            if isinstance(bound, PrimitiveType):
                label = f"{label}={bound.name}"
        if len(args) != 1:
            break
        annotations.append(label)
        current = args[0]
    return current, annotations


class ElmNormalizer:
    """Phase 2: convert raw entities into normalized IR using the symbol table."""

    def __init__(self, symbols: SymbolTable, config: SchemacConfig | None = None) -> None:
        self._symbols = symbols
        self._config = config or get_config()

    def normalize(self, raw: RawEntity) -> NormalizeResult:
        """Normalize one raw entity. Never raises for recoverable problems."""
        ctx = _Context(raw=raw)
        if raw.kind == EntityKind.UNION:
            entity = self._normalize_union(raw, ctx)
        else:
            entity = self._normalize_record(raw, ctx)
        return NormalizeResult(
            entity=entity, diagnostics=ctx.diagnostics, unresolved=ctx.unresolved
        )

    def _normalize_record(self, raw: RawEntity, ctx: _Context) -> EntityIR:
        fields = [self._normalize_field(raw_field, ctx) for raw_field in raw.raw_fields]
        id_field = next(
            (f.canonical_name for f in fields if f.kind.tag == KindTag.PRIMARY_KEY), None
        )
        return EntityIR(
            name=raw.name,
            domain=raw.domain,
            kind=raw.kind,
            table_name=type_name_to_table_name(raw.name),
            source_file=raw.source_file,
            module_name=raw.module_name,
            is_primary=raw.is_primary,
            id_field=id_field,
            type_params=raw.type_params,
            fields=fields,
            imports=raw.imports,
        )

    def _normalize_union(self, raw: RawEntity, ctx: _Context) -> EntityIR:
        variants: list[VariantIR] = []
        for variant in raw.raw_variants:
            ctx.field_name = variant.name
            kinds = [self.resolve(arg, ctx).kind for arg in variant.arg_types]
            variants.append(
                VariantIR(name=variant.name, arg_types=variant.arg_types, arg_kinds=kinds)
            )
        ctx.field_name = None
        if raw.type_params:
            ctx.warn(
                DiagnosticCode.AMBIGUOUS_UNION,
                f"Union {raw.name} has type parameters "
                f"({' '.join(raw.type_params)}); codec generation is skipped",
            )
        return EntityIR(
            name=raw.name,
            domain=raw.domain,
            kind=raw.kind,
            table_name=type_name_to_table_name(raw.name),
            source_file=raw.source_file,
            module_name=raw.module_name,
            is_primary=raw.is_primary,
            type_params=raw.type_params,
            variants=variants,
            imports=raw.imports,
        )

    def _normalize_field(self, raw_field: RawField, ctx: _Context) -> FieldIR:
        ctx.field_name = raw_field.name
        canonical = camel_to_snake(raw_field.name)
        expr = raw_field.type_expr
        annotations: list[str] = []
        if ctx.raw.domain == Domain.API:
            expr, annotations = peel_api_annotations(expr)

        if raw_field.parse_error is not None:
            resolved = self._primitive(PrimitiveName.STRING)
        else:
            resolved = self.resolve(expr, ctx)

        logger.debug(f"{ctx.key}.{canonical}: {resolved.kind.describe()}")
        return FieldIR(
            canonical_name=canonical,
            display_name=snake_to_camel(canonical),
            source_name=raw_field.name,
            kind=resolved.kind,
            nullable=resolved.nullable,
            sql_type=resolved.sql_type,
            default_constraints=list(resolved.constraints),
            role=resolved.role,
            annotations=annotations,
        )

    def resolve(self, expr: TypeExpr, ctx: _Context, depth: int = 0) -> Resolved:
        """Resolve the semantic kind of one type expression (first match wins)."""
        name, args = _head(expr)

        if name == "DatabaseId":
            id_type = self._id_type(args[-1]) if args else PrimitiveName.STRING
            return Resolved(
                kind=SemanticKind.primary_key(id_type),
                sql_type="TEXT",
                constraints=("PRIMARY KEY", "DEFAULT gen_random_uuid()"),
            )

        if name in TIMESTAMP_WRAPPERS and not args:
            role = TIMESTAMP_WRAPPERS[name]
            if role == FieldRole.CREATED_AT:
                return Resolved(
                    kind=SemanticKind.timestamp(),
                    sql_type="TIMESTAMP WITH TIME ZONE",
                    constraints=("NOT NULL", "DEFAULT NOW()"),
                    role=role,
                )
            if role == FieldRole.UPDATED_AT:
                return Resolved(
                    kind=SemanticKind.optional(SemanticKind.timestamp()),
                    sql_type="TIMESTAMP WITH TIME ZONE",
                    nullable=True,
                    role=role,
                )
            return Resolved(
                kind=SemanticKind.timestamp(),
                sql_type="BIGINT",
                constraints=("NOT NULL", "DEFAULT extract(epoch from now())"),
            )

        if name == "SoftDelete" and not args:
            return Resolved(
                kind=SemanticKind.optional(SemanticKind.timestamp()),
                sql_type="BIGINT",
                nullable=True,
                role=FieldRole.SOFT_DELETE,
            )

        if name == "RichContent" and not args:
            return Resolved(
                kind=SemanticKind.rich_content(), sql_type="JSONB", constraints=("NOT NULL",)
            )

        if name == "ForeignKey" and args:
            return self._foreign_key(args, ctx)

        if name == "Maybe" and len(args) == 1:
            inner = self.resolve(args[0], ctx, depth)
            return Resolved(
                kind=SemanticKind.optional(inner.kind),
                sql_type=inner.sql_type,
                nullable=True,
                role=inner.role,
            )

        if isinstance(expr, ListType) or (name == "List" and len(args) == 1):
            inner_expr = expr.inner if isinstance(expr, ListType) else args[0]
            inner = self.resolve(inner_expr, ctx, depth)
            return Resolved(
                kind=SemanticKind.list_of(inner.kind),
                sql_type="JSONB",
                constraints=("NOT NULL", "DEFAULT '[]'::jsonb"),
            )

        if isinstance(expr, (PrimitiveType, AppliedType)):
            source_name = expr.name if isinstance(expr, PrimitiveType) else expr.wrapper
            if source_name[:1].isupper():
                target = self._symbols.resolve_entity(
                    source_name, ctx.raw.domain, ctx.raw.imports, ctx.raw.module_name
                )
                if target is not None:
                    arg_kinds = [self.resolve(arg, ctx, depth).kind for arg in args]
                    sql_type = "TEXT" if self._symbols.is_enum_like(target) else "JSONB"
                    return Resolved(
                        kind=SemanticKind.union_ref(target, arg_kinds),
                        sql_type=sql_type,
                        constraints=("NOT NULL",),
                    )

        if name in _PRIMITIVES and not args:
            return self._primitive(PrimitiveName(name))

        if name in TENANT_WRAPPERS and not args:
            return Resolved(
                kind=SemanticKind.scalar(PrimitiveName.STRING),
                sql_type="TEXT",
                constraints=("NOT NULL",),
                role=FieldRole.TENANT,
            )

        if isinstance(expr, PrimitiveType) and expr.name[:1].isupper():
            alias = self._symbols.resolve_alias(expr.name, ctx.raw.domain, ctx.raw.imports)
            if alias is not None:
                if depth >= self._config.max_alias_depth:
                    ctx.warn(
                        DiagnosticCode.UNKNOWN_WRAPPER_FALLBACK,
                        f"Alias {expr.name} nests deeper than {self._config.max_alias_depth} "
                        f"levels; treated as String",
                    )
                    return self._primitive(PrimitiveName.STRING)
                return self.resolve(alias, ctx, depth + 1)

        if isinstance(expr, PrimitiveType) and expr.name in ctx.raw.type_params:
            return self._primitive(PrimitiveName.STRING)

        ctx.warn(
            DiagnosticCode.UNKNOWN_WRAPPER_FALLBACK,
            f"Unrecognized type '{expr.to_source()}'; treated as String",
        )
        return self._primitive(PrimitiveName.STRING)

    def _foreign_key(self, args: list[TypeExpr], ctx: _Context) -> Resolved:
        id_type = self._id_type(args[-1]) if len(args) >= 2 else PrimitiveName.STRING
        sql_type, _ = _PRIMITIVE_SQL[id_type]
        parent = args[0]
        target: str | None = None
        if isinstance(parent, PrimitiveType):
            target = self._symbols.resolve_entity(
                parent.name, ctx.raw.domain, ctx.raw.imports, ctx.raw.module_name
            )
            if target is None:
                # ForeignKey parents are persisted records; try the db domain by name.
                candidate = entity_key(Domain.DB, parent.name.rsplit(".", 1)[-1])
                if self._symbols.get_entity(candidate) is not None:
                    target = candidate
        if target is None:
            reason = f"ForeignKey target '{parent.to_source()}' is not a known entity"
            ctx.warn(DiagnosticCode.UNRESOLVED_REFERENCE, f"{reason}; field kept as scalar")
            ctx.unresolved.append(
                UnresolvedReference(
                    entity=ctx.key,
                    field=camel_to_snake(ctx.field_name or ""),
                    reason=reason,
                )
            )
            return Resolved(
                kind=SemanticKind.scalar(id_type), sql_type=sql_type, constraints=("NOT NULL",)
            )
        return Resolved(
            kind=SemanticKind.foreign_key(target, id_type=id_type),
            sql_type=sql_type,
            constraints=("NOT NULL",),
        )

    def _id_type(self, expr: TypeExpr) -> PrimitiveName:
        name, _ = _head(expr)
        if name in _PRIMITIVES:
            return PrimitiveName(name)
        return PrimitiveName.STRING

    @staticmethod
    def _primitive(name: PrimitiveName) -> Resolved:
        sql_type, constraints = _PRIMITIVE_SQL[name]
        return Resolved(
            kind=SemanticKind.scalar(name), sql_type=sql_type, constraints=tuple(constraints)
        )
