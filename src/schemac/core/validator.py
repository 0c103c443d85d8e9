"""IR validation module.

This module checks the reference integrity of a compiled schema: every edge
and every foreign-key kind must point at an existing entity, and canonical
field names must be unique and survive the snake/camel round trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from schemac.core.models import (
    CompiledSchema,
    Diagnostic,
    DiagnosticCode,
    EntityIR,
    KindTag,
    Severity,
)
from schemac.core.naming import is_round_trip_safe


class ValidationErrorType(str, Enum):
    """Types of validation errors."""

    DANGLING_ENTITY_REF = "dangling_entity_reference"
    DANGLING_FIELD_REF = "dangling_field_reference"
    UNCONFIRMED_FOREIGN_KEY = "unconfirmed_foreign_key"
    DUPLICATE_FIELD = "duplicate_field"
    UNSTABLE_NAME = "unstable_name"


_WARNING_TYPES = {ValidationErrorType.UNSTABLE_NAME}


@dataclass
class ValidationError:
    """A single validation error."""

    error_type: ValidationErrorType
    entity_key: str
    field_name: str
    invalid_ref: str
    message: str

    @property
    def severity(self) -> Severity:
        if self.error_type in _WARNING_TYPES:
            return Severity.WARNING
        return Severity.ERROR

    def to_diagnostic(self, file: str | None = None) -> Diagnostic:
        code = (
            DiagnosticCode.NAME_COLLISION
            if self.error_type
            in (ValidationErrorType.DUPLICATE_FIELD, ValidationErrorType.UNSTABLE_NAME)
            else DiagnosticCode.UNRESOLVED_REFERENCE
        )
        return Diagnostic(
            severity=self.severity,
            code=code,
            message=self.message,
            file=file,
            entity=self.entity_key,
            field=self.field_name or None,
        )


@dataclass
class ValidationResult:
    """Result of IR validation."""

    is_valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    def add_error(
        self,
        error_type: ValidationErrorType,
        entity_key: str,
        field_name: str,
        invalid_ref: str,
        message: str,
    ) -> None:
        """Add a validation error (warnings do not invalidate the result)."""
        error = ValidationError(
            error_type=error_type,
            entity_key=entity_key,
            field_name=field_name,
            invalid_ref=invalid_ref,
            message=message,
        )
        self.errors.append(error)
        if error.severity == Severity.ERROR:
            self.is_valid = False


def validate_schema(schema: CompiledSchema) -> ValidationResult:
    """Validate a compiled schema for reference integrity.

    Args:
        schema: The compiled schema to validate.

    Returns:
        ValidationResult containing validation status and any errors found.
    """
    result = ValidationResult(is_valid=True)

    for key, entity in schema.entities.items():
        _validate_field_names(key, entity, result)

    confirmed: set[tuple[str, str]] = set()
    for edge in schema.edges:
        source = schema.entities.get(edge.from_entity)
        target = schema.entities.get(edge.to_entity)
        if source is None:
            result.add_error(
                error_type=ValidationErrorType.DANGLING_ENTITY_REF,
                entity_key=edge.from_entity,
                field_name=edge.from_field or "",
                invalid_ref=edge.from_entity,
                message=f"Edge starts at non-existent entity '{edge.from_entity}'",
            )
            continue
        if target is None:
            result.add_error(
                error_type=ValidationErrorType.DANGLING_ENTITY_REF,
                entity_key=edge.from_entity,
                field_name=edge.from_field or "",
                invalid_ref=edge.to_entity,
                message=f"Entity '{edge.from_entity}' references non-existent entity "
                f"'{edge.to_entity}'",
            )
            continue
        if edge.from_field is not None and source.get_field(edge.from_field) is None:
            result.add_error(
                error_type=ValidationErrorType.DANGLING_FIELD_REF,
                entity_key=edge.from_entity,
                field_name=edge.from_field,
                invalid_ref=edge.from_field,
                message=f"Edge starts at non-existent field '{edge.from_entity}.{edge.from_field}'",
            )
        if edge.to_field is not None and target.get_field(edge.to_field) is None:
            result.add_error(
                error_type=ValidationErrorType.DANGLING_FIELD_REF,
                entity_key=edge.from_entity,
                field_name=edge.from_field or "",
                invalid_ref=f"{edge.to_entity}.{edge.to_field}",
                message=f"Edge targets non-existent field '{edge.to_entity}.{edge.to_field}'",
            )
        if edge.from_field is not None:
            confirmed.add((edge.from_entity, edge.from_field))

    for key, entity in schema.entities.items():
        for fld in entity.fields:
            kind = fld.kind.inner if fld.kind.tag == KindTag.OPTIONAL else fld.kind
            if kind is None or kind.tag != KindTag.FOREIGN_KEY:
                continue
            if (key, fld.canonical_name) not in confirmed:
                result.add_error(
                    error_type=ValidationErrorType.UNCONFIRMED_FOREIGN_KEY,
                    entity_key=key,
                    field_name=fld.canonical_name,
                    invalid_ref=kind.target_entity or "",
                    message=f"Foreign key '{key}.{fld.canonical_name}' has no confirmed "
                    f"reference edge",
                )

    return result


def _validate_field_names(key: str, entity: EntityIR, result: ValidationResult) -> None:
    """Check uniqueness and round-trip stability of canonical field names."""
    seen: dict[str, str] = {}
    for fld in entity.fields:
        previous = seen.get(fld.canonical_name)
        if previous is not None:
            result.add_error(
                error_type=ValidationErrorType.DUPLICATE_FIELD,
                entity_key=key,
                field_name=fld.canonical_name,
                invalid_ref=fld.source_name,
                message=f"Fields '{previous}' and '{fld.source_name}' of '{key}' both map "
                f"to column '{fld.canonical_name}'",
            )
        else:
            seen[fld.canonical_name] = fld.source_name
        if not is_round_trip_safe(fld.canonical_name):
            result.add_error(
                error_type=ValidationErrorType.UNSTABLE_NAME,
                entity_key=key,
                field_name=fld.canonical_name,
                invalid_ref=fld.source_name,
                message=f"Field name '{fld.canonical_name}' does not survive the "
                f"snake/camel round trip",
            )
