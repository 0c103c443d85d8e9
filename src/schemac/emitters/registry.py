"""Emitter registry and orchestration."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from schemac.core.config import SchemacConfig
from schemac.core.models import CompiledSchema, Diagnostic, DiagnosticCode
from schemac.emitters.base import SchemaEmitter
from schemac.emitters.ddl import DdlEmitter
from schemac.emitters.introspection import IntrospectionEmitter
from schemac.emitters.runtime import RuntimeEmitter
from schemac.emitters.typed_module import TypedModuleEmitter
from schemac.emitters.union_codec import UnionCodecEmitter

logger = logging.getLogger(__name__)


def get_default_emitters(config: SchemacConfig | None = None) -> list[SchemaEmitter]:
    """Return the built-in backends in generation order."""
    return [
        DdlEmitter(config),
        IntrospectionEmitter(config),
        RuntimeEmitter(config),
        TypedModuleEmitter(config),
        UnionCodecEmitter(config),
    ]


def backend_names() -> list[str]:
    return [emitter.name for emitter in get_default_emitters()]


@dataclass
class EmitOutcome:
    """Artifacts of every backend that succeeded, keyed by backend name."""

    artifacts: dict[str, dict[str, str]] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(d.code == DiagnosticCode.EMITTER_FAILURE for d in self.diagnostics)


def run_emitters(
    schema: CompiledSchema,
    emitters: Iterable[SchemaEmitter],
) -> EmitOutcome:
    """Run each backend over the shared schema.

    A backend that raises contributes an ``emitter_failure`` diagnostic and no
    files; the remaining backends still run.
    """
    outcome = EmitOutcome()
    for emitter in emitters:
        try:
            result = emitter.emit(schema)
        except Exception as exc:
            logger.warning(f"Backend {emitter.name} failed: {exc}")
            outcome.diagnostics.append(
                Diagnostic.error(
                    DiagnosticCode.EMITTER_FAILURE,
                    f"{emitter.name}: {exc}",
                )
            )
            continue
        logger.debug(f"Backend {emitter.name} produced {len(result.files)} file(s)")
        outcome.artifacts[emitter.name] = result.files
        outcome.diagnostics.extend(result.diagnostics)
    return outcome
