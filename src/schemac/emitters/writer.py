"""Artifact writer.

Writes each backend's files under an output root. A write failure aborts only
that backend: its error is recorded and the next backend is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from schemac.core.models import Diagnostic, DiagnosticCode

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Result of writing generated artifacts."""

    written: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    failed_backends: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def files_written(self) -> int:
        return len(self.written)

    @property
    def success(self) -> bool:
        """Check if every backend was written."""
        return len(self.failed_backends) == 0


class ArtifactWriter:
    """Persist generated artifacts to disk."""

    def __init__(self, output_root: Path) -> None:
        self._root = output_root

    @property
    def root(self) -> Path:
        return self._root

    def write(self, artifacts: dict[str, dict[str, str]]) -> WriteResult:
        """Write ``{backend: {relative_path: text}}`` under the output root.

        Files whose content is already identical are left untouched so
        regeneration does not disturb modification times.
        """
        result = WriteResult()
        for backend, files in artifacts.items():
            try:
                self._write_backend(files, result)
            except OSError as exc:
                logger.warning(f"Could not write {backend} output: {exc}")
                result.failed_backends.append(backend)
                result.diagnostics.append(
                    Diagnostic.error(
                        DiagnosticCode.IO_ERROR,
                        f"{backend}: {exc}",
                        file=str(exc.filename) if exc.filename else None,
                    )
                )
        return result

    def _write_backend(self, files: dict[str, str], result: WriteResult) -> None:
        for relative, text in files.items():
            target = self._root / relative
            data = text.encode("utf-8")
            if target.is_file() and target.read_bytes() == data:
                result.unchanged.append(target)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            result.written.append(target)
