"""Rich table builders used by the CLI.

Kept separate to keep the command module smaller.
"""

from __future__ import annotations

from rich.table import Table

from schemac.core.models import Diagnostic, EntityIR, Severity

_SEVERITY_STYLE = {Severity.ERROR: "red", Severity.WARNING: "yellow"}


def build_diagnostics_table(diagnostics: list[Diagnostic]) -> Table:
    """Build a (Severity, Code, Location, Message) table."""
    table = Table(show_header=True, title="Diagnostics")
    table.add_column("Severity")
    table.add_column("Code")
    table.add_column("Location", style="cyan")
    table.add_column("Message")
    for diag in diagnostics:
        style = _SEVERITY_STYLE[diag.severity]
        table.add_row(
            f"[{style}]{diag.severity.value}[/{style}]",
            diag.code.value,
            diag.location(),
            diag.message,
        )
    return table


def build_entities_table(entities: list[EntityIR]) -> Table:
    """Build entity listing table for `entities`."""
    table = Table(show_header=True, title="Entities")
    table.add_column("Domain")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Primary")
    table.add_column("Storage Key")
    table.add_column("Members", justify="right")
    table.add_column("Source")
    for entity in entities:
        members = len(entity.variants) if entity.is_union else len(entity.fields)
        table.add_row(
            entity.domain.value,
            entity.name,
            entity.kind.value,
            "[green]yes[/green]" if entity.is_primary else "no",
            entity.table_name,
            str(members),
            entity.source_file,
        )
    return table


def build_artifacts_table(artifacts: dict[str, dict[str, str]]) -> Table:
    """Build a (Backend, File) table of generated artifacts."""
    table = Table(show_header=True, title="Generated Artifacts")
    table.add_column("Backend")
    table.add_column("File", style="cyan")
    for backend, files in artifacts.items():
        for path in files:
            table.add_row(backend, path)
    return table
