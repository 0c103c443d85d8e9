"""schemac CLI - Elm model schema compiler.

This module provides the command-line interface for schemac, compiling a tree
of Elm model files into SQL, runtime glue and typed client modules.
"""

from __future__ import annotations

import json
import logging
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from schemac.core.models import Domain

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="schemac",
    help="Compile Elm model definitions into SQL, runtime and typed modules",
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()
err_console = Console(stderr=True)

# Global verbose flag
_verbose: bool = False


def set_verbose(verbose: bool) -> None:
    """Set global verbose mode and install the log handler."""
    global _verbose
    _verbose = verbose
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose


def print_exception(e: Exception) -> None:
    """Print exception details in verbose mode."""
    if _verbose:
        err_console.print("\n[dim]--- Traceback (verbose mode) ---[/dim]")
        err_console.print(f"[dim]{traceback.format_exc()}[/dim]")


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output with full tracebacks"),
    ] = False,
) -> None:
    """schemac CLI - Elm model schema compiler."""
    set_verbose(verbose)


def get_compiler():
    """Build the compiler from environment settings."""
    from pydantic import ValidationError

    from schemac.client import SchemaCompiler
    from schemac.core.config import get_config

    try:
        return SchemaCompiler(get_config())
    except ValidationError as e:
        err_console.print(f"[red]Error:[/red] Invalid configuration: {e}")
        err_console.print("[yellow]Hint:[/yellow] Check SCHEMAC_* environment variables")
        print_exception(e)
        raise typer.Exit(1)


def _resolve_strict(strict: Optional[bool]) -> bool:
    from schemac.core.config import get_config

    return get_config().strict if strict is None else strict


SourceArg = Annotated[
    Path,
    typer.Argument(help="Model root holding Schema/, Api/, Kv/, Sse/ and Storage/"),
]
StrictOpt = Annotated[
    Optional[bool],
    typer.Option("--strict/--no-strict", help="Treat warnings as failures"),
]


def _print_diagnostics(diagnostics) -> None:
    from schemac.cli._tables import build_diagnostics_table

    if diagnostics:
        err_console.print(build_diagnostics_table(diagnostics))


@app.command("compile")
def compile_models(
    source: SourceArg,
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output directory for generated files"),
    ] = Path("generated"),
    backend: Annotated[
        Optional[list[str]],
        typer.Option("--backend", "-b", help="Backend to run (repeatable, default: all)"),
    ] = None,
    strict: StrictOpt = None,
) -> None:
    """Compile a model tree and write the generated artifacts.

    Example:
        schemac compile models -o generated --backend ddl --backend runtime
    """
    compiler = get_compiler()
    strict_mode = _resolve_strict(strict)

    console.print(f"[blue]Compiling models:[/blue] {source}")
    try:
        with console.status("[bold blue]Compiling..."):
            result = compiler.compile(source, output, backends=backend)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        print_exception(e)
        raise typer.Exit(2)

    _print_diagnostics(result.diagnostics)
    if result.write_result is not None:
        write = result.write_result
        console.print(f"  Entities: {len(result.schema.entities)}")
        console.print(f"  References: {len(result.schema.edges)}")
        console.print(f"  Files written: {write.files_written} ({len(write.unchanged)} unchanged)")
    if is_verbose() and result.artifacts:
        from schemac.cli._tables import build_artifacts_table

        console.print(build_artifacts_table(result.artifacts))

    if result.passes(strict_mode):
        console.print(f"[green]✓[/green] Compiled to: {output}")
        return
    if result.success:
        err_console.print(f"[red]Error:[/red] {len(result.warnings)} warning(s) in strict mode")
    else:
        err_console.print(
            f"[red]Error:[/red] Compilation failed with {len(result.errors)} error(s)"
        )
    raise typer.Exit(1)


@app.command()
def check(
    source: SourceArg,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output machine-readable JSON"),
    ] = False,
    strict: StrictOpt = None,
) -> None:
    """Report diagnostics without generating anything.

    Example:
        schemac check models --json
    """
    from schemac.core.models import Severity

    compiler = get_compiler()
    schema = compiler.analyze(source)
    diagnostics = schema.diagnostics
    errors = [d for d in diagnostics if d.severity == Severity.ERROR]
    warnings = [d for d in diagnostics if d.severity == Severity.WARNING]

    if json_output:
        payload = [d.model_dump(mode="json") for d in diagnostics]
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        _print_diagnostics(diagnostics)
        console.print(
            f"{len(schema.entities)} entities, {len(errors)} error(s), {len(warnings)} warning(s)"
        )

    if errors or (_resolve_strict(strict) and warnings):
        raise typer.Exit(1)


@app.command()
def entities(
    source: SourceArg,
    domain: Annotated[
        Optional[Domain],
        typer.Option("--domain", "-d", help="Only list entities of this domain"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output machine-readable JSON"),
    ] = False,
) -> None:
    """List the entities found in a model tree.

    Example:
        schemac entities models --domain db
    """
    from schemac.cli._tables import build_entities_table

    compiler = get_compiler()
    schema = compiler.analyze(source)
    selected = [e for e in schema.entities.values() if domain is None or e.domain == domain]

    if json_output:
        payload = [
            {
                "key": e.key,
                "name": e.name,
                "domain": e.domain.value,
                "kind": e.kind.value,
                "primary": e.is_primary,
                "table_name": e.table_name,
                "source_file": e.source_file,
                "fields": [f.canonical_name for f in e.fields],
                "variants": [v.name for v in e.variants],
            }
            for e in selected
        ]
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    if not selected:
        console.print("[yellow]No entities found[/yellow]")
        return
    console.print(build_entities_table(selected))


@app.command("export-ir")
def export_ir(
    source: SourceArg,
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file path"),
    ] = Path("ir.json"),
) -> None:
    """Export the resolved IR to a JSON file.

    Example:
        schemac export-ir models -o ir.json
    """
    from schemac.core.serializer import serialize

    compiler = get_compiler()
    with console.status("[bold blue]Generating IR..."):
        schema = compiler.analyze(source)
        json_str = serialize(schema)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json_str, encoding="utf-8")

    console.print(f"[green]✓[/green] Exported to: {output}")
    console.print(f"  Entities: {len(schema.entities)}")
    console.print(f"  References: {len(schema.edges)}")
    console.print(f"  Diagnostics: {len(schema.diagnostics)}")


if __name__ == "__main__":
    app()
