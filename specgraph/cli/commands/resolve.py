"""``specgraph resolve``: normalise a locator into an artifact identifier."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from specgraph.cli.context import open_engine
from specgraph.core.errors import LocatorError

console = Console()


def resolve_cmd(
    locator: str = typer.Argument(..., help="Path, https:// URL or spec://, impl://, scratch:// handle."),
    from_document: Path = typer.Option(
        None, "--from", "-f", help="Document the locator appears in (for relative paths)."
    ),
    workspace: Path = typer.Option(
        None, "--workspace", "-w", help="Workspace root (default: discover from cwd)."
    ),
) -> None:
    """Resolve a locator and show its canonical identifier."""
    engine = open_engine(workspace)
    try:
        resolved = engine.resolve(locator, from_document)
    except LocatorError as exc:
        console.print(f"[red]Cannot resolve:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Artifact", str(resolved.artifact))
    table.add_row("Provenance", resolved.provenance.value)
    table.add_row("Target", resolved.url or resolved.workspace_path or "")
    console.print(table)
