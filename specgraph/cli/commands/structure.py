"""``specgraph index``, ``render`` and ``constraint``: structure index commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from specgraph.cli.context import open_engine
from specgraph.cli.renderer import GraphRenderer
from specgraph.core.errors import SpecgraphError

console = Console()

_WORKSPACE_OPTION = typer.Option(
    None, "--workspace", "-w", help="Workspace root (default: discover from cwd)."
)
_NO_CACHE_OPTION = typer.Option(
    False, "--no-cache", help="Build an ephemeral index without touching the disk cache."
)


def index_cmd(
    no_cache: bool = _NO_CACHE_OPTION,
    workspace: Path = _WORKSPACE_OPTION,
) -> None:
    """Build (or refresh) the structure index and summarise it."""
    engine = open_engine(workspace)
    try:
        index = engine.build_index(use_cache=not no_cache)
    except SpecgraphError as exc:
        console.print(f"[red]Indexing failed:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print(GraphRenderer(console=console).render_index(index))
    console.print(
        f"[bold]{len(index.headings)}[/bold] headings, "
        f"[bold]{len(index.constraints)}[/bold] constraint groups, "
        f"[bold]{len(index.relationships)}[/bold] relationships"
    )


def render_cmd(
    heading: str = typer.Argument(..., help="Heading as 'path#slug' or a workspace-unique slug."),
    no_cache: bool = _NO_CACHE_OPTION,
    workspace: Path = _WORKSPACE_OPTION,
) -> None:
    """Print a heading's section plus every section it links to."""
    engine = open_engine(workspace)
    try:
        text = engine.render_heading(heading, use_cache=not no_cache)
    except SpecgraphError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    typer.echo(text, nl=False)


def constraint_cmd(
    constraint: str = typer.Argument(..., help="Constraint group as 'path!group.set'."),
    no_cache: bool = _NO_CACHE_OPTION,
    workspace: Path = _WORKSPACE_OPTION,
) -> None:
    """Print a constraint group's heading plus the sections it links to."""
    engine = open_engine(workspace)
    try:
        text = engine.render_constraint_group(constraint, use_cache=not no_cache)
    except SpecgraphError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    typer.echo(text, nl=False)
