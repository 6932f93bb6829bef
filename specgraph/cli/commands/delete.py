"""``specgraph delete``: remove an artifact unless dependents block it."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from specgraph.cli.context import open_engine
from specgraph.cli.renderer import GraphRenderer
from specgraph.core.errors import DeletionBlockedError, SpecgraphError

console = Console()


def delete_cmd(
    artifact: str = typer.Argument(..., help="Handle (spec://name) or path of the artifact."),
    force: bool = typer.Option(False, "--force", help="Delete even when dependents exist."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without deleting."),
    workspace: Path = typer.Option(
        None, "--workspace", "-w", help="Workspace root (default: discover from cwd)."
    ),
) -> None:
    """Delete an artifact folder after checking its dependents."""
    engine = open_engine(workspace)
    renderer = GraphRenderer(console=console)
    try:
        if dry_run:
            console.print(renderer.render_plan(engine.check_deletion_impact(artifact)))
            return
        removed = engine.delete(artifact, force=force)
    except DeletionBlockedError as exc:
        console.print(renderer.render_tree(exc.tree, title="Blocking dependents"))
        console.print(f"[bold red]Blocked:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except SpecgraphError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    note = " [bold red](forced)[/bold red]" if removed.plan.override else ""
    console.print(f"[green]Deleted[/green] {removed.target} ({removed.removed_path}){note}")
