"""``specgraph deps``: show the dependency tree of an artifact.

On a dependency cycle the partial tree gathered before the loop closed is
printed, followed by the cycle itself, and the command exits with code 1.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from specgraph.cli.context import open_engine
from specgraph.cli.renderer import GraphRenderer
from specgraph.core.errors import CycleDetectedError, SpecgraphError

console = Console()


def deps_cmd(
    artifact: str = typer.Argument(..., help="Handle (spec://name) or path of the artifact."),
    max_depth: int = typer.Option(
        None, "--max-depth", "-d", help="Limit upstream traversal depth."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the tree as JSON."),
    workspace: Path = typer.Option(
        None, "--workspace", "-w", help="Workspace root (default: discover from cwd)."
    ),
) -> None:
    """Show upstream, downstream and aggregate dependency edges."""
    engine = open_engine(workspace)
    renderer = GraphRenderer(console=console)
    try:
        tree = engine.dependency_tree(artifact, max_depth=max_depth)
    except CycleDetectedError as exc:
        console.print(renderer.render_tree(exc.partial, title="Partial dependency tree"))
        console.print(f"[bold red]Cycle:[/bold red] {' -> '.join(map(str, exc.cycle))}")
        raise typer.Exit(code=1)
    except SpecgraphError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(tree.model_dump_json(by_alias=True))
        return
    console.print(renderer.render_tree(tree))
