"""``specgraph status``: validate every artifact and report the workspace status.

Exits with code 1 when the workspace fails validation.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from specgraph.cli.context import open_engine
from specgraph.cli.renderer import GraphRenderer
from specgraph.core.errors import SpecgraphError

console = Console()


def status_cmd(
    artifact: str = typer.Argument(
        None, help="Validate only this artifact (handle or path). Default: whole workspace."
    ),
    include_scratch: bool = typer.Option(
        True, "--scratch/--no-scratch", help="Include scratch pads in the check."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    workspace: Path = typer.Option(
        None, "--workspace", "-w", help="Workspace root (default: discover from cwd)."
    ),
) -> None:
    """Check front matter, dependency targets, links and cycles."""
    engine = open_engine(workspace)
    try:
        if artifact is not None:
            report = engine.validate_references(artifact)
            passed = not report.errors
        else:
            report = engine.workspace_status(include_scratch=include_scratch)
            passed = report.passed
    except SpecgraphError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(report.model_dump_json())
    elif artifact is not None:
        for issue in report.errors:
            console.print(f"[red]FAIL[/red] {escape(issue.location)}: {escape(issue.message)}")
        console.print(f"{report.artifact}: {'OK' if passed else 'FAIL'}")
    else:
        console.print(GraphRenderer(console=console).render_status(report))

    if not passed:
        raise typer.Exit(code=1)
