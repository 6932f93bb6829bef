"""Shared command helpers: opening the engine for a command invocation."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from specgraph.config import EngineSettings
from specgraph.core.engine import WorkspaceEngine
from specgraph.core.errors import WorkspaceError

console = Console(stderr=True)


def open_engine(workspace: Path | None) -> WorkspaceEngine:
    """Engine for ``workspace``, or for the workspace enclosing the cwd."""
    settings = EngineSettings()
    try:
        if workspace is None:
            return WorkspaceEngine.discover(Path.cwd(), settings=settings)
        return WorkspaceEngine(workspace, settings=settings)
    except WorkspaceError as exc:
        console.print(f"[red]Workspace error:[/red] {exc}")
        raise typer.Exit(code=1)
