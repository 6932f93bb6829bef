"""Main Typer application: registers every specgraph command.

Entry point: ``specgraph`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from specgraph.cli.commands.delete import delete_cmd
from specgraph.cli.commands.deps import deps_cmd
from specgraph.cli.commands.resolve import resolve_cmd
from specgraph.cli.commands.status import status_cmd
from specgraph.cli.commands.structure import constraint_cmd, index_cmd, render_cmd
from specgraph.config import EngineSettings

app = typer.Typer(
    name="specgraph",
    help="specgraph: dependency and structure graphs for a Markdown spec workspace.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (default: SPECGRAPH_LOG_LEVEL or WARNING)."
    ),
) -> None:
    """Configure logging before any command runs."""
    level = (log_level or EngineSettings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="resolve", help="Resolve a locator to an artifact identifier.")(resolve_cmd)
app.command(name="deps", help="Show an artifact's dependency tree.")(deps_cmd)
app.command(name="index", help="Build the structure index.")(index_cmd)
app.command(name="render", help="Render a heading with the sections it references.")(render_cmd)
app.command(name="constraint", help="Render a constraint group.")(constraint_cmd)
app.command(name="delete", help="Delete an artifact if nothing depends on it.")(delete_cmd)
app.command(name="status", help="Validate references, dependencies and cycles.")(status_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
