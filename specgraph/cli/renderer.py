"""Rich renderables for dependency trees, deletion plans, index summaries and
workspace status reports.

Color scheme
------------
- green   : resolved artifact with readable metadata
- yellow  : metadata unavailable (missing, external or unreadable target)
- red     : blocking (required) downstream edge
- dim     : optional edge
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from specgraph.models.artifacts import ArtifactSummary
from specgraph.models.dependencies import DependencyEdge, DependencyTree
from specgraph.models.lifecycle import DeletionPlan
from specgraph.models.validation import StatusResult, WorkspaceStatus
from specgraph.structure.index import WorkspaceIndex


def _summary_cell(summary: ArtifactSummary) -> str:
    label = str(summary.id)
    if summary.version:
        label += f" [dim]v{summary.version}[/dim]"
    if summary.metadata_unavailable:
        return f"[yellow]{label} (metadata unavailable)[/yellow]"
    return f"[green]{label}[/green]"


class GraphRenderer:
    """Renders engine results for the terminal.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def edge_table(self, title: str, edges: list[DependencyEdge]) -> Table:
        table = Table(title=title, header_style="bold cyan", expand=True)
        table.add_column("From", min_width=18)
        table.add_column("To", min_width=18)
        table.add_column("Declared in")
        table.add_column("Optional", justify="center")
        for edge in edges:
            optional = "[dim]yes[/dim]" if edge.optional else "[bold]no[/bold]"
            table.add_row(
                _summary_cell(edge.from_), _summary_cell(edge.to), edge.declared_in, optional
            )
        return table

    def render_tree(self, tree: DependencyTree, title: str = "Dependency tree") -> Panel:
        parts = [
            Text.from_markup(f"[bold]Root:[/bold] {_summary_cell(tree.root)}"),
            self.edge_table("Upstream", tree.upstream),
            self.edge_table("Downstream", tree.downstream),
            Text.from_markup(f"[bold]Aggregate edges:[/bold] {len(tree.aggregate)}"),
        ]
        return Panel(Group(*parts), title=f"[bold]{title}[/bold]", border_style="blue")

    def render_plan(self, plan: DeletionPlan) -> Panel:
        if plan.override:
            status = "[bold red]BLOCKED (override)[/bold red]"
        elif plan.blocked:
            status = "[bold red]BLOCKED[/bold red]"
        else:
            status = "[green]safe to delete[/green]"
        table = Table(header_style="bold cyan", expand=True)
        table.add_column("Dependent")
        table.add_column("Declared in")
        table.add_column("Blocking", justify="center")
        for edge in plan.tree.downstream:
            blocking = "[dim]no[/dim]" if edge.optional else "[red]yes[/red]"
            table.add_row(_summary_cell(edge.from_), edge.declared_in, blocking)
        body = Group(
            Text.from_markup(f"[bold]Target:[/bold] {plan.target}  |  {status}"),
            Text.from_markup(f"[bold]Folder:[/bold] {plan.artifact_dir}"),
            table,
        )
        return Panel(body, title="[bold]Deletion plan[/bold]", border_style="magenta")

    def render_index(self, index: WorkspaceIndex) -> Table:
        table = Table(title="Structure index", header_style="bold cyan", expand=True)
        table.add_column("Artifact", min_width=25)
        table.add_column("Kind", justify="center")
        table.add_column("Headings", justify="right")
        table.add_column("Constraint groups", justify="right")
        for key in index.artifacts:
            table.add_row(
                key.workspace_path,
                key.kind.value,
                str(len(index.list_headings(key))),
                str(len(index.list_constraint_groups(key))),
            )
        return table

    def render_status(self, status: WorkspaceStatus) -> Panel:
        table = Table(header_style="bold cyan", expand=True)
        table.add_column("Artifact", min_width=18)
        table.add_column("Status", justify="center")
        table.add_column("Location")
        table.add_column("Issue")
        for artifact in status.artifacts:
            if artifact.status is StatusResult.PASS:
                table.add_row(str(artifact.artifact), "[green]PASS[/green]", artifact.resolved_path, "")
                continue
            for issue in artifact.errors:
                table.add_row(
                    str(artifact.artifact),
                    "[red]FAIL[/red]",
                    issue.location,
                    f"[dim]{issue.category.value}:[/dim] {escape(issue.message)}",
                )

        parts: list = [table]
        for cycle in status.cycles:
            chain = " -> ".join(map(str, cycle))
            parts.append(Text.from_markup(f"[bold red]Cycle:[/bold red] {chain}"))
        verdict = "[green]OK[/green]" if status.passed else "[bold red]FAIL[/bold red]"
        parts.append(
            Text.from_markup(
                f"[bold]Specs and implementations:[/bold] {status.spec_impl_status.value}  |  "
                f"[bold]Scratch pads:[/bold] {status.scratchpad_status.value}"
            )
        )
        parts.append(Text.from_markup(f"[bold]Workspace status:[/bold] {verdict}"))
        return Panel(Group(*parts), title="[bold]Workspace status[/bold]", border_style="blue")
