"""Tests for the rich renderables used by the CLI."""

from __future__ import annotations

from rich.console import Console

from specgraph.cli.renderer import GraphRenderer


def render_text(renderable) -> str:
    console = Console(width=240)
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


class TestGraphRenderer:
    def test_tree_panel(self, graph, write_spec):
        write_spec("a", ["spec://b"])
        write_spec("b")
        tree = graph.dependency_tree(graph.resolver.resolve_artifact("spec://b"))
        text = render_text(GraphRenderer().render_tree(tree))
        assert "Dependency tree" in text
        assert "spec://b" in text
        assert "spec://a" in text

    def test_missing_metadata_marked(self, graph, write_spec):
        write_spec("a", ["../gone/spec.md"])
        tree = graph.dependency_tree(graph.resolver.resolve_artifact("spec://a"))
        assert "metadata unavailable" in render_text(GraphRenderer().render_tree(tree))

    def test_plan_panel(self, engine, write_spec):
        write_spec("a", ["spec://b"])
        write_spec("b")
        text = render_text(GraphRenderer().render_plan(engine.check_deletion_impact("spec://b")))
        assert "BLOCKED" in text
        assert "spec/b" in text

    def test_index_table(self, indexer, write_spec):
        write_spec("a", body="# Alpha\n\n## Beta\n")
        text = render_text(GraphRenderer().render_index(indexer.build_index(use_cache=False)))
        assert "spec/a/spec.md" in text
        assert "Structure index" in text

    def test_status_panel(self, engine, write_spec):
        write_spec("a", ["spec://b"])
        write_spec("b", ["spec://a"])
        write_spec("c", body="# Gamma\n\n[Broken](missing.md)\n")
        text = render_text(GraphRenderer().render_status(engine.workspace_status()))
        assert "Workspace status: FAIL" in text
        assert "Cycle: spec://a -> spec://b -> spec://a" in text
        assert "missing filesystem target spec/c/missing.md" in text
        assert "PASS" in text
