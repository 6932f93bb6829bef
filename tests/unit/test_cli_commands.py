"""Unit tests for the CLI: Typer command registration and basic behavior.

Every invocation passes ``--workspace`` so nothing depends on the cwd.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from specgraph.cli.app import app

runner = CliRunner()


@pytest.fixture
def ws(workspace, write_spec):
    write_spec("a", ["../b/spec.md"], body="# Alpha\n\nSee [usage](../b/spec.md#usage).\n")
    write_spec("b", body="# Beta\n\n## Usage\n\nUse it.\n\n!usage.limits:\n- none\n")
    return str(workspace.root)


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        # Typer's no_args_is_help may exit with 0 or 2 depending on version
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("resolve", "deps", "index", "render", "constraint", "delete", "status"):
            assert name in result.output

    @pytest.mark.parametrize("command", ["resolve", "deps", "index", "render", "constraint", "delete", "status"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: commands against a workspace
# ---------------------------------------------------------------------------


class TestResolveCommand:
    def test_handle(self, ws):
        result = runner.invoke(app, ["resolve", "spec://b", "--workspace", ws])
        assert result.exit_code == 0
        assert "spec://b" in result.output
        assert "exact_handle" in result.output

    def test_relative_to_document(self, ws):
        result = runner.invoke(
            app, ["resolve", "../b/spec.md", "--from", "spec/a/spec.md", "--workspace", ws]
        )
        assert result.exit_code == 0
        assert "best_match_file" in result.output

    def test_http_rejected(self, ws):
        result = runner.invoke(app, ["resolve", "http://example.com/x.md", "-w", ws])
        assert result.exit_code == 1
        assert "Cannot resolve" in result.output

    def test_missing_workspace(self, tmp_path):
        (tmp_path / "plain").mkdir()
        result = runner.invoke(app, ["resolve", "spec://a", "-w", str(tmp_path / "plain")])
        assert result.exit_code == 1


class TestDepsCommand:
    def test_json_tree(self, ws):
        result = runner.invoke(app, ["deps", "spec://b", "--json", "-w", ws])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["root"]["id"] == {"kind": "spec", "slug": "b"}
        assert [edge["from"]["id"]["slug"] for edge in data["downstream"]] == ["a"]

    def test_table_output(self, ws):
        result = runner.invoke(app, ["deps", "spec://a", "-w", ws])
        assert result.exit_code == 0
        assert "Upstream" in result.output
        assert "Downstream" in result.output

    def test_cycle_exits_with_partial_tree(self, ws, write_spec):
        write_spec("b", ["spec://a"])
        result = runner.invoke(app, ["deps", "spec://a", "-w", ws])
        assert result.exit_code == 1
        assert "Cycle:" in result.output
        assert "Partial dependency tree" in result.output

    def test_unknown_artifact(self, ws):
        result = runner.invoke(app, ["deps", "spec://ghost", "-w", ws])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestStructureCommands:
    def test_index_summary(self, ws):
        result = runner.invoke(app, ["index", "-w", ws])
        assert result.exit_code == 0
        assert "3 headings" in result.output
        assert "1 constraint groups" in result.output

    def test_render_heading(self, ws):
        result = runner.invoke(app, ["render", "spec/b/spec.md#usage", "-w", ws])
        assert result.exit_code == 0
        assert result.stdout == "## Usage\n\nUse it.\n\n!usage.limits:\n- none\n"

    def test_render_unknown(self, ws):
        result = runner.invoke(app, ["render", "spec/b/spec.md#missing", "--no-cache", "-w", ws])
        assert result.exit_code == 1

    def test_constraint(self, ws):
        result = runner.invoke(app, ["constraint", "spec/b/spec.md!usage.limits", "-w", ws])
        assert result.exit_code == 0
        assert result.stdout.startswith("## Usage\n")


class TestDeleteCommand:
    def test_blocked(self, ws, workspace):
        result = runner.invoke(app, ["delete", "spec://b", "-w", ws])
        assert result.exit_code == 1
        assert "Blocked:" in result.output
        assert (workspace.root / "spec" / "b" / "spec.md").is_file()

    def test_dry_run(self, ws, workspace):
        result = runner.invoke(app, ["delete", "spec://b", "--dry-run", "-w", ws])
        assert result.exit_code == 0
        assert "BLOCKED" in result.output
        assert (workspace.root / "spec" / "b").is_dir()

    def test_forced(self, ws, workspace):
        result = runner.invoke(app, ["delete", "spec://b", "--force", "-w", ws])
        assert result.exit_code == 0
        assert "Deleted" in result.output
        assert "(forced)" in result.output
        assert not (workspace.root / "spec" / "b").exists()

    def test_unblocked(self, ws, workspace):
        result = runner.invoke(app, ["delete", "spec://a", "-w", ws])
        assert result.exit_code == 0
        assert not (workspace.root / "spec" / "a").exists()


class TestStatusCommand:
    def test_healthy_workspace(self, ws):
        result = runner.invoke(app, ["status", "-w", ws])
        assert result.exit_code == 0
        assert "Workspace status: OK" in result.output

    def test_broken_link_fails(self, ws, write_spec):
        write_spec("c", body="# Gamma\n\n[Broken](missing.md)\n")
        result = runner.invoke(app, ["status", "-w", ws])
        assert result.exit_code == 1
        assert "Workspace status: FAIL" in result.output
        assert "spec://c" in result.output

    def test_single_artifact_lists_issues(self, ws, write_spec):
        write_spec("c", body="# Gamma\n\n[Broken](missing.md)\n")
        result = runner.invoke(app, ["status", "spec://c", "-w", ws])
        assert result.exit_code == 1
        assert "spec/c/spec.md:7: missing filesystem target" in result.output
        assert "spec://c: FAIL" in result.output

    def test_single_artifact_json(self, ws, write_spec):
        write_spec("c", body="# Gamma\n\n[Broken](missing.md)\n")
        result = runner.invoke(app, ["status", "spec://c", "--json", "-w", ws])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["status"] == "fail"
        assert data["issues"][0]["message"] == "missing filesystem target spec/c/missing.md"

    def test_cycle_reported(self, ws, write_spec):
        write_spec("b", ["spec://a"])
        result = runner.invoke(app, ["status", "--json", "-w", ws])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["global_status"] == "fail"
        assert [[node["slug"] for node in cycle] for cycle in data["cycles"]] == [["a", "b", "a"]]
