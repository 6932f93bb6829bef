"""Tests for the Pydantic data models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from specgraph.models.artifacts import (
    ArtifactId,
    ArtifactKey,
    ArtifactKind,
    ArtifactSummary,
    ResolutionProvenance,
)
from specgraph.models.dependencies import (
    DependencyEdge,
    DependencyRelation,
    DependencyTree,
    aggregate_edges,
)
from specgraph.models.structure import ConstraintIdentifier, HeadingIdentifier


def summary(kind: ArtifactKind, slug: str) -> ArtifactSummary:
    return ArtifactSummary(
        id=ArtifactId(kind=kind, slug=slug),
        resolved_path=f"{kind.value}/{slug}/{kind.file_name}",
        provenance=ResolutionProvenance.EXACT_HANDLE,
    )


def edge(src: ArtifactSummary, dst: ArtifactSummary, relation=DependencyRelation.DOWNSTREAM, optional=False):
    return DependencyEdge(from_=src, to=dst, relation=relation, optional=optional)


class TestArtifactModels:
    def test_kind_file_names(self):
        assert ArtifactKind.SPEC.file_name == "spec.md"
        assert ArtifactKind.IMPL.file_name == "impl.md"
        assert ArtifactKind.SCRATCH.file_name == "scratch.md"

    def test_handle_and_str(self):
        artifact = ArtifactId(kind=ArtifactKind.IMPL, slug="svc")
        assert artifact.handle == "impl://svc"
        assert str(artifact) == "impl://svc"

    def test_ids_are_hashable_and_frozen(self):
        artifact = ArtifactId(kind=ArtifactKind.SPEC, slug="a")
        assert {artifact, ArtifactId(kind=ArtifactKind.SPEC, slug="a")} == {artifact}
        with pytest.raises(ValidationError):
            artifact.slug = "b"

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            ArtifactId(kind="design", slug="a")


class TestDependencyModels:
    def test_edge_serialises_from_alias(self):
        a = summary(ArtifactKind.SPEC, "a")
        b = summary(ArtifactKind.SPEC, "b")
        dumped = edge(a, b).model_dump(by_alias=True)
        assert "from" in dumped and "from_" not in dumped

    def test_edge_accepts_alias_on_input(self):
        a = summary(ArtifactKind.SPEC, "a")
        b = summary(ArtifactKind.SPEC, "b")
        parsed = DependencyEdge.model_validate(
            {"from": a.model_dump(), "to": b.model_dump(), "relation": "upstream"}
        )
        assert parsed.from_ == a
        assert parsed.declared_in == "dependencies"

    def test_aggregate_first_occurrence_wins(self):
        a = summary(ArtifactKind.SPEC, "a")
        b = summary(ArtifactKind.SPEC, "b")
        up = edge(a, b, DependencyRelation.UPSTREAM)
        down = edge(a, b, DependencyRelation.DOWNSTREAM, optional=True)
        merged = aggregate_edges([up], [down])
        assert merged == [up]

    def test_tree_build_keeps_aggregate_consistent(self):
        root = summary(ArtifactKind.SPEC, "root")
        a = summary(ArtifactKind.SPEC, "a")
        tree = DependencyTree.build(root, [edge(root, a, DependencyRelation.UPSTREAM)], [edge(a, root)])
        assert len(tree.aggregate) == 2
        assert tree.edge_set() == {(root.id, a.id), (a.id, root.id)}

    def test_optional_spec_dependent_does_not_block(self):
        root = summary(ArtifactKind.SPEC, "root")
        tree = DependencyTree.build(root, [], [edge(summary(ArtifactKind.SPEC, "x"), root, optional=True)])
        assert not tree.has_blocking_dependents()

    def test_scratch_root_blocked_by_optional_scratch_dependent(self):
        root = summary(ArtifactKind.SCRATCH, "root")
        tree = DependencyTree.build(root, [], [edge(summary(ArtifactKind.SCRATCH, "x"), root, optional=True)])
        assert tree.has_blocking_dependents()

    def test_scratch_root_not_blocked_by_optional_spec_dependent(self):
        root = summary(ArtifactKind.SCRATCH, "root")
        tree = DependencyTree.build(root, [], [edge(summary(ArtifactKind.SPEC, "x"), root, optional=True)])
        assert not tree.has_blocking_dependents()


class TestStructureIdentifiers:
    def test_refs(self):
        key = ArtifactKey(kind=ArtifactKind.SPEC, workspace_path="spec/a/spec.md")
        assert HeadingIdentifier(artifact=key, slug="intro").ref == "spec/a/spec.md#intro"
        assert str(ConstraintIdentifier(artifact=key, group="api.rules")) == "spec/a/spec.md!api.rules"
