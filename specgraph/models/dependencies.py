"""Dependency graph models: edges and the per-artifact dependency tree."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from specgraph.models.artifacts import ArtifactId, ArtifactKind, ArtifactSummary


class DependencyRelation(str, Enum):
    """Direction of an edge relative to the tree root."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"


class DependencyEdge(BaseModel):
    """A directed edge ``from -> to``: ``from`` declares that it needs ``to``.

    Serialises with the field name ``from``; Python code uses ``from_``.
    ``declared_in`` names the front matter field the entry came from
    (``dependencies``, ``references``, ``spec`` or ``target``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: ArtifactSummary = Field(alias="from")
    to: ArtifactSummary
    relation: DependencyRelation
    optional: bool = False
    declared_in: str = "dependencies"

    @property
    def key(self) -> tuple[ArtifactId, ArtifactId]:
        return (self.from_.id, self.to.id)


def aggregate_edges(
    upstream: list[DependencyEdge], downstream: list[DependencyEdge]
) -> list[DependencyEdge]:
    """Deduplicated union of both edge lists, keyed by ``(from.id, to.id)``.

    The first occurrence wins; upstream edges come before downstream ones.
    """
    seen: set[tuple[ArtifactId, ArtifactId]] = set()
    merged: list[DependencyEdge] = []
    for edge in [*upstream, *downstream]:
        if edge.key in seen:
            continue
        seen.add(edge.key)
        merged.append(edge)
    return merged


class DependencyTree(BaseModel):
    """Upstream and downstream edges of one root artifact.

    Build with :meth:`build` so that ``aggregate`` always equals the
    deduplicated union of the two directional lists.
    """

    model_config = ConfigDict(frozen=True)

    root: ArtifactSummary
    upstream: list[DependencyEdge] = []
    downstream: list[DependencyEdge] = []
    aggregate: list[DependencyEdge] = []

    @classmethod
    def build(
        cls,
        root: ArtifactSummary,
        upstream: list[DependencyEdge] | None = None,
        downstream: list[DependencyEdge] | None = None,
    ) -> DependencyTree:
        up = list(upstream or [])
        down = list(downstream or [])
        return cls(
            root=root,
            upstream=up,
            downstream=down,
            aggregate=aggregate_edges(up, down),
        )

    def edge_set(self) -> set[tuple[ArtifactId, ArtifactId]]:
        """Order-independent view of ``aggregate``."""
        return {edge.key for edge in self.aggregate}

    def has_blocking_dependents(self) -> bool:
        """Whether removing the root would break another artifact.

        Any required downstream edge blocks. A scratch pad is also blocked by
        any other scratch pad that builds on it, even through an optional
        link, while optional links from specs or implementations never block.
        """
        if any(not edge.optional for edge in self.downstream):
            return True
        if self.root.id.kind is ArtifactKind.SCRATCH:
            return any(
                edge.from_.id.kind is ArtifactKind.SCRATCH for edge in self.downstream
            )
        return False
