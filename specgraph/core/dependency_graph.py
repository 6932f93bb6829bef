"""Dependency graph over workspace artifacts.

Upstream edges come from each document's front matter and are followed
transitively with an explicit stack, so deep graphs never hit the recursion
limit. The active traversal path is tracked separately from the set of
fully expanded nodes: revisiting an expanded node (a diamond) is fine,
revisiting a node on the active path is a cycle.

Downstream edges are found by an inverted scan: every artifact in the
inventory is checked for an entry pointing back at the root. Results are
memoised per builder instance only; :meth:`invalidate` clears them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from specgraph.core.errors import (
    CycleDetectedError,
    FrontMatterError,
    LocatorError,
    UnknownArtifactError,
)
from specgraph.core.front_matter import DeclaredEntry, declared_entries, read_front_matter
from specgraph.core.locator import LocatorResolver, ResolvedLocator
from specgraph.core.workspace import WorkspacePaths
from specgraph.models.artifacts import ArtifactId, ArtifactSummary, ResolutionProvenance
from specgraph.models.dependencies import (
    DependencyEdge,
    DependencyRelation,
    DependencyTree,
)

logger = logging.getLogger(__name__)


class ResolvedEntry(BaseModel):
    """A declared entry together with its resolution outcome."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    declared: DeclaredEntry
    resolved: ResolvedLocator | None = None
    error: LocatorError | None = None


class ArtifactNode(BaseModel):
    """Loaded metadata of one graph node.

    ``metadata_error`` is set when the target exists only as a reference:
    an external URL, a missing file, a non-Markdown file or unreadable front
    matter. Such nodes are leaves.
    """

    model_config = ConfigDict(frozen=True)

    artifact: ArtifactId
    resolved_path: str
    version: str | None = None
    metadata_error: str | None = None
    entries: tuple[ResolvedEntry, ...] = ()

    @property
    def metadata_unavailable(self) -> bool:
        return self.metadata_error is not None

    def summary(self, provenance: ResolutionProvenance) -> ArtifactSummary:
        return ArtifactSummary(
            id=self.artifact,
            version=self.version,
            resolved_path=self.resolved_path,
            provenance=provenance,
            metadata_unavailable=self.metadata_unavailable,
            metadata_error=self.metadata_error,
        )


class DependencyGraphBuilder:
    """Builds dependency trees for artifacts in one workspace.

    Parameters
    ----------
    workspace:
        Workspace whose inventory is scanned for downstream edges.
    resolver:
        Locator resolver; a fresh one is created when omitted.
    max_depth:
        Default upstream depth limit. ``None`` means unbounded, ``0`` means
        the root only.
    """

    def __init__(
        self,
        workspace: WorkspacePaths,
        resolver: LocatorResolver | None = None,
        max_depth: int | None = None,
    ) -> None:
        self._workspace = workspace
        self._resolver = resolver or LocatorResolver(workspace)
        self._max_depth = max_depth
        self._nodes: dict[str, ArtifactNode] = {}
        self._downstream: dict[ArtifactId, list[DependencyEdge]] = {}

    @property
    def resolver(self) -> LocatorResolver:
        return self._resolver

    def invalidate(self) -> None:
        """Forget memoised nodes, downstream scans and resolutions."""
        self._nodes.clear()
        self._downstream.clear()
        self._resolver.clear()

    # ------------------------------------------------------------------
    # Public queries
    # ------------------------------------------------------------------

    def dependency_tree(self, artifact: ArtifactId, max_depth: int | None = None) -> DependencyTree:
        """Upstream, downstream and aggregate edges of ``artifact``.

        Raises
        ------
        UnknownArtifactError
            If the artifact's document does not exist.
        CycleDetectedError
            If upstream traversal loops; carries the partial tree.
        LocatorError
            If an entry on the upstream closure cannot be resolved.
        """
        root = self._root_node(artifact)
        upstream = self._walk_upstream(root, self._depth_limit(max_depth))
        downstream = self.downstream(artifact)
        tree = DependencyTree.build(
            root.summary(ResolutionProvenance.EXACT_HANDLE), upstream, downstream
        )
        logger.debug(
            "Dependency tree for %s: %d upstream, %d downstream",
            artifact, len(tree.upstream), len(tree.downstream),
        )
        return tree

    def upstream(self, artifact: ArtifactId, max_depth: int | None = None) -> list[DependencyEdge]:
        """Transitive upstream edges of ``artifact`` in traversal order."""
        root = self._root_node(artifact)
        return self._walk_upstream(root, self._depth_limit(max_depth))

    def downstream(self, artifact: ArtifactId) -> list[DependencyEdge]:
        """Direct dependents of ``artifact``, in inventory order."""
        cached = self._downstream.get(artifact)
        if cached is not None:
            return list(cached)

        target = self.root_summary(artifact)
        target_file = self._resolver.path_for(artifact).resolve(strict=False)
        edges: list[DependencyEdge] = []
        for other, doc in self._workspace.inventory():
            if other == artifact:
                continue
            node = self._load(other, doc)
            for entry in node.entries:
                if entry.error is not None:
                    logger.warning(
                        "Skipping unresolvable entry %r in %s: %s",
                        entry.declared.ref, node.resolved_path, entry.error,
                    )
                    continue
                resolved = entry.resolved
                if resolved is None or resolved.is_external:
                    continue
                # Best-match ids of sidecar files can collide with real artifacts
                if resolved.path.resolve(strict=False) != target_file:
                    continue
                edges.append(
                    DependencyEdge(
                        from_=node.summary(ResolutionProvenance.EXACT_HANDLE),
                        to=target,
                        relation=DependencyRelation.DOWNSTREAM,
                        optional=entry.declared.optional,
                        declared_in=entry.declared.declared_in,
                    )
                )

        self._downstream[artifact] = edges
        return list(edges)

    def root_summary(self, artifact: ArtifactId) -> ArtifactSummary:
        """Summary of an existing artifact; raises UnknownArtifactError otherwise."""
        return self._root_node(artifact).summary(ResolutionProvenance.EXACT_HANDLE)

    def has_blocking_dependents(self, artifact: ArtifactId) -> bool:
        tree = DependencyTree.build(self.root_summary(artifact), [], self.downstream(artifact))
        return tree.has_blocking_dependents()

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _depth_limit(self, max_depth: int | None) -> int | None:
        return self._max_depth if max_depth is None else max_depth

    def _walk_upstream(self, root: ArtifactNode, max_depth: int | None) -> list[DependencyEdge]:
        edges: list[DependencyEdge] = []
        if max_depth is not None and max_depth <= 0:
            return edges

        # Nodes are keyed by resolved path: a sidecar's best-match id may equal a real artifact's
        root_summary = root.summary(ResolutionProvenance.EXACT_HANDLE)
        expanded: set[str] = set()
        active: list[ArtifactNode] = [root]
        on_path: set[str] = {root.resolved_path}
        stack = [(root, root_summary, iter(root.entries), 1)]

        while stack:
            node, node_summary, pending, depth = stack[-1]
            entry = next(pending, None)
            if entry is None:
                stack.pop()
                active.pop()
                on_path.discard(node.resolved_path)
                expanded.add(node.resolved_path)
                continue
            if entry.error is not None:
                raise entry.error

            resolved = entry.resolved
            child = self._node_for(resolved)
            child_summary = child.summary(resolved.provenance)
            edges.append(
                DependencyEdge(
                    from_=node_summary,
                    to=child_summary,
                    relation=DependencyRelation.UPSTREAM,
                    optional=entry.declared.optional,
                    declared_in=entry.declared.declared_in,
                )
            )

            if child.resolved_path in on_path:
                start = next(i for i, n in enumerate(active) if n.resolved_path == child.resolved_path)
                cycle = [n.artifact for n in active[start:]] + [child.artifact]
                raise CycleDetectedError(cycle, DependencyTree.build(root_summary, edges))
            if child.metadata_unavailable or child.resolved_path in expanded:
                continue
            if max_depth is not None and depth >= max_depth:
                continue
            stack.append((child, child_summary, iter(child.entries), depth + 1))
            active.append(child)
            on_path.add(child.resolved_path)

        return edges

    # ------------------------------------------------------------------
    # Node loading
    # ------------------------------------------------------------------

    def _root_node(self, artifact: ArtifactId) -> ArtifactNode:
        path = self._resolver.path_for(artifact)
        if not path.is_file():
            raise UnknownArtifactError(artifact, path)
        return self._load(artifact, path)

    def _node_for(self, resolved: ResolvedLocator) -> ArtifactNode:
        if resolved.is_external:
            key = resolved.url
            node = self._nodes.get(key)
            if node is None:
                node = ArtifactNode(
                    artifact=resolved.artifact,
                    resolved_path=resolved.url,
                    metadata_error="external reference; metadata is not fetched",
                )
                self._nodes[key] = node
            return node
        return self._load(resolved.artifact, resolved.path)

    def _load(self, artifact: ArtifactId, path: Path) -> ArtifactNode:
        resolved_path = self._workspace.relative(path)
        node = self._nodes.get(resolved_path)
        if node is not None:
            return node

        metadata_error: str | None = None
        version: str | None = None
        entries: list[ResolvedEntry] = []
        if not path.is_file():
            metadata_error = "document not found"
        elif path.suffix.lower() != ".md":
            metadata_error = "not a Markdown document"
        else:
            try:
                front_matter = read_front_matter(path)
            except FrontMatterError as exc:
                metadata_error = str(exc)
            else:
                version = front_matter.version
                entries = [
                    self._resolve_entry(declared, path)
                    for declared in declared_entries(artifact.kind, front_matter)
                ]

        if metadata_error is not None:
            logger.debug("Metadata unavailable for %s: %s", resolved_path, metadata_error)
        node = ArtifactNode(
            artifact=artifact,
            resolved_path=resolved_path,
            version=version,
            metadata_error=metadata_error,
            entries=tuple(entries),
        )
        self._nodes[resolved_path] = node
        return node

    def _resolve_entry(self, declared: DeclaredEntry, document: Path) -> ResolvedEntry:
        try:
            resolved = self._resolver.resolve(declared.ref, document)
        except LocatorError as exc:
            return ResolvedEntry(declared=declared, error=exc)
        return ResolvedEntry(declared=declared, resolved=resolved)
