"""Workspace engine: the single entry point over all engine services.

The engine wires the locator resolver, dependency graph builder, structure
indexer, index cache, deletion guard and validator for one workspace. Dependency
queries get a fresh graph builder per call, so memoised metadata never
outlives the operation that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from specgraph.config import EngineSettings
from specgraph.core.dependency_graph import DependencyGraphBuilder
from specgraph.core.errors import InvalidLocatorError
from specgraph.core.lifecycle import DeletionGuard
from specgraph.core.locator import LocatorResolver, ResolvedLocator
from specgraph.core.validation import WorkspaceValidator
from specgraph.core.workspace import WorkspacePaths, discover_workspace, open_workspace
from specgraph.models.artifacts import ArtifactId
from specgraph.models.dependencies import DependencyEdge, DependencyTree
from specgraph.models.lifecycle import DeletionPlan, RemovedArtifact
from specgraph.models.structure import ConstraintIdentifier, HeadingIdentifier
from specgraph.models.validation import ArtifactStatus, WorkspaceStatus
from specgraph.structure.cache import IndexCache
from specgraph.structure.index import WorkspaceIndex
from specgraph.structure.indexer import StructureIndexer

logger = logging.getLogger(__name__)


class WorkspaceEngine:
    """Dependency, structure and lifecycle operations for one workspace.

    Parameters
    ----------
    workspace:
        Workspace paths, or a root directory holding the marker folder.
    settings:
        Engine settings. Uses defaults (and ``SPECGRAPH_*`` overrides) if
        not provided.
    """

    def __init__(
        self,
        workspace: WorkspacePaths | Path | str,
        *,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        if isinstance(workspace, WorkspacePaths):
            self.workspace = workspace
        else:
            self.workspace = open_workspace(Path(workspace), self.settings)
        self.cache = IndexCache(self.workspace)
        self.indexer = StructureIndexer(self.workspace, self.cache)
        logger.debug("Engine ready for workspace %s", self.workspace.root)

    @classmethod
    def discover(cls, start: Path | str = ".", settings: EngineSettings | None = None) -> WorkspaceEngine:
        """Open the workspace enclosing ``start``."""
        settings = settings or EngineSettings()
        return cls(discover_workspace(Path(start), settings), settings=settings)

    # ------------------------------------------------------------------
    # Locators
    # ------------------------------------------------------------------

    def resolve(self, locator: str, from_document: Path | str | None = None) -> ResolvedLocator:
        """Resolve ``locator`` as written in ``from_document``."""
        document = Path(from_document) if from_document is not None else None
        if document is not None and not document.is_absolute():
            document = self.workspace.root / document
        return LocatorResolver(self.workspace).resolve(locator, document)

    def artifact_id(self, artifact: ArtifactId | str) -> ArtifactId:
        """Accept an identifier or any locator naming a workspace artifact."""
        if isinstance(artifact, ArtifactId):
            return artifact
        resolved = self.resolve(artifact)
        if resolved.is_external:
            raise InvalidLocatorError(artifact, f"'{artifact}' names an external URL, not an artifact.")
        return resolved.artifact

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def _graph(self) -> DependencyGraphBuilder:
        return DependencyGraphBuilder(
            self.workspace,
            LocatorResolver(self.workspace),
            max_depth=self.settings.max_dependency_depth,
        )

    def dependency_tree(self, artifact: ArtifactId | str, max_depth: int | None = None) -> DependencyTree:
        return self._graph().dependency_tree(self.artifact_id(artifact), max_depth)

    def upstream(self, artifact: ArtifactId | str, max_depth: int | None = None) -> list[DependencyEdge]:
        return self._graph().upstream(self.artifact_id(artifact), max_depth)

    def downstream(self, artifact: ArtifactId | str) -> list[DependencyEdge]:
        return self._graph().downstream(self.artifact_id(artifact))

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def build_index(self, use_cache: bool | None = None) -> WorkspaceIndex:
        """Index the workspace; ``use_cache`` defaults to the settings value."""
        if use_cache is None:
            use_cache = self.settings.use_cache
        return self.indexer.build_index(use_cache=use_cache)

    def render_heading(self, heading: HeadingIdentifier | str, use_cache: bool | None = None) -> str:
        return self.build_index(use_cache).render_heading(heading)

    def render_constraint_group(
        self, constraint: ConstraintIdentifier | str, use_cache: bool | None = None
    ) -> str:
        return self.build_index(use_cache).render_constraint_group(constraint)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _guard(self) -> DeletionGuard:
        return DeletionGuard(self._graph(), self.cache)

    def check_deletion_impact(self, artifact: ArtifactId | str) -> DeletionPlan:
        return self._guard().check_deletion_impact(self.artifact_id(artifact))

    def plan_deletion(self, artifact: ArtifactId | str, force: bool = False) -> DeletionPlan:
        return self._guard().plan_deletion(self.artifact_id(artifact), force=force)

    def delete(
        self,
        artifact: ArtifactId | str,
        force: bool = False,
        plan: DeletionPlan | None = None,
    ) -> RemovedArtifact:
        return self._guard().delete(self.artifact_id(artifact), force=force, plan=plan)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_references(self, artifact: ArtifactId | str) -> ArtifactStatus:
        """Structure, dependency and link issues of one artifact."""
        return WorkspaceValidator(self.workspace).validate_artifact(self.artifact_id(artifact))

    def workspace_status(self, include_scratch: bool = True) -> WorkspaceStatus:
        """Validate every artifact and report dependency cycles."""
        return WorkspaceValidator(self.workspace).workspace_status(include_scratch=include_scratch)
