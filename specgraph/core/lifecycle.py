"""Deletion guard: decides whether an artifact can be removed, and removes it.

Planning never touches the filesystem. A blocked plan is refused unless the
caller forces it, in which case the plan records the override. After a
successful removal the dependency memo and the structure cache are
invalidated so no later query sees the removed artifact as present.
"""

from __future__ import annotations

import logging

from specgraph.core.dependency_graph import DependencyGraphBuilder
from specgraph.core.errors import DeletionBlockedError, PlanTargetMismatchError
from specgraph.core.fs import safe_remove_tree
from specgraph.models.artifacts import ArtifactId
from specgraph.models.dependencies import DependencyTree
from specgraph.models.lifecycle import DeletionPlan, RemovedArtifact
from specgraph.structure.cache import IndexCache

logger = logging.getLogger(__name__)


class DeletionGuard:
    """Plans and performs artifact deletions.

    Parameters
    ----------
    graph:
        Dependency graph builder for the workspace.
    cache:
        Structure index cache to invalidate after a removal, if any.
    """

    def __init__(self, graph: DependencyGraphBuilder, cache: IndexCache | None = None) -> None:
        self._graph = graph
        self._cache = cache
        self._workspace = graph.resolver.workspace

    def check_deletion_impact(self, target: ArtifactId) -> DeletionPlan:
        """Assess a deletion without raising when it is blocked."""
        return self._assess(target, force=False)

    def plan_deletion(self, target: ArtifactId, force: bool = False) -> DeletionPlan:
        """Plan removal of ``target``.

        Raises
        ------
        DeletionBlockedError
            If dependents would break and ``force`` is not set.
        UnknownArtifactError
            If ``target`` does not exist.
        """
        plan = self._assess(target, force)
        if plan.blocked and not force:
            raise DeletionBlockedError(target, plan.tree)
        if plan.override:
            logger.warning(
                "Forcing deletion of %s despite %d dependent edge(s)",
                target, len(plan.tree.downstream),
            )
        return plan

    def delete(
        self, target: ArtifactId, force: bool = False, plan: DeletionPlan | None = None
    ) -> RemovedArtifact:
        """Remove ``target``'s artifact folder after a successful plan.

        A supplied ``plan`` must target the same artifact; it is re-checked
        against the current workspace before anything is removed.
        """
        if plan is not None and plan.target != target:
            raise PlanTargetMismatchError(target, plan.target)
        plan = self.plan_deletion(target, force=force or bool(plan and plan.override))

        artifact_dir = self._workspace.root / plan.artifact_dir
        safe_remove_tree(artifact_dir, self._workspace.root)
        logger.info("Deleted %s (%s)", target, plan.artifact_dir)

        self._graph.invalidate()
        if self._cache is not None:
            self._cache.invalidate()
        return RemovedArtifact(target=target, removed_path=plan.artifact_dir, plan=plan)

    def _assess(self, target: ArtifactId, force: bool) -> DeletionPlan:
        # Deletion impact is the downstream set only
        tree = DependencyTree.build(
            self._graph.root_summary(target), [], self._graph.downstream(target)
        )
        blocked = tree.has_blocking_dependents()
        return DeletionPlan(
            target=target,
            artifact_dir=self._workspace.relative(self._workspace.artifact_dir(target)),
            tree=tree,
            blocked=blocked,
            override=blocked and force,
        )
