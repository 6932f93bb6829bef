"""Deletion plan models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from specgraph.models.artifacts import ArtifactId
from specgraph.models.dependencies import DependencyTree


class DeletionPlan(BaseModel):
    """The impact assessment for removing one artifact.

    ``blocked`` is true when dependents would break. ``override`` is true
    only when the plan is blocked and the caller forced it anyway.
    """

    model_config = ConfigDict(frozen=True)

    target: ArtifactId
    artifact_dir: str
    tree: DependencyTree
    blocked: bool
    override: bool = False


class RemovedArtifact(BaseModel):
    """Result of a completed deletion."""

    model_config = ConfigDict(frozen=True)

    target: ArtifactId
    removed_path: str
    plan: DeletionPlan
