"""Workspace discovery, layout and inventory.

A workspace is the nearest directory holding the marker folder (``.specman``
by default). Canonical artifact files live at::

    spec/<slug>/spec.md
    impl/<slug>/impl.md
    <marker>/scratchpad/<slug>/scratch.md

The marker folder also holds the cache root and the one-time workspace
fingerprint that binds caches to exactly one workspace.
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from specgraph.config import EngineSettings
from specgraph.core.errors import (
    NestedWorkspaceError,
    WorkspaceError,
    WorkspaceNotFoundError,
)
from specgraph.core.fs import atomic_write, is_within
from specgraph.models.artifacts import ArtifactId, ArtifactKind

logger = logging.getLogger(__name__)

FINGERPRINT_FILE_NAME = "root_fingerprint"
SCRATCHPAD_DIR_NAME = "scratchpad"

_KIND_ORDER = (ArtifactKind.SPEC, ArtifactKind.IMPL, ArtifactKind.SCRATCH)

SLUG_PATTERN = re.compile(r"^[a-z0-9_-]+$")


def normalize_slug(name: str) -> str:
    """Fold a folder or file name into the handle slug alphabet."""
    folded = re.sub(r"[^a-z0-9_-]+", "-", name.strip().lower())
    return folded.strip("-")


class WorkspacePaths(BaseModel):
    """Resolved locations inside one workspace.

    ``root`` is canonical (symlinks resolved); every containment check in
    the engine compares against it.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    marker_dir: str = ".specman"
    cache_dir: str = "cache"

    @property
    def marker(self) -> Path:
        return self.root / self.marker_dir

    @property
    def spec_dir(self) -> Path:
        return self.root / "spec"

    @property
    def impl_dir(self) -> Path:
        return self.root / "impl"

    @property
    def scratchpad_dir(self) -> Path:
        return self.marker / SCRATCHPAD_DIR_NAME

    @property
    def cache_root(self) -> Path:
        return self.marker / self.cache_dir

    @property
    def fingerprint_path(self) -> Path:
        return self.marker / FINGERPRINT_FILE_NAME

    def kind_dir(self, kind: ArtifactKind) -> Path:
        if kind is ArtifactKind.SPEC:
            return self.spec_dir
        if kind is ArtifactKind.IMPL:
            return self.impl_dir
        return self.scratchpad_dir

    def artifact_dir(self, artifact: ArtifactId) -> Path:
        return self.kind_dir(artifact.kind) / artifact.slug

    def artifact_file(self, artifact: ArtifactId) -> Path:
        return self.artifact_dir(artifact) / artifact.kind.file_name

    def contains(self, path: Path) -> bool:
        return is_within(path, self.root)

    def relative(self, path: Path) -> str:
        """Workspace-relative POSIX form of an absolute path inside the root."""
        return path.relative_to(self.root).as_posix()

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def inventory(self, kinds: tuple[ArtifactKind, ...] = _KIND_ORDER) -> list[tuple[ArtifactId, Path]]:
        """Every canonical artifact on disk, ordered by kind then slug.

        A folder counts only when its name is a valid slug and it holds the
        kind's canonical file.
        """
        found: list[tuple[ArtifactId, Path]] = []
        for kind in kinds:
            base = self.kind_dir(kind)
            if not base.is_dir():
                continue
            for folder in sorted(base.iterdir(), key=lambda p: p.name):
                doc = folder / kind.file_name
                if not (folder.is_dir() and doc.is_file()):
                    continue
                if not SLUG_PATTERN.match(folder.name):
                    logger.debug("Skipping %s: folder name is not a valid slug", folder)
                    continue
                found.append((ArtifactId(kind=kind, slug=folder.name), doc))
        return found


def _settings_layout(settings: EngineSettings | None) -> dict[str, str]:
    settings = settings or EngineSettings()
    return {"marker_dir": settings.marker_dir, "cache_dir": settings.cache_dir}


def find_workspace_root(start: Path, marker_dir: str = ".specman") -> Path | None:
    """Return the nearest ancestor of ``start`` (inclusive) holding the marker."""
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / marker_dir).is_dir():
            return candidate
    return None


def discover_workspace(start: Path, settings: EngineSettings | None = None) -> WorkspacePaths:
    """Walk up from ``start`` to the nearest workspace."""
    layout = _settings_layout(settings)
    root = find_workspace_root(start, layout["marker_dir"])
    if root is None:
        raise WorkspaceNotFoundError(Path(start), layout["marker_dir"])
    logger.debug("Discovered workspace at %s", root)
    return WorkspacePaths(root=root, **layout)


def open_workspace(root: Path, settings: EngineSettings | None = None) -> WorkspacePaths:
    """Open an explicit workspace root; the marker folder must exist there."""
    layout = _settings_layout(settings)
    resolved = Path(root).resolve()
    if not (resolved / layout["marker_dir"]).is_dir():
        raise WorkspaceNotFoundError(resolved, layout["marker_dir"])
    return WorkspacePaths(root=resolved, **layout)


def create_workspace(root: Path, settings: EngineSettings | None = None) -> WorkspacePaths:
    """Provision a workspace at ``root``; idempotent for an existing one.

    Raises
    ------
    NestedWorkspaceError
        If an ancestor of ``root`` is already a workspace.
    """
    layout = _settings_layout(settings)
    resolved = Path(root).resolve()
    existing = find_workspace_root(resolved.parent, layout["marker_dir"])
    if existing is not None:
        raise NestedWorkspaceError(resolved, existing)

    paths = WorkspacePaths(root=resolved, **layout)
    for folder in (paths.marker, paths.scratchpad_dir, paths.cache_root):
        folder.mkdir(parents=True, exist_ok=True)
    logger.info("Workspace ready at %s", resolved)
    return paths


def workspace_fingerprint(paths: WorkspacePaths) -> str:
    """Return the workspace fingerprint, writing a fresh one on first use."""
    fingerprint_file = paths.fingerprint_path
    if fingerprint_file.is_file():
        value = fingerprint_file.read_text(encoding="utf-8").strip()
        if not value:
            raise WorkspaceError(f"Workspace fingerprint file is empty: {fingerprint_file}")
        return value

    value = uuid.uuid4().hex
    atomic_write(fingerprint_file, value + "\n")
    logger.debug("Wrote workspace fingerprint %s", value)
    return value
