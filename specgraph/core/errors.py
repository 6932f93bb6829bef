"""Exception taxonomy for the workspace engine.

Every engine failure derives from :class:`SpecgraphError` so callers can
catch the whole family at one seam. Errors carry the structured context a
caller needs to render a diagnostic (the offending locator, the partial
dependency tree, the lock path) instead of only a message.

``MetadataUnavailable`` is absent: a dependency whose metadata
cannot be read is annotated on its :class:`ArtifactSummary`, not raised.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from specgraph.models.artifacts import ArtifactId
    from specgraph.models.dependencies import DependencyTree


class SpecgraphError(RuntimeError):
    """Base class for all engine errors."""


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceError(SpecgraphError):
    """Raised when a workspace is malformed or cannot be prepared."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when no workspace marker folder is found for a path."""

    def __init__(self, start: Path, marker: str) -> None:
        self.start = start
        self.marker = marker
        super().__init__(
            f"No workspace found: no '{marker}' folder in {start} or its ancestors."
        )


class NestedWorkspaceError(WorkspaceError):
    """Raised when creating a workspace inside an existing one."""

    def __init__(self, requested: Path, existing: Path) -> None:
        self.requested = requested
        self.existing = existing
        super().__init__(
            f"Cannot create a workspace at {requested}: it is inside {existing}."
        )


# ---------------------------------------------------------------------------
# Locators
# ---------------------------------------------------------------------------


class LocatorError(SpecgraphError):
    """Base class for locator parse and resolution failures."""

    def __init__(self, locator: str, message: str) -> None:
        self.locator = locator
        super().__init__(message)


class UnsupportedSchemeError(LocatorError):
    """Raised for URI schemes the resolver does not accept (including http)."""

    def __init__(self, locator: str, scheme: str) -> None:
        self.scheme = scheme
        if scheme == "http":
            message = f"Insecure locator '{locator}': only https:// URLs are accepted."
        else:
            message = f"Unsupported locator scheme '{scheme}' in '{locator}'."
        super().__init__(locator, message)


class OutsideWorkspaceError(LocatorError):
    """Raised when a filesystem locator canonicalises outside the workspace."""

    def __init__(self, locator: str, candidate: Path, workspace_root: Path) -> None:
        self.candidate = candidate
        self.workspace_root = workspace_root
        super().__init__(
            locator,
            f"Locator '{locator}' resolves to {candidate}, "
            f"outside workspace {workspace_root}.",
        )


class InvalidLocatorError(LocatorError):
    """Raised when a locator is empty or syntactically malformed."""


class InvalidHandleError(InvalidLocatorError):
    """Raised when a resource handle carries an unusable slug."""


# ---------------------------------------------------------------------------
# Front matter and dependency graph
# ---------------------------------------------------------------------------


class FrontMatterError(SpecgraphError):
    """Raised when a document's YAML front matter cannot be read."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.reason = message
        super().__init__(f"{path}: {message}")


class UnknownArtifactError(SpecgraphError):
    """Raised when an operation targets an artifact that does not exist."""

    def __init__(self, artifact: ArtifactId, path: Path) -> None:
        self.artifact = artifact
        self.path = path
        super().__init__(f"Artifact {artifact} not found at {path}.")


class CycleDetectedError(SpecgraphError):
    """Raised when upstream traversal revisits a node on the active path.

    ``partial`` holds every edge gathered before the cycle closed, including
    the closing edge, so callers can show exactly where the graph loops.
    """

    def __init__(self, cycle: list[ArtifactId], partial: DependencyTree) -> None:
        self.cycle = cycle
        self.partial = partial
        chain = " -> ".join(str(node) for node in cycle)
        super().__init__(f"Dependency cycle detected: {chain}")


# ---------------------------------------------------------------------------
# Structure index
# ---------------------------------------------------------------------------


class IndexingError(SpecgraphError):
    """Raised when a document cannot be indexed."""


class InvalidHeadingError(IndexingError):
    """Raised when a heading normalises to an empty slug."""

    def __init__(self, path: str, line: int, title: str) -> None:
        self.path = path
        self.line = line
        self.title = title
        super().__init__(
            f"{path}:{line}: heading '{title}' produces an empty slug."
        )


class DuplicateHeadingSlugError(IndexingError):
    """Raised when two headings in one document share a slug."""

    def __init__(self, path: str, slug: str, first_line: int, second_line: int) -> None:
        self.path = path
        self.slug = slug
        self.first_line = first_line
        self.second_line = second_line
        super().__init__(
            f"{path}: duplicate heading slug '{slug}' "
            f"(lines {first_line} and {second_line})."
        )


class DuplicateConstraintGroupError(IndexingError):
    """Raised when a constraint group set is declared twice in one document."""

    def __init__(self, path: str, group: str, first_line: int, second_line: int) -> None:
        self.path = path
        self.group = group
        self.first_line = first_line
        self.second_line = second_line
        super().__init__(
            f"{path}: duplicate constraint group '!{group}:' "
            f"(lines {first_line} and {second_line})."
        )


class HeadingNotFoundError(SpecgraphError, LookupError):
    """Raised when a heading lookup matches nothing, or is ambiguous."""


class ConstraintNotFoundError(SpecgraphError, LookupError):
    """Raised when a constraint group lookup matches nothing."""


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class CacheLockedError(SpecgraphError):
    """Raised when another writer holds the cache lock. Never retried."""

    def __init__(self, lock_path: Path) -> None:
        self.lock_path = lock_path
        super().__init__(
            f"Index cache is locked by another process ({lock_path}). "
            "Retry once it finishes."
        )


class CacheCorruptError(SpecgraphError):
    """Raised internally when cached data is unreadable; handled as a miss."""


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class DeletionBlockedError(SpecgraphError):
    """Raised when an artifact still has blocking dependents."""

    def __init__(self, target: ArtifactId, tree: DependencyTree) -> None:
        self.target = target
        self.tree = tree
        dependents = ", ".join(
            sorted({str(edge.from_.id) for edge in tree.downstream})
        )
        super().__init__(
            f"Cannot delete {target}: required by {dependents}. "
            "Use force to override."
        )


class PlanTargetMismatchError(SpecgraphError):
    """Raised when a deletion plan is applied to a different artifact."""

    def __init__(self, requested: ArtifactId, planned: ArtifactId) -> None:
        self.requested = requested
        self.planned = planned
        super().__init__(
            f"Deletion plan targets {planned}, not {requested}."
        )
