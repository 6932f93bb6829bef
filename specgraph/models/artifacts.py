"""Artifact identity models.

An :class:`ArtifactId` is the canonical handle of a workspace document. It is
produced by the locator resolver and used as the key everywhere downstream.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ArtifactKind(str, Enum):
    """The three managed document kinds."""

    SPEC = "spec"
    IMPL = "impl"
    SCRATCH = "scratch"

    @property
    def file_name(self) -> str:
        """Canonical Markdown file name inside an artifact folder."""
        return f"{self.value}.md"


class ResolutionProvenance(str, Enum):
    """How an artifact identifier was obtained."""

    EXACT_HANDLE = "exact_handle"
    BEST_MATCH_FILE = "best_match_file"
    BEST_MATCH_URL = "best_match_url"


class ArtifactId(BaseModel):
    """Canonical identity of an artifact: its kind plus a lowercase slug."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    slug: str

    @property
    def handle(self) -> str:
        return f"{self.kind.value}://{self.slug}"

    def sort_key(self) -> tuple[str, str]:
        return (self.kind.value, self.slug)

    def __str__(self) -> str:
        return self.handle


class ArtifactSummary(BaseModel):
    """An artifact as it appears at one end of a dependency edge.

    ``resolved_path`` is workspace relative (POSIX separators) for files and
    the URL itself for external references. ``metadata_unavailable`` marks a
    target that exists as a reference but whose front matter could not be
    read; such nodes are kept as leaves, never treated as errors.
    """

    model_config = ConfigDict(frozen=True)

    id: ArtifactId
    version: str | None = None
    resolved_path: str
    provenance: ResolutionProvenance
    metadata_unavailable: bool = False
    metadata_error: str | None = None


class ArtifactKey(BaseModel):
    """Location of an indexed artifact, used as the structure index key."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    workspace_path: str

    def __str__(self) -> str:
        return self.workspace_path
