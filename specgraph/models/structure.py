"""Structure index models: headings, constraint groups, relationships.

Records are immutable. Per-artifact parse results (:class:`ParsedArtifact`)
are what the disk cache persists; cross-document link resolution happens
afterwards when the index is assembled.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from specgraph.models.artifacts import ArtifactId, ArtifactKey

SCHEMA_VERSION = 1


class HeadingIdentifier(BaseModel):
    """A heading, addressed by its document and slug."""

    model_config = ConfigDict(frozen=True)

    artifact: ArtifactKey
    slug: str

    @property
    def ref(self) -> str:
        return f"{self.artifact.workspace_path}#{self.slug}"

    def __str__(self) -> str:
        return self.ref


class ConstraintIdentifier(BaseModel):
    """A constraint group, addressed by its document and dotted group set."""

    model_config = ConfigDict(frozen=True)

    artifact: ArtifactKey
    group: str

    @property
    def ref(self) -> str:
        return f"{self.artifact.workspace_path}!{self.group}"

    def __str__(self) -> str:
        return self.ref


class ArtifactRecord(BaseModel):
    """An indexed document."""

    model_config = ConfigDict(frozen=True)

    key: ArtifactKey
    id: ArtifactId
    name: str | None = None
    version: str | None = None


class HeadingRecord(BaseModel):
    """One ATX heading.

    ``content`` is the text directly beneath the heading, up to its first
    subheading; nested sections are reached through ``children``.
    ``references`` lists linked headings in order of appearance and is
    filled in when the index is assembled.
    """

    model_config = ConfigDict(frozen=True)

    id: HeadingIdentifier
    title: str
    level: int
    line: int
    order: int
    parent: HeadingIdentifier | None = None
    children: list[HeadingIdentifier] = []
    content: str = ""
    references: list[HeadingIdentifier] = []


class ConstraintRecord(BaseModel):
    """A ``!group.set:`` marker and the heading it belongs to."""

    model_config = ConfigDict(frozen=True)

    id: ConstraintIdentifier
    heading: HeadingIdentifier
    line: int
    references: list[HeadingIdentifier] = []


class PendingLink(BaseModel):
    """An inline link found while parsing, not yet matched against the index.

    ``target_path`` is the canonical workspace path of the destination
    document; ``fragment`` is the ``#anchor`` part, if any.
    """

    model_config = ConfigDict(frozen=True)

    source: HeadingIdentifier
    constraint: ConstraintIdentifier | None = None
    line: int
    target_path: str
    fragment: str | None = None


class ParsedArtifact(BaseModel):
    """Everything extracted from one document, before link assembly."""

    model_config = ConfigDict(frozen=True)

    record: ArtifactRecord
    headings: list[HeadingRecord] = []
    constraints: list[ConstraintRecord] = []
    links: list[PendingLink] = []


class RelationshipKind(str, Enum):
    HEADING_TO_HEADING = "heading_to_heading"
    HEADING_TO_FILE = "heading_to_file"
    CONSTRAINT_TO_HEADING = "constraint_to_heading"
    PARENT_TO_CHILD = "parent_to_child"


class RelationshipEdge(BaseModel):
    """A structural edge; endpoints are textual refs.

    Refs read ``path#slug`` for headings, ``path!group.set`` for constraint
    groups and a bare workspace path for files.
    """

    model_config = ConfigDict(frozen=True)

    kind: RelationshipKind
    source: str
    target: str
