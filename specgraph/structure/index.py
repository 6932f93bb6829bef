"""The assembled workspace index: lookups and Markdown rendering."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from specgraph.core.errors import ConstraintNotFoundError, HeadingNotFoundError
from specgraph.core.workspace import WorkspacePaths
from specgraph.models.artifacts import ArtifactKey
from specgraph.models.structure import (
    SCHEMA_VERSION,
    ArtifactRecord,
    ConstraintIdentifier,
    ConstraintRecord,
    HeadingIdentifier,
    HeadingRecord,
    ParsedArtifact,
    RelationshipEdge,
    RelationshipKind,
)

logger = logging.getLogger(__name__)


class WorkspaceIndex:
    """Headings, constraint groups and relationships of a workspace.

    Build with :meth:`assemble`. Mappings preserve a deterministic order:
    artifacts by workspace path, headings and constraints in document order.

    Parameters
    ----------
    artifacts, headings, constraints, relationships:
        Assembled records; see :meth:`assemble`.
    schema_version:
        Version of the record layout.
    """

    def __init__(
        self,
        artifacts: dict[ArtifactKey, ArtifactRecord],
        headings: dict[HeadingIdentifier, HeadingRecord],
        constraints: dict[ConstraintIdentifier, ConstraintRecord],
        relationships: list[RelationshipEdge],
        schema_version: int = SCHEMA_VERSION,
    ) -> None:
        self.schema_version = schema_version
        self.artifacts = artifacts
        self.headings = headings
        self.constraints = constraints
        self.relationships = relationships
        self._by_path = {key.workspace_path: key for key in artifacts}

    @classmethod
    def assemble(cls, workspace: WorkspacePaths, parsed: Iterable[ParsedArtifact]) -> WorkspaceIndex:
        """Match pending links against indexed headings and derive edges."""
        documents = sorted(parsed, key=lambda p: p.record.key.workspace_path)
        artifacts = {doc.record.key: doc.record for doc in documents}
        by_path = {key.workspace_path: key for key in artifacts}
        raw_headings = {h.id: h for doc in documents for h in doc.headings}

        heading_refs: dict[HeadingIdentifier, list[HeadingIdentifier]] = {}
        constraint_refs: dict[ConstraintIdentifier, list[HeadingIdentifier]] = {}
        edges: list[RelationshipEdge] = []

        for doc in documents:
            for heading in doc.headings:
                edges.extend(
                    RelationshipEdge(
                        kind=RelationshipKind.PARENT_TO_CHILD,
                        source=heading.id.ref,
                        target=child.ref,
                    )
                    for child in heading.children
                )
            for constraint in doc.constraints:
                edges.append(
                    RelationshipEdge(
                        kind=RelationshipKind.CONSTRAINT_TO_HEADING,
                        source=constraint.id.ref,
                        target=constraint.heading.ref,
                    )
                )
            for link in doc.links:
                if link.fragment is None:
                    if link.target_path in by_path or (workspace.root / link.target_path).exists():
                        edges.append(
                            RelationshipEdge(
                                kind=RelationshipKind.HEADING_TO_FILE,
                                source=link.source.ref,
                                target=link.target_path,
                            )
                        )
                    continue

                key = by_path.get(link.target_path)
                target = HeadingIdentifier(artifact=key, slug=link.fragment) if key else None
                if target is None or target not in raw_headings:
                    logger.debug(
                        "Unresolved heading link %s#%s at %s:%d",
                        link.target_path, link.fragment,
                        link.source.artifact.workspace_path, link.line,
                    )
                    continue

                _append_unique(heading_refs.setdefault(link.source, []), target)
                if link.constraint is not None:
                    _append_unique(constraint_refs.setdefault(link.constraint, []), target)
                edges.append(
                    RelationshipEdge(
                        kind=RelationshipKind.HEADING_TO_HEADING,
                        source=link.source.ref,
                        target=target.ref,
                    )
                )

        headings = {
            hid: record.model_copy(update={"references": heading_refs.get(hid, [])})
            for hid, record in raw_headings.items()
        }
        constraints = {
            c.id: c.model_copy(update={"references": constraint_refs.get(c.id, [])})
            for doc in documents
            for c in doc.constraints
        }

        unique_edges: list[RelationshipEdge] = []
        seen: set[tuple[str, str, str]] = set()
        for edge in edges:
            marker = (edge.kind.value, edge.source, edge.target)
            if marker not in seen:
                seen.add(marker)
                unique_edges.append(edge)

        return cls(artifacts, headings, constraints, unique_edges)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_headings(self, artifact: ArtifactKey | None = None) -> list[HeadingRecord]:
        return [
            h for h in self.headings.values() if artifact is None or h.id.artifact == artifact
        ]

    def list_constraint_groups(self, artifact: ArtifactKey | None = None) -> list[ConstraintRecord]:
        return [
            c for c in self.constraints.values() if artifact is None or c.id.artifact == artifact
        ]

    def artifact_key(self, workspace_path: str) -> ArtifactKey:
        key = self._by_path.get(workspace_path.strip().removeprefix("./"))
        if key is None:
            raise HeadingNotFoundError(f"No indexed artifact at '{workspace_path}'.")
        return key

    def heading(self, heading: HeadingIdentifier | str) -> HeadingRecord:
        """Look up a heading by identifier, ``path#slug`` ref or bare slug."""
        if isinstance(heading, str):
            heading = self.heading_id(heading)
        record = self.headings.get(heading)
        if record is None:
            raise HeadingNotFoundError(f"Heading '{heading}' is not indexed.")
        return record

    def heading_id(self, ref: str) -> HeadingIdentifier:
        """Parse ``path#slug``; a bare slug must match exactly one document."""
        path, _, slug = ref.strip().rpartition("#")
        if not path:
            return self.find_heading(slug)
        return HeadingIdentifier(artifact=self.artifact_key(path), slug=slug)

    def find_heading(self, slug: str) -> HeadingIdentifier:
        slug = slug.strip().lstrip("#")
        matches = [hid for hid in self.headings if hid.slug == slug]
        if not matches:
            raise HeadingNotFoundError(f"No heading with slug '{slug}'.")
        if len(matches) > 1:
            places = ", ".join(m.artifact.workspace_path for m in matches)
            raise HeadingNotFoundError(
                f"Heading slug '{slug}' is ambiguous; found in {places}."
            )
        return matches[0]

    def constraint(self, constraint: ConstraintIdentifier | str) -> ConstraintRecord:
        """Look up a constraint group by identifier or ``path!group.set`` ref."""
        if isinstance(constraint, str):
            path, sep, group = constraint.strip().rpartition("!")
            if not sep:
                raise ConstraintNotFoundError(
                    f"Constraint ref '{constraint}' must read 'path!group.set'."
                )
            try:
                key = self.artifact_key(path)
            except HeadingNotFoundError as exc:
                raise ConstraintNotFoundError(str(exc)) from exc
            constraint = ConstraintIdentifier(artifact=key, group=group.rstrip(":"))
        record = self.constraints.get(constraint)
        if record is None:
            raise ConstraintNotFoundError(f"Constraint group '{constraint}' is not indexed.")
        return record

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_heading(self, heading: HeadingIdentifier | str) -> str:
        """The heading's section followed by every heading it links to.

        Referenced headings are followed transitively in link order; each
        section appears exactly once, even under cyclic references.
        """
        record = self.heading(heading)
        return self._render_closure([record.id], [])

    def render_heading_by_slug(self, slug: str) -> str:
        return self.render_heading(self.find_heading(slug))

    def render_constraint_group(self, constraint: ConstraintIdentifier | str) -> str:
        """The owning heading's section, then headings the group refers to."""
        record = self.constraint(constraint)
        return self._render_closure([record.heading], record.references)

    def _render_closure(
        self, roots: list[HeadingIdentifier], extra: list[HeadingIdentifier]
    ) -> str:
        rendered: set[HeadingIdentifier] = set()
        sections: list[str] = []
        queue = deque([*roots, *extra])
        while queue:
            hid = queue.popleft()
            if hid in rendered or hid not in self.headings:
                continue
            text, members = self._render_section(hid, rendered)
            sections.append(text)
            for member in members:
                queue.extend(self.headings[member].references)
        return "\n\n".join(sections) + "\n" if sections else ""

    def _render_section(
        self, hid: HeadingIdentifier, rendered: set[HeadingIdentifier]
    ) -> tuple[str, list[HeadingIdentifier]]:
        """Render ``hid`` with its unrendered descendants, marking them rendered."""
        record = self.headings[hid]
        rendered.add(hid)
        parts = [f"{'#' * record.level} {record.title}"]
        if record.content:
            parts.append(record.content)
        members = [hid]
        for child in record.children:
            if child in rendered:
                continue
            child_text, child_members = self._render_section(child, rendered)
            parts.append(child_text)
            members.extend(child_members)
        return "\n\n".join(parts), members


def _append_unique(items: list[HeadingIdentifier], item: HeadingIdentifier) -> None:
    if item not in items:
        items.append(item)
