"""Markdown structure extraction and index builds.

:func:`parse_artifact` reads one document into a :class:`ParsedArtifact`:
its heading tree, constraint groups and inline links. Link destinations are
canonicalised here (through the locator resolver) but matched against
headings only when the index is assembled, so per-document parse results
can be cached independently of each other.

:class:`StructureIndexer` enumerates the workspace, consults the disk cache
for spec and impl documents, always parses scratch pads live, and assembles
the final :class:`WorkspaceIndex`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from pathlib import Path
from urllib.parse import unquote

from specgraph.core.errors import (
    DuplicateConstraintGroupError,
    DuplicateHeadingSlugError,
    FrontMatterError,
    IndexingError,
    InvalidHeadingError,
)
from specgraph.core.front_matter import parse_front_matter, split_front_matter
from specgraph.core.locator import LocatorResolver
from specgraph.core.workspace import WorkspacePaths
from specgraph.models.artifacts import ArtifactId, ArtifactKey, ArtifactKind
from specgraph.models.structure import (
    ArtifactRecord,
    ConstraintIdentifier,
    ConstraintRecord,
    HeadingIdentifier,
    HeadingRecord,
    ParsedArtifact,
    PendingLink,
)
from specgraph.structure.cache import IndexCache
from specgraph.structure.index import WorkspaceIndex
from specgraph.structure.slug import heading_slug

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")
_ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*?)[ \t]*$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_CONSTRAINT_MARKER = re.compile(r"^!([^\s!:]+):$")
_INLINE_CODE = re.compile(r"`+[^`]*`+")
_INLINE_LINK = re.compile(r"(?<!!)\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+[\"'][^\"']*[\"'])?\s*\)")
_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def _is_constraint_group(group: str) -> bool:
    segments = group.split(".")
    return len(segments) >= 2 and all(segments)


def _advance_fence(
    fence: tuple[str, int] | None, line: str
) -> tuple[tuple[str, int] | None, bool]:
    """Fence state after ``line`` and whether ``line`` belongs to fenced code."""
    match = _FENCE.match(line)
    if fence is None:
        if match:
            run = match.group(1)
            return (run[0], len(run)), True
        return None, False

    char, length = fence
    if match:
        run = match.group(1)
        if run[0] == char and len(run) >= length and not match.group(2).strip():
            return None, True
    return fence, True


def _heading_title(raw_title: str) -> str:
    return _CLOSING_HASHES.sub("", raw_title).strip()


def _line_links(line: str) -> Iterator[str]:
    for match in _INLINE_LINK.finditer(_INLINE_CODE.sub("", line)):
        destination = match.group(1).strip()
        if destination:
            yield destination


def has_uri_scheme(destination: str) -> bool:
    return _URI_SCHEME.match(destination) is not None


def scan_markdown(body: str, body_offset: int = 0) -> Iterator[tuple[int, str, str]]:
    """Yield ``(line, "heading", title)`` and ``(line, "link", destination)``.

    Fenced code is skipped. Link destinations are returned raw, scheme and
    all; headings with no text are returned with an empty title.
    """
    fence: tuple[str, int] | None = None
    for offset, line in enumerate(body.split("\n"), start=1):
        fence, fenced = _advance_fence(fence, line)
        if fenced:
            continue
        line_no = offset + body_offset
        heading = _ATX_HEADING.match(line)
        if heading:
            yield line_no, "heading", _heading_title(heading.group(2))
            continue
        for destination in _line_links(line):
            yield line_no, "link", destination


class _DocumentParser:
    """Single-pass parser state for one document."""

    def __init__(self, key: ArtifactKey, path: Path, resolver: LocatorResolver) -> None:
        self._key = key
        self._path = path
        self._resolver = resolver
        self._headings: list[dict] = []
        self._by_slug: dict[str, dict] = {}
        self._stack: list[dict] = []
        self._markers: list[dict] = []
        self._links: list[dict] = []
        self._current_marker: dict | None = None
        self._fence: tuple[str, int] | None = None

    def _heading_id(self, slug: str) -> HeadingIdentifier:
        return HeadingIdentifier(artifact=self._key, slug=slug)

    def _constraint_id(self, group: str) -> ConstraintIdentifier:
        return ConstraintIdentifier(artifact=self._key, group=group)

    # ------------------------------------------------------------------
    # Line handling
    # ------------------------------------------------------------------

    def feed(self, line: str, line_no: int) -> None:
        if self._in_fence(line):
            self._append_content(line)
            return

        heading = _ATX_HEADING.match(line)
        if heading:
            self._open_heading(len(heading.group(1)), heading.group(2), line_no)
            return

        marker = _CONSTRAINT_MARKER.match(line.strip())
        if marker and _is_constraint_group(marker.group(1)):
            self._open_marker(marker.group(1), line_no)
        else:
            self._scan_links(line, line_no)
        self._append_content(line)

    def _in_fence(self, line: str) -> bool:
        self._fence, fenced = _advance_fence(self._fence, line)
        return fenced

    def _open_heading(self, level: int, raw_title: str, line_no: int) -> None:
        title = _heading_title(raw_title)
        slug = heading_slug(title)
        if not slug:
            raise InvalidHeadingError(self._key.workspace_path, line_no, title)
        if slug in self._by_slug:
            raise DuplicateHeadingSlugError(
                self._key.workspace_path, slug, self._by_slug[slug]["line"], line_no
            )

        while self._stack and self._stack[-1]["level"] >= level:
            self._stack.pop()
        parent = self._stack[-1]["slug"] if self._stack else None

        draft = {
            "slug": slug,
            "title": title,
            "level": level,
            "line": line_no,
            "order": len(self._headings),
            "parent": parent,
            "lines": [],
        }
        self._headings.append(draft)
        self._by_slug[slug] = draft
        self._stack.append(draft)
        self._current_marker = None

    def _open_marker(self, group: str, line_no: int) -> None:
        nearest = self._stack[-1]["slug"] if self._stack else None
        marker = {"group": group, "line": line_no, "nearest": nearest}
        self._markers.append(marker)
        self._current_marker = marker

    def _append_content(self, line: str) -> None:
        if self._stack:
            self._stack[-1]["lines"].append(line)

    def _scan_links(self, line: str, line_no: int) -> None:
        if not self._stack:
            return
        source = self._stack[-1]["slug"]
        for destination in _line_links(line):
            if has_uri_scheme(destination):
                continue
            path_part, _, fragment = destination.partition("#")
            if path_part:
                resolved = self._resolver.resolve(unquote(path_part), self._path)
                target_path = resolved.workspace_path
            else:
                target_path = self._key.workspace_path
            self._links.append(
                {
                    "source": source,
                    "marker": self._current_marker,
                    "line": line_no,
                    "target_path": target_path,
                    "fragment": heading_slug(unquote(fragment)) or None,
                }
            )

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def constraints(self) -> list[ConstraintRecord]:
        records: list[ConstraintRecord] = []
        seen: dict[str, int] = {}
        for marker in self._markers:
            group = marker["group"]
            if group in seen:
                raise DuplicateConstraintGroupError(
                    self._key.workspace_path, group, seen[group], marker["line"]
                )
            seen[group] = marker["line"]

            first_segment = heading_slug(group.split(".")[0])
            owner = first_segment if first_segment in self._by_slug else marker["nearest"]
            if owner is None:
                raise IndexingError(
                    f"{self._key.workspace_path}:{marker['line']}: constraint group "
                    f"'!{group}:' matches no heading and precedes every heading."
                )
            records.append(
                ConstraintRecord(
                    id=self._constraint_id(group),
                    heading=self._heading_id(owner),
                    line=marker["line"],
                )
            )
        return records

    def headings(self) -> list[HeadingRecord]:
        children: dict[str, list[HeadingIdentifier]] = {d["slug"]: [] for d in self._headings}
        for draft in self._headings:
            if draft["parent"] is not None:
                children[draft["parent"]].append(self._heading_id(draft["slug"]))

        return [
            HeadingRecord(
                id=self._heading_id(draft["slug"]),
                title=draft["title"],
                level=draft["level"],
                line=draft["line"],
                order=draft["order"],
                parent=self._heading_id(draft["parent"]) if draft["parent"] else None,
                children=children[draft["slug"]],
                content="\n".join(draft["lines"]).strip("\n"),
            )
            for draft in self._headings
        ]

    def links(self) -> list[PendingLink]:
        return [
            PendingLink(
                source=self._heading_id(link["source"]),
                constraint=(
                    self._constraint_id(link["marker"]["group"]) if link["marker"] else None
                ),
                line=link["line"],
                target_path=link["target_path"],
                fragment=link["fragment"],
            )
            for link in self._links
        ]


def parse_artifact(
    artifact: ArtifactId,
    path: Path,
    workspace: WorkspacePaths,
    resolver: LocatorResolver | None = None,
) -> ParsedArtifact:
    """Extract headings, constraint groups and links from one document.

    Raises
    ------
    DuplicateHeadingSlugError, DuplicateConstraintGroupError, InvalidHeadingError
        On structural problems in the document.
    OutsideWorkspaceError
        If an inline link escapes the workspace.
    """
    resolver = resolver or LocatorResolver(workspace)
    key = ArtifactKey(kind=artifact.kind, workspace_path=workspace.relative(path))
    split = split_front_matter(path.read_text(encoding="utf-8"))

    name = version = None
    if split.yaml_text is not None:
        try:
            front_matter = parse_front_matter(split.yaml_text, path)
        except FrontMatterError as exc:
            logger.warning("Indexing %s without front matter: %s", key.workspace_path, exc)
        else:
            name, version = front_matter.name, front_matter.version

    parser = _DocumentParser(key, path, resolver)
    for offset, line in enumerate(split.body.split("\n"), start=1):
        parser.feed(line, offset + split.body_offset)

    headings = parser.headings()
    constraints = parser.constraints()
    logger.debug(
        "Parsed %s: %d headings, %d constraint groups",
        key.workspace_path, len(headings), len(constraints),
    )
    return ParsedArtifact(
        record=ArtifactRecord(key=key, id=artifact, name=name, version=version),
        headings=headings,
        constraints=constraints,
        links=parser.links(),
    )


class StructureIndexer:
    """Builds :class:`WorkspaceIndex` values, with or without the disk cache.

    Parameters
    ----------
    workspace:
        Workspace to index.
    cache:
        Disk cache for spec and impl documents. Without one every build is
        ephemeral.
    """

    def __init__(self, workspace: WorkspacePaths, cache: IndexCache | None = None) -> None:
        self._workspace = workspace
        self._cache = cache

    def build_index(self, use_cache: bool = True) -> WorkspaceIndex:
        """Index every canonical artifact in the workspace.

        With ``use_cache`` a fresh cache is loaded without locking; a stale,
        missing or corrupt cache is rebuilt and persisted under the lock.

        Raises
        ------
        CacheLockedError
            If a rebuild is needed while another writer holds the lock.
        """
        resolver = LocatorResolver(self._workspace)
        inventory = self._workspace.inventory()
        persistent = [(a, p) for a, p in inventory if a.kind is not ArtifactKind.SCRATCH]
        scratch = [(a, p) for a, p in inventory if a.kind is ArtifactKind.SCRATCH]

        if use_cache and self._cache is not None:
            parsed = self._cache.load(persistent)
            if parsed is None:
                with self._cache.lock():
                    snapshot = self._cache.snapshot(persistent)
                    parsed = [self._parse(a, p, resolver) for a, p in persistent]
                    self._cache.store(snapshot, parsed)
        else:
            parsed = [self._parse(a, p, resolver) for a, p in persistent]

        parsed = [*parsed, *(self._parse(a, p, resolver) for a, p in scratch)]
        return WorkspaceIndex.assemble(self._workspace, parsed)

    def _parse(self, artifact: ArtifactId, path: Path, resolver: LocatorResolver) -> ParsedArtifact:
        return parse_artifact(artifact, path, self._workspace, resolver)
