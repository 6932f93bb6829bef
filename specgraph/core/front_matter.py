"""Reading YAML front matter from Markdown documents.

A document carries front matter when its first line is ``---`` and a later
line closes the block with ``---``. The engine only reads front matter; it
never writes it.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from specgraph.core.errors import FrontMatterError
from specgraph.models.artifacts import ArtifactKind
from specgraph.models.front_matter import ArtifactFrontMatter

_DELIMITER = "---"


class SplitDocument(BaseModel):
    """A document split into its raw YAML block and Markdown body.

    ``body_offset`` is the number of lines before the body starts, so body
    line ``n`` (1-based) is file line ``n + body_offset``.
    """

    model_config = ConfigDict(frozen=True)

    yaml_text: str | None
    body: str
    body_offset: int


class DeclaredEntry(BaseModel):
    """One upstream reference declared in front matter."""

    model_config = ConfigDict(frozen=True)

    ref: str
    optional: bool
    declared_in: str


def normalize_text(text: str) -> str:
    """Strip a leading BOM and normalise CRLF/CR line endings to LF."""
    return text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def split_front_matter(text: str) -> SplitDocument:
    """Separate the front matter block (if any) from the body."""
    text = normalize_text(text)
    lines = text.split("\n")
    if not lines or lines[0].rstrip() != _DELIMITER:
        return SplitDocument(yaml_text=None, body=text, body_offset=0)

    for index in range(1, len(lines)):
        if lines[index].rstrip() == _DELIMITER:
            yaml_text = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1:])
            return SplitDocument(yaml_text=yaml_text, body=body, body_offset=index + 1)
    # Unterminated block: the whole document is body
    return SplitDocument(yaml_text=None, body=text, body_offset=0)


def parse_front_matter(yaml_text: str, path: Path) -> ArtifactFrontMatter:
    """Parse a raw YAML block into :class:`ArtifactFrontMatter`."""
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as exc:
        raise FrontMatterError(path, f"invalid YAML front matter: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(path, "front matter must be a mapping")
    try:
        return ArtifactFrontMatter.model_validate(data)
    except ValidationError as exc:
        raise FrontMatterError(path, f"unexpected front matter shape: {exc}") from exc


def read_front_matter(path: Path) -> ArtifactFrontMatter:
    """Load and parse the front matter of a Markdown file.

    Raises
    ------
    FrontMatterError
        If the file is unreadable, has no front matter, or the block is
        not a valid mapping.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FrontMatterError(path, f"cannot read document: {exc}") from exc

    split = split_front_matter(text)
    if split.yaml_text is None:
        raise FrontMatterError(path, "document has no front matter")
    return parse_front_matter(split.yaml_text, path)


def declared_entries(kind: ArtifactKind, front_matter: ArtifactFrontMatter) -> list[DeclaredEntry]:
    """Upstream references declared by a document, in declaration order.

    Implementations list their specification first, then references, then
    plain dependencies. Scratch pads list their target first; a target is
    recorded as optional so it never blocks removal of the targeted artifact.
    """
    entries: list[DeclaredEntry] = []
    if kind is ArtifactKind.IMPL:
        if front_matter.spec:
            entries.append(DeclaredEntry(ref=front_matter.spec, optional=False, declared_in="spec"))
        entries.extend(
            DeclaredEntry(ref=ref.ref, optional=ref.optional, declared_in="references")
            for ref in front_matter.references
        )
    elif kind is ArtifactKind.SCRATCH and front_matter.target:
        entries.append(DeclaredEntry(ref=front_matter.target, optional=True, declared_in="target"))

    entries.extend(
        DeclaredEntry(ref=dep.ref, optional=dep.optional, declared_in="dependencies")
        for dep in front_matter.dependencies
    )
    return entries
