"""Locator parsing and resolution.

Three locator forms are accepted, each parsed by its own function into a
closed, tagged variant:

- filesystem paths, absolute or relative to the referring document
  (or to the workspace root when there is none);
- ``https://`` URLs (plain ``http://`` is rejected, never upgraded);
- resource handles ``spec://slug``, ``impl://slug`` and ``scratch://slug``.

Filesystem paths are canonicalised (``..`` collapsed, symlinks followed)
before the workspace boundary check, so traversal through ``..`` segments or
symlinks cannot escape the root.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path, PurePosixPath
from typing import Annotated, Literal, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from specgraph.core.errors import (
    InvalidHandleError,
    InvalidLocatorError,
    OutsideWorkspaceError,
    UnsupportedSchemeError,
)
from specgraph.core.workspace import (
    SCRATCHPAD_DIR_NAME,
    SLUG_PATTERN,
    WorkspacePaths,
    normalize_slug,
)
from specgraph.models.artifacts import ArtifactId, ArtifactKind, ResolutionProvenance

logger = logging.getLogger(__name__)

_SCHEME_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*)://")

_HANDLE_KINDS: dict[str, ArtifactKind] = {kind.value: kind for kind in ArtifactKind}


# ---------------------------------------------------------------------------
# Locator variants
# ---------------------------------------------------------------------------


class PathLocator(BaseModel):
    model_config = ConfigDict(frozen=True)

    form: Literal["path"] = "path"
    raw: str
    path: str


class UrlLocator(BaseModel):
    model_config = ConfigDict(frozen=True)

    form: Literal["url"] = "url"
    raw: str
    url: str


class HandleLocator(BaseModel):
    model_config = ConfigDict(frozen=True)

    form: Literal["handle"] = "handle"
    raw: str
    artifact: ArtifactId


Locator = Annotated[
    Union[PathLocator, UrlLocator, HandleLocator], Field(discriminator="form")
]


class ResolvedLocator(BaseModel):
    """Outcome of resolving one locator.

    Exactly one of ``path`` (canonical absolute file path) and ``url`` is set.
    ``artifact`` is the canonical or best-match identifier of the target.
    """

    model_config = ConfigDict(frozen=True)

    locator: Locator
    artifact: ArtifactId
    provenance: ResolutionProvenance
    path: Path | None = None
    workspace_path: str | None = None
    url: str | None = None

    @property
    def is_external(self) -> bool:
        return self.url is not None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_handle(raw: str, kind: ArtifactKind, rest: str) -> HandleLocator:
    """Parse the slug part of ``<kind>://<slug>``."""
    slug = rest.strip()
    if not slug:
        raise InvalidHandleError(raw, f"Handle '{raw}' is missing a slug.")
    if "/" in slug or "\\" in slug:
        raise InvalidHandleError(raw, f"Handle '{raw}' must name a single path segment.")
    slug = slug.lower()
    if not SLUG_PATTERN.match(slug):
        raise InvalidHandleError(
            raw, f"Handle '{raw}' may only use letters, digits, '-' and '_'."
        )
    return HandleLocator(raw=raw, artifact=ArtifactId(kind=kind, slug=slug))


def parse_url(raw: str) -> UrlLocator:
    """Parse an ``https://`` URL; a host is required."""
    parts = urlsplit(raw)
    if parts.scheme.lower() != "https":
        raise UnsupportedSchemeError(raw, parts.scheme.lower())
    if not parts.netloc:
        raise InvalidLocatorError(raw, f"URL '{raw}' has no host.")
    return UrlLocator(raw=raw, url=raw)


def parse_path(raw: str) -> PathLocator:
    return PathLocator(raw=raw, path=raw)


def parse_locator(raw: str) -> PathLocator | UrlLocator | HandleLocator:
    """Classify ``raw`` into exactly one locator variant.

    Raises
    ------
    InvalidLocatorError
        For empty input.
    InvalidHandleError
        For a reserved handle with an unusable slug.
    UnsupportedSchemeError
        For ``http://`` and any other non-reserved scheme.
    """
    text = raw.strip()
    if not text:
        raise InvalidLocatorError(raw, "Locator is empty.")

    match = _SCHEME_PATTERN.match(text)
    if match is None:
        return parse_path(text)

    scheme = match.group(1).lower()
    if scheme in _HANDLE_KINDS:
        return parse_handle(text, _HANDLE_KINDS[scheme], text[match.end():])
    if scheme == "https":
        return parse_url(text)
    raise UnsupportedSchemeError(text, scheme)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class LocatorResolver:
    """Resolves locators against one workspace.

    Results are memoised per instance, keyed by the raw locator and the base
    directory it was resolved from.

    Parameters
    ----------
    workspace:
        Paths of the workspace every filesystem locator must stay within.
    """

    def __init__(self, workspace: WorkspacePaths) -> None:
        self._workspace = workspace
        self._memo: dict[tuple[str, Path], ResolvedLocator] = {}

    @property
    def workspace(self) -> WorkspacePaths:
        return self._workspace

    def clear(self) -> None:
        self._memo.clear()

    def resolve(self, raw: str, from_document: Path | None = None) -> ResolvedLocator:
        """Resolve ``raw`` as found in ``from_document`` (if any)."""
        base = Path(from_document).parent if from_document else self._workspace.root
        key = (raw, base)
        cached = self._memo.get(key)
        if cached is not None:
            return cached

        locator = parse_locator(raw)
        if isinstance(locator, HandleLocator):
            resolved = self._resolve_handle(locator)
        elif isinstance(locator, UrlLocator):
            resolved = self._resolve_url(locator)
        else:
            resolved = self._resolve_path(locator, base)

        self._memo[key] = resolved
        logger.debug("Resolved %r -> %s (%s)", raw, resolved.artifact, resolved.provenance.value)
        return resolved

    def resolve_artifact(self, raw: str, from_document: Path | None = None) -> ArtifactId:
        return self.resolve(raw, from_document).artifact

    def path_for(self, artifact: ArtifactId) -> Path:
        """Canonical file of an artifact identifier."""
        return self._workspace.artifact_file(artifact)

    def canonical_path(self, raw: str, base: Path) -> Path:
        """Canonicalise a filesystem locator and enforce the workspace boundary."""
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = base / candidate
        canonical = candidate.resolve(strict=False)
        if not self._workspace.contains(canonical):
            raise OutsideWorkspaceError(raw, canonical, self._workspace.root)
        return canonical

    def artifact_for_path(self, path: Path) -> ArtifactId:
        """Identifier for a canonical path inside the workspace.

        Canonical layouts map exactly; anything else gets a best-match
        identifier: kind from the leading folder, slug from the artifact
        folder name or the file stem.
        """
        parts = PurePosixPath(self._workspace.relative(path)).parts
        marker = self._workspace.marker_dir
        if len(parts) >= 3 and parts[:2] == (marker, SCRATCHPAD_DIR_NAME):
            kind = ArtifactKind.SCRATCH
        elif parts and parts[0] == "impl":
            kind = ArtifactKind.IMPL
        else:
            kind = ArtifactKind.SPEC

        name = PurePosixPath(*parts) if parts else PurePosixPath(path.name)
        if name.name in {k.file_name for k in ArtifactKind} and len(parts) >= 2:
            slug = normalize_slug(parts[-2])
        else:
            slug = normalize_slug(name.stem)
        if not slug:
            slug = kind.value
        return ArtifactId(kind=kind, slug=slug)

    # ------------------------------------------------------------------
    # Per-variant resolution
    # ------------------------------------------------------------------

    def _resolve_handle(self, locator: HandleLocator) -> ResolvedLocator:
        path = self.path_for(locator.artifact)
        return ResolvedLocator(
            locator=locator,
            artifact=locator.artifact,
            provenance=ResolutionProvenance.EXACT_HANDLE,
            path=path,
            workspace_path=self._workspace.relative(path),
        )

    def _resolve_url(self, locator: UrlLocator) -> ResolvedLocator:
        segments = [s for s in PurePosixPath(urlsplit(locator.url).path).parts if s != "/"]
        kind = ArtifactKind.IMPL if "impl" in segments else ArtifactKind.SPEC
        last = segments[-1] if segments else ""
        if last in {k.file_name for k in ArtifactKind} and len(segments) >= 2:
            last = segments[-2]
        elif last.lower().endswith(".md"):
            last = last[:-3]
        slug = normalize_slug(last) or kind.value
        return ResolvedLocator(
            locator=locator,
            artifact=ArtifactId(kind=kind, slug=slug),
            provenance=ResolutionProvenance.BEST_MATCH_URL,
            url=locator.url,
        )

    def _resolve_path(self, locator: PathLocator, base: Path) -> ResolvedLocator:
        canonical = self.canonical_path(locator.path, base)
        if canonical.is_dir():
            # A folder holding a canonical artifact file stands for that file
            for kind in ArtifactKind:
                doc = canonical / kind.file_name
                if doc.is_file():
                    canonical = doc
                    break
        return ResolvedLocator(
            locator=locator,
            artifact=self.artifact_for_path(canonical),
            provenance=ResolutionProvenance.BEST_MATCH_FILE,
            path=canonical,
            workspace_path=self._workspace.relative(canonical),
        )
