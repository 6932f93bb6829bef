"""Workspace status and reference validation.

Every canonical document is checked for three kinds of problems:

- structure: unreadable documents, missing or malformed front matter,
  headings that slug to nothing or to a slug already used in the document;
- dependencies: declared front matter entries that cannot be resolved or
  whose workspace target does not exist;
- references: inline Markdown links to missing files, to heading fragments
  that match no heading, or to destinations the workspace does not support.

``https://`` links are checked for syntax only; nothing is fetched. On top
of the per-document checks, the dependency graph is walked from every
artifact and each distinct upstream cycle is reported once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from urllib.parse import unquote, urlsplit

from specgraph.core.dependency_graph import DependencyGraphBuilder
from specgraph.core.errors import (
    CycleDetectedError,
    FrontMatterError,
    LocatorError,
    UnknownArtifactError,
)
from specgraph.core.front_matter import (
    declared_entries,
    parse_front_matter,
    split_front_matter,
)
from specgraph.core.locator import LocatorResolver
from specgraph.core.workspace import WorkspacePaths
from specgraph.models.artifacts import ArtifactId, ArtifactKind
from specgraph.models.validation import (
    ArtifactStatus,
    IssueCategory,
    IssueSeverity,
    ValidationIssue,
    WorkspaceStatus,
)
from specgraph.structure.indexer import has_uri_scheme, scan_markdown
from specgraph.structure.slug import heading_slug

logger = logging.getLogger(__name__)

_UNSUPPORTED_PREFIXES = ("spec://", "impl://", "scratch://", "http://")


class WorkspaceValidator:
    """Produces per-artifact and workspace-wide validation reports.

    Parameters
    ----------
    workspace:
        Workspace to validate.
    resolver:
        Locator resolver; a fresh one is created when omitted.
    """

    def __init__(self, workspace: WorkspacePaths, resolver: LocatorResolver | None = None) -> None:
        self._workspace = workspace
        self._resolver = resolver or LocatorResolver(workspace)
        self._slugs: dict[Path, set[str]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_artifact(self, artifact: ArtifactId) -> ArtifactStatus:
        """Structure, dependency and reference issues of one artifact.

        Raises
        ------
        UnknownArtifactError
            If the artifact's document does not exist.
        """
        path = self._resolver.path_for(artifact)
        if not path.is_file():
            raise UnknownArtifactError(artifact, path)
        issues = self._validate_document(artifact, path)
        logger.debug("Validated %s: %d issue(s)", artifact, len(issues))
        return ArtifactStatus.build(artifact, self._workspace.relative(path), issues)

    def workspace_status(self, include_scratch: bool = True) -> WorkspaceStatus:
        """Validate every artifact and check the dependency graph for cycles."""
        kinds = tuple(
            kind for kind in ArtifactKind if include_scratch or kind is not ArtifactKind.SCRATCH
        )
        inventory = self._workspace.inventory(kinds)
        artifacts = [
            ArtifactStatus.build(
                artifact, self._workspace.relative(path), self._validate_document(artifact, path)
            )
            for artifact, path in inventory
        ]
        cycles = self._find_cycles([artifact for artifact, _ in inventory])
        status = WorkspaceStatus.build(artifacts, cycles)
        logger.info(
            "Workspace status %s: %d artifact(s), %d cycle(s)",
            status.global_status.value, len(artifacts), len(cycles),
        )
        return status

    # ------------------------------------------------------------------
    # Per-document checks
    # ------------------------------------------------------------------

    def _validate_document(self, artifact: ArtifactId, path: Path) -> list[ValidationIssue]:
        document = self._workspace.relative(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return [self._issue(IssueCategory.STRUCTURE, f"cannot read document: {exc}", document)]

        issues: list[ValidationIssue] = []
        split = split_front_matter(text)
        if split.yaml_text is None:
            issues.append(self._issue(IssueCategory.STRUCTURE, "document has no front matter", document))
        else:
            try:
                front_matter = parse_front_matter(split.yaml_text, path)
            except FrontMatterError as exc:
                issues.append(self._issue(IssueCategory.STRUCTURE, exc.reason, document, line=1))
            else:
                for declared in declared_entries(artifact.kind, front_matter):
                    issue = self._check_entry(declared.ref, declared.declared_in, path, document)
                    if issue is not None:
                        issues.append(issue)

        slugs: dict[str, int] = {}
        links: list[tuple[int, str]] = []
        for line, kind, text_value in scan_markdown(split.body, split.body_offset):
            if kind == "link":
                links.append((line, text_value))
                continue
            slug = heading_slug(text_value)
            if not slug:
                issues.append(
                    self._issue(
                        IssueCategory.STRUCTURE,
                        f"heading produces an empty slug (title: {text_value!r})",
                        document, line=line,
                    )
                )
            elif slug in slugs:
                issues.append(
                    self._issue(
                        IssueCategory.STRUCTURE,
                        f"duplicate heading slug '{slug}' (first at line {slugs[slug]})",
                        document, line=line,
                    )
                )
            else:
                slugs[slug] = line
        self._slugs[path.resolve(strict=False)] = set(slugs)

        for line, destination in links:
            issue = self._check_link(destination, line, path, document, set(slugs))
            if issue is not None:
                issues.append(issue)
        return issues

    def _check_entry(self, ref: str, declared_in: str, path: Path, document: str) -> ValidationIssue | None:
        try:
            resolved = self._resolver.resolve(ref, path)
        except LocatorError as exc:
            return self._issue(
                IssueCategory.DEPENDENCY,
                f"unresolvable '{declared_in}' entry: {exc}",
                document, destination=ref,
            )
        if resolved.is_external or resolved.path.is_file():
            return None
        return self._issue(
            IssueCategory.DEPENDENCY,
            f"missing dependency target {resolved.workspace_path}",
            document, destination=ref,
        )

    def _check_link(
        self, destination: str, line: int, path: Path, document: str, own_slugs: set[str]
    ) -> ValidationIssue | None:
        def fail(message: str) -> ValidationIssue:
            return self._issue(IssueCategory.REFERENCE, message, document, line=line, destination=destination)

        if destination.startswith(_UNSUPPORTED_PREFIXES) or "\\" in destination:
            return fail("unsupported link destination")
        if destination.startswith("https://"):
            return None if urlsplit(destination).hostname else fail("invalid https url")
        if has_uri_scheme(destination):
            # mailto: and friends are not workspace references
            return fail("unsupported link destination") if "://" in destination else None

        path_part, has_fragment, fragment = destination.partition("#")
        if not path_part:
            return self._check_fragment(fragment, own_slugs, None, fail)

        try:
            resolved = self._resolver.resolve(unquote(path_part), path)
        except LocatorError as exc:
            return fail(str(exc))
        target = resolved.path
        if not target.exists():
            return fail(f"missing filesystem target {resolved.workspace_path}")
        if not has_fragment or not target.is_file() or target.suffix.lower() != ".md":
            return None
        if target == path.resolve(strict=False):
            return self._check_fragment(fragment, own_slugs, None, fail)
        return self._check_fragment(fragment, self._heading_slugs(target), resolved.workspace_path, fail)

    @staticmethod
    def _check_fragment(
        fragment: str,
        slugs: set[str],
        where: str | None,
        fail: Callable[[str], ValidationIssue],
    ) -> ValidationIssue | None:
        if not fragment:
            return fail("empty fragment is invalid")
        if heading_slug(unquote(fragment)) in slugs:
            return None
        suffix = f" in {where}" if where else ""
        return fail(f"fragment '#{fragment}' does not match any heading slug{suffix}")

    def _heading_slugs(self, path: Path) -> set[str]:
        slugs = self._slugs.get(path)
        if slugs is None:
            try:
                split = split_front_matter(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Cannot read %s for fragment checks: %s", path, exc)
                slugs = set()
            else:
                slugs = {
                    heading_slug(value)
                    for _, kind, value in scan_markdown(split.body, split.body_offset)
                    if kind == "heading"
                }
                slugs.discard("")
            self._slugs[path] = slugs
        return slugs

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def _find_cycles(self, artifacts: list[ArtifactId]) -> list[list[ArtifactId]]:
        graph = DependencyGraphBuilder(self._workspace, self._resolver)
        found: dict[tuple[tuple[str, str], ...], list[ArtifactId]] = {}
        for artifact in artifacts:
            try:
                graph.upstream(artifact)
            except CycleDetectedError as exc:
                ring = _rotate(exc.cycle[:-1])
                found.setdefault(tuple(a.sort_key() for a in ring), [*ring, ring[0]])
            except LocatorError as exc:
                # Reported as a dependency issue of the declaring document
                logger.debug("Cycle check stopped at %s: %s", artifact, exc)
        return [found[key] for key in sorted(found)]

    @staticmethod
    def _issue(
        category: IssueCategory,
        message: str,
        document: str,
        line: int | None = None,
        destination: str | None = None,
    ) -> ValidationIssue:
        return ValidationIssue(
            category=category,
            severity=IssueSeverity.ERROR,
            message=message,
            document=document,
            line=line,
            destination=destination,
        )


def _rotate(ring: list[ArtifactId]) -> list[ArtifactId]:
    """Rotate a cycle so it starts at its smallest member."""
    start = min(range(len(ring)), key=lambda i: ring[i].sort_key())
    return ring[start:] + ring[:start]
