"""Validation report models.

A workspace status check produces one :class:`ArtifactStatus` per document
plus workspace-wide cycle findings. Only ``error`` severity issues fail an
artifact; ``diagnostic`` issues are informational.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from specgraph.models.artifacts import ArtifactId, ArtifactKind


class IssueSeverity(str, Enum):
    ERROR = "error"
    DIAGNOSTIC = "diagnostic"


class IssueCategory(str, Enum):
    """Which check produced an issue."""

    STRUCTURE = "structure"
    REFERENCE = "reference"
    DEPENDENCY = "dependency"


class StatusResult(str, Enum):
    PASS = "pass"
    FAIL = "fail"

    @classmethod
    def of(cls, passed: bool) -> StatusResult:
        return cls.PASS if passed else cls.FAIL


class ValidationIssue(BaseModel):
    """One finding, located by workspace-relative document path and line."""

    model_config = ConfigDict(frozen=True)

    category: IssueCategory
    severity: IssueSeverity = IssueSeverity.ERROR
    message: str
    document: str
    line: int | None = None
    destination: str | None = None

    @property
    def location(self) -> str:
        return f"{self.document}:{self.line}" if self.line is not None else self.document


class ArtifactStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact: ArtifactId
    resolved_path: str
    issues: list[ValidationIssue] = Field(default_factory=list)
    status: StatusResult = StatusResult.PASS

    @classmethod
    def build(cls, artifact: ArtifactId, resolved_path: str, issues: list[ValidationIssue]) -> ArtifactStatus:
        passed = all(issue.severity is not IssueSeverity.ERROR for issue in issues)
        return cls(
            artifact=artifact,
            resolved_path=resolved_path,
            issues=issues,
            status=StatusResult.of(passed),
        )

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity is IssueSeverity.ERROR]


class WorkspaceStatus(BaseModel):
    """Aggregated result of a workspace status check.

    ``spec_impl_status`` covers specifications, implementations and the
    dependency cycle check. ``scratchpad_status`` covers scratch pads only,
    and ``global_status`` fails when either of them fails.
    """

    model_config = ConfigDict(frozen=True)

    artifacts: list[ArtifactStatus] = Field(default_factory=list)
    cycles: list[list[ArtifactId]] = Field(default_factory=list)
    spec_impl_status: StatusResult = StatusResult.PASS
    scratchpad_status: StatusResult = StatusResult.PASS
    global_status: StatusResult = StatusResult.PASS

    @classmethod
    def build(cls, artifacts: list[ArtifactStatus], cycles: list[list[ArtifactId]]) -> WorkspaceStatus:
        spec_impl = not cycles and all(
            a.status is StatusResult.PASS
            for a in artifacts
            if a.artifact.kind is not ArtifactKind.SCRATCH
        )
        scratch = all(
            a.status is StatusResult.PASS
            for a in artifacts
            if a.artifact.kind is ArtifactKind.SCRATCH
        )
        return cls(
            artifacts=artifacts,
            cycles=cycles,
            spec_impl_status=StatusResult.of(spec_impl),
            scratchpad_status=StatusResult.of(scratch),
            global_status=StatusResult.of(spec_impl and scratch),
        )

    @property
    def passed(self) -> bool:
        return self.global_status is StatusResult.PASS

    def for_artifact(self, artifact: ArtifactId) -> ArtifactStatus | None:
        return next((a for a in self.artifacts if a.artifact == artifact), None)
