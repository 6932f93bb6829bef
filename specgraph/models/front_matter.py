"""YAML front matter models for spec, impl and scratch documents."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DependencyRef(BaseModel):
    """One declared dependency: a locator plus its optional flag."""

    model_config = ConfigDict(frozen=True)

    ref: str
    optional: bool = False


class ReferenceEntry(BaseModel):
    """An implementation's reference entry, ``{ref, type, optional}``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ref: str
    ref_type: str | None = Field(default=None, alias="type")
    optional: bool = False


def _coerce_entries(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if isinstance(value, list):
        return [{"ref": item} if isinstance(item, str) else item for item in value]
    return value


class ArtifactFrontMatter(BaseModel):
    """Front matter shared by every artifact kind.

    Only the fields the engine reads are typed; any other keys are kept as
    extras so nothing in the document is silently dropped.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str | None = None
    version: str | None = None
    spec: str | None = None
    target: str | None = None
    work_type: Any = None
    dependencies: list[DependencyRef] = []
    references: list[ReferenceEntry] = []

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("dependencies", "references", mode="before")
    @classmethod
    def _entries_as_mappings(cls, value: Any) -> Any:
        return _coerce_entries(value)
