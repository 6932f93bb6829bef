"""Shared test fixtures for specgraph."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from specgraph.config import EngineSettings
from specgraph.core.dependency_graph import DependencyGraphBuilder
from specgraph.core.engine import WorkspaceEngine
from specgraph.core.locator import LocatorResolver
from specgraph.core.workspace import WorkspacePaths, create_workspace
from specgraph.structure.cache import IndexCache
from specgraph.structure.indexer import StructureIndexer

WriteDoc = Callable[..., Path]


@pytest.fixture
def settings() -> EngineSettings:
    """Settings isolated from any .env file or SPECGRAPH_* variables."""
    return EngineSettings(_env_file=None, log_level="DEBUG", use_cache=True, max_dependency_depth=None)


@pytest.fixture
def workspace(tmp_path: Path, settings: EngineSettings) -> WorkspacePaths:
    """Provide a freshly provisioned, empty workspace."""
    return create_workspace(tmp_path / "ws", settings)


@pytest.fixture
def write_doc(workspace: WorkspacePaths) -> WriteDoc:
    """Factory writing a Markdown document with optional YAML front matter."""

    def _write(relative: str, front_matter: dict[str, Any] | None = None, body: str = "") -> Path:
        path = workspace.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        text = ""
        if front_matter is not None:
            text = "---\n" + yaml.safe_dump(front_matter, sort_keys=False) + "---\n"
        path.write_text(text + body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_spec(write_doc: WriteDoc) -> WriteDoc:
    """Factory for ``spec/<slug>/spec.md`` with a dependency list."""

    def _write(slug: str, dependencies: list[Any] | None = None, body: str | None = None, **extra: Any) -> Path:
        front_matter = {"name": slug, "version": "1.0.0", **extra}
        if dependencies is not None:
            front_matter["dependencies"] = dependencies
        return write_doc(f"spec/{slug}/spec.md", front_matter, body if body is not None else f"# {slug}\n")

    return _write


@pytest.fixture
def resolver(workspace: WorkspacePaths) -> LocatorResolver:
    return LocatorResolver(workspace)


@pytest.fixture
def graph(workspace: WorkspacePaths) -> DependencyGraphBuilder:
    return DependencyGraphBuilder(workspace)


@pytest.fixture
def cache(workspace: WorkspacePaths) -> IndexCache:
    return IndexCache(workspace)


@pytest.fixture
def indexer(workspace: WorkspacePaths, cache: IndexCache) -> StructureIndexer:
    return StructureIndexer(workspace, cache)


@pytest.fixture
def engine(workspace: WorkspacePaths, settings: EngineSettings) -> WorkspaceEngine:
    return WorkspaceEngine(workspace, settings=settings)
