"""Tests for engine settings: env-driven configuration."""

from __future__ import annotations

import pytest

from specgraph.config import EngineSettings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SPECGRAPH_LOG_LEVEL",
        "SPECGRAPH_MARKER_DIR",
        "SPECGRAPH_CACHE_DIR",
        "SPECGRAPH_USE_CACHE",
        "SPECGRAPH_MAX_DEPENDENCY_DEPTH",
    ):
        monkeypatch.delenv(name, raising=False)


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings(_env_file=None)
        assert settings.log_level == "WARNING"
        assert settings.marker_dir == ".specman"
        assert settings.cache_dir == "cache"
        assert settings.use_cache is True
        assert settings.max_dependency_depth is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SPECGRAPH_USE_CACHE", "false")
        monkeypatch.setenv("SPECGRAPH_MAX_DEPENDENCY_DEPTH", "3")
        monkeypatch.setenv("SPECGRAPH_LOG_LEVEL", "DEBUG")
        settings = EngineSettings(_env_file=None)
        assert settings.use_cache is False
        assert settings.max_dependency_depth == 3
        assert settings.log_level == "DEBUG"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SPECGRAPH_MARKER_DIR=.workspace\nUNRELATED=1\n", encoding="utf-8")
        settings = EngineSettings(_env_file=env_file)
        assert settings.marker_dir == ".workspace"

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("SPECGRAPH_USE_CACHE", "false")
        assert EngineSettings(_env_file=None, use_cache=True).use_cache is True
