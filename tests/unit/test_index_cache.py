"""Tests for the structure index disk cache."""

from __future__ import annotations

import json
import os

import pytest

from specgraph.core.errors import CacheLockedError, DuplicateHeadingSlugError
from specgraph.core.workspace import workspace_fingerprint
from specgraph.models.artifacts import ArtifactKind
from specgraph.structure import indexer as indexer_module
from specgraph.structure.cache import CacheLock, IndexCache, index_file_name


@pytest.fixture
def populated(write_spec, write_doc):
    write_spec("a", body="# Alpha\n\nSee [b](../b/spec.md#beta).\n")
    write_spec("b", body="# Beta\n")
    write_doc(".specman/scratchpad/idea/scratch.md", {"target": "spec://a"}, "# Idea\n")


@pytest.fixture
def parse_calls(monkeypatch):
    """Record every artifact the indexer parses."""
    calls = []
    real = indexer_module.parse_artifact

    def _tracking(artifact, path, workspace, resolver=None):
        calls.append(artifact)
        return real(artifact, path, workspace, resolver)

    monkeypatch.setattr(indexer_module, "parse_artifact", _tracking)
    return calls


class TestCacheRoundTrip:
    def test_first_build_writes_files(self, populated, indexer, cache):
        indexer.build_index()
        assert cache.manifest_path.is_file()
        assert cache.data_path.name == index_file_name(1)
        assert cache.data_path.is_file()
        assert not cache.lock_path.exists()

    def test_manifest_contents(self, populated, indexer, cache, workspace):
        indexer.build_index()
        manifest = cache.read_manifest()
        assert manifest.schema_version == 1
        assert manifest.workspace_fingerprint == workspace_fingerprint(workspace)
        assert manifest.index_file == "index.v1.json"
        assert manifest.index_digest.startswith("sha256:")
        assert [e.path for e in manifest.artifacts] == ["spec/a/spec.md", "spec/b/spec.md"]

    def test_manifest_is_pretty_sorted_json(self, populated, indexer, cache):
        indexer.build_index()
        text = cache.manifest_path.read_text(encoding="utf-8")
        data = json.loads(text)
        assert list(data) == sorted(data)
        assert text.endswith("\n")
        assert "\n  " in text

    def test_fresh_cache_skips_parsing_persistent_docs(self, populated, indexer, parse_calls):
        first = indexer.build_index()
        parse_calls.clear()
        second = indexer.build_index()
        assert [a.slug for a in parse_calls] == ["idea"]
        assert second.headings == first.headings
        assert second.relationships == first.relationships

    def test_cached_index_equals_uncached(self, populated, indexer):
        indexer.build_index()
        cached = indexer.build_index(use_cache=True)
        live = indexer.build_index(use_cache=False)
        assert cached.headings == live.headings
        assert cached.constraints == live.constraints
        assert cached.relationships == live.relationships

    def test_data_file_is_deterministic(self, populated, indexer, cache):
        indexer.build_index()
        first = cache.data_path.read_bytes()
        assert cache.invalidate()
        indexer.build_index()
        assert cache.data_path.read_bytes() == first

    def test_use_cache_false_writes_nothing(self, populated, indexer, cache):
        indexer.build_index(use_cache=False)
        assert not cache.manifest_path.exists()


class TestStaleness:
    def test_edited_document_is_reparsed(self, populated, indexer, parse_calls, workspace):
        indexer.build_index()
        doc = workspace.root / "spec" / "b" / "spec.md"
        doc.write_text(doc.read_text(encoding="utf-8") + "\n## Extra\n", encoding="utf-8")
        parse_calls.clear()
        index = indexer.build_index()
        assert {a.slug for a in parse_calls} >= {"a", "b"}
        assert index.heading("spec/b/spec.md#extra").title == "Extra"

    def test_mtime_change_alone_is_stale(self, populated, indexer, cache, workspace, parse_calls):
        indexer.build_index()
        doc = workspace.root / "spec" / "a" / "spec.md"
        stat = doc.stat()
        os.utime(doc, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
        parse_calls.clear()
        indexer.build_index()
        assert "a" in {a.slug for a in parse_calls}

    def test_added_document_is_stale(self, populated, indexer, write_spec):
        indexer.build_index()
        write_spec("c", body="# Gamma\n")
        assert indexer.build_index().heading("spec/c/spec.md#gamma").title == "Gamma"

    def test_scratch_edits_never_touch_the_cache(self, populated, indexer, cache, write_doc):
        indexer.build_index()
        before = cache.manifest_path.read_bytes()
        write_doc(".specman/scratchpad/idea/scratch.md", {"target": "spec://a"}, "# Idea\n\n## Changed\n")
        index = indexer.build_index()
        assert cache.manifest_path.read_bytes() == before
        assert index.heading(".specman/scratchpad/idea/scratch.md#changed").title == "Changed"

    def test_fingerprint_change_is_stale(self, populated, indexer, cache, workspace):
        indexer.build_index()
        workspace.fingerprint_path.write_text("0" * 32 + "\n", encoding="utf-8")
        indexer.build_index()
        assert cache.read_manifest().workspace_fingerprint == "0" * 32

    def test_other_schema_version_is_a_miss(self, populated, indexer, workspace):
        indexer.build_index()
        inventory = [(a, p) for a, p in workspace.inventory() if a.kind is not ArtifactKind.SCRATCH]
        assert IndexCache(workspace, schema_version=1).load(inventory) is not None
        assert IndexCache(workspace, schema_version=2).load(inventory) is None


class TestCorruption:
    def test_garbage_data_file_rebuilt(self, populated, indexer, cache):
        indexer.build_index()
        cache.data_path.write_bytes(b"{not json")
        index = indexer.build_index()
        assert index.heading("spec/a/spec.md#alpha").title == "Alpha"
        json.loads(cache.data_path.read_bytes())

    def test_garbage_manifest_rebuilt(self, populated, indexer, cache):
        indexer.build_index()
        cache.manifest_path.write_text("[]", encoding="utf-8")
        indexer.build_index()
        assert cache.read_manifest() is not None

    def test_missing_data_file_rebuilt(self, populated, indexer, cache):
        indexer.build_index()
        cache.data_path.unlink()
        indexer.build_index()
        assert cache.data_path.is_file()


class TestLocking:
    def test_lock_held_with_stale_cache_fails_fast(self, populated, indexer, cache):
        cache.lock_path.parent.mkdir(parents=True, exist_ok=True)
        cache.lock_path.write_text("999999\n", encoding="utf-8")
        with pytest.raises(CacheLockedError) as excinfo:
            indexer.build_index()
        assert excinfo.value.lock_path == cache.lock_path

    def test_lock_held_with_fresh_cache_still_reads(self, populated, indexer, cache):
        indexer.build_index()
        cache.lock_path.write_text("999999\n", encoding="utf-8")
        assert indexer.build_index().heading("spec/b/spec.md#beta").title == "Beta"

    def test_lock_released_after_parse_failure(self, write_spec, indexer, cache):
        write_spec("bad", body="# Same\n\n## Same\n")
        with pytest.raises(DuplicateHeadingSlugError):
            indexer.build_index()
        assert not cache.lock_path.exists()
        assert not cache.manifest_path.exists()

    def test_lock_is_exclusive(self, cache):
        with cache.lock() as held:
            assert held.held
            assert cache.is_locked()
            with pytest.raises(CacheLockedError):
                CacheLock(cache.lock_path).acquire()
        assert not cache.is_locked()

    def test_invalidate_while_locked(self, populated, indexer, cache, caplog):
        indexer.build_index()
        with cache.lock():
            assert cache.invalidate() is False
        assert cache.manifest_path.is_file()
        assert "Cache lock held" in caplog.text

    def test_invalidate_removes_manifest(self, populated, indexer, cache):
        indexer.build_index()
        assert cache.invalidate() is True
        assert not cache.manifest_path.exists()
        assert cache.invalidate() is True
