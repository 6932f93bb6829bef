"""Disk cache for parsed spec and impl documents.

Layout under ``<marker>/<cache_dir>/index/``::

    manifest.json      schema version, workspace fingerprint, timestamp,
                       data file name and digest, per-artifact stat entries
    index.v<N>.json    canonical JSON of every cached ParsedArtifact
    .lock              present while a writer rebuilds the cache

Reads never lock: a manifest that disagrees with the live filesystem in any
way (schema, fingerprint, artifact set, mtime or size), or data that fails
its digest or does not parse, is a miss. Writers take the lock with
exclusive create and fail fast when it is held. Both files are replaced
atomically, data first, so a crash can only leave a detectable mismatch.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import time
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from specgraph.core.errors import CacheCorruptError, CacheLockedError
from specgraph.core.fs import atomic_write
from specgraph.core.hasher import canonical_json_bytes, payload_digest
from specgraph.core.workspace import WorkspacePaths, workspace_fingerprint
from specgraph.models.artifacts import ArtifactId, ArtifactKind
from specgraph.models.structure import SCHEMA_VERSION, ParsedArtifact

logger = logging.getLogger(__name__)

INDEX_DIR_NAME = "index"
MANIFEST_FILE_NAME = "manifest.json"
LOCK_FILE_NAME = ".lock"


def index_file_name(schema_version: int) -> str:
    return f"index.v{schema_version}.json"


class ManifestEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    kind: ArtifactKind
    mtime_ns: int
    size: int


class CacheManifest(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int
    workspace_fingerprint: str
    generated_at_unix_ms: int
    index_file: str
    index_digest: str
    artifacts: list[ManifestEntry]


class CachedIndex(BaseModel):
    """Payload of the data file."""

    model_config = ConfigDict(frozen=True)

    schema_version: int
    workspace_fingerprint: str
    artifacts: list[ParsedArtifact]


class CacheLock:
    """Exclusive lock marker; presence of the file means held.

    Use as a context manager. Acquisition never waits.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise CacheLockedError(self.path) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        self._held = True
        logger.debug("Acquired cache lock %s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
        logger.debug("Released cache lock %s", self.path)

    def __enter__(self) -> CacheLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class IndexCache:
    """Cache store for one workspace, passed explicitly to the indexer.

    Parameters
    ----------
    workspace:
        Workspace whose cache root and fingerprint are used.
    schema_version:
        Record layout version; any other version on disk is a miss.
    """

    def __init__(self, workspace: WorkspacePaths, schema_version: int = SCHEMA_VERSION) -> None:
        self._workspace = workspace
        self._schema_version = schema_version
        self.root = workspace.cache_root / INDEX_DIR_NAME

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILE_NAME

    @property
    def data_path(self) -> Path:
        return self.root / index_file_name(self._schema_version)

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_FILE_NAME

    def lock(self) -> CacheLock:
        return CacheLock(self.lock_path)

    def is_locked(self) -> bool:
        return self.lock_path.exists()

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def snapshot(self, artifacts: list[tuple[ArtifactId, Path]]) -> list[ManifestEntry]:
        """Stat entries for ``artifacts``, sorted by workspace path."""
        entries = []
        for artifact, path in artifacts:
            stat = path.stat()
            entries.append(
                ManifestEntry(
                    path=self._workspace.relative(path),
                    kind=artifact.kind,
                    mtime_ns=stat.st_mtime_ns,
                    size=stat.st_size,
                )
            )
        return sorted(entries, key=lambda e: e.path)

    def read_manifest(self) -> CacheManifest | None:
        if not self.manifest_path.is_file():
            return None
        try:
            return CacheManifest.model_validate_json(self.manifest_path.read_bytes())
        except (OSError, ValidationError) as exc:
            logger.debug("Unreadable cache manifest %s: %s", self.manifest_path, exc)
            return None

    def load(self, artifacts: list[tuple[ArtifactId, Path]]) -> list[ParsedArtifact] | None:
        """Cached parse results for ``artifacts``, or None when stale."""
        manifest = self.read_manifest()
        if manifest is None:
            logger.debug("Index cache miss: no manifest")
            return None

        fingerprint_file = self._workspace.fingerprint_path
        fingerprint = (
            fingerprint_file.read_text(encoding="utf-8").strip()
            if fingerprint_file.is_file() else None
        )
        try:
            live = self.snapshot(artifacts)
        except OSError as exc:
            logger.debug("Index cache miss: %s", exc)
            return None

        if manifest.schema_version != self._schema_version:
            reason = f"schema {manifest.schema_version} != {self._schema_version}"
        elif manifest.index_file != self.data_path.name:
            reason = f"unexpected data file {manifest.index_file!r}"
        elif manifest.workspace_fingerprint != fingerprint:
            reason = "workspace fingerprint changed"
        elif manifest.artifacts != live:
            reason = "artifact set or file stats changed"
        else:
            reason = None
        if reason is not None:
            logger.debug("Index cache stale: %s", reason)
            return None

        try:
            cached = self._read_data(manifest)
        except CacheCorruptError as exc:
            logger.debug("Index cache corrupt, rebuilding: %s", exc)
            return None

        logger.debug("Index cache hit: %d artifacts", len(cached.artifacts))
        return list(cached.artifacts)

    def _read_data(self, manifest: CacheManifest) -> CachedIndex:
        data_path = self.data_path
        try:
            payload = data_path.read_bytes()
        except OSError as exc:
            raise CacheCorruptError(f"cannot read {data_path}: {exc}") from exc
        if payload_digest(payload) != manifest.index_digest:
            raise CacheCorruptError(f"digest mismatch for {data_path}")
        try:
            cached = CachedIndex.model_validate_json(payload)
        except ValidationError as exc:
            raise CacheCorruptError(f"malformed {data_path}: {exc}") from exc

        cached_paths = sorted(a.record.key.workspace_path for a in cached.artifacts)
        if (
            cached.schema_version != manifest.schema_version
            or cached.workspace_fingerprint != manifest.workspace_fingerprint
            or cached_paths != [e.path for e in manifest.artifacts]
        ):
            raise CacheCorruptError(f"{data_path} disagrees with its manifest")
        return cached

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store(self, snapshot: list[ManifestEntry], parsed: list[ParsedArtifact]) -> CacheManifest:
        """Persist parse results; the caller must hold :meth:`lock`.

        ``snapshot`` must be taken before parsing, so an edit made during
        the rebuild shows up as stale on the next load.
        """
        fingerprint = workspace_fingerprint(self._workspace)
        cached = CachedIndex(
            schema_version=self._schema_version,
            workspace_fingerprint=fingerprint,
            artifacts=sorted(parsed, key=lambda p: p.record.key.workspace_path),
        )
        payload = canonical_json_bytes(cached.model_dump(mode="json"))
        manifest = CacheManifest(
            schema_version=self._schema_version,
            workspace_fingerprint=fingerprint,
            generated_at_unix_ms=int(time.time() * 1000),
            index_file=self.data_path.name,
            index_digest=payload_digest(payload),
            artifacts=snapshot,
        )

        self.root.mkdir(parents=True, exist_ok=True)
        atomic_write(self.data_path, payload)
        atomic_write(
            self.manifest_path,
            json.dumps(manifest.model_dump(mode="json"), sort_keys=True, indent=2) + "\n",
        )
        logger.info("Persisted structure index cache (%d artifacts)", len(snapshot))
        return manifest

    def invalidate(self) -> bool:
        """Drop the manifest so the next load misses.

        Returns False when the lock is held; the writer's own snapshot then
        goes stale on the next load.
        """
        try:
            with self.lock():
                removed = self.manifest_path.exists()
                self.manifest_path.unlink(missing_ok=True)
        except CacheLockedError:
            logger.warning(
                "Cache lock held during invalidation; relying on freshness checks"
            )
            return False
        if removed:
            logger.debug("Invalidated structure index cache")
        return True
