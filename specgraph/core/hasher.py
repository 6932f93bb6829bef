"""Serialization and digests for the structure index cache."""

from __future__ import annotations

import hashlib
import json
from typing import Any

DIGEST_PREFIX = "sha256:"


def canonical_json_bytes(obj: Any) -> bytes:
    """Cache data file bytes: sorted keys, no whitespace, ASCII escapes.

    Rebuilding an unchanged workspace therefore rewrites an identical file.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode("utf-8")


def payload_digest(payload: bytes) -> str:
    """Digest recorded in the manifest for a data file payload."""
    return DIGEST_PREFIX + hashlib.sha256(payload).hexdigest()
