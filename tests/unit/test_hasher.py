"""Tests for cache serialization and digests."""

from __future__ import annotations

import hashlib

from specgraph.core.hasher import canonical_json_bytes, payload_digest


class TestCanonicalJson:
    def test_key_order_does_not_matter(self):
        assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == canonical_json_bytes({"a": [1, 2], "b": 1})

    def test_compact_ascii(self):
        assert canonical_json_bytes({"t": "caf\u00e9"}) == b'{"t":"caf\\u00e9"}'


class TestPayloadDigest:
    def test_prefixed_sha256(self):
        assert payload_digest(b"abc") == "sha256:" + hashlib.sha256(b"abc").hexdigest()
