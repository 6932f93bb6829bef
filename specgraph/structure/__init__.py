"""Markdown structure indexing, rendering and the on-disk index cache."""
