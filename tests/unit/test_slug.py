"""Tests for heading slug derivation."""

from __future__ import annotations

import pytest

from specgraph.structure.slug import heading_slug, plain_text


class TestHeadingSlug:
    @pytest.mark.parametrize("title,expected", [
        ("Overview", "overview"),
        ("Getting Started", "getting-started"),
        ("Hello, World!", "hello-world"),
        ("  Padded   Title  ", "padded-title"),
        ("Café", "cafe"),
        ("Straße", "strasse"),
        ("Version 2.0 Notes", "version-20-notes"),
        ("already-hyphenated", "already-hyphenated"),
    ])
    def test_known_titles(self, title, expected):
        assert heading_slug(title) == expected

    def test_hyphen_runs_are_not_collapsed(self):
        assert heading_slug("A - B") == "a---b"

    def test_leading_and_trailing_hyphens_trimmed(self):
        assert heading_slug("-Edge-") == "edge"

    def test_inline_markup_reduced_to_text(self):
        assert heading_slug("The `parse` *function*") == "the-parse-function"
        assert heading_slug("See [the guide](../guide.md)") == "see-the-guide"

    def test_punctuation_only_title_has_empty_slug(self):
        assert heading_slug("!!!") == ""

    def test_deterministic(self):
        assert heading_slug("Data Model") == heading_slug("Data Model")


class TestPlainText:
    def test_link_label_kept(self):
        assert plain_text("[Label](http://x)") == "Label"

    def test_emphasis_removed(self):
        assert plain_text("**bold** and _em_") == "bold and em"
