"""Heading slugs.

A slug is derived from the heading's plain text:

1. inline markup is reduced to text (``[label](url)`` becomes ``label``,
   code and emphasis markers are dropped);
2. Unicode NFKD normalisation;
3. case folding;
4. every character outside ``[a-z0-9- ]`` is removed;
5. each run of whitespace becomes one hyphen;
6. leading and trailing hyphens are trimmed.

Collisions are never disambiguated here; the indexer rejects them.
"""

from __future__ import annotations

import re
import unicodedata

_INLINE_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MARKUP = re.compile(r"[`*_]")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9\- ]")


def plain_text(title: str) -> str:
    """Strip inline Markdown markup from a heading title."""
    text = _INLINE_LINK.sub(r"\1", title)
    return _MARKUP.sub("", text)


def heading_slug(title: str) -> str:
    """Deterministic slug for a heading title; may be empty."""
    text = unicodedata.normalize("NFKD", plain_text(title)).casefold()
    text = _DISALLOWED.sub("", _WHITESPACE.sub(" ", text))
    return _WHITESPACE.sub("-", text).strip("-")
