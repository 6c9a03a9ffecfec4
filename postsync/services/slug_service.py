"""Slug generation for post URLs and export paths."""

from __future__ import annotations

import re
import unicodedata

MAX_SLUG_LENGTH = 80


def generate_post_slug(title: str) -> str:
    """Generate a URL-safe slug from a post title.

    - Normalize unicode to ASCII (NFKD)
    - Lowercase, strip
    - Replace non-alphanumeric chars with hyphens
    - Strip leading/trailing hyphens
    - Truncate to 80 chars (don't cut mid-word if possible)
    - Return "untitled" for empty/whitespace-only input
    """
    text = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")

    if not text:
        return "untitled"

    if len(text) > MAX_SLUG_LENGTH:
        truncated = text[:MAX_SLUG_LENGTH]
        last_hyphen = truncated.rfind("-")
        if last_hyphen > 0:
            truncated = truncated[:last_hyphen]
        text = truncated.rstrip("-")

    return text


def normalize_category(category: str | None) -> str | None:
    """Turn a free-form category name into a path segment, or None if empty."""
    if category is None or not category.strip():
        return None
    return generate_post_slug(category)
