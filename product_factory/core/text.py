"""Small text helpers shared by collectors and stages."""

from __future__ import annotations

import hashlib
import re

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
SLUG_MAX_LENGTH = 80


def slugify(text: str) -> str:
    """Create a URL-safe slug (lowercase, dash-separated, max 80 chars)."""
    slug = _SLUG_INVALID.sub("-", (text or "").lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def content_hash(title: str, source: str) -> str:
    """Hash used to detect exact duplicate signals at ingestion."""
    normalized = f"{(title or '').lower().strip()}:{source}"
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()
