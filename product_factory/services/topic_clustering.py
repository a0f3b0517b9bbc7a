"""Topic grouping and near-duplicate merging for incoming signals."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

_NON_TOPIC_CHARS = re.compile(r"[^a-z0-9\s一-鿿]")

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "with", "from", "that", "this", "are", "was", "were",
        "has", "have", "had", "not", "but", "you", "your", "our", "its", "into",
        "about", "than", "then", "them", "they", "will", "can", "all", "any",
        "how", "what", "why", "when", "who", "which", "best", "new", "using",
        "use", "guide", "tutorial", "tips", "top", "via", "just", "now",
        *(str(year) for year in range(2020, 2031)),
    }
)

MERGED_DUPLICATE_REASON = "merged_duplicate"


def topic_words(text: str) -> set[str]:
    """Normalize text into the word set used for topic similarity."""
    cleaned = _NON_TOPIC_CHARS.sub("", (text or "").lower())
    return {
        word
        for word in cleaned.split()
        if len(word) > 2 and word not in STOP_WORDS
    }


def similarity(a: set[str], b: set[str]) -> float:
    """Jaccard similarity of two word sets."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def normalize_source_url(url: str | None) -> str:
    """Scheme + host + path, lowercased, without query, fragment or trailing slash."""
    raw = (url or "").strip()
    if not raw:
        return ""
    parts = urlsplit(raw)
    if not parts.netloc:
        return raw.split("?", 1)[0].split("#", 1)[0].rstrip("/").lower()
    normalized = f"{parts.scheme}://{parts.netloc}{parts.path}".rstrip("/")
    return normalized.lower()


def _traction(signal: Any) -> int:
    return int(getattr(signal, "stars", 0) or 0) + int(getattr(signal, "comments_count", 0) or 0)


@dataclass(slots=True)
class TopicGroup:
    """Signals judged to be about the same topic."""

    members: list[Any] = field(default_factory=list)

    @property
    def primary(self) -> Any:
        """Member with the most traction; earliest member wins ties."""
        best = self.members[0]
        for member in self.members[1:]:
            if _traction(member) > _traction(best):
                best = member
        return best

    @property
    def duplicates(self) -> list[Any]:
        primary = self.primary
        return [member for member in self.members if member is not primary]

    @property
    def merged_ids(self) -> list[str]:
        return [str(member.id) for member in self.duplicates]

    @property
    def signal_ids(self) -> list[str]:
        """Primary id first, then every merged id."""
        return [str(self.primary.id), *self.merged_ids]

    @property
    def merged_description(self) -> str:
        """Primary description with the merged members listed as provenance."""
        description = getattr(self.primary, "description", None) or ""
        duplicates = self.duplicates
        if not duplicates:
            return description
        related = "\n".join(f"- {member.title}" for member in duplicates)
        return f"{description}\n\nRelated signals:\n{related}"


def group_by_topic(signals: Sequence[Any], threshold: float = 0.4) -> list[TopicGroup]:
    """Greedy single-pass grouping in input order.

    Each unassigned signal opens a group; later unassigned signals join when
    their words are similar to the opening member's or their source URLs
    match. Members are compared only with the opener, never with each other.
    """
    words = [topic_words(signal.title) for signal in signals]
    urls = [normalize_source_url(getattr(s, "source_url", None)) for s in signals]
    assigned = [False] * len(signals)
    groups: list[TopicGroup] = []

    for i, opener in enumerate(signals):
        if assigned[i]:
            continue
        assigned[i] = True
        group = TopicGroup(members=[opener])

        for j in range(i + 1, len(signals)):
            if assigned[j]:
                continue
            same_url = bool(urls[i]) and urls[i] == urls[j]
            if same_url or similarity(words[i], words[j]) >= threshold:
                assigned[j] = True
                group.members.append(signals[j])

        groups.append(group)

    return groups
