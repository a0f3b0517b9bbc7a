"""Short-lived exhaustion tracking for quota-limited provider/model pairs."""

from __future__ import annotations

import time
from collections.abc import Callable

QUOTA_ERROR_SIGNATURES: tuple[str, ...] = (
    "quota exceeded",
    "rate limit",
    "resource exhausted",
    "resource_exhausted",
    "too many requests",
    "insufficient_quota",
    "无可用渠道",
)


def is_quota_error(message: str) -> bool:
    """Return True when an error message reads like a quota/rate-limit refusal."""
    lowered = (message or "").lower()
    return any(signature in lowered for signature in QUOTA_ERROR_SIGNATURES)


class ExhaustionBreaker:
    """Skip list of (provider, model) pairs that recently hit a quota.

    Entries expire after ``cooldown_seconds``; expired entries are dropped on
    the next lookup.
    """

    def __init__(
        self,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._open_until: dict[tuple[str, str], float] = {}

    def trip(self, provider: str, model: str) -> None:
        """Mark a pair exhausted for the cooldown period."""
        self._open_until[(provider, model)] = self._clock() + self.cooldown_seconds

    def is_open(self, provider: str, model: str) -> bool:
        """Return True while the pair is still cooling down."""
        key = (provider, model)
        expires_at = self._open_until.get(key)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            del self._open_until[key]
            return False
        return True

    def __len__(self) -> int:
        return len(self._open_until)
