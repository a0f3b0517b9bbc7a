"""Google autocomplete integration (keyless) used as a demand proxy."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from product_factory.core.exceptions import ExternalAPIError, RateLimitExceededError

logger = logging.getLogger(__name__)


class GoogleAutocompleteClient:
    """Client for the public suggestqueries endpoint."""

    BASE_URL = "https://suggestqueries.google.com/complete/search"
    USER_AGENT = "Mozilla/5.0 (compatible; ProductFactory/0.1)"

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GoogleAutocompleteClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.USER_AGENT},
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def suggest(self, keyword: str) -> list[str]:
        """Return suggestion strings for a keyword."""
        try:
            response = await self.client.get(self.BASE_URL, params={"client": "chrome", "q": keyword})
            if response.status_code == 429:
                raise RateLimitExceededError("GoogleAutocomplete")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ExternalAPIError("GoogleAutocomplete", str(e)) from e
        except ValueError as e:
            raise ExternalAPIError("GoogleAutocomplete", f"Invalid JSON response: {e}") from e

        return parse_suggestions(payload)


def parse_suggestions(payload: Any) -> list[str]:
    """Suggestions live in the second element of the response array."""
    if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[1], list):
        return []
    return [str(item) for item in payload[1] if isinstance(item, str) and item.strip()]
