"""Web search integrations (Google Custom Search, SerpAPI) for SERP snapshots."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlsplit

import httpx

from product_factory.config import settings
from product_factory.core.exceptions import APIKeyMissingError, ExternalAPIError, RateLimitExceededError

logger = logging.getLogger(__name__)

BIG_DOMAINS = frozenset(
    {
        "wikipedia.org", "youtube.com", "reddit.com", "github.com",
        "stackoverflow.com", "medium.com", "forbes.com", "nytimes.com",
        "techcrunch.com", "theverge.com", "wired.com", "cnet.com",
        "pcmag.com", "tomsguide.com", "zdnet.com", "engadget.com",
        "arstechnica.com", "mashable.com", "lifehacker.com", "howtogeek.com",
        "makeuseof.com", "digitaltrends.com", "tomshardware.com",
        "amazon.com", "apple.com", "microsoft.com", "google.com",
        "docs.google.com", "support.google.com", "support.apple.com",
        "learn.microsoft.com", "developer.mozilla.org",
        "linkedin.com", "twitter.com", "x.com", "facebook.com",
        "quora.com", "ign.com", "bbc.com", "cnn.com",
    }
)


def extract_domain(url: str) -> str:
    """Registrable root of a URL: ``www.`` dropped, last two labels kept."""
    hostname = urlsplit(url or "").hostname
    if not hostname:
        return url or ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    parts = hostname.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


def is_big_site(domain: str) -> bool:
    return domain in BIG_DOMAINS


@dataclass(slots=True)
class SerpResult:
    """One organic search result."""

    title: str
    url: str
    domain: str
    is_big_site: bool

    @classmethod
    def from_link(cls, title: Any, link: Any) -> "SerpResult":
        url = str(link or "")
        domain = extract_domain(url)
        return cls(title=str(title or ""), url=url, domain=domain, is_big_site=is_big_site(domain))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class SerpLookup:
    """Search results plus the provider that produced them."""

    results: list[SerpResult] = field(default_factory=list)
    source: str | None = None

    @property
    def big_site_count(self) -> int:
        return sum(1 for result in self.results if result.is_big_site)

    @property
    def small_site_count(self) -> int:
        return len(self.results) - self.big_site_count


class _SearchClient:
    """Shared httpx plumbing for the search APIs."""

    api_name = "search"
    results_key = "items"

    def __init__(self, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "_SearchClient":
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.get(url, params=params)
            if response.status_code == 429:
                raise RateLimitExceededError(self.api_name)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ExternalAPIError(self.api_name, str(e)) from e
        except ValueError as e:
            raise ExternalAPIError(self.api_name, f"Invalid JSON response: {e}") from e
        return payload if isinstance(payload, dict) else {}

    def _parse(self, payload: dict[str, Any], num: int) -> list[SerpResult]:
        rows = payload.get(self.results_key) or []
        if not isinstance(rows, list):
            return []
        results = [
            SerpResult.from_link(row.get("title"), row.get("link"))
            for row in rows
            if isinstance(row, dict) and row.get("link")
        ]
        return results[:num]


class GoogleCSEClient(_SearchClient):
    """Client for the Google Custom Search JSON API."""

    api_name = "GoogleCSE"
    results_key = "items"
    BASE_URL = "https://www.googleapis.com/customsearch/v1"

    def __init__(self, api_key: str | None = None, cse_id: str | None = None, timeout: float = 20.0) -> None:
        super().__init__(timeout=timeout)
        self.api_key = api_key or settings.google_cse_key
        self.cse_id = cse_id or settings.google_cse_id
        if not self.api_key or not self.cse_id:
            raise APIKeyMissingError(self.api_name)

    async def search(self, keyword: str, num: int = 10) -> list[SerpResult]:
        payload = await self._get_json(
            self.BASE_URL,
            {"key": self.api_key, "cx": self.cse_id, "q": keyword, "num": num},
        )
        return self._parse(payload, num)


class SerpAPIClient(_SearchClient):
    """Client for SerpAPI's Google engine."""

    api_name = "SerpAPI"
    results_key = "organic_results"
    BASE_URL = "https://serpapi.com/search.json"

    def __init__(self, api_key: str | None = None, timeout: float = 20.0) -> None:
        super().__init__(timeout=timeout)
        self.api_key = api_key or settings.serp_api_key
        if not self.api_key:
            raise APIKeyMissingError(self.api_name)

    async def search(self, keyword: str, num: int = 10) -> list[SerpResult]:
        payload = await self._get_json(
            self.BASE_URL,
            {"api_key": self.api_key, "q": keyword, "engine": "google", "num": num},
        )
        return self._parse(payload, num)


class SerpSearch:
    """Tries Google Custom Search, then SerpAPI; failures yield no results."""

    def __init__(self, depth: int | None = None) -> None:
        self.depth = depth or settings.competitive_serp_depth

    async def lookup(self, keyword: str) -> SerpLookup:
        for source, factory in (("google_cse", GoogleCSEClient), ("serpapi", SerpAPIClient)):
            try:
                async with factory() as client:
                    results = await client.search(keyword, num=self.depth)
            except APIKeyMissingError:
                continue
            except ExternalAPIError as e:
                logger.warning("SERP lookup failed", extra={"source": source, "keyword": keyword, "error": str(e)})
                continue
            if results:
                return SerpLookup(results=results, source=source)
        return SerpLookup()
