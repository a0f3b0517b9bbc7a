"""Unit tests for SERP and autocomplete integrations."""

from __future__ import annotations

from typing import Any

import pytest

from product_factory.core.exceptions import APIKeyMissingError, ExternalAPIError
from product_factory.integrations.autocomplete import parse_suggestions
from product_factory.integrations.search import (
    GoogleCSEClient,
    SerpAPIClient,
    SerpResult,
    SerpSearch,
    extract_domain,
    is_big_site,
)


def test_extract_domain_keeps_registrable_root() -> None:
    assert extract_domain("https://www.reddit.com/r/StableDiffusion") == "reddit.com"
    assert extract_domain("https://en.wikipedia.org/wiki/Seedance") == "wikipedia.org"
    assert extract_domain("https://localhost/path") == "localhost"
    assert extract_domain("not a url") == "not a url"


def test_big_site_detection() -> None:
    assert is_big_site("youtube.com")
    assert not is_big_site("seedance-prompts.example")
    assert SerpResult.from_link("Docs", "https://learn.microsoft.com/x").is_big_site


def test_google_cse_parses_items() -> None:
    client = GoogleCSEClient(api_key="key", cse_id="cx")
    payload = {
        "items": [
            {"title": "Seedance on Reddit", "link": "https://www.reddit.com/r/x"},
            {"title": "No link"},
            {"title": "Indie guide", "link": "https://indie.example.com/guide"},
        ]
    }

    results = client._parse(payload, 10)

    assert [(r.domain, r.is_big_site) for r in results] == [("reddit.com", True), ("example.com", False)]


def test_serpapi_parses_organic_results_and_caps_depth() -> None:
    client = SerpAPIClient(api_key="key")
    payload = {"organic_results": [{"title": f"R{i}", "link": f"https://site{i}.dev/"} for i in range(12)]}

    assert len(client._parse(payload, 10)) == 10
    assert client._parse({"organic_results": "oops"}, 10) == []


def test_search_clients_require_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("product_factory.integrations.search.settings.serp_api_key", None)

    with pytest.raises(APIKeyMissingError):
        SerpAPIClient()


class _FakeClient:
    def __init__(self, results: Any) -> None:
        self.results = results

    async def __aenter__(self) -> "_FakeClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def search(self, keyword: str, num: int = 10) -> list[SerpResult]:
        if isinstance(self.results, Exception):
            raise self.results
        return self.results[:num]


def _missing_key_factory() -> _FakeClient:
    raise APIKeyMissingError("GoogleCSE")


@pytest.mark.asyncio
async def test_serp_search_falls_back_to_serpapi(monkeypatch: pytest.MonkeyPatch) -> None:
    results = [SerpResult.from_link("Guide", "https://indie.example.com/guide")]
    monkeypatch.setattr("product_factory.integrations.search.GoogleCSEClient", _missing_key_factory)
    monkeypatch.setattr("product_factory.integrations.search.SerpAPIClient", lambda: _FakeClient(results))

    lookup = await SerpSearch(depth=10).lookup("seedance prompts")

    assert lookup.source == "serpapi"
    assert lookup.small_site_count == 1


@pytest.mark.asyncio
async def test_serp_search_failures_yield_empty_lookup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "product_factory.integrations.search.GoogleCSEClient",
        lambda: _FakeClient(ExternalAPIError("GoogleCSE", "500")),
    )
    monkeypatch.setattr("product_factory.integrations.search.SerpAPIClient", _missing_key_factory)

    lookup = await SerpSearch(depth=10).lookup("seedance prompts")

    assert lookup.results == []
    assert lookup.source is None


def test_parse_suggestions_reads_second_element() -> None:
    payload = ["seedance", ["seedance prompts", "seedance 2.0", "", 42], [], {"google:suggesttype": []}]

    assert parse_suggestions(payload) == ["seedance prompts", "seedance 2.0"]
    assert parse_suggestions({"unexpected": True}) == []
    assert parse_suggestions(["only-query"]) == []
