from __future__ import annotations

import httpx
import pytest

from config.settings import SearchSettings
from core.contracts import ProductIdentity, SearchHit
from search import valueserp
from search.domains import DomainPolicy, host_of, normalize_domain
from search.query import build_search_query
from search.valueserp import ValueSerpSearch, get_search_provider
from utils.exceptions import ConfigurationError, SearchError


def _hits(*urls: str):
    return [SearchHit(url=url, title=f"hit {index}") for index, url in enumerate(urls)]


def test_normalize_domain_and_host() -> None:
    assert normalize_domain("https://www.Example.com/path") == "example.com"
    assert normalize_domain("shop.example.com:8443") == "shop.example.com"
    assert host_of("https://www.maker.de/produkte/a123") == "maker.de"
    assert host_of("maker.de/datenblatt.pdf") == "maker.de"


def test_excluded_domains_are_removed() -> None:
    policy = DomainPolicy(exclude_domains=["amazon.de", "https://www.ebay.de/"], manufacturer_domains=[])
    hits = _hits(
        "https://www.amazon.de/dp/123",
        "https://m.ebay.de/itm/1",
        "https://shop.example.com/p/1",
        "https://smile.amazon.de/x",
    )
    assert [hit.url for hit in policy.apply(hits)] == ["https://shop.example.com/p/1"]


def test_manufacturer_hits_move_to_front_in_original_order() -> None:
    policy = DomainPolicy(exclude_domains=[], manufacturer_domains=["www.bosch-home.com", "hettich.com"])
    hits = _hits(
        "https://shop.example.com/1",
        "https://media3.bosch-home.com/datasheet.pdf",
        "https://idealo.de/2",
        "https://web.hettich.com/de-de/quadro",
    )
    assert [hit.url for hit in policy.apply(hits)] == [
        "https://media3.bosch-home.com/datasheet.pdf",
        "https://web.hettich.com/de-de/quadro",
        "https://shop.example.com/1",
        "https://idealo.de/2",
    ]


def test_policy_falls_back_to_settings() -> None:
    settings = SearchSettings(exclude_domains=["idealo.de"], manufacturer_domains=[])
    policy = DomainPolicy(settings=settings)
    assert policy.is_excluded("https://www.idealo.de/preisvergleich")
    assert not policy.is_excluded("https://maker.de")


def test_build_search_query() -> None:
    identity = ProductIdentity(article_number="A123", product_name="Widget Pro")
    assert build_search_query(identity) == "A123 Widget Pro specifications OR datenblatt OR technical OR eigenschaften"
    assert build_search_query(ProductIdentity(product_name="Widget Pro")).startswith("Widget Pro specifications")


@pytest.mark.asyncio
async def test_valueserp_parses_organic_results(monkeypatch) -> None:
    captured = {}

    async def _fake_get_json(url, *, params, timeout=20.0):
        captured.update(params)
        return {
            "organic_results": [
                {"link": "https://maker.de/a123", "title": "Widget Pro A123", "snippet": "Datenblatt"},
                {"title": "missing link"},
                {"link": "https://maker.de/a123", "title": "duplicate"},
                {"link": "https://shop.example.com/widget", "title": "Widget Pro kaufen"},
            ]
        }

    monkeypatch.setattr(valueserp, "_http_get_json", _fake_get_json)
    provider = ValueSerpSearch(api_key="vs-test", settings=SearchSettings())

    hits = await provider.search("A123 Widget Pro", max_results=5)

    assert [hit.url for hit in hits] == ["https://maker.de/a123", "https://shop.example.com/widget"]
    assert hits[0].snippet == "Datenblatt"
    assert captured["q"] == "A123 Widget Pro"
    assert captured["api_key"] == "vs-test"
    assert captured["num"] == 5


@pytest.mark.asyncio
async def test_valueserp_http_errors_become_search_errors(monkeypatch) -> None:
    async def _fake_get_json(url, *, params, timeout=20.0):
        request = httpx.Request("GET", url)
        raise httpx.HTTPStatusError("quota", request=request, response=httpx.Response(402, request=request))

    monkeypatch.setattr(valueserp, "_http_get_json", _fake_get_json)
    provider = ValueSerpSearch(api_key="vs-test", settings=SearchSettings())

    with pytest.raises(SearchError) as exc_info:
        await provider.search("Widget")
    assert exc_info.value.details["status_code"] == 402


@pytest.mark.asyncio
async def test_valueserp_rejects_unexpected_payload(monkeypatch) -> None:
    async def _fake_get_json(url, *, params, timeout=20.0):
        return {"request_info": {"success": False}}

    monkeypatch.setattr(valueserp, "_http_get_json", _fake_get_json)
    with pytest.raises(SearchError):
        await ValueSerpSearch(api_key="vs-test", settings=SearchSettings()).search("Widget")


@pytest.mark.asyncio
async def test_valueserp_requires_api_key() -> None:
    provider = ValueSerpSearch(settings=SearchSettings(api_key=None))
    assert not provider.is_configured()
    with pytest.raises(ConfigurationError):
        await provider.search("Widget")


def test_get_search_provider_rejects_unknown_provider() -> None:
    assert isinstance(get_search_provider(SearchSettings(provider="valueserp")), ValueSerpSearch)
    with pytest.raises(ConfigurationError):
        get_search_provider(SearchSettings(provider="bing"))
