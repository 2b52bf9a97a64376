"""
ValueSERP search provider
Google organic results via the ValueSERP JSON API.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.settings import SearchSettings, get_search_settings
from core.contracts import SearchHit
from utils.exceptions import ConfigurationError, SearchError

from .base import SearchProvider

logger = logging.getLogger(__name__)


async def _http_get_json(url: str, *, params: Dict[str, Any], timeout: float = 20.0) -> Any:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
        response = await client.get(url, params=params, headers={"Accept": "application/json"})
        response.raise_for_status()
        return response.json()


def parse_organic_results(payload: Any, max_results: int) -> List[SearchHit]:
    if not isinstance(payload, dict) or not isinstance(payload.get("organic_results"), list):
        raise SearchError("unexpected ValueSERP payload", provider="valueserp")
    hits: List[SearchHit] = []
    seen = set()
    for item in payload["organic_results"]:
        if not isinstance(item, dict):
            continue
        url = str(item.get("link") or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        hits.append(
            SearchHit(
                url=url,
                title=str(item.get("title") or "").strip(),
                snippet=str(item.get("snippet") or "").strip(),
            )
        )
        if len(hits) >= max_results:
            break
    return hits


class ValueSerpSearch(SearchProvider):
    """ValueSERP client; transport errors are retried, HTTP errors are not."""

    def __init__(self, api_key: Optional[str] = None, *, settings: Optional[SearchSettings] = None):
        self.settings = settings or get_search_settings()
        self.api_key = api_key or self.settings.api_key

    @property
    def name(self) -> str:
        return "valueserp"

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _params(self, query: str, max_results: int) -> Dict[str, Any]:
        return {
            "api_key": self.api_key,
            "q": query,
            "num": max(1, min(int(max_results), 100)),
            "location": self.settings.location,
            "google_domain": self.settings.google_domain,
            "hl": self.settings.language,
            "page": 1,
            "output": "json",
            "device": "desktop",
        }

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(self, query: str, max_results: int) -> Any:
        return await _http_get_json(
            self.settings.base_url,
            params=self._params(query, max_results),
            timeout=self.settings.timeout,
        )

    async def search(self, query: str, max_results: int = 10) -> List[SearchHit]:
        if not self.is_configured():
            raise ConfigurationError("SEARCH_API_KEY is not set")
        logger.info("[search] ValueSERP: %s", query)
        try:
            payload = await self._request(query, max_results)
        except httpx.HTTPStatusError as exc:
            raise SearchError(
                f"ValueSERP returned HTTP {exc.response.status_code}",
                provider=self.name,
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SearchError(f"ValueSERP request failed: {exc}", provider=self.name) from exc

        hits = parse_organic_results(payload, max_results)
        logger.info("[search] %d results", len(hits))
        return hits


def get_search_provider(settings: Optional[SearchSettings] = None) -> SearchProvider:
    settings = settings or get_search_settings()
    provider = settings.provider.lower()
    if provider == "valueserp":
        return ValueSerpSearch(settings=settings)
    raise ConfigurationError(f"Unsupported search provider: {settings.provider}")
