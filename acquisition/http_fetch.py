"""
Plain HTTP fetch tier
Browser-like GET, prioritized section extraction, escalation when the page needs more.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from config.settings import FetchSettings, get_fetch_settings
from core.contracts import AcquiredContent, AcquisitionMethod
from utils.exceptions import AcquisitionError

from .base import AcquisitionContext, AcquisitionStrategy, FetchedPage
from .html import TextNormalizer, extract_sections, looks_like_pdf_binary, page_title, parse_html, profile_page

logger = logging.getLogger(__name__)

BLOCKED_STATUS = {401, 403, 429, 451, 503}


def browser_headers(user_agent: str, *, accept: Optional[str] = None) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": accept or "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "de-DE,de;q=0.9,en;q=0.8",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


def _to_page(response: httpx.Response) -> FetchedPage:
    content_type = str(response.headers.get("content-type") or "")
    body = response.content
    text = "" if body[:5] == b"%PDF-" else str(response.text or "")
    return FetchedPage(
        url=str(response.url),
        status_code=response.status_code,
        content_type=content_type,
        text=text,
        body=body,
        headers={key.lower(): value for key, value in response.headers.items()},
    )


async def _http_get(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 12.0) -> FetchedPage:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        return _to_page(response)


async def _http_head(url: str, *, headers: Optional[Dict[str, str]] = None, timeout: float = 8.0) -> Dict[str, str]:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.head(url, headers=headers)
        response.raise_for_status()
        return {key.lower(): value for key, value in response.headers.items()}


async def _http_get_range(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 5.0,
    end: int = 1024,
) -> bytes:
    request_headers = dict(headers or {})
    request_headers["Range"] = f"bytes=0-{end}"
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=request_headers)
        response.raise_for_status()
        return response.content[: end + 1]


def classify_http_error(url: str, exc: Exception) -> AcquisitionError:
    """Map an httpx failure onto the acquisition error kinds."""
    if isinstance(exc, httpx.TimeoutException):
        return AcquisitionError(f"request timed out: {exc}", source=url, kind="timeout")
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        kind = "blocked" if status in BLOCKED_STATUS else "network"
        return AcquisitionError(f"HTTP {status}", source=url, kind=kind, status_code=status)
    return AcquisitionError(f"request failed: {exc}", source=url, kind="network")


class PlainFetchStrategy(AcquisitionStrategy):
    """Lightweight GET; declines framework-heavy, tiny or thin pages."""

    name = "plain-fetch"

    def __init__(self, settings: Optional[FetchSettings] = None, normalizer: Optional[TextNormalizer] = None):
        self.settings = settings or get_fetch_settings()
        self.normalizer = normalizer or TextNormalizer(self.settings.max_text_chars)

    async def try_acquire(self, url: str, context: AcquisitionContext) -> Optional[AcquiredContent]:
        try:
            page = await _http_get(
                url,
                headers=browser_headers(self.settings.user_agent),
                timeout=self.settings.timeout,
            )
        except httpx.HTTPError as exc:
            raise classify_http_error(url, exc) from exc

        context.page = page
        if page.is_pdf:
            raise AcquisitionError("response is a PDF document", source=url, kind="pdf-binary")

        soup_title = page_title(parse_html(page.text))
        title = context.title or soup_title
        text = self.normalizer.normalize(extract_sections(page.text, min_chars=self.settings.min_content_chars))
        if looks_like_pdf_binary(text):
            raise AcquisitionError("PDF bytes found in HTML text", source=url, kind="pdf-binary")

        profile = profile_page(page.text)
        if profile.framework_heavy or profile.is_small(self.settings.small_page_bytes):
            logger.info(
                "[plain-fetch] escalating %s (frameworks=%s, size=%d, scripts=%d)",
                url,
                ",".join(profile.frameworks) or "-",
                profile.size,
                profile.script_count,
            )
            context.offer_partial(text, AcquisitionMethod.PLAIN_FETCH, title)
            return None
        if len(text) < self.settings.min_content_chars:
            logger.info("[plain-fetch] thin content for %s (%d chars), escalating", url, len(text))
            context.offer_partial(text, AcquisitionMethod.PLAIN_FETCH, title)
            return None
        return context.result(text, AcquisitionMethod.PLAIN_FETCH, title)
