"""Pooled render tier: full browser rendering for pages the lighter tiers could not read."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import FetchSettings, PoolSettings, get_fetch_settings, get_pool_settings
from core.contracts import AcquiredContent, AcquisitionMethod
from utils.exceptions import AcquisitionError

from .base import AcquisitionContext, AcquisitionStrategy
from .html import TextNormalizer, looks_like_pdf_binary
from .pool import BrowserPool

logger = logging.getLogger(__name__)

SPEC_SELECTOR = 'table, [class*="spec"], [class*="technical"], [class*="product"]'

COLLECT_TEXT_JS = """
() => {
  document.querySelectorAll('script, style, noscript, iframe').forEach((el) => el.remove());
  const tables = [];
  document.querySelectorAll('table').forEach((table, index) => {
    const rows = [];
    table.querySelectorAll('tr').forEach((row) => {
      const cells = Array.from(row.querySelectorAll('td, th'))
        .map((cell) => (cell.innerText || '').trim())
        .filter((cell) => cell.length > 0);
      if (cells.length > 0) rows.push(cells.join(' | '));
    });
    if (rows.length > 0) tables.push(`[TABLE ${index + 1}]\\n` + rows.join('\\n'));
  });
  return { body: document.body ? document.body.innerText : '', tables: tables.join('\\n\\n') };
}
"""


class PooledRenderStrategy(AcquisitionStrategy):
    """Leases a pool worker, renders the page and collects body and table text."""

    name = "pooled-render"

    def __init__(
        self,
        pool: BrowserPool,
        settings: Optional[PoolSettings] = None,
        fetch_settings: Optional[FetchSettings] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.pool = pool
        self.settings = settings or get_pool_settings()
        self.fetch_settings = fetch_settings or get_fetch_settings()
        self.normalizer = normalizer or TextNormalizer(self.fetch_settings.max_text_chars)

    @property
    def render_budget(self) -> float:
        return self.settings.render_timeout + self.settings.settle_delay + self.settings.selector_timeout + 5.0

    async def try_acquire(self, url: str, context: AcquisitionContext) -> Optional[AcquiredContent]:
        try:
            async with self.pool.lease(self.settings.acquire_timeout) as worker:
                logger.info("[render] %s on %s", url, worker.id)
                text, title = await asyncio.wait_for(self._render(worker.handle, url), timeout=self.render_budget)
        except AcquisitionError:
            raise
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as exc:
            raise AcquisitionError(f"render timed out: {exc}", source=url, kind="timeout") from exc
        except PlaywrightError as exc:
            raise AcquisitionError(f"render failed: {exc}", source=url, kind="network") from exc

        text = self.normalizer.normalize(text)
        if not text:
            raise AcquisitionError("rendered page has no text", source=url, kind="empty-content")
        if looks_like_pdf_binary(text):
            raise AcquisitionError("PDF bytes found in rendered text", source=url, kind="pdf-binary")
        return context.result(text, AcquisitionMethod.POOLED_RENDER, context.title or title)

    async def _render(self, browser: Any, url: str) -> Tuple[str, str]:
        page = await browser.new_page(
            viewport={"width": 1280, "height": 800},
            user_agent=self.fetch_settings.user_agent,
        )
        try:
            await page.goto(url, wait_until="networkidle", timeout=self.settings.render_timeout * 1000)
            await page.wait_for_timeout(self.settings.settle_delay * 1000)
            try:
                await page.wait_for_selector(SPEC_SELECTOR, timeout=self.settings.selector_timeout * 1000)
            except PlaywrightTimeoutError:
                logger.debug("[render] no spec selector on %s", url)
            title = await page.title()
            payload = await page.evaluate(COLLECT_TEXT_JS)
        finally:
            try:
                await page.close()
            except PlaywrightError as exc:
                logger.debug("[render] page close failed for %s: %s", url, exc)

        body = str((payload or {}).get("body") or "")
        tables = str((payload or {}).get("tables") or "")
        return "\n\n".join(part for part in (body, tables) if part), str(title or "")
