"""
Content acquisition cascade
Runs the ordered strategies for one URL and always returns an AcquiredContent.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from config.settings import Settings, get_settings
from core.contracts import AcquiredContent, AcquisitionMethod, ProductIdentity
from monitoring.sink import MonitoringSink, best_effort
from utils.exceptions import AcquisitionError, ContentSkippedError

from .base import AcquisitionContext, AcquisitionStrategy
from .framework import FrameworkAwareStrategy
from .html import TextNormalizer, looks_like_pdf_binary
from .http_fetch import PlainFetchStrategy
from .pdf import DocumentStrategy
from .pool import BrowserPool
from .render import PooledRenderStrategy

logger = logging.getLogger(__name__)


class ContentAcquisitionCascade:
    """
    Escalates document -> plain fetch -> framework-aware fetch -> pooled render.

    A strategy returning None escalates; an AcquisitionError is recorded and
    escalates; a ContentSkippedError ends the cascade with a skipped result.
    When every tier declines, the longest partial text is returned unless the
    render tier failed, in which case the source is dropped with that error.
    """

    def __init__(self, strategies: Sequence[AcquisitionStrategy], *, monitor: Optional[MonitoringSink] = None):
        if not strategies:
            raise ValueError("at least one acquisition strategy is required")
        self.strategies: List[AcquisitionStrategy] = list(strategies)
        self.monitor = best_effort(monitor)
        self.document = next((s for s in self.strategies if isinstance(s, DocumentStrategy)), None)

    @classmethod
    def default(
        cls,
        pool: Optional[BrowserPool] = None,
        *,
        settings: Optional[Settings] = None,
        monitor: Optional[MonitoringSink] = None,
        normalizer: Optional[TextNormalizer] = None,
    ) -> "ContentAcquisitionCascade":
        settings = settings or get_settings()
        normalizer = normalizer or TextNormalizer(settings.fetch.max_text_chars)
        strategies: List[AcquisitionStrategy] = [
            DocumentStrategy(settings.fetch),
            PlainFetchStrategy(settings.fetch, normalizer),
            FrameworkAwareStrategy(settings.fetch, normalizer),
        ]
        if pool is not None:
            strategies.append(PooledRenderStrategy(pool, settings.pool, settings.fetch, normalizer))
        return cls(strategies, monitor=monitor)

    async def fetch(self, url: str, *, title: str = "", identity: Optional[ProductIdentity] = None) -> AcquiredContent:
        context = AcquisitionContext(url=url, title=title, identity=identity)
        method = AcquisitionMethod.PLAIN_FETCH
        render_error: Optional[Tuple[str, str]] = None

        for strategy in self.strategies:
            try:
                result = await strategy.try_acquire(url, context)
            except ContentSkippedError as exc:
                logger.info("[cascade] skipping %s: %s", url, exc.message)
                self.monitor.log_content_skipped(url, exc.reason or exc.message, content_type=exc.details.get("content_type"))
                return self._failed(context, method, "skipped", exc.message)
            except AcquisitionError as exc:
                if exc.kind == "pdf-binary":
                    return await self._recover_document(context)
                logger.info("[cascade] %s failed for %s (%s): %s", strategy.name, url, exc.kind, exc.message)
                context.note_error(exc.kind, exc.message)
                if isinstance(strategy, PooledRenderStrategy):
                    render_error = (exc.kind, exc.message)
                continue
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("[cascade] %s crashed for %s: %s", strategy.name, url, exc)
                context.note_error("network", f"{type(exc).__name__}: {exc}")
                if isinstance(strategy, PooledRenderStrategy):
                    render_error = context.errors[-1]
                continue

            if result is None:
                continue
            if result.method is not AcquisitionMethod.DOCUMENT and looks_like_pdf_binary(result.text):
                return await self._recover_document(context)
            logger.info("[cascade] %s via %s (%d chars)", url, result.method.value, result.content_length)
            return result

        # render failure drops the source
        if context.partial_text and render_error is None:
            partial_method = context.partial_method or method
            logger.info("[cascade] %s: using partial %s text (%d chars)", url, partial_method.value, len(context.partial_text))
            return context.result(context.partial_text, partial_method, context.partial_title)

        if render_error is not None:
            kind, message = render_error
            method = AcquisitionMethod.POOLED_RENDER
        elif context.errors:
            kind, message = context.errors[-1]
        else:
            kind, message = "empty-content", "no content extracted"
        self.monitor.log_scraping_error(url, message, kind=kind, method=method.value)
        return self._failed(context, method, kind, message)

    async def _recover_document(self, context: AcquisitionContext) -> AcquiredContent:
        url = context.url
        if self.document is None or not self.document.settings.pdf_enabled:
            logger.info("[cascade] %s is a PDF and PDF handling is off", url)
            self.monitor.log_content_skipped(url, "PDF binary data with PDF handling disabled", content_type="application/pdf")
            return self._failed(context, AcquisitionMethod.DOCUMENT, "pdf-binary", "PDF binary content rejected")

        page_bytes = context.page.body if context.page is not None and context.page.is_pdf else None
        try:
            return await self.document.extract(url, context, page_bytes)
        except AcquisitionError as exc:
            self.monitor.log_scraping_error(url, exc.message, kind=exc.kind, method=AcquisitionMethod.DOCUMENT.value)
            return self._failed(context, AcquisitionMethod.DOCUMENT, exc.kind, exc.message)

    @staticmethod
    def _failed(context: AcquisitionContext, method: AcquisitionMethod, kind: str, message: str) -> AcquiredContent:
        return AcquiredContent(
            source_url=context.url,
            title=context.title,
            method=method,
            text="",
            success=False,
            error=message,
            error_kind=kind,
            elapsed_ms=context.elapsed_ms(),
        )

    async def aclose(self) -> None:
        for strategy in self.strategies:
            await strategy.aclose()
