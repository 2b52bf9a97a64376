"""Framework-aware tier: visible text plus the data client-side apps embed in their markup."""

from __future__ import annotations

import logging
from typing import Optional

from config.settings import FetchSettings, get_fetch_settings
from core.contracts import AcquiredContent, AcquisitionMethod

from .base import AcquisitionContext, AcquisitionStrategy
from .html import TextNormalizer, extract_embedded_data, extract_sections, profile_page

logger = logging.getLogger(__name__)


class FrameworkAwareStrategy(AcquisitionStrategy):
    """Reuses the page fetched by the plain tier; never issues its own request."""

    name = "framework-aware-fetch"

    def __init__(self, settings: Optional[FetchSettings] = None, normalizer: Optional[TextNormalizer] = None):
        self.settings = settings or get_fetch_settings()
        self.normalizer = normalizer or TextNormalizer(self.settings.max_text_chars)

    async def try_acquire(self, url: str, context: AcquisitionContext) -> Optional[AcquiredContent]:
        page = context.page
        if page is None or page.is_pdf or not page.text:
            return None

        profile = profile_page(page.text)
        if profile.is_small(self.settings.small_page_bytes):
            return None

        visible = extract_sections(page.text, min_chars=self.settings.min_content_chars)
        embedded = extract_embedded_data(page.text)
        text = self.normalizer.normalize("\n\n".join(part for part in (visible, embedded) if part))
        if len(text) < self.settings.min_content_chars:
            context.offer_partial(text, AcquisitionMethod.FRAMEWORK_AWARE_FETCH)
            logger.info("[framework] %s still thin after embedded data (%d chars)", url, len(text))
            return None
        return context.result(text, AcquisitionMethod.FRAMEWORK_AWARE_FETCH, context.partial_title)
