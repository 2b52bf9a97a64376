"""
PDF document tier
URL/HEAD/signature probing and pypdf text extraction for datasheets.
"""

from __future__ import annotations

import asyncio
import logging
import re
from io import BytesIO
from typing import List, Optional

import httpx
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from config.settings import FetchSettings, get_fetch_settings
from core.contracts import AcquiredContent, AcquisitionMethod
from utils.exceptions import AcquisitionError, ContentSkippedError

from . import http_fetch
from .base import AcquisitionContext, AcquisitionStrategy
from .http_fetch import browser_headers, classify_http_error

logger = logging.getLogger(__name__)

PDF_URL_MARKERS = (".pdf?", "print_pdf", "pdf_datasheet", "/pdf/", "getpdf", "download_pdf")
PDF_ACCEPT = "application/pdf,application/x-pdf,*/*"


def is_pdf_url(url: str) -> bool:
    lowered = (url or "").lower()
    return lowered.endswith(".pdf") or any(marker in lowered for marker in PDF_URL_MARKERS)


def clean_pdf_text(text: str) -> str:
    cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", text or "")
    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    lines = [line.strip() for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line).strip()


def extract_pdf_text(pdf_bytes: bytes, *, max_pages: int, max_chars: int) -> str:
    """Text of the first ``max_pages`` pages, capped at ``max_chars``."""
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
    except (PdfReadError, ValueError, OSError) as exc:
        raise AcquisitionError(f"unreadable PDF: {exc}", kind="parse-error") from exc

    chunks: List[str] = []
    remaining = max(2000, int(max_chars))
    pages = reader.pages
    for page in pages[: max(1, int(max_pages))]:
        if remaining <= 0:
            break
        try:
            text = clean_pdf_text(page.extract_text() or "")
        except (PdfReadError, ValueError, KeyError) as exc:
            logger.debug("[pdf] page extraction failed: %s", exc)
            continue
        if not text:
            continue
        if len(text) > remaining:
            text = text[:remaining]
        chunks.append(text)
        remaining -= len(text)
    body = "\n".join(chunks).strip()
    if not body:
        return ""
    return f"[Total Pages: {len(pages)}]\n\n{body}"


class DocumentStrategy(AcquisitionStrategy):
    """First tier: confirms PDFs before any HTML handling touches them."""

    name = "document"

    def __init__(self, settings: Optional[FetchSettings] = None):
        self.settings = settings or get_fetch_settings()

    async def is_pdf(self, url: str) -> bool:
        """URL pattern, then HEAD content type, then a partial GET for the %PDF- signature."""
        suggests_pdf = is_pdf_url(url)
        headers = browser_headers(self.settings.user_agent, accept=PDF_ACCEPT)
        try:
            head = await http_fetch._http_head(url, headers=headers, timeout=self.settings.head_timeout)
        except httpx.HTTPError as exc:
            logger.debug("[pdf] HEAD failed for %s: %s", url, exc)
            if not suggests_pdf:
                return False
            try:
                prefix = await http_fetch._http_get_range(url, headers=headers, timeout=self.settings.range_timeout)
            except httpx.HTTPError as range_exc:
                logger.debug("[pdf] partial GET failed for %s: %s", url, range_exc)
                return suggests_pdf
            return prefix.startswith(b"%PDF-")

        content_type = str(head.get("content-type") or "").lower()
        disposition = str(head.get("content-disposition") or "").lower()
        return "pdf" in content_type or ".pdf" in disposition

    async def try_acquire(self, url: str, context: AcquisitionContext) -> Optional[AcquiredContent]:
        if not (self.settings.pdf_enabled or is_pdf_url(url)):
            return None
        if not await self.is_pdf(url):
            return None
        if not self.settings.pdf_enabled:
            raise ContentSkippedError(
                "PDF handling is disabled",
                source=url,
                reason="pdf_scraper_disabled",
                content_type="application/pdf",
            )
        return await self.extract(url, context)

    async def extract(self, url: str, context: AcquisitionContext, pdf_bytes: Optional[bytes] = None) -> AcquiredContent:
        """Download (unless bytes are given) and extract the document text."""
        if pdf_bytes is None:
            try:
                page = await http_fetch._http_get(
                    url,
                    headers=browser_headers(self.settings.user_agent, accept=PDF_ACCEPT),
                    timeout=self.settings.document_timeout,
                )
            except httpx.HTTPError as exc:
                raise classify_http_error(url, exc) from exc
            pdf_bytes = page.body
        if not pdf_bytes.startswith(b"%PDF-"):
            raise AcquisitionError("downloaded file is not a valid PDF", source=url, kind="parse-error")

        text = await asyncio.to_thread(
            extract_pdf_text,
            pdf_bytes,
            max_pages=self.settings.pdf_max_pages,
            max_chars=self.settings.max_text_chars,
        )
        if not text:
            raise AcquisitionError("PDF contains no extractable text", source=url, kind="empty-content")
        logger.info("[pdf] extracted %d chars from %s", len(text), url)
        return context.result(f"[PDF Document: {url}]\n{text}", AcquisitionMethod.DOCUMENT, context.title or "PDF Document")
