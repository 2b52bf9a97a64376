"""Content acquisition: strategy cascade and browser pool."""

from .base import AcquisitionContext, AcquisitionStrategy, FetchedPage
from .cascade import ContentAcquisitionCascade
from .framework import FrameworkAwareStrategy
from .html import TextNormalizer, extract_embedded_data, extract_sections, profile_page
from .http_fetch import PlainFetchStrategy
from .pdf import DocumentStrategy, extract_pdf_text, is_pdf_url
from .pool import BrowserPool, PlaywrightLauncher, PoolWorker, WorkerLauncher
from .render import PooledRenderStrategy

__all__ = [
    "AcquisitionContext",
    "AcquisitionStrategy",
    "FetchedPage",
    "ContentAcquisitionCascade",
    "FrameworkAwareStrategy",
    "TextNormalizer",
    "extract_embedded_data",
    "extract_sections",
    "profile_page",
    "PlainFetchStrategy",
    "DocumentStrategy",
    "extract_pdf_text",
    "is_pdf_url",
    "BrowserPool",
    "PlaywrightLauncher",
    "PoolWorker",
    "WorkerLauncher",
    "PooledRenderStrategy",
]
