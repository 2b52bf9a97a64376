"""
Acquisition strategy interface
Each strategy either returns content for a URL or declines so the cascade escalates.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from core.contracts import AcquiredContent, AcquisitionMethod, ProductIdentity


@dataclass
class FetchedPage:
    """Response of the lightweight fetch, shared by later strategies."""

    url: str
    status_code: int
    content_type: str = ""
    text: str = ""
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_pdf(self) -> bool:
        return "pdf" in self.content_type.lower() or self.body[:5] == b"%PDF-"


@dataclass
class AcquisitionContext:
    """Per-URL scratch state handed from strategy to strategy."""

    url: str
    title: str = ""
    identity: Optional[ProductIdentity] = None
    page: Optional[FetchedPage] = None
    partial_text: str = ""
    partial_method: Optional[AcquisitionMethod] = None
    partial_title: str = ""
    errors: List[Tuple[str, str]] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    def offer_partial(self, text: str, method: AcquisitionMethod, title: str = "") -> None:
        """Remember the longest sub-threshold text seen so far."""
        if text and len(text) > len(self.partial_text):
            self.partial_text = text
            self.partial_method = method
            if title:
                self.partial_title = title

    def note_error(self, kind: str, message: str) -> None:
        self.errors.append((kind, message))

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def result(self, text: str, method: AcquisitionMethod, title: str = "") -> AcquiredContent:
        return AcquiredContent(
            source_url=self.url,
            title=title or self.title,
            method=method,
            text=text,
            success=True,
            elapsed_ms=self.elapsed_ms(),
        )


class AcquisitionStrategy(ABC):
    """One tier of the content acquisition cascade."""

    name: str = "strategy"

    @abstractmethod
    async def try_acquire(self, url: str, context: AcquisitionContext) -> Optional[AcquiredContent]:
        """
        Attempt to acquire content.

        Returns:
            AcquiredContent on success, None to escalate to the next tier.

        Raises:
            AcquisitionError: the attempt failed (recorded, cascade continues).
            ContentSkippedError: the source must be skipped (cascade stops).
        """
        pass

    async def aclose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
