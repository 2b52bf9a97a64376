"""Structured extractor interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from core.contracts import ProductIdentity, PropertySpec


@dataclass
class ExtractorReply:
    """Raw extractor output before normalization."""

    data: Any
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def prompt_tokens(self) -> int:
        return int(self.usage.get("prompt_tokens") or 0)

    @property
    def completion_tokens(self) -> int:
        return int(self.usage.get("completion_tokens") or 0)


class StructuredExtractor(ABC):
    """Turns one source text into raw property values."""

    model_name: str = ""

    @abstractmethod
    async def extract(
        self,
        text: str,
        schema: Sequence[PropertySpec],
        identity: Optional[ProductIdentity] = None,
    ) -> ExtractorReply:
        """
        Extract the schema properties from ``text``.

        Returns:
            ExtractorReply whose ``data`` maps property names to values.

        Raises:
            ExtractionError / LLMError on failure.
        """
        pass

    async def aclose(self) -> None:
        return None
