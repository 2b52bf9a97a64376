"""
LLM-backed structured extractor
JSON-mode chat completion over one source text.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Sequence

from core.contracts import ProductIdentity, PropertySpec
from llm.base import BaseLLM, Message
from utils.exceptions import ExtractionError

from .base import ExtractorReply, StructuredExtractor
from .prompts import SYSTEM_PROMPT, build_user_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_reply(content: str) -> Any:
    """Parse a JSON object reply, tolerating markdown fences."""
    cleaned = _FENCE_RE.sub("", (content or "").strip())
    if not cleaned:
        raise ExtractionError("empty extractor reply")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                pass
        raise ExtractionError("extractor reply is not valid JSON", {"preview": cleaned[:200]})


class LLMStructuredExtractor(StructuredExtractor):
    """Prompts an LLM in JSON mode for the requested properties."""

    def __init__(self, llm: BaseLLM, *, max_chars: int = 15000, temperature: float = 0.1):
        self.llm = llm
        self.max_chars = max_chars
        self.temperature = temperature

    @property
    def model_name(self) -> str:
        return self.llm.model

    async def extract(
        self,
        text: str,
        schema: Sequence[PropertySpec],
        identity: Optional[ProductIdentity] = None,
    ) -> ExtractorReply:
        messages = [
            Message.system(SYSTEM_PROMPT),
            Message.user(build_user_prompt(text, schema, identity, max_chars=self.max_chars)),
        ]
        response = await self.llm.acomplete(messages, json_mode=True, temperature=self.temperature)
        data = parse_json_reply(response.content)
        logger.debug("[extractor] %s returned %d keys", response.model, len(data) if isinstance(data, dict) else 0)
        return ExtractorReply(data=data, model=response.model or self.llm.model, usage=dict(response.usage))

    async def aclose(self) -> None:
        await self.llm.aclose()
