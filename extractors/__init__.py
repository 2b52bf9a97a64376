"""Structured extraction collaborators."""

from .base import ExtractorReply, StructuredExtractor
from .llm_extractor import LLMStructuredExtractor, parse_json_reply
from .prompts import SYSTEM_PROMPT, build_user_prompt

__all__ = [
    "ExtractorReply",
    "StructuredExtractor",
    "LLMStructuredExtractor",
    "parse_json_reply",
    "SYSTEM_PROMPT",
    "build_user_prompt",
]
