"""
LLM Module
Provider abstraction used by the structured extractor.
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole
from .openai_llm import OpenAILLM
from .factory import get_llm, DEFAULT_MODELS

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLM",
    "get_llm",
    "DEFAULT_MODELS",
]
