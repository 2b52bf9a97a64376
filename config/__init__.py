"""
Configuration Management Module
Environment-driven settings for every pipeline component.
"""
from .settings import (
    Settings,
    FetchSettings,
    PoolSettings,
    RelevanceSettings,
    ExtractionSettings,
    SearchSettings,
    RateLimitSettings,
    LLMSettings,
    get_settings,
    get_fetch_settings,
    get_pool_settings,
    get_relevance_settings,
    get_extraction_settings,
    get_search_settings,
    get_rate_limit_settings,
    get_llm_settings,
)

__all__ = [
    "Settings",
    "FetchSettings",
    "PoolSettings",
    "RelevanceSettings",
    "ExtractionSettings",
    "SearchSettings",
    "RateLimitSettings",
    "LLMSettings",
    "get_settings",
    "get_fetch_settings",
    "get_pool_settings",
    "get_relevance_settings",
    "get_extraction_settings",
    "get_search_settings",
    "get_rate_limit_settings",
    "get_llm_settings",
]
