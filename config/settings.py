"""
Settings Configuration
Pydantic-based configuration for the product spec harvester.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class FetchSettings(BaseSettings):
    """Lightweight HTTP fetch configuration"""
    timeout: float = Field(default=12.0, description="Plain fetch timeout (seconds)")
    head_timeout: float = Field(default=8.0, description="HEAD check timeout (seconds)")
    range_timeout: float = Field(default=5.0, description="Partial GET signature check timeout (seconds)")
    document_timeout: float = Field(default=30.0, description="PDF download timeout (seconds)")
    min_content_chars: int = Field(default=500, description="Minimum extracted text to accept a fetch")
    small_page_bytes: int = Field(default=10000, description="Raw markup size below which rendering is preferred")
    max_text_chars: int = Field(default=50000, description="Normalized text cap per source")
    pdf_enabled: bool = Field(default=True, description="Extract text from PDF datasheets")
    pdf_max_pages: int = Field(default=20, description="Maximum PDF pages sampled")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        description="Browser-like User-Agent",
    )
    acquisition_concurrency: int = Field(default=5, description="Sources acquired in parallel")

    class Config:
        env_prefix = "FETCH_"


class PoolSettings(BaseSettings):
    """Headless browser pool configuration"""
    max_size: int = Field(default=3, description="Maximum concurrent browser workers")
    acquire_timeout: float = Field(default=30.0, description="Wait for a free worker (seconds)")
    idle_timeout: float = Field(default=30.0, description="Close idle workers after (seconds)")
    render_timeout: float = Field(default=30.0, description="Page navigation timeout (seconds)")
    settle_delay: float = Field(default=1.0, description="Wait after network idle (seconds)")
    selector_timeout: float = Field(default=5.0, description="Wait for spec tables (seconds)")
    headless: bool = Field(default=True, description="Run browsers headless")

    class Config:
        env_prefix = "POOL_"


class RelevanceSettings(BaseSettings):
    """Candidate relevance scoring configuration"""
    enabled: bool = Field(default=True, description="Filter sources by relevance")
    threshold: float = Field(default=35.0, description="Minimum score to pass")
    fallback_top_n: int = Field(default=3, description="Sources kept when none pass")
    sibling_penalty: float = Field(default=15.0, description="Penalty for conflicting sibling products")

    class Config:
        env_prefix = "RELEVANCE_"


class ExtractionSettings(BaseSettings):
    """Structured extraction configuration"""
    concurrency: int = Field(default=8, description="Simultaneous extractor calls")
    call_timeout: float = Field(default=60.0, description="Per-call timeout (seconds)")
    max_chars: int = Field(default=15000, description="Source text passed to the extractor")
    max_sources: int = Field(default=10, description="Default number of sources per run")

    class Config:
        env_prefix = "EXTRACTION_"


class SearchSettings(BaseSettings):
    """Search provider configuration"""
    provider: str = Field(default="valueserp", description="Search provider")
    api_key: Optional[str] = Field(default=None, description="ValueSERP API key")
    base_url: str = Field(default="https://api.valueserp.com/search", description="Search endpoint")
    location: str = Field(default="Germany", description="Search location")
    google_domain: str = Field(default="google.de", description="Google domain")
    language: str = Field(default="de", description="Result language")
    timeout: float = Field(default=20.0, description="Search request timeout (seconds)")
    exclude_domains: List[str] = Field(default_factory=list, description="Domains never scraped")
    manufacturer_domains: List[str] = Field(default_factory=list, description="Domains ranked first")

    class Config:
        env_prefix = "SEARCH_"


class RateLimitSettings(BaseSettings):
    """Persisted rate limiter configuration"""
    enabled: bool = Field(default=True, description="Enforce rate limits")
    database_url: str = Field(default="sqlite:///./data/rate_limits.db", description="SQLAlchemy URL")
    retention_hours: int = Field(default=24, description="Cleanup horizon for stale windows")
    cleanup_interval_seconds: int = Field(default=300, description="Automatic cleanup interval (0 disables)")
    identifier: str = Field(default="local", description="Default caller identifier")

    class Config:
        env_prefix = "RATE_LIMIT_"


class LLMSettings(BaseSettings):
    """LLM configuration"""
    provider: str = Field(default="openai", description="LLM provider")
    model_name: Optional[str] = Field(default=None, description="Model name (provider default when empty)")
    temperature: float = Field(default=0.1, description="Sampling temperature")
    max_tokens: int = Field(default=4096, description="Maximum completion tokens")
    timeout: float = Field(default=60.0, description="Client timeout (seconds)")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    openai_base_url: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")

    class Config:
        env_prefix = "LLM_"


class Settings(BaseSettings):
    """Aggregate settings"""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    relevance: RelevanceSettings = Field(default_factory=RelevanceSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings, reading config/.env first when present."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            fetch=FetchSettings(),
            pool=PoolSettings(),
            relevance=RelevanceSettings(),
            extraction=ExtractionSettings(),
            search=SearchSettings(),
            rate_limit=RateLimitSettings(),
            llm=LLMSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return Settings.load_from_env_file()


def get_fetch_settings() -> FetchSettings:
    return get_settings().fetch


def get_pool_settings() -> PoolSettings:
    return get_settings().pool


def get_relevance_settings() -> RelevanceSettings:
    return get_settings().relevance


def get_extraction_settings() -> ExtractionSettings:
    return get_settings().extraction


def get_search_settings() -> SearchSettings:
    return get_settings().search


def get_rate_limit_settings() -> RateLimitSettings:
    return get_settings().rate_limit


def get_llm_settings() -> LLMSettings:
    return get_settings().llm
