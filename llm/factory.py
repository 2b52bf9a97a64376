"""
LLM Factory
Builds the configured LLM instance.
"""
from typing import Optional
import logging

from config.settings import LLMSettings, get_llm_settings
from utils.exceptions import ConfigurationError

from .base import BaseLLM
from .openai_llm import OpenAILLM


logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    "openai": "gpt-4.1-mini",
}


def get_llm(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    settings: Optional[LLMSettings] = None,
    **kwargs,
) -> BaseLLM:
    """
    Create an LLM instance.

    Reads config/.env by default; arguments override.

    Args:
        provider: LLM provider (openai)
        model: model name (provider default when omitted)
        settings: explicit settings instead of the process-wide ones
        **kwargs: extra parameters (temperature, max_tokens, base_url, api_key)

    Returns:
        BaseLLM instance

    Example:
        llm = get_llm()
        llm = get_llm(model="gpt-4.1")
    """
    settings = settings or get_llm_settings()

    provider = (provider or settings.provider).lower()
    model = model or settings.model_name or DEFAULT_MODELS.get(provider)

    default_params = {
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
        "timeout": settings.timeout,
    }
    for key, value in default_params.items():
        kwargs.setdefault(key, value)

    if provider == "openai":
        api_key = kwargs.pop("api_key", None) or settings.openai_api_key
        if not api_key:
            raise ConfigurationError("LLM_OPENAI_API_KEY is not set", {"provider": provider})
        logger.debug("Creating OpenAI LLM with model %s", model)
        return OpenAILLM(
            model=model,
            api_key=api_key,
            base_url=kwargs.pop("base_url", None) or settings.openai_base_url,
            **kwargs,
        )
    raise ConfigurationError(f"Unsupported LLM provider: {provider}", {"provider": provider})
