"""Token cost estimation for AI calls (USD per million tokens)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPrice:
    input_per_million: float
    output_per_million: float


PRICING: Dict[str, ModelPrice] = {
    "gpt-4.1": ModelPrice(3.0, 12.0),
    "gpt-4.1-mini": ModelPrice(0.4, 1.6),
    "gpt-4o": ModelPrice(5.0, 15.0),
    "gpt-4o-mini": ModelPrice(0.15, 0.60),
    "gpt-4-turbo": ModelPrice(10.0, 30.0),
    "gpt-3.5-turbo": ModelPrice(0.50, 1.50),
}

DEFAULT_PRICE = PRICING["gpt-4.1"]


def price_for(model: Optional[str]) -> ModelPrice:
    """Exact match first, then the longest known prefix (dated snapshots), else the default row."""
    name = str(model or "").strip().lower()
    if name in PRICING:
        return PRICING[name]
    prefixes = [key for key in PRICING if name.startswith(key)]
    if prefixes:
        return PRICING[max(prefixes, key=len)]
    if name:
        logger.debug("[pricing] unknown model %s, using default pricing", name)
    return DEFAULT_PRICE


def estimate_cost(model: Optional[str], prompt_tokens: int, completion_tokens: int) -> float:
    price = price_for(model)
    cost = (
        max(0, int(prompt_tokens)) / 1_000_000 * price.input_per_million
        + max(0, int(completion_tokens)) / 1_000_000 * price.output_per_million
    )
    return round(cost, 6)
