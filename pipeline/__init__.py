"""
Pipeline Module
Relevance, extraction orchestration, consistency resolution and the runner.
"""
from .consistency import ConsistencyResolver, confidence_for
from .extraction import ExtractionBatch, ExtractionOrchestrator
from .relevance import RankedCandidates, RelevanceScore, RelevanceScorer, clean_page_title, find_conflicting_products
from .runner import ProductSpecPipeline
from .values import cleanup_value, normalize_reply, to_extracted_value

__all__ = [
    "ConsistencyResolver",
    "confidence_for",
    "ExtractionBatch",
    "ExtractionOrchestrator",
    "RankedCandidates",
    "RelevanceScore",
    "RelevanceScorer",
    "clean_page_title",
    "find_conflicting_products",
    "ProductSpecPipeline",
    "cleanup_value",
    "normalize_reply",
    "to_extracted_value",
]
