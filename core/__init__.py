"""Core contracts and shared types for the product spec pipeline."""

from .contracts import (
    AcquiredContent,
    AcquisitionMethod,
    CandidateSource,
    ExtractedValue,
    Found,
    NotFound,
    PerSourceExtraction,
    PipelineResult,
    ProductIdentity,
    PropertyResult,
    PropertySpec,
    RateLimitConfig,
    RateLimitResult,
    SearchHit,
    SourceFailure,
    SourceRef,
    validate_schema,
)

__all__ = [
    "AcquiredContent",
    "AcquisitionMethod",
    "CandidateSource",
    "ExtractedValue",
    "Found",
    "NotFound",
    "PerSourceExtraction",
    "PipelineResult",
    "ProductIdentity",
    "PropertyResult",
    "PropertySpec",
    "RateLimitConfig",
    "RateLimitResult",
    "SearchHit",
    "SourceFailure",
    "SourceRef",
    "validate_schema",
]
