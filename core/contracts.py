"""Canonical data contracts for the product spec pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from utils.exceptions import InvalidInputError


class ProductIdentity(BaseModel):
    """What is being searched for: optional article number plus free-text name."""

    model_config = ConfigDict(frozen=True)

    article_number: Optional[str] = None
    product_name: str

    @field_validator("product_name", mode="before")
    @classmethod
    def _non_empty_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("product_name is required")
        return text

    @field_validator("article_number", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        text = str(value or "").strip()
        return text or None

    def label(self) -> str:
        if self.article_number:
            return f"{self.article_number} {self.product_name}"
        return self.product_name


class PropertySpec(BaseModel):
    """One requested output property."""

    name: str
    description: Optional[str] = None
    expected_format: Optional[str] = None
    order_index: int = 0
    is_required: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def _non_empty_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("property name is required")
        return text


def validate_schema(schema: Sequence[PropertySpec]) -> List[PropertySpec]:
    """Reject empty or duplicate-named schemas; return the schema sorted by order_index."""
    if not schema:
        raise InvalidInputError("property schema is empty")
    seen: Dict[str, int] = {}
    for spec in schema:
        if spec.name in seen:
            raise InvalidInputError("duplicate property name", {"name": spec.name})
        seen[spec.name] = 1
    return sorted(schema, key=lambda spec: spec.order_index)


class SearchHit(BaseModel):
    """Search result: a candidate URL with its result title."""

    url: str
    title: str = ""
    snippet: str = ""

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("url is required")
        return text


class AcquisitionMethod(str, Enum):
    """Cascade tier that produced the text."""

    PLAIN_FETCH = "plain-fetch"
    FRAMEWORK_AWARE_FETCH = "framework-aware-fetch"
    POOLED_RENDER = "pooled-render"
    DOCUMENT = "document"


class AcquiredContent(BaseModel):
    """Text obtained for one source in one run."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str = ""
    method: AcquisitionMethod = AcquisitionMethod.PLAIN_FETCH
    text: str = ""
    success: bool = False
    error: Optional[str] = None
    error_kind: Optional[str] = None
    content_length: int = 0
    elapsed_ms: int = 0

    @model_validator(mode="before")
    @classmethod
    def _length_matches_text(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["content_length"] = len(str(data.get("text") or ""))
        return data


class CandidateSource(BaseModel):
    """A scored candidate page."""

    url: str
    title: str = ""
    raw_text: str = ""
    relevance_score: float = 0.0
    passed: bool = False
    details: List[str] = Field(default_factory=list)
    content: Optional[AcquiredContent] = None


class Found(BaseModel):
    """Extractor located a value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["found"] = "found"
    value: str
    sources: List[str] = Field(default_factory=list)


class NotFound(BaseModel):
    """Extractor located nothing for the property."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not_found"] = "not_found"


ExtractedValue = Union[Found, NotFound]


class PerSourceExtraction(BaseModel):
    """Values pulled from one source, keyed by property name ("" = not found)."""

    source_index: int
    values: Dict[str, str] = Field(default_factory=dict)


class SourceRef(BaseModel):
    """Provenance entry."""

    url: str
    title: str = ""


class PropertyResult(BaseModel):
    """Reconciled answer for one property."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    is_consistent: bool = False
    consistency_count: int = Field(default=0, ge=0)
    source_count: int = Field(default=0, ge=0)
    sources: List[SourceRef] = Field(default_factory=list)

    @model_validator(mode="after")
    def _consistency_law(self) -> "PropertyResult":
        if self.is_consistent != (self.consistency_count >= 2):
            raise ValueError("is_consistent must equal consistency_count >= 2")
        return self


FailureStage = Literal["search", "acquisition", "relevance", "extraction", "rate-limit"]
FailureKind = Literal[
    "timeout",
    "network",
    "pool-exhausted",
    "empty-content",
    "skipped",
    "pdf-binary",
    "extractor-error",
    "parse-error",
    "rate-limited",
    "blocked",
    "irrelevant",
]


class SourceFailure(BaseModel):
    """Diagnostic record for a source that dropped out."""

    url: str = ""
    stage: FailureStage
    kind: FailureKind
    message: str = ""


class PipelineResult(BaseModel):
    """Output of one pipeline run."""

    identity: ProductIdentity
    properties: Dict[str, PropertyResult] = Field(default_factory=dict)
    sources: List[CandidateSource] = Field(default_factory=list)
    failures: List[SourceFailure] = Field(default_factory=list)
    low_confidence: bool = False
    elapsed_ms: int = 0

    def found_count(self) -> int:
        return sum(1 for result in self.properties.values() if result.value)


class RateLimitConfig(BaseModel):
    """Sliding-window policy for one endpoint."""

    window_seconds: float = Field(gt=0)
    max_requests: int = Field(gt=0)
    block_seconds: float = Field(default=0, ge=0)


class RateLimitResult(BaseModel):
    """Admission decision."""

    allowed: bool
    remaining: int = 0
    reset_time: datetime
    retry_after: Optional[int] = None
