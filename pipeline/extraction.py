"""
Extraction orchestration
Bounded-concurrency structured extraction over acquired sources.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from config.settings import ExtractionSettings, get_extraction_settings
from core.contracts import AcquiredContent, PerSourceExtraction, ProductIdentity, PropertySpec, SourceFailure
from extractors.base import ExtractorReply, StructuredExtractor
from monitoring.pricing import estimate_cost
from monitoring.sink import MonitoringSink, best_effort
from storage.rate_limiter import PersistentRateLimiter
from utils.exceptions import ExtractionError

from .values import empty_value_map, normalize_reply, to_value_map

logger = logging.getLogger(__name__)

AI_EXTRACT_ENDPOINT = "ai-extract"


@dataclass
class ExtractionBatch:
    """Per-source value maps in source order plus the sources that contributed nothing."""

    extractions: List[PerSourceExtraction] = field(default_factory=list)
    failures: List[SourceFailure] = field(default_factory=list)


class ExtractionOrchestrator:
    """
    Runs one extractor call per successfully acquired source.

    Calls are capped by a semaphore and each is bounded by ``call_timeout``.
    A failing call contributes an all-empty map and a SourceFailure; the
    batch itself never raises.
    """

    def __init__(
        self,
        extractor: StructuredExtractor,
        *,
        concurrency: Optional[int] = None,
        call_timeout: Optional[float] = None,
        max_chars: Optional[int] = None,
        rate_limiter: Optional[PersistentRateLimiter] = None,
        rate_limit_identifier: str = "local",
        monitor: Optional[MonitoringSink] = None,
        settings: Optional[ExtractionSettings] = None,
    ):
        settings = settings or get_extraction_settings()
        self.extractor = extractor
        self.concurrency = max(1, int(concurrency or settings.concurrency))
        self.call_timeout = float(call_timeout or settings.call_timeout)
        self.max_chars = int(max_chars or settings.max_chars)
        self.rate_limiter = rate_limiter
        self.rate_limit_identifier = rate_limit_identifier
        self.monitor = best_effort(monitor)
        self._semaphore = asyncio.Semaphore(self.concurrency)

    async def extract_all(
        self,
        sources: Sequence[AcquiredContent],
        schema: Sequence[PropertySpec],
        identity: Optional[ProductIdentity] = None,
        *,
        identifier: Optional[str] = None,
    ) -> ExtractionBatch:
        identifier = identifier or self.rate_limit_identifier
        indexed = [(index, content) for index, content in enumerate(sources) if content.success and content.text]
        if not indexed:
            return ExtractionBatch()

        logger.info("[extraction] %d sources, concurrency %d", len(indexed), self.concurrency)
        outcomes = await asyncio.gather(
            *[self._extract_one(index, content, schema, identity, identifier) for index, content in indexed],
            return_exceptions=True,
        )

        batch = ExtractionBatch()
        for (index, content), outcome in zip(indexed, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("[extraction] unexpected failure for %s: %s", content.source_url, outcome)
                outcome = self._empty(index, schema, content, "extractor-error", str(outcome))
            extraction, failure = outcome
            batch.extractions.append(extraction)
            if failure is not None:
                batch.failures.append(failure)
        return batch

    async def _extract_one(
        self,
        index: int,
        content: AcquiredContent,
        schema: Sequence[PropertySpec],
        identity: Optional[ProductIdentity],
        identifier: str,
    ) -> Tuple[PerSourceExtraction, Optional[SourceFailure]]:
        async with self._semaphore:
            if self.rate_limiter is not None:
                decision = await self.rate_limiter.acheck_limit(identifier, AI_EXTRACT_ENDPOINT)
                if not decision.allowed:
                    logger.warning("[extraction] rate limited, retry after %ss: %s", decision.retry_after, content.source_url)
                    return self._empty(index, schema, content, "rate-limited", f"retry after {decision.retry_after}s")

            started = time.perf_counter()
            try:
                reply = await asyncio.wait_for(
                    self.extractor.extract(content.text[: self.max_chars], schema, identity),
                    timeout=self.call_timeout,
                )
            except asyncio.TimeoutError:
                message = f"extractor call exceeded {self.call_timeout:.0f}s"
                self._record_failure(started, message)
                return self._empty(index, schema, content, "timeout", message)
            except ExtractionError as exc:
                self._record_failure(started, exc.message)
                return self._empty(index, schema, content, "parse-error", exc.message)
            except Exception as exc:
                self._record_failure(started, str(exc))
                return self._empty(index, schema, content, "extractor-error", str(exc))

        self._record_usage(reply, started)
        try:
            values = normalize_reply(reply.data, schema)
        except ExtractionError as exc:
            return self._empty(index, schema, content, "parse-error", exc.message)

        value_map = to_value_map(values, schema)
        logger.info(
            "[extraction] %s: %d/%d properties",
            content.source_url,
            sum(1 for value in value_map.values() if value),
            len(schema),
        )
        return PerSourceExtraction(source_index=index, values=value_map), None

    def _empty(
        self,
        index: int,
        schema: Sequence[PropertySpec],
        content: AcquiredContent,
        kind: str,
        message: str,
    ) -> Tuple[PerSourceExtraction, SourceFailure]:
        logger.warning("[extraction] %s (%s): %s", content.source_url, kind, message)
        return (
            PerSourceExtraction(source_index=index, values=empty_value_map(schema)),
            SourceFailure(url=content.source_url, stage="extraction", kind=kind, message=message),
        )

    def _record_usage(self, reply: ExtractorReply, started: float) -> None:
        model = reply.model or self.extractor.model_name
        self.monitor.log_ai_api_call(
            model=model,
            prompt_tokens=reply.prompt_tokens,
            completion_tokens=reply.completion_tokens,
            cost_usd=estimate_cost(model, reply.prompt_tokens, reply.completion_tokens),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )

    def _record_failure(self, started: float, error: str) -> None:
        self.monitor.log_ai_api_call(
            model=self.extractor.model_name,
            prompt_tokens=0,
            completion_tokens=0,
            cost_usd=0.0,
            duration_ms=int((time.perf_counter() - started) * 1000),
            success=False,
            error=error,
        )
