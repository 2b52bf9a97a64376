"""
Pipeline runner
search -> domain policy -> acquisition -> relevance -> extraction -> consistency.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from acquisition.cascade import ContentAcquisitionCascade
from config.settings import Settings, get_settings
from core.contracts import (
    AcquiredContent,
    CandidateSource,
    PipelineResult,
    ProductIdentity,
    PropertySpec,
    SearchHit,
    SourceFailure,
    SourceRef,
    validate_schema,
)
from monitoring.sink import MonitoringSink, best_effort
from search.base import SearchProvider
from search.domains import DomainPolicy
from search.query import build_search_query
from storage.rate_limiter import PersistentRateLimiter
from utils.exceptions import InvalidInputError, ProductSpecError

from .consistency import ConsistencyResolver
from .extraction import ExtractionOrchestrator
from .relevance import RelevanceScorer

logger = logging.getLogger(__name__)

ACQUISITION_FAILURE_KINDS = {
    "timeout",
    "network",
    "pool-exhausted",
    "empty-content",
    "skipped",
    "pdf-binary",
    "parse-error",
    "blocked",
}


class ProductSpecPipeline:
    """
    One product, one run.

    All collaborators are injected. ``run`` raises only InvalidInputError,
    before any work starts; every later failure ends up in ``failures``.
    """

    def __init__(
        self,
        cascade: ContentAcquisitionCascade,
        scorer: RelevanceScorer,
        orchestrator: ExtractionOrchestrator,
        resolver: Optional[ConsistencyResolver] = None,
        *,
        search: Optional[SearchProvider] = None,
        domain_policy: Optional[DomainPolicy] = None,
        rate_limiter: Optional[PersistentRateLimiter] = None,
        rate_limit_identifier: Optional[str] = None,
        settings: Optional[Settings] = None,
        monitor: Optional[MonitoringSink] = None,
    ):
        self.settings = settings or get_settings()
        self.cascade = cascade
        self.scorer = scorer
        self.orchestrator = orchestrator
        self.resolver = resolver or ConsistencyResolver()
        self.search = search
        self.domain_policy = domain_policy
        self.rate_limiter = rate_limiter
        self.rate_limit_identifier = rate_limit_identifier or self.settings.rate_limit.identifier
        self.monitor = best_effort(monitor)

    def _validate(
        self,
        identity: ProductIdentity,
        schema: Sequence[PropertySpec],
        candidates: Optional[Sequence[SearchHit]],
        url: Optional[str],
        max_sources: int,
    ) -> List[PropertySpec]:
        if not isinstance(identity, ProductIdentity):
            raise InvalidInputError("identity must be a ProductIdentity", {"type": type(identity).__name__})
        ordered = validate_schema(schema)
        if max_sources < 1:
            raise InvalidInputError("max_sources must be at least 1", {"max_sources": max_sources})
        if candidates is not None and url:
            raise InvalidInputError("pass either candidates or a direct url, not both")
        if url is not None and not str(url).strip():
            raise InvalidInputError("direct url is empty")
        if candidates is None and not url and self.search is None:
            raise InvalidInputError("no candidates, url or search provider")
        return ordered

    async def run(
        self,
        identity: ProductIdentity,
        schema: Sequence[PropertySpec],
        *,
        candidates: Optional[Sequence[SearchHit]] = None,
        url: Optional[str] = None,
        max_sources: Optional[int] = None,
        identifier: Optional[str] = None,
    ) -> PipelineResult:
        max_sources = int(max_sources if max_sources is not None else self.settings.extraction.max_sources)
        ordered = self._validate(identity, schema, candidates, url, max_sources)
        identifier = identifier or self.rate_limit_identifier
        started = time.perf_counter()
        failures: List[SourceFailure] = []
        direct = bool(url)

        logger.info("[pipeline] %s: %d properties, up to %d sources", identity.label(), len(ordered), max_sources)

        if direct:
            hits = [SearchHit(url=str(url).strip())]
        else:
            if candidates is not None:
                hits = list(candidates)
            else:
                hits = await self._search(identity, max_sources, identifier, failures)
            if self.domain_policy is not None:
                hits = self.domain_policy.apply(hits)
        hits = _unique(hits)[:max_sources]

        contents = await self._acquire_all(hits, identity, identifier, failures)
        acquired = [
            CandidateSource(
                url=hit.url,
                title=content.title or hit.title,
                raw_text=content.text,
                content=content,
            )
            for hit, content in zip(hits, contents)
            if content.success and content.text
        ]

        low_confidence = False
        if direct or not self.settings.relevance.enabled:
            passed = [item.model_copy(update={"passed": True}) for item in acquired]
        else:
            ranked = self.scorer.rank(acquired, identity)
            passed = ranked.passed
            low_confidence = ranked.low_confidence
            for item in ranked.scored:
                if not item.passed:
                    failures.append(
                        SourceFailure(
                            url=item.url,
                            stage="relevance",
                            kind="irrelevant",
                            message=f"score {item.relevance_score:.0f} below {self.scorer.threshold:.0f}",
                        )
                    )

        batch = await self.orchestrator.extract_all(
            [item.content for item in passed],
            ordered,
            identity,
            identifier=identifier,
        )
        failures.extend(batch.failures)

        refs = [SourceRef(url=item.url, title=item.title) for item in passed]
        properties = self.resolver.resolve(batch.extractions, ordered, refs)

        result = PipelineResult(
            identity=identity,
            properties=properties,
            sources=passed,
            failures=failures,
            low_confidence=low_confidence,
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(
            "[pipeline] %s: %d/%d properties found from %d sources (%d failures) in %dms",
            identity.label(),
            result.found_count(),
            len(ordered),
            len(passed),
            len(failures),
            result.elapsed_ms,
        )
        return result

    async def _search(
        self,
        identity: ProductIdentity,
        max_sources: int,
        identifier: str,
        failures: List[SourceFailure],
    ) -> List[SearchHit]:
        if self.rate_limiter is not None:
            decision = await self.rate_limiter.acheck_limit(identifier, "search")
            if not decision.allowed:
                logger.warning("[pipeline] search rate limited, retry after %ss", decision.retry_after)
                failures.append(
                    SourceFailure(stage="rate-limit", kind="rate-limited", message=f"retry after {decision.retry_after}s")
                )
                return []

        query = build_search_query(identity)
        try:
            return await self.search.search(query, max_sources)
        except ProductSpecError as exc:
            logger.warning("[pipeline] search failed: %s", exc.message)
            failures.append(SourceFailure(stage="search", kind="network", message=exc.message))
            return []

    async def _acquire_all(
        self,
        hits: Sequence[SearchHit],
        identity: ProductIdentity,
        identifier: str,
        failures: List[SourceFailure],
    ) -> List[AcquiredContent]:
        if not hits:
            return []
        semaphore = asyncio.Semaphore(max(1, self.settings.fetch.acquisition_concurrency))

        async def _acquire(hit: SearchHit) -> AcquiredContent:
            async with semaphore:
                if self.rate_limiter is not None:
                    decision = await self.rate_limiter.acheck_limit(identifier, "scrape")
                    if not decision.allowed:
                        return AcquiredContent(
                            source_url=hit.url,
                            title=hit.title,
                            error=f"retry after {decision.retry_after}s",
                            error_kind="rate-limited",
                        )
                return await self.cascade.fetch(hit.url, title=hit.title, identity=identity)

        outcomes = await asyncio.gather(*[_acquire(hit) for hit in hits], return_exceptions=True)

        contents: List[AcquiredContent] = []
        for hit, outcome in zip(hits, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("[pipeline] acquisition crashed for %s: %s", hit.url, outcome)
                outcome = AcquiredContent(source_url=hit.url, title=hit.title, error=str(outcome), error_kind="network")
            contents.append(outcome)
            if outcome.success and outcome.text:
                continue
            failures.append(_acquisition_failure(outcome))
        return contents

    async def aclose(self) -> None:
        await self.cascade.aclose()
        if self.search is not None:
            await self.search.aclose()


def _acquisition_failure(content: AcquiredContent) -> SourceFailure:
    if content.error_kind == "rate-limited":
        return SourceFailure(url=content.source_url, stage="rate-limit", kind="rate-limited", message=content.error or "")
    kind = content.error_kind if content.error_kind in ACQUISITION_FAILURE_KINDS else "empty-content"
    if not content.error_kind and content.error:
        kind = "network"
    return SourceFailure(
        url=content.source_url,
        stage="acquisition",
        kind=kind,
        message=content.error or "no content extracted",
    )


def _unique(hits: Sequence[SearchHit]) -> List[SearchHit]:
    seen = set()
    unique: List[SearchHit] = []
    for hit in hits:
        if hit.url in seen:
            continue
        seen.add(hit.url)
        unique.append(hit)
    return unique
