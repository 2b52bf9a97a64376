"""CLI entrypoint: one pipeline run plus rate-limit maintenance."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from acquisition import BrowserPool, ContentAcquisitionCascade, PlaywrightLauncher
from config import Settings, get_settings
from core import PipelineResult, ProductIdentity, PropertySpec, SearchHit
from extractors import LLMStructuredExtractor
from llm import get_llm
from monitoring import LoggingMonitoringSink
from pipeline import ConsistencyResolver, ExtractionOrchestrator, ProductSpecPipeline, RelevanceScorer
from search import DomainPolicy, get_search_provider
from storage import PersistentRateLimiter
from utils import ProductSpecError, configure_package_loggers, setup_logger


def _load_json_file(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def load_properties(path: str) -> List[PropertySpec]:
    """Accepts a list of names or of PropertySpec objects."""
    raw = _load_json_file(path)
    if isinstance(raw, dict):
        raw = raw.get("properties") or []
    specs: List[PropertySpec] = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            specs.append(PropertySpec(name=item, order_index=index))
        else:
            specs.append(PropertySpec(**{"order_index": index, **item}))
    return specs


def load_candidates(path: str) -> List[SearchHit]:
    raw = _load_json_file(path)
    hits: List[SearchHit] = []
    for item in raw:
        if isinstance(item, str):
            hits.append(SearchHit(url=item))
        else:
            hits.append(SearchHit(**item))
    return hits


async def run_pipeline(
    settings: Settings,
    identity: ProductIdentity,
    schema: List[PropertySpec],
    *,
    url: Optional[str] = None,
    candidates: Optional[List[SearchHit]] = None,
    max_sources: Optional[int] = None,
    use_browser: bool = True,
) -> PipelineResult:
    monitor = LoggingMonitoringSink()
    limiter: Optional[PersistentRateLimiter] = None
    pool: Optional[BrowserPool] = None
    cascade: Optional[ContentAcquisitionCascade] = None
    extractor: Optional[LLMStructuredExtractor] = None
    search = None
    try:
        if settings.rate_limit.enabled:
            limiter = PersistentRateLimiter(settings=settings.rate_limit)
        if use_browser:
            pool = BrowserPool(PlaywrightLauncher(headless=settings.pool.headless), settings=settings.pool)
        cascade = ContentAcquisitionCascade.default(pool, settings=settings, monitor=monitor)
        llm = get_llm(settings.llm.provider, settings.llm.model_name, settings=settings.llm)
        extractor = LLMStructuredExtractor(
            llm,
            max_chars=settings.extraction.max_chars,
            temperature=settings.llm.temperature,
        )
        if candidates is None and not url:
            search = get_search_provider(settings.search)

        pipeline = ProductSpecPipeline(
            cascade,
            RelevanceScorer(settings=settings.relevance),
            ExtractionOrchestrator(
                extractor,
                rate_limiter=limiter,
                rate_limit_identifier=settings.rate_limit.identifier,
                monitor=monitor,
                settings=settings.extraction,
            ),
            ConsistencyResolver(),
            search=search,
            domain_policy=DomainPolicy(settings=settings.search),
            rate_limiter=limiter,
            settings=settings,
            monitor=monitor,
        )
        return await pipeline.run(identity, schema, candidates=candidates, url=url, max_sources=max_sources)
    finally:
        if search is not None:
            await search.aclose()
        if cascade is not None:
            await cascade.aclose()
        if extractor is not None:
            await extractor.aclose()
        if pool is not None:
            await pool.close()
        if limiter is not None:
            limiter.close()


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main() -> None:
    parser = argparse.ArgumentParser(description="Product specification harvester")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run")
    run.add_argument("--product-name", required=True)
    run.add_argument("--article-number", default="")
    source = run.add_mutually_exclusive_group()
    source.add_argument("--url", default=None)
    source.add_argument("--candidates-json", default=None)
    run.add_argument("--properties-json", required=True)
    run.add_argument("--max-sources", type=int, default=None)
    run.add_argument("--no-browser", action="store_true")

    status = sub.add_parser("rate-limit-status")
    status.add_argument("--identifier", default=None)
    status.add_argument("--endpoint", default="default")

    reset = sub.add_parser("rate-limit-reset")
    reset.add_argument("--identifier", default=None)
    reset.add_argument("--endpoint", default=None)

    sub.add_parser("rate-limit-cleanup")

    args = parser.parse_args()
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    setup_logger(level=level)
    configure_package_loggers(level=level)
    settings = get_settings()

    if args.command == "run":
        try:
            identity = ProductIdentity(article_number=args.article_number, product_name=args.product_name)
            schema = load_properties(args.properties_json)
            candidates = load_candidates(args.candidates_json) if args.candidates_json else None
            result = asyncio.run(
                run_pipeline(
                    settings,
                    identity,
                    schema,
                    url=args.url,
                    candidates=candidates,
                    max_sources=args.max_sources,
                    use_browser=not args.no_browser,
                )
            )
        except (ProductSpecError, ValidationError, OSError, ValueError) as exc:
            _print({"error": str(exc)})
            raise SystemExit(2)
        _print(result.model_dump(mode="json"))
        return

    limiter = PersistentRateLimiter(settings=settings.rate_limit)
    identifier = getattr(args, "identifier", None) or settings.rate_limit.identifier
    try:
        if args.command == "rate-limit-status":
            _print(limiter.get_status(identifier, args.endpoint))
            return

        if args.command == "rate-limit-reset":
            _print({"identifier": identifier, "deleted": limiter.reset_limit(identifier, args.endpoint)})
            return

        if args.command == "rate-limit-cleanup":
            _print({"deleted": limiter.cleanup()})
    except ProductSpecError as exc:
        _print({"error": str(exc)})
        raise SystemExit(2)
    finally:
        limiter.close()


if __name__ == "__main__":
    main()
