"""
Relevance scoring
Weighted evidence that a page describes the exact product, not a sibling variant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config.settings import RelevanceSettings, get_relevance_settings
from core.contracts import CandidateSource, ProductIdentity

logger = logging.getLogger(__name__)

ARTICLE_POINTS = 50
EXACT_NAME_POINTS = 40
URL_TITLE_ARTICLE_POINTS = 15
URL_TITLE_NAME_POINTS = 10
URL_TITLE_KEYWORD_POINTS = 5
URL_TITLE_CAP = 20

SIBLING_MARKERS = r"(?:\b(?:CON|WITH|MIT|PLUS|PRO|MAX|MINI)\b|\d+[A-Z]?)"

_SEP = r"\s*[-|–—]\s*"
TITLE_AD_PATTERNS = [
    re.compile(_SEP + r"jetzt\s+(?:kaufen|bestellen|sparen|shoppen|anschauen|sichern|entdecken|informieren)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"bei\s+.+\s+(?:kaufen|bestellen|sparen)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"g(?:ü|ue)nstig(?:er|ste)?\s+(?:kaufen|bestellen)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"bis\s+zu\s+\d+\s*%\s+(?:sparen|reduziert)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"versandkostenfrei\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"kostenlos(?:er)?\s+versand\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"ab\s+\d+[,.]?\d*\s*(?:€|EUR|Euro)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"preise?\s+vergleichen\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"im\s+angebot\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"(?:buy|shop)\s+(?:now|online|today)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"free\s+(?:shipping|delivery)\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"on\s+sale\b.*$", re.IGNORECASE),
    re.compile(_SEP + r"(?:.+\s)?online[\s-]?shop\b.*$", re.IGNORECASE),
    re.compile(r"\s*\|\s*[^|]+$"),
    re.compile(r"\s+[-–—]\s+[^-–—]+$"),
]


def clean_page_title(title: str) -> str:
    """Strip shop marketing suffixes from a page title."""
    cleaned = str(title or "").strip()
    for pattern in TITLE_AD_PATTERNS:
        stripped = pattern.sub("", cleaned).strip()
        if stripped:
            cleaned = stripped
    return re.sub(r"[.,!?]+$", "", cleaned).strip()


def name_tokens(product_name: str, min_len: int = 2) -> List[str]:
    return [token for token in re.split(r"[\s.\-]+", product_name.lower()) if len(token) >= min_len]


@dataclass
class RelevanceScore:
    score: float
    passed: bool
    details: List[str] = field(default_factory=list)


@dataclass
class RankedCandidates:
    """Scored candidates in rank order; ``passed`` is what extraction may see."""

    passed: List[CandidateSource]
    scored: List[CandidateSource]
    low_confidence: bool = False


class RelevanceScorer:
    """
    Scores candidate pages against a product identity.

    Evidence: article number in the text (+50), exact product name (+40) or
    word-overlap tiers (+35/+25/+15/+10), a sibling-variant penalty when no
    exact name match exists, and an URL/title bonus capped at +20.
    """

    def __init__(
        self,
        *,
        threshold: Optional[float] = None,
        fallback_top_n: Optional[int] = None,
        sibling_penalty: Optional[float] = None,
        settings: Optional[RelevanceSettings] = None,
    ):
        settings = settings or get_relevance_settings()
        self.threshold = float(threshold if threshold is not None else settings.threshold)
        self.fallback_top_n = max(0, int(fallback_top_n if fallback_top_n is not None else settings.fallback_top_n))
        self.sibling_penalty = float(sibling_penalty if sibling_penalty is not None else settings.sibling_penalty)

    def score(self, candidate: CandidateSource, identity: ProductIdentity) -> RelevanceScore:
        return self.score_text(candidate.raw_text, identity, url=candidate.url, title=candidate.title)

    def score_text(self, text: str, identity: ProductIdentity, *, url: str = "", title: str = "") -> RelevanceScore:
        cleaned_title = clean_page_title(title)
        haystack = re.sub(r"\s+", " ", f"{cleaned_title}\n{text or ''}").strip()
        lowered = haystack.lower()
        name = identity.product_name
        name_lower = name.lower()
        article = identity.article_number

        score = 0.0
        details: List[str] = []

        if article and article.lower() in lowered:
            score += ARTICLE_POINTS
            details.append(f'exact article number "{article}"')

        exact_name = name_lower in lowered
        if exact_name:
            score += EXACT_NAME_POINTS
            details.append(f'exact product name "{name}"')
        else:
            points, detail = self._word_overlap(haystack, name)
            if points:
                score += points
                details.append(detail)

        if self.sibling_penalty and not exact_name:
            conflicts = find_conflicting_products(haystack, name)
            if conflicts:
                score -= self.sibling_penalty
                details.append(f"conflicting products: {', '.join(conflicts[:2])}")

        bonus, matched = self._url_title_bonus(identity, url, cleaned_title)
        if bonus:
            score += bonus
            details.append(f"URL/title contains {matched}")

        return RelevanceScore(score=score, passed=score >= self.threshold, details=details)

    @staticmethod
    def _word_overlap(haystack: str, product_name: str) -> tuple:
        tokens = name_tokens(product_name)
        if not tokens:
            return 0, ""
        exact = 0
        partial = 0
        for token in tokens:
            escaped = re.escape(token)
            if re.search(rf"\b{escaped}\b", haystack, re.IGNORECASE):
                exact += 1
            elif re.search(escaped, haystack, re.IGNORECASE):
                partial += 1
        total = len(tokens)
        exact_ratio = exact / total
        total_ratio = (exact + partial * 0.5) / total
        if exact_ratio >= 0.8:
            return 35, f"{exact}/{total} exact word matches"
        if exact_ratio >= 0.6:
            return 25, f"{exact}/{total} exact word matches"
        if total_ratio >= 0.6:
            return 15, f"{exact + partial}/{total} mixed word matches"
        if total_ratio >= 0.4:
            return 10, f"{exact + partial}/{total} basic word matches"
        return 0, ""

    @staticmethod
    def _url_title_bonus(identity: ProductIdentity, url: str, title: str) -> tuple:
        name_lower = identity.product_name.lower()
        article = (identity.article_number or "").lower()
        keywords = name_tokens(identity.product_name, min_len=3)
        bonus = 0
        matched: List[str] = []
        for text in (url, title):
            lowered = str(text or "").lower()
            if not lowered:
                continue
            if article and article in lowered:
                bonus += URL_TITLE_ARTICLE_POINTS
                matched.append("article number")
            if name_lower in lowered:
                bonus += URL_TITLE_NAME_POINTS
                matched.append("product name")
            elif keywords and sum(1 for word in keywords if word in lowered) >= len(keywords) * 0.7:
                bonus += URL_TITLE_KEYWORD_POINTS
                matched.append("product keywords")
        return min(bonus, URL_TITLE_CAP), " and ".join(matched) or "none"

    def rank(self, candidates: Sequence[CandidateSource], identity: ProductIdentity) -> RankedCandidates:
        """Score, stable-sort descending, filter by threshold with a top-N fallback."""
        scored: List[CandidateSource] = []
        for candidate in candidates:
            result = self.score(candidate, identity)
            scored.append(
                candidate.model_copy(
                    update={"relevance_score": result.score, "passed": result.passed, "details": result.details}
                )
            )
            logger.info(
                "[relevance] %.0f %s %s: %s",
                result.score,
                "pass" if result.passed else "fail",
                candidate.url,
                ", ".join(result.details) or "no matches",
            )
        scored.sort(key=lambda item: item.relevance_score, reverse=True)

        passed = [item for item in scored if item.passed]
        if passed or not scored:
            return RankedCandidates(passed=passed, scored=scored, low_confidence=False)

        fallback = [
            item.model_copy(update={"passed": True, "details": [*item.details, "low-confidence fallback"]})
            for item in scored[: self.fallback_top_n]
        ]
        logger.warning(
            "[relevance] no source reached %.0f for %s; keeping top %d with low confidence",
            self.threshold,
            identity.label(),
            len(fallback),
        )
        kept = {id(item) for item in scored[: self.fallback_top_n]}
        rest = [item for item in scored if id(item) not in kept]
        return RankedCandidates(passed=fallback, scored=[*fallback, *rest], low_confidence=True)


def find_conflicting_products(text: str, product_name: str) -> List[str]:
    """Mentions of same-brand variants that differ from the target name."""
    words = product_name.split()
    if len(words) < 2:
        return []
    brand = words[0]
    base = re.split(r"[\s.]", " ".join(words[1:]))[0]
    if not base:
        return []
    pattern = re.compile(
        rf"{re.escape(brand)}\s+[^\n]{{0,60}}?{re.escape(base)}[^\n]{{0,60}}?{SIBLING_MARKERS}",
        re.IGNORECASE,
    )
    target = product_name.lower()
    conflicts: List[str] = []
    for match in pattern.finditer(text or ""):
        mention = re.sub(r"\s+", " ", match.group(0)).strip()
        lowered = mention.lower()
        if not mention or target.startswith(lowered):
            continue
        if mention not in conflicts:
            conflicts.append(mention)
        if len(conflicts) >= 10:
            break
    return conflicts
