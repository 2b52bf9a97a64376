"""
Consistency resolution
Cross-source vote per property with confidence and provenance.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Sequence

from core.contracts import PerSourceExtraction, PropertyResult, PropertySpec, SourceRef

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 60
PER_SOURCE_CONFIDENCE = 10
MAX_CONFIDENCE = 95
SINGLE_SOURCE_CONFIDENCE = 30


def confidence_for(count: int) -> int:
    """0 when nothing was found, 30 for one source, 60 + 10 per agreeing source capped at 95."""
    if count <= 0:
        return 0
    if count == 1:
        return SINGLE_SOURCE_CONFIDENCE
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + count * PER_SOURCE_CONFIDENCE)


class ConsistencyResolver:
    """Deterministic: same inputs always give the same winner, ties go to the first-seen value."""

    def resolve(
        self,
        per_source: Sequence[PerSourceExtraction],
        schema: Sequence[PropertySpec],
        sources: Sequence[SourceRef],
    ) -> Dict[str, PropertyResult]:
        ordered = sorted(schema, key=lambda spec: spec.order_index)
        results: Dict[str, PropertyResult] = {}
        for spec in ordered:
            results[spec.name] = self._resolve_property(spec.name, per_source, sources)
        return results

    def _resolve_property(
        self,
        name: str,
        per_source: Sequence[PerSourceExtraction],
        sources: Sequence[SourceRef],
    ) -> PropertyResult:
        tally: "OrderedDict[str, List[int]]" = OrderedDict()
        for extraction in per_source:
            value = str(extraction.values.get(name) or "").strip()
            if not value:
                continue
            tally.setdefault(value, []).append(extraction.source_index)

        if not tally:
            return PropertyResult(name=name, source_count=len(sources))

        winner = ""
        winner_indices: List[int] = []
        for value, indices in tally.items():
            if len(indices) > len(winner_indices):
                winner, winner_indices = value, indices

        count = len(winner_indices)
        provenance = [sources[index] for index in winner_indices if 0 <= index < len(sources)]
        if len(tally) > 1:
            logger.debug(
                "[consistency] %s: %s",
                name,
                ", ".join(f"{value!r}x{len(indices)}" for value, indices in tally.items()),
            )
        return PropertyResult(
            name=name,
            value=winner,
            confidence=confidence_for(count),
            is_consistent=count >= 2,
            consistency_count=count,
            source_count=len(sources),
            sources=provenance,
        )
