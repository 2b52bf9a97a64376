"""Extractor reply normalization: raw JSON -> Found | NotFound per property."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Sequence

from core.contracts import ExtractedValue, Found, NotFound, PropertySpec
from utils.exceptions import ExtractionError

PLACEHOLDER_VALUES = {
    "-",
    "--",
    "—",
    "?",
    "n/a",
    "n.a.",
    "na",
    "none",
    "null",
    "unknown",
    "not specified",
    "not available",
    "not found",
    "not provided",
    "not mentioned",
    "keine angabe",
    "keine angaben",
    "k.a.",
    "k. a.",
    "unbekannt",
    "nicht explizit angegeben",
}

NEGATED_PARTICIPLE_RE = re.compile(
    r"^nicht(?:\s+explizit)?\s+(?:angegeben|verf(?:ü|ue)gbar|vorhanden|erw(?:ä|ae)hnt|gefunden|spezifiziert|aufgef(?:ü|ue)hrt|"
    r"genannt|definiert|bekannt|dokumentiert|ermittelt|festgelegt|ersichtlich|enthalten|auffindbar|erkennbar|"
    r"beschrieben|ausgewiesen|angef(?:ü|ue)hrt|zugeordnet|lesbar|sichtbar)$",
    re.IGNORECASE,
)


def cleanup_value(value: Any) -> str:
    """Trimmed value, or "" when it is a placeholder phrase for a missing value."""
    text = str(value or "").strip().strip('"').strip()
    if not text:
        return ""
    lowered = text.lower().rstrip(".")
    if lowered in PLACEHOLDER_VALUES or text.lower() in PLACEHOLDER_VALUES:
        return ""
    if NEGATED_PARTICIPLE_RE.match(lowered):
        return ""
    return text


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, str):
        return value
    return ""


def to_extracted_value(raw: Any) -> ExtractedValue:
    """One reply entry: bare string/number or ``{value, sources, consistencyHint}``."""
    sources: List[str] = []
    if isinstance(raw, Mapping):
        inner = raw.get("value")
        raw_sources = raw.get("sources") or []
        if isinstance(raw_sources, Sequence) and not isinstance(raw_sources, str):
            sources = [str(item) for item in raw_sources if isinstance(item, (str, int))]
        raw = inner
    text = cleanup_value(_scalar_text(raw))
    if not text:
        return NotFound()
    return Found(value=text, sources=sources)


def normalize_reply(data: Any, schema: Sequence[PropertySpec]) -> Dict[str, ExtractedValue]:
    """Every schema property gets an entry; unknown keys are ignored."""
    if not isinstance(data, Mapping):
        raise ExtractionError("extractor reply is not a JSON object", {"type": type(data).__name__})
    return {spec.name: to_extracted_value(data.get(spec.name)) for spec in schema}


def to_value_map(values: Mapping[str, ExtractedValue], schema: Sequence[PropertySpec]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for spec in schema:
        item = values.get(spec.name)
        result[spec.name] = item.value if isinstance(item, Found) else ""
    return result


def empty_value_map(schema: Sequence[PropertySpec]) -> Dict[str, str]:
    return {spec.name: "" for spec in schema}
