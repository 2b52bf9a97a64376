"""Prompt templates for LLM-backed property extraction."""

from __future__ import annotations

import json
from typing import Optional, Sequence

from core.contracts import ProductIdentity, PropertySpec

SYSTEM_PROMPT = """You are a precise technical data extraction expert. Extract ONLY values that actually appear in the provided content. Never fabricate data.

Product verification:
- Only extract values if the content describes the exact product given below.
- If the content is about a different product or a variant (e.g. "ISOTTA CON CERCHI.16" instead of "ISOTTA.16"), return "" for every property.

Extraction rules:
1. Search tables, lists, definition lists, structured data and running text.
2. Consider synonyms in German, English, Italian and French.
3. For combined dimensions such as "550x1200x573 mm" (B x H x T) split the individual values.
4. Keep ranges such as "3 - 9 kW" as written.
5. Convert units to the requested format when one is given.
6. If a value is missing or uncertain, return exactly "" (empty string). Never write explanations such as "not specified", "n/a" or "nicht angegeben".

Output: one JSON object with the exact property names as keys and string values."""


def describe_property(position: int, spec: PropertySpec) -> str:
    line = f'{position}. "{spec.name}"'
    if spec.description:
        line += f" ({spec.description})"
    if spec.expected_format:
        line += f" - Format: {spec.expected_format}"
    return line


def build_user_prompt(
    text: str,
    schema: Sequence[PropertySpec],
    identity: Optional[ProductIdentity] = None,
    *,
    max_chars: int = 15000,
) -> str:
    ordered = sorted(schema, key=lambda spec: spec.order_index)
    header = ["EXTRACT TECHNICAL DATA"]
    if identity is not None:
        if identity.article_number:
            header.append(f"Article: {identity.article_number}")
        header.append(f"Product: {identity.product_name}")

    properties = "\n".join(describe_property(index, spec) for index, spec in enumerate(ordered, start=1))
    template = json.dumps({spec.name: "" for spec in ordered}, ensure_ascii=False, indent=2)
    return (
        "\n".join(header)
        + f"\n\nPROPERTIES TO EXTRACT ({len(ordered)}):\n{properties}"
        + f'\n\nOUTPUT FORMAT (use "" for missing values):\n{template}'
        + f"\n\nCONTENT:\n{(text or '')[:max_chars]}"
    )
