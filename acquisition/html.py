"""
HTML content helpers
Section extraction, framework detection and embedded-data harvesting for product pages.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from bs4 import BeautifulSoup, Tag


NOISE_TAGS = ("script", "style", "noscript", "iframe", "nav", "header", "footer", "svg", "form")
NOISE_ATTR_RE = re.compile(r"cookie|consent|popup|modal|newsletter|breadcrumb", re.IGNORECASE)
SPEC_CONTAINER_RE = re.compile(
    r"spec|technical|techni|detail|datasheet|datenblatt|eigenschaft|merkmal|attribute|product",
    re.IGNORECASE,
)

FRAMEWORK_MARKERS = (
    "__NEXT_DATA__",
    "_buildManifest.js",
    "__NUXT__",
    "data-reactroot",
    "__REACT_DEVTOOLS",
    "data-server-rendered",
    "v-cloak",
    "data-v-",
    "ng-app",
    "ng-version",
    "createRoot(",
    "AppRegistry.register",
    "data-cid=",
)

CONTENT_TAG_RE = re.compile(r"<(?:p|div|span)\b", re.IGNORECASE)
SCRIPT_TAG_RE = re.compile(r"<script\b", re.IGNORECASE)

ASSIGNMENT_RE = re.compile(
    r"(?:var|let|const|window\.)\s*([\w$.]*(?:product|spec|price|technical|article|variant)[\w$]*)\s*=\s*(\{.*?\}|\[.*?\])\s*;",
    re.IGNORECASE | re.DOTALL,
)

MIN_SECTION_CHARS = 50
MAX_SECTION_CHARS = 5000
MAX_JSON_LINES = 400
MAX_JSON_VALUE_CHARS = 500


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def page_title(soup: BeautifulSoup) -> str:
    if soup.title is not None:
        title = soup.title.get_text(" ", strip=True)
        if title:
            return title
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if isinstance(og_title, Tag):
        return str(og_title.get("content") or "").strip()
    return ""


@dataclass
class PageProfile:
    """Cheap classification of raw markup, used to decide escalation."""

    size: int
    content_tags: int
    script_count: int
    frameworks: List[str] = field(default_factory=list)

    @property
    def minimal_markup(self) -> bool:
        return self.content_tags < 10 and self.script_count > 15

    @property
    def framework_heavy(self) -> bool:
        return bool(self.frameworks) or self.minimal_markup

    def is_small(self, small_page_bytes: int) -> bool:
        return self.size < small_page_bytes


def detect_frameworks(html: str) -> List[str]:
    lowered = (html or "").lower()
    return [marker for marker in FRAMEWORK_MARKERS if marker.lower() in lowered]


def profile_page(html: str) -> PageProfile:
    text = html or ""
    return PageProfile(
        size=len(text.encode("utf-8", errors="ignore")),
        content_tags=len(CONTENT_TAG_RE.findall(text)),
        script_count=len(SCRIPT_TAG_RE.findall(text)),
        frameworks=detect_frameworks(text),
    )


def looks_like_pdf_binary(text: str) -> bool:
    """Raw PDF bytes decoded as text."""
    head = (text or "")[:2048]
    if head.lstrip().startswith("%PDF-") or "%PDF-" in head:
        return True
    body = text or ""
    return "endobj" in body and "stream" in body


def _clean_lines(text: str) -> str:
    lines = [re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in (text or "").splitlines()]
    return "\n".join(line for line in lines if line)


def _tag_text(tag: Tag) -> str:
    return _clean_lines(tag.get_text("\n", strip=True))


def _attr_signature(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return " ".join([*classes, str(tag.get("id") or "")])


def _flatten_json(value: Any, prefix: str, lines: List[str], depth: int = 0) -> None:
    if len(lines) >= MAX_JSON_LINES or depth > 8:
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if str(key).startswith("@") and key not in {"@type"}:
                continue
            _flatten_json(item, f"{prefix}.{key}" if prefix else str(key), lines, depth + 1)
    elif isinstance(value, list):
        for index, item in enumerate(value[:50]):
            _flatten_json(item, f"{prefix}[{index}]", lines, depth + 1)
    elif value is not None:
        text = str(value).strip()
        if text and len(text) <= MAX_JSON_VALUE_CHARS:
            lines.append(f"{prefix}: {text}" if prefix else text)


def flatten_json(value: Any) -> str:
    lines: List[str] = []
    _flatten_json(value, "", lines)
    return "\n".join(lines)


def _load_json(raw: str) -> Optional[Any]:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def _json_ld_blocks(soup: BeautifulSoup) -> List[str]:
    blocks: List[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        data = _load_json(script.string or script.get_text() or "")
        if data is None:
            continue
        flattened = flatten_json(data)
        if flattened:
            blocks.append(flattened)
    return blocks


def _remove_noise(soup: BeautifulSoup) -> None:
    doomed: List[Tag] = list(soup.find_all(NOISE_TAGS))
    for tag in soup.find_all(True):
        if tag.name in {"html", "body", "main"}:
            continue
        if NOISE_ATTR_RE.search(_attr_signature(tag)):
            doomed.append(tag)
    for tag in doomed:
        if getattr(tag, "decomposed", False):
            continue
        tag.decompose()


def _microdata_blocks(soup: BeautifulSoup) -> List[str]:
    blocks: List[str] = []
    for scope in soup.find_all(attrs={"itemtype": re.compile(r"schema\.org/(Product|Offer)", re.IGNORECASE)}):
        lines: List[str] = []
        for prop in scope.find_all(attrs={"itemprop": True}):
            name = str(prop.get("itemprop") or "").strip()
            value = str(prop.get("content") or "").strip() or prop.get_text(" ", strip=True)
            if name and value and len(value) <= MAX_JSON_VALUE_CHARS:
                lines.append(f"{name}: {value}")
        if lines:
            blocks.append("\n".join(lines))
    return blocks


def _table_text(table: Tag) -> str:
    rows: List[str] = []
    for row in table.find_all("tr"):
        cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["td", "th"])]
        cells = [cell for cell in cells if cell]
        if cells:
            rows.append(" | ".join(cells))
    return "\n".join(rows)


def _definition_list_text(dl: Tag) -> str:
    lines: List[str] = []
    for term in dl.find_all("dt"):
        label = term.get_text(" ", strip=True)
        definition = term.find_next_sibling("dd")
        value = definition.get_text(" ", strip=True) if definition is not None else ""
        if label:
            lines.append(f"{label}: {value}" if value else label)
    return "\n".join(lines)


def _already_covered(text: str, collected: Iterable[str]) -> bool:
    return any(text in existing for existing in collected)


def extract_sections(html: str, *, min_chars: int = 500) -> str:
    """
    Prioritized text extraction for product pages.

    Order: JSON-LD structured data, Product/Offer microdata, tables as
    ``cell | cell`` rows, definition lists as ``term: definition``, spec-like
    containers, main/article content. Falls back to the body text when the
    prioritized sections stay below ``min_chars``.
    """
    soup = parse_html(html)
    sections: List[str] = []

    for block in _json_ld_blocks(soup):
        sections.append(f"[STRUCTURED DATA]\n{block}")

    _remove_noise(soup)

    for block in _microdata_blocks(soup):
        sections.append(f"[PRODUCT DATA]\n{block}")

    for index, table in enumerate(soup.find_all("table"), start=1):
        text = _table_text(table)
        if len(text) > 20:
            sections.append(f"[TABLE {index}]\n{text}")

    for dl in soup.find_all("dl"):
        text = _definition_list_text(dl)
        if text:
            sections.append(text)

    for tag in soup.find_all(["div", "section", "ul", "article"]):
        if not SPEC_CONTAINER_RE.search(_attr_signature(tag)):
            continue
        text = _tag_text(tag)
        if not MIN_SECTION_CHARS <= len(text) <= MAX_SECTION_CHARS:
            continue
        if _already_covered(text, sections):
            continue
        sections.append(text)

    for tag in soup.find_all(["main", "article"]):
        text = _tag_text(tag)
        if len(text) >= MIN_SECTION_CHARS and not _already_covered(text, sections):
            sections.append(text)

    content = "\n\n".join(sections)
    if len(content) < min_chars:
        body = soup.body or soup
        body_text = _tag_text(body)
        if body_text and not _already_covered(body_text, sections):
            content = f"{content}\n\n{body_text}" if content else body_text
    return content.strip()


def extract_embedded_data(html: str) -> str:
    """Data that client-side frameworks ship inside the markup."""
    soup = parse_html(html)
    blocks: List[str] = []

    for block in _json_ld_blocks(soup):
        blocks.append(f"[STRUCTURED DATA]\n{block}")

    next_data = soup.find("script", attrs={"id": "__NEXT_DATA__"})
    if isinstance(next_data, Tag):
        data = _load_json(next_data.string or next_data.get_text() or "")
        if data is not None:
            page_props = data.get("props", data) if isinstance(data, dict) else data
            flattened = flatten_json(page_props)
            if flattened:
                blocks.append(f"[APP DATA]\n{flattened}")

    for script in soup.find_all("script", attrs={"type": "application/json"}):
        if script.get("id") == "__NEXT_DATA__":
            continue
        data = _load_json(script.string or script.get_text() or "")
        if data is None:
            continue
        flattened = flatten_json(data)
        if flattened:
            blocks.append(f"[APP DATA]\n{flattened}")

    for script in soup.find_all("script"):
        source = script.string or ""
        if not source or script.get("type") in {"application/ld+json", "application/json"}:
            continue
        for name, raw in ASSIGNMENT_RE.findall(source):
            data = _load_json(raw)
            if data is not None:
                flattened = flatten_json(data)
                if flattened:
                    blocks.append(f"[{name}]\n{flattened}")
            elif len(raw) <= 2000:
                blocks.append(f"[{name}]\n{raw}")

    meta_lines: List[str] = []
    for meta in soup.find_all("meta"):
        key = str(meta.get("property") or meta.get("name") or meta.get("itemprop") or "").strip()
        value = str(meta.get("content") or "").strip()
        if not key or not value:
            continue
        lowered = key.lower()
        if lowered.startswith(("product:", "og:title", "og:description")) or lowered in {"description", "sku", "gtin", "mpn"}:
            meta_lines.append(f"{key}: {value}")
    if meta_lines:
        blocks.append("[META]\n" + "\n".join(meta_lines))

    return "\n\n".join(blocks).strip()


class TextNormalizer:
    """Collapses whitespace while keeping line structure, then caps length."""

    def __init__(self, max_chars: int = 50000):
        self.max_chars = max(1000, int(max_chars))

    def normalize(self, text: str) -> str:
        cleaned = (text or "").replace("\r\n", "\n").replace("\r", "\n")
        cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", " ", cleaned)
        lines = [re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in cleaned.split("\n")]
        cleaned = "\n".join(lines)
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        if len(cleaned) > self.max_chars:
            cleaned = cleaned[: self.max_chars]
        return cleaned.strip()
