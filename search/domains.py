"""
Domain policy
Excluded-domain filtering and manufacturer-first ordering of search hits.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from config.settings import SearchSettings, get_search_settings
from core.contracts import SearchHit

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize_domain(value: str) -> str:
    """``https://www.Example.com/path`` -> ``example.com``."""
    text = _SCHEME_RE.sub("", str(value or "").strip().lower())
    text = text.split("/", 1)[0].split(":", 1)[0]
    return text[4:] if text.startswith("www.") else text


def host_of(url: str) -> str:
    text = str(url or "").strip()
    if not _SCHEME_RE.match(text):
        text = f"http://{text}"
    return normalize_domain(urlparse(text).hostname or "")


def domain_matches(host: str, domain: str) -> bool:
    """Exact, subdomain or containment match on normalized domains."""
    if not host or not domain:
        return False
    return host == domain or host.endswith(f".{domain}") or domain in host


class DomainPolicy:
    """Drops excluded domains, then moves manufacturer hits to the front in their original order."""

    def __init__(
        self,
        exclude_domains: Optional[Iterable[str]] = None,
        manufacturer_domains: Optional[Iterable[str]] = None,
        *,
        settings: Optional[SearchSettings] = None,
    ):
        if exclude_domains is None or manufacturer_domains is None:
            settings = settings or get_search_settings()
            if exclude_domains is None:
                exclude_domains = settings.exclude_domains
            if manufacturer_domains is None:
                manufacturer_domains = settings.manufacturer_domains
        self.exclude_domains: List[str] = [d for d in (normalize_domain(x) for x in exclude_domains) if d]
        self.manufacturer_domains: List[str] = [d for d in (normalize_domain(x) for x in manufacturer_domains) if d]

    def is_excluded(self, url: str) -> bool:
        host = host_of(url)
        return any(domain_matches(host, domain) for domain in self.exclude_domains)

    def is_manufacturer(self, url: str) -> bool:
        host = host_of(url)
        return any(
            domain_matches(host, domain) or (host and domain.endswith(f".{host}"))
            for domain in self.manufacturer_domains
        )

    def apply(self, hits: Sequence[SearchHit]) -> List[SearchHit]:
        kept = [hit for hit in hits if not self.is_excluded(hit.url)]
        if len(kept) != len(hits):
            logger.info("[domains] removed %d excluded hit(s)", len(hits) - len(kept))
        if not self.manufacturer_domains:
            return kept
        preferred = [hit for hit in kept if self.is_manufacturer(hit.url)]
        others = [hit for hit in kept if not self.is_manufacturer(hit.url)]
        if preferred:
            logger.info("[domains] %d manufacturer hit(s) moved to the front", len(preferred))
        return [*preferred, *others]
