"""Search collaborators: provider interface, ValueSERP client, domain policy."""

from .base import SearchProvider
from .domains import DomainPolicy, domain_matches, host_of, normalize_domain
from .query import build_search_query
from .valueserp import ValueSerpSearch, get_search_provider, parse_organic_results

__all__ = [
    "SearchProvider",
    "DomainPolicy",
    "domain_matches",
    "host_of",
    "normalize_domain",
    "build_search_query",
    "ValueSerpSearch",
    "get_search_provider",
    "parse_organic_results",
]
