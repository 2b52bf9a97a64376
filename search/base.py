"""Search provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from core.contracts import SearchHit


class SearchProvider(ABC):
    """Returns candidate pages for a query, best first."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def search(self, query: str, max_results: int = 10) -> List[SearchHit]:
        """
        Run one search.

        Raises:
            SearchError: the provider failed or returned an unusable payload.
        """
        pass

    async def aclose(self) -> None:
        return None
