"""Protocol definitions for the coordinator's collaborators."""

from __future__ import annotations

from typing import Protocol, Sequence

from gifpicker.models import Favorite
from gifpicker.search.types import Category, SearchResultPage


class SearchClient(Protocol):
    """Remote GIF API surface used by the coordinator."""

    async def search(self, query: str, page: int = 1, per_page: int = 25) -> SearchResultPage:
        ...

    async def trending(self, page: int = 1, per_page: int = 25) -> SearchResultPage:
        ...

    async def categories(self) -> Sequence[Category]:
        ...

    async def autocomplete(self, query: str, limit: int = 8) -> Sequence[str]:
        ...

    async def search_suggestions(self, query: str, limit: int = 15) -> Sequence[str]:
        ...


class FavoritesSource(Protocol):
    """Synchronous favorites listing; the coordinator runs it off the event loop."""

    def list_all(self) -> Sequence[Favorite]:
        ...
