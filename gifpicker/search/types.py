"""Shared data structures for the search helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from gifpicker.models import Favorite


@dataclass(frozen=True)
class GifResult:
    """Single remote GIF as returned by the search client."""

    id: str
    slug: str
    title: str
    url: str
    gif_url: str
    width: int
    height: int
    mp4_url: Optional[str] = None


@dataclass(frozen=True)
class SearchResultPage:
    """One page of remote results plus the API's reported total."""

    gifs: tuple[GifResult, ...] = ()
    total_count: int = 0
    page: int = 1


@dataclass(frozen=True)
class Category:
    name: str
    query: str
    preview_url: str = ""


@dataclass(frozen=True)
class FavoriteItem:
    favorite: Favorite
    kind: Literal["favorite"] = field(default="favorite", init=False)

    @property
    def identifier(self) -> str:
        return f"favorite:{self.favorite.id}"


@dataclass(frozen=True)
class RemoteItem:
    gif: GifResult
    kind: Literal["remote"] = field(default="remote", init=False)

    @property
    def identifier(self) -> str:
        return self.gif.slug


ResultItem = Union[FavoriteItem, RemoteItem]

ViewMode = Literal["favorites", "search", "trending", "categories", "category"]
