"""Remote search client, search coordinator and grid selection."""

from .coordinator import SearchCoordinator, SearchState
from .klipy_client import KlipyClient
from .selection import SelectionState, columns_for_width
from .timers import TimerHandle, Timers
from .types import Category, FavoriteItem, GifResult, RemoteItem, ResultItem, SearchResultPage

__all__ = [
    "Category",
    "FavoriteItem",
    "GifResult",
    "KlipyClient",
    "RemoteItem",
    "ResultItem",
    "SearchCoordinator",
    "SearchResultPage",
    "SearchState",
    "SelectionState",
    "TimerHandle",
    "Timers",
    "columns_for_width",
]
