"""Search coordinator: query state, debouncing, paging and loading flags.

One instance lives for the whole application session. It owns the result
sequence and publishes immutable ``SearchState`` snapshots to subscribers.

Paging is page-number based (first page is 1). ``page`` advances by one per
fetched non-empty page regardless of how many of its items survive
de-duplication.

Every fresh load (search, trending, categories, favorites, clear) bumps a
generation counter. Responses that belong to an older generation are
dropped, so a slow superseded request can neither overwrite newer results
nor clear a loading flag that a newer request owns. The HTTP request itself
is not cancelled.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterable, Optional

from gifpicker import logger
from gifpicker.config import SearchConfig
from gifpicker.errors import GifApiError, StoreError
from gifpicker.search.protocols import FavoritesSource, SearchClient
from gifpicker.search.timers import TimerHandle, Timers
from gifpicker.search.types import (
    Category,
    FavoriteItem,
    GifResult,
    RemoteItem,
    ResultItem,
    SearchResultPage,
    ViewMode,
)

DEFAULT_PAGE_SIZE = 25


@dataclass(frozen=True)
class SearchState:
    view: ViewMode = "favorites"
    query: str = ""
    items: tuple[ResultItem, ...] = ()
    categories: tuple[Category, ...] = ()
    current_category: Optional[Category] = None
    total_count: int = 0
    page: int = 1
    has_more: bool = False
    is_searching: bool = False
    is_loading_more: bool = False
    error: Optional[str] = None
    autocomplete: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


Listener = Callable[[SearchState], None]


def _unique_remote_items(gifs: Iterable[GifResult], seen: set[str]) -> list[RemoteItem]:
    items: list[RemoteItem] = []
    for gif in gifs:
        if gif.slug in seen:
            continue
        seen.add(gif.slug)
        items.append(RemoteItem(gif))
    return items


class SearchCoordinator:
    """Composes the remote client and the favorites store into one result stream."""

    def __init__(
        self,
        client: SearchClient,
        favorites: FavoritesSource,
        config: SearchConfig | None = None,
        timers: Timers | None = None,
    ) -> None:
        self._client = client
        self._favorites = favorites
        self._config = config or SearchConfig(page_size=DEFAULT_PAGE_SIZE)
        self._timers = timers or Timers()
        self._state = SearchState()
        self._listeners: list[Listener] = []
        self._generation = 0
        self._autocomplete_generation = 0
        self._load_more_token = 0
        self._debounce: TimerHandle | None = None
        self._autocomplete_timer: TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def page_size(self) -> int:
        return self._config.page_size

    @property
    def has_pending_search(self) -> bool:
        return self._debounce is not None and self._debounce.pending

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; it receives the current snapshot immediately."""
        self._listeners.append(listener)
        listener(self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- query entry points -------------------------------------------------

    async def set_query(self, text: str) -> None:
        """Typed-text entry point: empty shows favorites, anything else is debounced."""
        self.cancel_pending()
        if not text.strip():
            await self.show_favorites()
            return
        self._update(query=text, has_more=False)
        delay = self._config.debounce_ms / 1000
        self._debounce = self._timers.schedule(delay, lambda: self._spawn(self.search(text)))

    async def search(self, text: str) -> None:
        """Fresh search for ``text``, bypassing the debounce."""
        if not text.strip():
            await self.show_favorites()
            return
        await self._fresh_load(
            lambda: self._client.search(text, page=1, per_page=self.page_size),
            label=f"search '{text}'",
            view="search",
            query=text,
            current_category=None,
        )

    async def load_category(self, category: Category) -> None:
        """Search by a category's query; ``load_more`` then pages through it."""
        await self._fresh_load(
            lambda: self._client.search(category.query, page=1, per_page=self.page_size),
            label=f"category '{category.name}'",
            view="category",
            query=category.query,
            current_category=category,
        )

    async def load_trending(self) -> None:
        self.cancel_pending()
        await self._fresh_load(
            lambda: self._client.trending(page=1, per_page=self.page_size),
            label="trending",
            view="trending",
            query="",
            current_category=None,
        )

    async def load_categories(self) -> None:
        self.cancel_pending()
        generation, watchdog = self._begin_fresh(
            view="categories",
            query="",
            items=(),
            categories=(),
            current_category=None,
        )
        try:
            categories = await self._client.categories()
        except GifApiError as exc:
            if self._is_current(generation):
                logger.warning(f"Failed to load categories: {exc}")
                self._update(error=str(exc))
        else:
            if self._is_current(generation):
                self._update(categories=tuple(categories))
        finally:
            self._finish_fresh(generation, watchdog)

    async def show_favorites(self) -> None:
        """Replace results with the full favorites listing and reset paging."""
        self.cancel_pending()
        self._generation += 1
        generation = self._generation
        reset = dict(
            view="favorites",
            query="",
            categories=(),
            current_category=None,
            total_count=0,
            page=1,
            has_more=False,
            is_searching=False,
            is_loading_more=False,
        )
        try:
            favorites = await asyncio.to_thread(self._favorites.list_all)
        except StoreError as exc:
            logger.error(f"Failed to load favorites: {exc}")
            if self._is_current(generation):
                self._update(items=(), error=str(exc), **reset)
            return
        if self._is_current(generation):
            items = tuple(FavoriteItem(favorite) for favorite in favorites)
            self._update(items=items, error=None, **reset)

    async def go_home(self) -> None:
        self.clear()
        await self.show_favorites()

    # -- paging -------------------------------------------------------------

    async def load_more(self) -> None:
        """Append the next page of the active query, skipping known identifiers."""
        state = self._state
        if not state.query.strip() or not state.has_more:
            return
        if state.is_loading_more or state.is_searching:
            return
        if state.total_count > 0 and len(state.items) >= state.total_count:
            self._update(has_more=False)
            return

        generation = self._generation
        self._load_more_token += 1
        token = self._load_more_token
        next_page = state.page + 1
        watchdog = self._timers.schedule(
            self._config.watchdog_seconds,
            lambda: self._release_loading_more(generation, token, timed_out=True),
        )
        self._update(is_loading_more=True)
        try:
            result = await self._client.search(state.query, page=next_page, per_page=self.page_size)
        except GifApiError as exc:
            if self._owns_load_more(generation, token):
                logger.warning(f"Failed to load more results for '{state.query}': {exc}")
                self._update(error=str(exc))
        else:
            if self._owns_load_more(generation, token):
                self._append_page(result, next_page)
            else:
                logger.get_logger().debug(f"Discarding stale page {next_page} for '{state.query}'")
        finally:
            self._timers.cancel(watchdog)
            self._release_loading_more(generation, token)

    def _append_page(self, result: SearchResultPage, requested_page: int) -> None:
        current = self._state.items
        seen = {item.identifier for item in current}
        fresh = _unique_remote_items(result.gifs, seen)
        items = current + tuple(fresh)
        fetched = len(result.gifs)
        total = result.total_count or self._state.total_count
        self._update(
            items=items,
            total_count=total,
            page=requested_page if fetched else self._state.page,
            has_more=self._has_more_after(fetched, len(items), total),
        )

    def _has_more_after(self, fetched: int, accumulated: int, total: int) -> bool:
        if fetched == 0 or fetched < self.page_size:
            return False
        if total > 0 and accumulated >= total:
            return False
        return True

    # -- cancellation / reset -----------------------------------------------

    def cancel_pending(self) -> None:
        """Drop a scheduled debounced search; in-flight requests are untouched."""
        self._timers.cancel(self._debounce)
        self._debounce = None

    def clear(self) -> None:
        self.cancel_pending()
        self.clear_autocomplete()
        self._generation += 1
        self._replace_state(SearchState())

    async def flush(self) -> None:
        """Run a pending debounced search now and wait for background work."""
        self._timers.fire_now(self._debounce)
        self._debounce = None
        await self.drain()

    async def drain(self) -> None:
        """Wait until every task spawned by timers has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # -- autocomplete / related searches ------------------------------------

    def request_autocomplete(self, text: str) -> None:
        self._timers.cancel(self._autocomplete_timer)
        self._autocomplete_timer = None
        if len(text.strip()) < 2:
            if self._state.autocomplete:
                self._update(autocomplete=())
            return
        self._autocomplete_generation += 1
        token = self._autocomplete_generation
        delay = self._config.autocomplete_debounce_ms / 1000
        self._autocomplete_timer = self._timers.schedule(
            delay, lambda: self._spawn(self._fetch_autocomplete(text, token))
        )

    def clear_autocomplete(self) -> None:
        self._timers.cancel(self._autocomplete_timer)
        self._autocomplete_timer = None
        self._autocomplete_generation += 1
        if self._state.autocomplete:
            self._update(autocomplete=())

    async def _fetch_autocomplete(self, text: str, token: int) -> None:
        try:
            values = await self._client.autocomplete(text, limit=self._config.autocomplete_limit)
        except GifApiError as exc:
            logger.get_logger().debug(f"Autocomplete failed for '{text}': {exc}")
            values = []
        if token == self._autocomplete_generation:
            self._update(autocomplete=tuple(values))

    async def fetch_suggestions(self, text: str) -> None:
        """Related searches for ``text``; failures clear the list."""
        if not text.strip():
            self._update(suggestions=())
            return
        try:
            values = await self._client.search_suggestions(text, limit=self._config.suggestions_limit)
        except GifApiError as exc:
            logger.get_logger().debug(f"Search suggestions failed for '{text}': {exc}")
            values = []
        self._update(suggestions=tuple(values))

    # -- internals ----------------------------------------------------------

    async def _fresh_load(
        self,
        fetch: Callable[[], Awaitable[SearchResultPage]],
        *,
        label: str,
        **changes,
    ) -> None:
        generation, watchdog = self._begin_fresh(**changes)
        try:
            result = await fetch()
        except GifApiError as exc:
            if self._is_current(generation):
                logger.warning(f"{label} failed: {exc}")
                self._update(error=str(exc))
        else:
            if self._is_current(generation):
                items = tuple(_unique_remote_items(result.gifs, set()))
                paged = bool(self._state.query.strip())
                self._update(
                    items=items,
                    categories=(),
                    total_count=result.total_count,
                    page=result.page or 1,
                    has_more=paged and self._has_more_after(len(result.gifs), len(items), result.total_count),
                )
            else:
                logger.get_logger().debug(f"Discarding stale results for {label}")
        finally:
            self._finish_fresh(generation, watchdog)

    def _begin_fresh(self, **changes) -> tuple[int, TimerHandle]:
        self._generation += 1
        generation = self._generation
        watchdog = self._timers.schedule(
            self._config.watchdog_seconds,
            lambda: self._release_searching(generation, timed_out=True),
        )
        fields = dict(
            total_count=0,
            page=1,
            has_more=False,
            is_searching=True,
            is_loading_more=False,
            error=None,
        )
        fields.update(changes)
        self._update(**fields)
        return generation, watchdog

    def _finish_fresh(self, generation: int, watchdog: TimerHandle) -> None:
        self._timers.cancel(watchdog)
        self._release_searching(generation)

    def _release_searching(self, generation: int, timed_out: bool = False) -> None:
        if not self._is_current(generation) or not self._state.is_searching:
            return
        if timed_out:
            logger.warning("Search is taking too long; clearing the loading indicator")
        self._update(is_searching=False)

    def _release_loading_more(self, generation: int, token: int, timed_out: bool = False) -> None:
        if not self._owns_load_more(generation, token) or not self._state.is_loading_more:
            return
        if timed_out:
            logger.warning("Loading more results is taking too long; clearing the loading indicator")
        self._update(is_loading_more=False)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _owns_load_more(self, generation: int, token: int) -> bool:
        return generation == self._generation and token == self._load_more_token

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _update(self, **changes) -> None:
        self._replace_state(replace(self._state, **changes))

    def _replace_state(self, state: SearchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
