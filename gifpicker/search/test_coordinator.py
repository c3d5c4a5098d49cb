from __future__ import annotations

import asyncio
import json
from typing import Callable

import pytest

from gifpicker.config import APIKeysConfig, SearchConfig
from gifpicker.errors import GifApiError, StoreError
from gifpicker.models import Favorite
from gifpicker.search.coordinator import SearchCoordinator, SearchState
from gifpicker.search.klipy_client import KlipyClient
from gifpicker.search.timers import TimerHandle, Timers
from gifpicker.search.types import Category, FavoriteItem, GifResult, RemoteItem, SearchResultPage

WATCHDOG = 10.0
DEBOUNCE = 0.3


def _gif(slug: str) -> GifResult:
    return GifResult(
        id=slug,
        slug=slug,
        title=slug.replace("-", " "),
        url=f"https://klipy.com/gifs/{slug}",
        gif_url=f"https://static.klipy.com/{slug}.gif",
        width=200,
        height=150,
    )


def _favorite(favorite_id: int) -> Favorite:
    return Favorite(id=favorite_id, filename=f"fav{favorite_id}.gif", filepath=f"/tmp/fav{favorite_id}.gif")


class _FakeTimers(Timers):
    def __init__(self) -> None:
        self.scheduled: list[TimerHandle] = []

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(delay=delay, callback=callback)
        self.scheduled.append(handle)
        return handle

    def pending(self, delay: float | None = None) -> list[TimerHandle]:
        return [h for h in self.scheduled if h.pending and (delay is None or h.delay == delay)]

    def fire_pending(self, delay: float) -> int:
        fired = 0
        for handle in self.pending(delay):
            fired += self.fire_now(handle)
        return fired


class _FakeClient:
    """Serves ``total`` results per query, ``page_size`` at a time."""

    def __init__(self, totals: dict[str, int] | None = None) -> None:
        self.totals = totals or {}
        self.calls: list[tuple[str, str, int]] = []
        self.gates: dict[tuple[str, int], asyncio.Event] = {}
        self.failures: dict[tuple[str, int], GifApiError] = {}
        self.overrides: dict[tuple[str, int], SearchResultPage] = {}
        self.category_list = [Category("Happy", "happy"), Category("Cats", "cat")]
        self.autocomplete_results: dict[str, list[str]] = {}

    async def _page(self, kind: str, query: str, page: int, per_page: int) -> SearchResultPage:
        self.calls.append((kind, query, page))
        gate = self.gates.get((query, page))
        if gate is not None:
            await gate.wait()
        failure = self.failures.get((query, page))
        if failure is not None:
            raise failure
        if (query, page) in self.overrides:
            return self.overrides[(query, page)]
        total = self.totals.get(query, 0)
        start = (page - 1) * per_page
        slugs = [f"{query or 'trend'}-{i}" for i in range(start, min(start + per_page, total))]
        return SearchResultPage(gifs=tuple(_gif(s) for s in slugs), total_count=total, page=page)

    async def search(self, query: str, page: int = 1, per_page: int = 25) -> SearchResultPage:
        return await self._page("search", query, page, per_page)

    async def trending(self, page: int = 1, per_page: int = 25) -> SearchResultPage:
        return await self._page("trending", "", page, per_page)

    async def categories(self) -> list[Category]:
        self.calls.append(("categories", "", 0))
        return list(self.category_list)

    async def autocomplete(self, query: str, limit: int = 8) -> list[str]:
        self.calls.append(("autocomplete", query, limit))
        gate = self.gates.get((query, 0))
        if gate is not None:
            await gate.wait()
        return self.autocomplete_results.get(query, [])[:limit]

    async def search_suggestions(self, query: str, limit: int = 15) -> list[str]:
        self.calls.append(("suggestions", query, limit))
        if (query, -1) in self.failures:
            raise self.failures[(query, -1)]
        return [f"{query} funny", f"{query} meme"]


class _FakeFavorites:
    def __init__(self, favorites: list[Favorite] | None = None) -> None:
        self.favorites = favorites or []
        self.error: StoreError | None = None

    def list_all(self) -> list[Favorite]:
        if self.error is not None:
            raise self.error
        return list(self.favorites)


class _UndecodableResponse:
    status = 200

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self) -> object:
        raise json.JSONDecodeError("Expecting value", "<html>busy</html>", 0)


class _UndecodableSession:
    closed = False

    def get(self, url, params=None, **_kwargs):
        return _UndecodableResponse()


def _config() -> SearchConfig:
    return SearchConfig(page_size=25, debounce_ms=300, watchdog_seconds=WATCHDOG, autocomplete_debounce_ms=150)


def _build(totals=None, favorites=None) -> tuple[SearchCoordinator, _FakeClient, _FakeFavorites, _FakeTimers]:
    client = _FakeClient(totals)
    store = _FakeFavorites(favorites)
    timers = _FakeTimers()
    return SearchCoordinator(client, store, _config(), timers), client, store, timers


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _slugs(state: SearchState) -> list[str]:
    return [item.identifier for item in state.items]


@pytest.mark.asyncio
async def test_set_query_debounces_to_last_text():
    coordinator, client, _, timers = _build({"cats": 3})

    await coordinator.set_query("c")
    await coordinator.set_query("ca")
    await coordinator.set_query("cats")

    assert coordinator.has_pending_search
    assert len(timers.pending(DEBOUNCE)) == 1
    assert client.calls == []

    await coordinator.flush()

    assert client.calls == [("search", "cats", 1)]
    state = coordinator.state
    assert state.view == "search"
    assert state.query == "cats"
    assert _slugs(state) == ["cats-0", "cats-1", "cats-2"]
    assert state.is_searching is False
    assert state.has_more is False
    assert not coordinator.has_pending_search


@pytest.mark.asyncio
async def test_empty_query_shows_favorites_and_cancels_pending_search():
    coordinator, client, _, timers = _build({"dog": 5}, [_favorite(2), _favorite(1)])

    await coordinator.set_query("dog")
    await coordinator.set_query("   ")
    await coordinator.flush()

    assert client.calls == []
    assert timers.pending(DEBOUNCE) == []
    state = coordinator.state
    assert state.view == "favorites"
    assert [item.identifier for item in state.items] == ["favorite:2", "favorite:1"]
    assert all(isinstance(item, FavoriteItem) for item in state.items)


@pytest.mark.asyncio
async def test_overlapping_searches_end_not_searching_with_latest_results():
    coordinator, client, _, _ = _build({"old": 3, "new": 2})
    client.gates[("old", 1)] = asyncio.Event()

    first = asyncio.create_task(coordinator.search("old"))
    await _settle()
    assert coordinator.state.is_searching

    await coordinator.search("new")
    assert _slugs(coordinator.state) == ["new-0", "new-1"]
    assert coordinator.state.is_searching is False

    client.gates[("old", 1)].set()
    await first

    state = coordinator.state
    assert state.query == "new"
    assert _slugs(state) == ["new-0", "new-1"]
    assert state.is_searching is False


@pytest.mark.asyncio
async def test_stale_completion_does_not_clear_newer_loading_flag():
    coordinator, client, _, _ = _build({"a": 1, "b": 1})
    client.gates[("a", 1)] = asyncio.Event()
    client.gates[("b", 1)] = asyncio.Event()

    first = asyncio.create_task(coordinator.search("a"))
    await _settle()
    second = asyncio.create_task(coordinator.search("b"))
    await _settle()

    client.gates[("a", 1)].set()
    await first
    assert coordinator.state.is_searching is True
    assert coordinator.state.items == ()

    client.gates[("b", 1)].set()
    await second
    assert coordinator.state.is_searching is False
    assert _slugs(coordinator.state) == ["b-0"]


@pytest.mark.asyncio
async def test_paging_cat_to_exhaustion():
    coordinator, client, _, _ = _build({"cat": 100})

    await coordinator.search("cat")
    assert len(coordinator.state.items) == 25
    assert coordinator.state.total_count == 100
    assert coordinator.state.has_more

    for _ in range(3):
        await coordinator.load_more()

    state = coordinator.state
    assert len(state.items) == 100
    assert len(set(_slugs(state))) == 100
    assert state.has_more is False
    assert state.page == 4
    assert state.is_loading_more is False
    assert [call[2] for call in client.calls] == [1, 2, 3, 4]

    await coordinator.load_more()
    assert len(client.calls) == 4


@pytest.mark.asyncio
async def test_load_more_skips_identifiers_already_present():
    coordinator, client, _, _ = _build({"dup": 60})
    await coordinator.search("dup")
    overlapping = tuple(_gif(f"dup-{i}") for i in range(20, 45))
    client.overrides[("dup", 2)] = SearchResultPage(gifs=overlapping, total_count=60, page=2)

    await coordinator.load_more()

    slugs = _slugs(coordinator.state)
    assert len(slugs) == len(set(slugs))
    assert len(slugs) == 45
    assert coordinator.state.page == 2


@pytest.mark.asyncio
async def test_load_more_noop_without_has_more():
    coordinator, client, _, _ = _build({"few": 10})
    await coordinator.search("few")
    assert coordinator.state.has_more is False

    await coordinator.load_more()

    assert client.calls == [("search", "few", 1)]


@pytest.mark.asyncio
async def test_load_more_noop_while_in_flight():
    coordinator, client, _, _ = _build({"cat": 100})
    await coordinator.search("cat")
    client.gates[("cat", 2)] = asyncio.Event()

    first = asyncio.create_task(coordinator.load_more())
    await _settle()
    assert coordinator.state.is_loading_more

    await coordinator.load_more()
    assert [call[2] for call in client.calls] == [1, 2]

    client.gates[("cat", 2)].set()
    await first
    assert len(coordinator.state.items) == 50
    assert coordinator.state.is_loading_more is False


@pytest.mark.asyncio
async def test_load_more_empty_page_stops_paging():
    coordinator, client, _, _ = _build({"cat": 25})
    client.overrides[("cat", 1)] = SearchResultPage(
        gifs=tuple(_gif(f"cat-{i}") for i in range(25)), total_count=0, page=1
    )
    await coordinator.search("cat")
    assert coordinator.state.has_more

    await coordinator.load_more()

    assert coordinator.state.has_more is False
    assert coordinator.state.page == 1
    assert len(coordinator.state.items) == 25


@pytest.mark.asyncio
async def test_clear_then_empty_query_restores_favorites_listing():
    favorites = [_favorite(3), _favorite(2), _favorite(1)]
    coordinator, _, _, _ = _build({"cat": 100}, favorites)
    await coordinator.search("cat")
    await coordinator.load_more()

    coordinator.clear()
    assert coordinator.state == SearchState()

    await coordinator.set_query("")

    state = coordinator.state
    assert state.view == "favorites"
    assert len(state.items) == 3
    assert state.page == 1
    assert state.total_count == 0
    assert state.has_more is False
    assert state.is_searching is False
    assert state.is_loading_more is False


@pytest.mark.asyncio
async def test_api_error_is_recorded_without_retry_and_cleared_by_next_search():
    coordinator, client, _, _ = _build({"ok": 1})
    client.failures[("bad", 1)] = GifApiError("Klipy API returned error status 500", status=500)

    await coordinator.search("bad")

    assert coordinator.state.error == "Klipy API returned error status 500"
    assert coordinator.state.is_searching is False
    assert client.calls == [("search", "bad", 1)]

    await coordinator.search("ok")
    assert coordinator.state.error is None
    assert _slugs(coordinator.state) == ["ok-0"]


@pytest.mark.asyncio
async def test_load_more_error_keeps_items_and_releases_flag():
    coordinator, client, _, _ = _build({"cat": 100})
    await coordinator.search("cat")
    client.failures[("cat", 2)] = GifApiError("timeout")

    await coordinator.load_more()

    state = coordinator.state
    assert len(state.items) == 25
    assert state.error == "timeout"
    assert state.is_loading_more is False
    assert state.page == 1


@pytest.mark.asyncio
async def test_watchdog_clears_stuck_searching_flag():
    coordinator, client, _, timers = _build({"slow": 2})
    client.gates[("slow", 1)] = asyncio.Event()

    task = asyncio.create_task(coordinator.search("slow"))
    await _settle()
    assert coordinator.state.is_searching

    assert timers.fire_pending(WATCHDOG) == 1
    assert coordinator.state.is_searching is False

    client.gates[("slow", 1)].set()
    await task
    assert _slugs(coordinator.state) == ["slow-0", "slow-1"]


@pytest.mark.asyncio
async def test_watchdog_clears_stuck_loading_more_flag():
    coordinator, client, _, timers = _build({"cat": 100})
    await coordinator.search("cat")
    client.gates[("cat", 2)] = asyncio.Event()

    task = asyncio.create_task(coordinator.load_more())
    await _settle()
    assert coordinator.state.is_loading_more

    timers.fire_pending(WATCHDOG)
    assert coordinator.state.is_loading_more is False

    client.gates[("cat", 2)].set()
    await task
    assert len(coordinator.state.items) == 50


@pytest.mark.asyncio
async def test_trending_does_not_page():
    coordinator, client, _, _ = _build({"": 40})

    await coordinator.load_trending()
    assert coordinator.state.view == "trending"
    assert len(coordinator.state.items) == 25
    assert coordinator.state.has_more is False

    await coordinator.load_more()
    assert client.calls == [("trending", "", 1)]


@pytest.mark.asyncio
async def test_category_load_and_paging():
    coordinator, client, _, _ = _build({"cat": 30})
    await coordinator.load_categories()

    state = coordinator.state
    assert state.view == "categories"
    assert [c.name for c in state.categories] == ["Happy", "Cats"]
    assert state.is_searching is False

    await coordinator.load_category(state.categories[1])
    state = coordinator.state
    assert state.view == "category"
    assert state.current_category == Category("Cats", "cat")
    assert state.query == "cat"
    assert state.categories == ()
    assert state.has_more

    await coordinator.load_more()
    assert len(coordinator.state.items) == 30
    assert coordinator.state.has_more is False


@pytest.mark.asyncio
async def test_favorites_store_error_is_reported():
    coordinator, _, store, _ = _build()
    store.error = StoreError("Failed to fetch all favorites: disk I/O error")

    await coordinator.show_favorites()

    assert coordinator.state.items == ()
    assert coordinator.state.error == "Failed to fetch all favorites: disk I/O error"


@pytest.mark.asyncio
async def test_go_home_resets_and_lists_favorites():
    coordinator, _, _, _ = _build({"cat": 100}, [_favorite(1)])
    await coordinator.search("cat")

    await coordinator.go_home()

    assert coordinator.state.view == "favorites"
    assert coordinator.state.query == ""
    assert [item.identifier for item in coordinator.state.items] == ["favorite:1"]


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots_until_unsubscribed():
    coordinator, _, _, _ = _build({"cat": 1})
    seen: list[SearchState] = []

    unsubscribe = coordinator.subscribe(seen.append)
    assert seen == [SearchState()]

    await coordinator.search("cat")
    assert seen[-1].items == (RemoteItem(_gif("cat-0")),)
    assert any(state.is_searching for state in seen)

    count = len(seen)
    unsubscribe()
    coordinator.clear()
    assert len(seen) == count


@pytest.mark.asyncio
async def test_autocomplete_needs_two_characters_and_is_debounced():
    coordinator, client, _, timers = _build()
    client.autocomplete_results["ca"] = ["cat", "car"]

    coordinator.request_autocomplete("c")
    assert timers.pending() == []

    coordinator.request_autocomplete("ca")
    assert len(timers.pending(0.15)) == 1
    timers.fire_pending(0.15)
    await coordinator.drain()

    assert coordinator.state.autocomplete == ("cat", "car")
    assert client.calls == [("autocomplete", "ca", 8)]

    coordinator.request_autocomplete("c")
    assert coordinator.state.autocomplete == ()


@pytest.mark.asyncio
async def test_stale_autocomplete_is_dropped():
    coordinator, client, _, timers = _build()
    client.autocomplete_results["do"] = ["dog"]
    client.gates[("do", 0)] = asyncio.Event()

    coordinator.request_autocomplete("do")
    timers.fire_pending(0.15)
    await _settle()
    coordinator.clear_autocomplete()

    client.gates[("do", 0)].set()
    await coordinator.drain()

    assert coordinator.state.autocomplete == ()


@pytest.mark.asyncio
async def test_suggestions_fill_and_failures_clear():
    coordinator, client, _, _ = _build()

    await coordinator.fetch_suggestions("cat")
    assert coordinator.state.suggestions == ("cat funny", "cat meme")

    client.failures[("dog", -1)] = GifApiError("boom")
    await coordinator.fetch_suggestions("dog")
    assert coordinator.state.suggestions == ()


@pytest.mark.asyncio
async def test_pending_query_is_recorded_and_blocks_paging_of_previous_results():
    coordinator, client, _, _ = _build({"cat": 100, "dog": 10})
    await coordinator.search("cat")
    assert coordinator.state.has_more

    await coordinator.set_query("dog")
    assert coordinator.state.query == "dog"
    assert coordinator.state.has_more is False

    await coordinator.load_more()
    assert client.calls == [("search", "cat", 1)]

    await coordinator.flush()
    assert client.calls[-1] == ("search", "dog", 1)
    assert _slugs(coordinator.state)[0] == "dog-0"


@pytest.mark.asyncio
async def test_late_timed_out_load_more_does_not_release_newer_one():
    coordinator, client, _, timers = _build({"cat": 100})
    await coordinator.search("cat")
    first_gate = asyncio.Event()
    client.gates[("cat", 2)] = first_gate

    first = asyncio.create_task(coordinator.load_more())
    await _settle()
    timers.fire_pending(WATCHDOG)
    assert coordinator.state.is_loading_more is False

    second_gate = asyncio.Event()
    client.gates[("cat", 2)] = second_gate
    second = asyncio.create_task(coordinator.load_more())
    await _settle()
    assert coordinator.state.is_loading_more

    first_gate.set()
    await first
    assert coordinator.state.is_loading_more
    assert len(coordinator.state.items) == 25

    await coordinator.load_more()
    assert [call[2] for call in client.calls] == [1, 2, 2]

    second_gate.set()
    await second
    assert coordinator.state.is_loading_more is False
    assert len(coordinator.state.items) == 50
    assert coordinator.state.page == 2


@pytest.mark.asyncio
async def test_undecodable_klipy_body_becomes_search_error(monkeypatch):
    client = KlipyClient(APIKeysConfig(klipy_key="test-key"))

    async def _session():
        return _UndecodableSession()

    monkeypatch.setattr(client, "_ensure_session", _session)
    coordinator = SearchCoordinator(client, _FakeFavorites(), _config(), _FakeTimers())

    await coordinator.search("cat")

    state = coordinator.state
    assert state.error is not None
    assert state.error.startswith("Malformed Klipy response")
    assert state.is_searching is False
    assert state.items == ()
