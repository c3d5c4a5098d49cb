"""Klipy GIF API client built on a shared aiohttp session."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from gifpicker import logger
from gifpicker.__version__ import __version__
from gifpicker.config import APIKeysConfig
from gifpicker.errors import GifApiError
from gifpicker.search.payloads import file_format, read_categories, read_page, read_strings, to_int, unwrap
from gifpicker.search.protocols import SearchClient
from gifpicker.search.types import Category, GifResult, SearchResultPage

KLIPY_API_BASE_URL = "https://api.klipy.co/api/v1"
KLIPY_PAGE_URL = "https://klipy.com/gifs/{slug}"
DEFAULT_USER_AGENT = f"gifpicker/{__version__}"


class KlipyClient(SearchClient):
    """Read-only Klipy adapter: search, trending, categories and suggestions."""

    def __init__(
        self,
        api_keys: APIKeysConfig,
        timeout: int = 10,
        show_ads: bool = True,
        base_url: str = KLIPY_API_BASE_URL,
    ):
        self.api_keys = api_keys
        self.timeout = timeout
        self.show_ads = show_ads
        self.base_url = base_url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    @property
    def api_key(self) -> str:
        key = self.api_keys.key_for(self.show_ads)
        if not key:
            raise GifApiError("Klipy API key is not configured")
        return key

    async def search(self, query: str, page: int = 1, per_page: int = 25) -> SearchResultPage:
        """Search GIFs by free text."""
        data = await self._request("gifs/search", {"q": query, "per_page": per_page, "page": page})
        return self._parse_page(data, page, "search")

    async def trending(self, page: int = 1, per_page: int = 25) -> SearchResultPage:
        """Currently trending GIFs."""
        data = await self._request("gifs/trending", {"per_page": per_page, "page": page})
        return self._parse_page(data, page, "trending")

    async def get_by_slug(self, slug: str) -> GifResult:
        data = await self._request("gifs/items", {"slugs": slug})
        page = self._parse_page(data, 1, "items")
        if not page.gifs:
            raise GifApiError(f"GIF not found: {slug}")
        return page.gifs[0]

    async def categories(self) -> List[Category]:
        data = await self._request("gifs/categories", {})
        try:
            rows = read_categories(data)
        except ValueError as exc:
            raise GifApiError(f"Failed to parse Klipy categories response: {exc}") from exc
        return [
            Category(
                name=str(row.get("category") or row.get("query") or ""),
                query=str(row.get("query") or row.get("category") or ""),
                preview_url=str(row.get("preview_url") or ""),
            )
            for row in rows
        ]

    async def autocomplete(self, query: str, limit: int = 8) -> List[str]:
        data = await self._request(f"autocomplete/{quote(query, safe='')}", {"limit": limit})
        return self._parse_strings(data, "autocomplete")

    async def search_suggestions(self, query: str, limit: int = 15) -> List[str]:
        data = await self._request(f"search-suggestions/{quote(query, safe='')}", {"limit": limit})
        return self._parse_strings(data, "search-suggestions")

    async def _request(self, path: str, params: Dict[str, Any]) -> object:
        url = f"{self.base_url}/{self.api_key}/{path}"
        log = logger.get_logger()
        log.api_request("GET", f"{self.base_url}/<key>/{path}", params)
        request_start = time.time()
        session = await self._ensure_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status >= 400:
                    text = await response.text()
                    log.api_failed("Klipy", f"HTTP {response.status}")
                    raise GifApiError(
                        f"Klipy API returned error status {response.status}: {text[:200]}",
                        status=response.status,
                    )
                payload = await response.json()
                elapsed_ms = (time.time() - request_start) * 1000
                log.api_response(response.status, payload, elapsed_ms)
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            log.api_failed("Klipy", f"{type(exc).__name__}: {exc}")
            raise GifApiError(f"Failed to reach Klipy API: {type(exc).__name__}") from exc
        except ValueError as exc:
            log.api_failed("Klipy", f"invalid JSON: {exc}")
            raise GifApiError(f"Malformed Klipy response: {exc}") from exc

        try:
            return unwrap(payload, path.split("/")[0])
        except ValueError as exc:
            raise GifApiError(str(exc)) from exc

    def _parse_page(self, data: object, requested_page: int, context: str) -> SearchResultPage:
        try:
            rows, total, page = read_page(data, context, requested_page)
            gifs = tuple(gif for gif in (self._map_gif(row) for row in rows) if gif is not None)
        except ValueError as exc:
            raise GifApiError(f"Failed to parse Klipy {context} response: {exc}") from exc
        return SearchResultPage(gifs=gifs, total_count=total, page=page)

    @staticmethod
    def _parse_strings(data: object, context: str) -> List[str]:
        try:
            return read_strings(data, context)
        except ValueError as exc:
            raise GifApiError(f"Failed to parse Klipy {context} response: {exc}") from exc

    @staticmethod
    def _map_gif(row: Dict[str, Any]) -> Optional[GifResult]:
        """HD formats supply the copy/download URLs, MD supplies display dimensions."""
        slug = row.get("slug")
        if not slug:
            return None
        hd_gif = file_format(row, "hd", "gif")
        md_gif = file_format(row, "md", "gif") or hd_gif
        hd_mp4 = file_format(row, "hd", "mp4")
        gif_url = hd_gif.get("url")
        if not gif_url:
            return None
        return GifResult(
            id=str(row.get("id", slug)),
            slug=str(slug),
            title=str(row.get("title") or ""),
            url=KLIPY_PAGE_URL.format(slug=slug),
            gif_url=str(gif_url),
            width=to_int(md_gif.get("width")),
            height=to_int(md_gif.get("height")),
            mp4_url=hd_mp4.get("url") or None,
        )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(
                    headers={"User-Agent": DEFAULT_USER_AGENT, "Accept": "application/json"},
                    timeout=timeout,
                )
            return self._session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
