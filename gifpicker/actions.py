"""User actions on result items: copy to clipboard, favorite, delete, import."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional

from gifpicker import logger
from gifpicker.errors import ClipboardError, MediaError, StoreError
from gifpicker.media.clipboard import ClipboardManager
from gifpicker.media.downloader import Downloader
from gifpicker.models import Favorite, Settings
from gifpicker.search.types import FavoriteItem, GifResult, ResultItem
from gifpicker.store.favorites import FavoritesStore

Notify = Callable[[str, str], None]


def item_url(item: ResultItem) -> Optional[str]:
    if isinstance(item, FavoriteItem):
        return item.favorite.share_url
    return item.gif.gif_url or item.gif.url


class ItemActions:
    """Actions report failures through ``notify`` and return a falsy value instead of raising."""

    def __init__(
        self,
        favorites: FavoritesStore,
        downloader: Downloader,
        clipboard: ClipboardManager,
        notify: Notify = logger.toast,
    ):
        self.favorites = favorites
        self.downloader = downloader
        self.clipboard = clipboard
        self.notify = notify

    async def activate(self, item: ResultItem, settings: Settings) -> bool:
        """Copy ``item`` the way ``settings.clipboard_mode`` asks; favorites count the use."""
        if settings.clipboard_mode == "url":
            copied = self.copy_url(item)
        else:
            copied = await self._copy_file(item)

        if copied and isinstance(item, FavoriteItem) and item.favorite.id is not None:
            try:
                await asyncio.to_thread(self.favorites.increment_use_count, item.favorite.id)
            except StoreError as exc:
                logger.warning(f"Use count not updated: {exc}")
        return copied

    def copy_url(self, item: ResultItem) -> bool:
        url = item_url(item)
        if not url:
            self.notify("No URL available for this item", "error")
            return False
        try:
            self.clipboard.copy_text(url)
        except ClipboardError as exc:
            self.notify(str(exc), "error")
            return False
        self.notify("Copied URL to clipboard", "success")
        return True

    async def _copy_file(self, item: ResultItem) -> bool:
        if isinstance(item, FavoriteItem):
            favorite = item.favorite
            if not favorite.has_local_file or not Path(favorite.filepath).is_file():
                logger.get_logger().debug(f"No local file for favorite {favorite.id}; copying URL")
                return self.copy_url(item)
            path = Path(favorite.filepath)
        else:
            gif = item.gif
            try:
                path = await self.downloader.download_temp(gif.gif_url, f"klipy_{gif.slug}.gif")
            except MediaError as exc:
                logger.warning(f"Download failed, copying URL instead: {exc}")
                return self.copy_url(item)

        try:
            self.clipboard.copy_file(path)
        except ClipboardError as exc:
            logger.warning(f"File copy failed, copying URL instead: {exc}")
            return self.copy_url(item)
        self.notify("Copied GIF to clipboard", "success")
        return True

    async def find_saved(self, gif: GifResult) -> Optional[Favorite]:
        return await asyncio.to_thread(self.favorites.get_by_source, "klipy", gif.slug)

    async def save_favorite(self, gif: GifResult) -> Optional[Favorite]:
        """Download the GIF (and MP4 variant) and store it as a Klipy favorite."""
        try:
            existing = await self.find_saved(gif)
        except StoreError as exc:
            self.notify(str(exc), "error")
            return None
        if existing is not None:
            self.notify("Already in favorites", "info")
            return existing

        try:
            gif_path, mp4_path = await self.downloader.download_from_klipy(gif.gif_url, gif.mp4_url, gif.slug)
        except MediaError as exc:
            self.notify(f"Failed to save favorite: {exc}", "error")
            return None

        favorite = Favorite(
            filename=gif_path.name,
            filepath=str(gif_path),
            mp4_filepath=str(mp4_path) if mp4_path else None,
            gif_url=gif.gif_url,
            media_type="gif",
            source="klipy",
            source_id=gif.slug,
            source_url=gif.url,
            description=gif.title or None,
            width=gif.width or None,
            height=gif.height or None,
            file_size=Downloader.file_size(gif_path),
        )
        try:
            favorite_id = await asyncio.to_thread(self.favorites.create, favorite)
        except StoreError as exc:
            self.notify(f"Failed to save favorite: {exc}", "error")
            return None
        self.notify("Added to favorites", "success")
        return favorite.model_copy(update={"id": favorite_id})

    async def toggle_favorite(self, item: ResultItem) -> bool:
        """Save an unsaved remote item, otherwise remove the saved favorite."""
        if isinstance(item, FavoriteItem):
            return await self.delete_favorite(item.favorite)
        try:
            existing = await self.find_saved(item.gif)
        except StoreError as exc:
            self.notify(str(exc), "error")
            return False
        if existing is not None:
            return await self.delete_favorite(existing)
        return await self.save_favorite(item.gif) is not None

    async def delete_favorite(self, favorite: Favorite) -> bool:
        if favorite.id is None:
            self.notify("Favorite has not been saved", "error")
            return False
        try:
            await asyncio.to_thread(self.favorites.delete, favorite.id)
        except StoreError as exc:
            self.notify(str(exc), "error")
            return False

        for raw_path in (favorite.filepath, favorite.mp4_filepath):
            if not raw_path:
                continue
            try:
                Downloader.delete_file(Path(raw_path))
            except MediaError as exc:
                logger.warning(str(exc))
        self.notify("Removed from favorites", "success")
        return True

    async def import_file(self, path: Path) -> Optional[Favorite]:
        """Copy a local GIF, image or video into the media folder as a favorite."""
        try:
            dest_path, media_type = await asyncio.to_thread(self.downloader.import_local_file, path)
        except MediaError as exc:
            self.notify(str(exc), "error")
            return None

        favorite = Favorite(
            filename=dest_path.name,
            filepath=str(dest_path),
            media_type=media_type,
            source="local",
            file_size=Downloader.file_size(dest_path),
        )
        try:
            favorite_id = await asyncio.to_thread(self.favorites.create, favorite)
        except StoreError as exc:
            self.notify(f"Failed to import file: {exc}", "error")
            return None
        self.notify(f"Imported {dest_path.name}", "success")
        return favorite.model_copy(update={"id": favorite_id})
