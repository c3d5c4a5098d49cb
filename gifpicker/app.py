"""Application wiring: one set of stores, clients and one search coordinator per session."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from gifpicker import logger
from gifpicker.actions import ItemActions
from gifpicker.config import GifpickerConfig
from gifpicker.media.clipboard import ClipboardManager
from gifpicker.media.downloader import Downloader
from gifpicker.models import Settings
from gifpicker.search.coordinator import SearchCoordinator
from gifpicker.search.klipy_client import KlipyClient
from gifpicker.store.database import Database, open_database
from gifpicker.store.favorites import FavoritesStore
from gifpicker.store.settings import SettingsStore


@dataclass
class AppContext:
    config: GifpickerConfig
    database: Database
    favorites: FavoritesStore
    settings_store: SettingsStore
    settings: Settings
    client: KlipyClient
    downloader: Downloader
    clipboard: ClipboardManager
    coordinator: SearchCoordinator
    actions: ItemActions

    def update_setting(self, key: str, value: Any) -> Settings:
        """Persist one setting and apply it to the running session."""
        self.settings = self.settings_store.update_key(key, value)
        self.client.show_ads = self.settings.show_ads
        return self.settings

    async def close(self) -> None:
        await self.client.close()
        await self.downloader.close()
        self.database.close()


def build_app(config: GifpickerConfig, clipboard: Optional[ClipboardManager] = None) -> AppContext:
    """Open the database (running migrations) and construct every session service."""
    database = open_database(config.paths.database_path)
    favorites = FavoritesStore(database)
    settings_store = SettingsStore(database)
    settings = settings_store.get()

    downloader = Downloader(config.paths.media_dir)
    downloader.ensure_directories()
    client = KlipyClient(config.api_keys, timeout=config.http.timeout, show_ads=settings.show_ads)
    clipboard = clipboard or ClipboardManager()

    logger.get_logger().debug(f"Using data directory {config.paths.data_dir}")
    return AppContext(
        config=config,
        database=database,
        favorites=favorites,
        settings_store=settings_store,
        settings=settings,
        client=client,
        downloader=downloader,
        clipboard=clipboard,
        coordinator=SearchCoordinator(client, favorites, config.search),
        actions=ItemActions(favorites, downloader, clipboard),
    )


def wipe_data(config: GifpickerConfig) -> List[Path]:
    """Delete the database (with SQLite side files) and the media directory. Returns what was removed."""
    removed: List[Path] = []
    db_path = config.paths.database_path
    for path in (db_path, db_path.with_name(db_path.name + "-wal"), db_path.with_name(db_path.name + "-shm")):
        if path.exists():
            path.unlink()
            removed.append(path)
    media_dir = config.paths.media_dir
    if media_dir.exists():
        shutil.rmtree(media_dir)
        removed.append(media_dir)
    return removed
