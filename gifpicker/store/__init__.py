"""Local SQLite store: schema migrations, favorites and settings."""

from .database import Database, open_database
from .favorites import FavoritesStore
from .settings import SettingsStore

__all__ = ["Database", "FavoritesStore", "SettingsStore", "open_database"]
