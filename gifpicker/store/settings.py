"""Settings persisted as JSON-encoded values in a key-value table."""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from pydantic import ValidationError

from gifpicker import logger
from gifpicker.errors import StoreError
from gifpicker.models import Settings
from gifpicker.store.database import Database

SETTINGS_KEYS = tuple(Settings.model_fields)


class SettingsStore:
    def __init__(self, database: Database):
        self.database = database

    def get(self) -> Settings:
        """Stored settings merged over defaults; unknown or undecodable values are ignored."""
        try:
            with self.database.transaction() as conn:
                rows = conn.execute("SELECT key, value FROM settings").fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to fetch settings: {exc}") from exc

        settings = Settings()
        for row in rows:
            key = row["key"]
            if key not in SETTINGS_KEYS:
                continue
            try:
                value = json.loads(row["value"])
                settings = Settings.model_validate({**settings.model_dump(), key: value})
            except (json.JSONDecodeError, ValidationError):
                logger.warning(f"Ignoring invalid stored value for setting '{key}'")
        return settings

    def save(self, settings: Settings) -> None:
        """Replace every stored setting with ``settings``."""
        pairs = [(key, json.dumps(value)) for key, value in settings.model_dump(mode="json").items()]
        try:
            with self.database.transaction() as conn:
                conn.execute("DELETE FROM settings")
                conn.executemany("INSERT INTO settings (key, value) VALUES (?, ?)", pairs)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to save settings: {exc}") from exc

    def update_key(self, key: str, value: Any) -> Settings:
        """Validate and upsert a single setting; returns the resulting settings."""
        if key not in SETTINGS_KEYS:
            raise StoreError(f"Unknown setting '{key}'")
        try:
            updated = Settings.model_validate({**self.get().model_dump(), key: value})
        except ValidationError as exc:
            raise StoreError(f"Invalid value for setting '{key}': {exc.errors()[0]['msg']}") from exc
        encoded = json.dumps(updated.model_dump(mode="json")[key])
        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO settings (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, encoded),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update setting: {exc}") from exc
        return updated
