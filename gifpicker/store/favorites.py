"""CRUD over the favorites table."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, List, Optional, get_args

from pydantic import ValidationError

from gifpicker import logger
from gifpicker.errors import StoreError
from gifpicker.models import Favorite, Source
from gifpicker.store.database import Database

_COLUMNS = (
    "id, filename, filepath, mp4_filepath, gif_url, media_type, source, source_id, source_url, "
    "tags, custom_tags, description, width, height, file_size, created_at, last_used, use_count"
)
_KNOWN_SOURCES = set(get_args(Source))


def _dump_tags(tags: List[str]) -> str:
    return json.dumps(list(tags))


def _load_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return []
    return [str(tag) for tag in value] if isinstance(value, list) else []


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class FavoritesStore:
    """Favorites persisted in SQLite; tags are stored as JSON arrays."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, favorite: Favorite) -> int:
        """Insert ``favorite`` and return its new id."""
        row = self._to_row(favorite)
        try:
            with self.database.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO favorites (
                        filename, filepath, mp4_filepath, gif_url, media_type, source, source_id,
                        source_url, tags, custom_tags, description, width, height, file_size,
                        created_at, last_used, use_count
                    ) VALUES (
                        :filename, :filepath, :mp4_filepath, :gif_url, :media_type, :source, :source_id,
                        :source_url, :tags, :custom_tags, :description, :width, :height, :file_size,
                        :created_at, :last_used, :use_count
                    )
                    """,
                    row,
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to insert favorite: {exc}") from exc
        return int(cursor.lastrowid)

    def get_by_id(self, favorite_id: int) -> Optional[Favorite]:
        rows = self._query(f"SELECT {_COLUMNS} FROM favorites WHERE id = ?", (favorite_id,), "fetch favorite")
        return rows[0] if rows else None

    def get_by_source(self, source: str, source_id: str) -> Optional[Favorite]:
        rows = self._query(
            f"SELECT {_COLUMNS} FROM favorites WHERE source = ? AND source_id = ?",
            (source, source_id),
            "fetch favorite by source",
        )
        return rows[0] if rows else None

    def list_all(self) -> List[Favorite]:
        """All favorites, newest first."""
        return self._query(
            f"SELECT {_COLUMNS} FROM favorites ORDER BY created_at DESC, id DESC",
            (),
            "fetch all favorites",
        )

    def search(self, query: str) -> List[Favorite]:
        """Case-insensitive match on filename, tags and description."""
        term = f"%{query.lower()}%"
        return self._query(
            f"""
            SELECT {_COLUMNS} FROM favorites
            WHERE LOWER(filename) LIKE ?
               OR LOWER(tags) LIKE ?
               OR LOWER(custom_tags) LIKE ?
               OR LOWER(COALESCE(description, '')) LIKE ?
            ORDER BY use_count DESC, created_at DESC
            """,
            (term, term, term, term),
            "search favorites",
        )

    def update(self, favorite: Favorite) -> None:
        if favorite.id is None:
            raise StoreError("Favorite must have an ID to update")
        row = self._to_row(favorite)
        row["id"] = favorite.id
        try:
            with self.database.transaction() as conn:
                conn.execute(
                    """
                    UPDATE favorites
                    SET filename = :filename, filepath = :filepath, mp4_filepath = :mp4_filepath,
                        gif_url = :gif_url, media_type = :media_type, source = :source,
                        source_id = :source_id, source_url = :source_url, tags = :tags,
                        custom_tags = :custom_tags, description = :description, width = :width,
                        height = :height, file_size = :file_size, last_used = :last_used,
                        use_count = :use_count
                    WHERE id = :id
                    """,
                    row,
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update favorite: {exc}") from exc

    def delete(self, favorite_id: int) -> None:
        try:
            with self.database.transaction() as conn:
                conn.execute("DELETE FROM favorites WHERE id = ?", (favorite_id,))
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to delete favorite: {exc}") from exc

    def increment_use_count(self, favorite_id: int) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self.database.transaction() as conn:
                conn.execute(
                    "UPDATE favorites SET use_count = use_count + 1, last_used = ? WHERE id = ?",
                    (now, favorite_id),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to increment use count: {exc}") from exc

    def _query(self, sql: str, params: tuple, action: str) -> List[Favorite]:
        try:
            with self.database.transaction() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to {action}: {exc}") from exc
        favorites = []
        for row in rows:
            favorite = self._from_row(row)
            if favorite is not None:
                favorites.append(favorite)
        return favorites

    @staticmethod
    def _to_row(favorite: Favorite) -> dict[str, Any]:
        return {
            "filename": favorite.filename,
            "filepath": favorite.filepath,
            "mp4_filepath": favorite.mp4_filepath,
            "gif_url": favorite.gif_url,
            "media_type": favorite.media_type,
            "source": favorite.source,
            "source_id": favorite.source_id,
            "source_url": favorite.source_url,
            "tags": _dump_tags(favorite.tags),
            "custom_tags": _dump_tags(favorite.custom_tags),
            "description": favorite.description,
            "width": favorite.width,
            "height": favorite.height,
            "file_size": favorite.file_size,
            "created_at": _isoformat(favorite.created_at),
            "last_used": _isoformat(favorite.last_used),
            "use_count": favorite.use_count,
        }

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Optional[Favorite]:
        data = dict(row)
        data["tags"] = _load_tags(data.get("tags"))
        data["custom_tags"] = _load_tags(data.get("custom_tags"))
        data["created_at"] = _parse_datetime(data.get("created_at")) or datetime.now(timezone.utc)
        data["last_used"] = _parse_datetime(data.get("last_used"))
        if data.get("media_type") not in ("gif", "image", "video"):
            data["media_type"] = "gif"
        if data.get("source") not in _KNOWN_SOURCES:
            data["source"] = None
        try:
            return Favorite(**data)
        except ValidationError as exc:
            logger.warning(f"Skipping unreadable favorite row {data.get('id')}: {exc.error_count()} error(s)")
            return None
