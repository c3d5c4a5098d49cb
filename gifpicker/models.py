"""Persisted records: favorites and user settings."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

MediaType = Literal["gif", "image", "video"]
Source = Literal["klipy", "giphy", "tenor", "local", "upload"]
Theme = Literal["light", "dark", "system"]
ClipboardMode = Literal["file", "url"]

_EXTENSION_MEDIA_TYPES: dict[str, MediaType] = {
    "gif": "gif",
    "png": "image",
    "jpg": "image",
    "jpeg": "image",
    "webp": "image",
    "mp4": "video",
    "webm": "video",
    "mov": "video",
}


def media_type_for_extension(extension: str) -> MediaType:
    """Map a file extension to a media type; unknown extensions count as GIFs."""
    return _EXTENSION_MEDIA_TYPES.get(extension.lower().lstrip("."), "gif")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Favorite(BaseModel):
    """A saved GIF, image or video with at least one renderable reference."""

    id: Optional[int] = None
    filename: str
    filepath: Optional[str] = None
    mp4_filepath: Optional[str] = None
    gif_url: Optional[str] = None
    media_type: MediaType = "gif"
    source: Optional[Source] = None
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    custom_tags: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)
    last_used: Optional[datetime] = None
    use_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _require_reference(self) -> "Favorite":
        if not (self.filepath or self.mp4_filepath or self.gif_url):
            raise ValueError("favorite needs a filepath, mp4_filepath or gif_url")
        return self

    @property
    def has_local_file(self) -> bool:
        return bool(self.filepath)

    @property
    def share_url(self) -> Optional[str]:
        """URL to copy when the file itself cannot be used."""
        return self.gif_url or self.source_url


def _default_hotkey() -> str:
    return "Option+Cmd+G" if sys.platform == "darwin" else "Ctrl+Shift+G"


class Settings(BaseModel):
    """Singleton user preferences stored in the settings key-value table."""

    hotkey: str = Field(default_factory=_default_hotkey)
    window_width: int = 800
    window_height: int = 600
    max_item_width: int = 400
    close_after_selection: bool = True
    launch_at_startup: bool = False
    theme: Theme = "system"
    clipboard_mode: ClipboardMode = "file"
    show_ads: bool = True
