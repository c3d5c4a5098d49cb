"""Error taxonomy shared across gifpicker."""

from __future__ import annotations


class GifpickerError(Exception):
    """Base class for recoverable gifpicker failures."""


class GifApiError(GifpickerError):
    """Remote GIF API request failed or returned an unusable payload."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class StoreError(GifpickerError):
    """Local database operation failed."""


class MediaError(GifpickerError):
    """Download, import or file removal failed."""


class ClipboardError(GifpickerError):
    """Clipboard could not be written."""
