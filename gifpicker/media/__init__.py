"""Media downloads and clipboard access."""

from .clipboard import ClipboardManager
from .downloader import Downloader

__all__ = ["ClipboardManager", "Downloader"]
