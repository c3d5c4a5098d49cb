"""Download and import media into the local media directory."""

from __future__ import annotations

import asyncio
import hashlib
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from gifpicker import logger
from gifpicker.errors import MediaError
from gifpicker.models import MediaType, media_type_for_extension
from gifpicker.search.klipy_client import DEFAULT_USER_AGENT

MEDIA_SUBDIRS: dict[MediaType, str] = {
    "gif": "gifs",
    "image": "images",
    "video": "videos",
}
TEMP_SUBDIR = "temp"


def _extension_from_url(url: str, default: str) -> str:
    suffix = Path(urlparse(url).path).suffix.lstrip(".").lower()
    return suffix or default


class Downloader:
    """Keeps GIFs, images and videos under ``media_dir`` in per-type folders."""

    def __init__(self, media_dir: Path, timeout: int = 30):
        self.media_dir = media_dir
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    def ensure_directories(self) -> None:
        try:
            for subdir in (*MEDIA_SUBDIRS.values(), TEMP_SUBDIR):
                (self.media_dir / subdir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MediaError(f"Failed to create media directory: {exc}") from exc

    def path_for(self, filename: str, media_type: MediaType = "gif") -> Path:
        return self.media_dir / MEDIA_SUBDIRS.get(media_type, "gifs") / filename

    async def download(self, url: str, filename: str, media_type: MediaType = "gif") -> Path:
        """Fetch ``url`` into the media folder; an existing file is reused."""
        self.ensure_directories()
        path = self.path_for(filename, media_type)
        if path.exists():
            return path
        await self._fetch_to(url, path)
        return path

    async def download_from_klipy(
        self,
        gif_url: str,
        mp4_url: Optional[str],
        slug: str,
    ) -> tuple[Path, Optional[Path]]:
        """GIF for the clipboard plus an optional MP4 for display."""
        gif_path = await self.download(gif_url, f"klipy_{slug}.{_extension_from_url(gif_url, 'gif')}", "gif")
        mp4_path: Optional[Path] = None
        if mp4_url:
            try:
                mp4_path = await self.download(mp4_url, f"klipy_{slug}.mp4", "video")
            except MediaError as exc:
                logger.warning(f"MP4 variant for {slug} not saved: {exc}")
        return gif_path, mp4_path

    async def download_temp(self, url: str, filename: str) -> Path:
        """Download into the temp folder, replacing any previous copy."""
        self.ensure_directories()
        path = self.media_dir / TEMP_SUBDIR / Path(filename).name
        await self._fetch_to(url, path)
        return path

    def import_local_file(self, source_path: Path) -> tuple[Path, MediaType]:
        """Copy a file into the media folder matching its extension."""
        if not source_path.is_file():
            raise MediaError(f"File not found: {source_path}")
        self.ensure_directories()
        media_type = media_type_for_extension(source_path.suffix)
        dest_path = self.path_for(source_path.name, media_type)
        try:
            shutil.copyfile(source_path, dest_path)
        except OSError as exc:
            raise MediaError(f"Failed to copy file: {exc}") from exc
        return dest_path, media_type

    @staticmethod
    def hash_filename(content: bytes, extension: str) -> str:
        return f"{hashlib.sha256(content).hexdigest()}.{extension}"

    @staticmethod
    def file_size(path: Path) -> Optional[int]:
        try:
            return path.stat().st_size
        except OSError:
            return None

    @staticmethod
    def delete_file(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise MediaError(f"Failed to delete file {path}: {exc}") from exc

    async def _fetch_to(self, url: str, path: Path) -> None:
        session = await self._ensure_session()
        logger.get_logger().api_request("GET", url, {})
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise MediaError(f"Failed to download file: HTTP {response.status}")
                content = await response.read()
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            raise MediaError(f"Failed to download file: {type(exc).__name__}") from exc

        partial = path.with_name(path.name + ".part")
        try:
            partial.write_bytes(content)
            partial.replace(path)
        except OSError as exc:
            raise MediaError(f"Failed to write file {path}: {exc}") from exc

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                self._session = aiohttp.ClientSession(
                    headers={"User-Agent": DEFAULT_USER_AGENT},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                )
            return self._session

    async def close(self) -> None:
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
