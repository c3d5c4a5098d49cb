"""Clipboard access: plain text through pyperclip, files through platform tools."""

from __future__ import annotations

import mimetypes
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional

import pyperclip

from gifpicker.errors import ClipboardError

Runner = Callable[..., subprocess.CompletedProcess]


def _mime_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


class ClipboardManager:
    """Copies text or whole files so chat apps receive the animated original."""

    def __init__(
        self,
        platform: str = sys.platform,
        runner: Runner = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.platform = platform
        self._run = runner
        self._which = which

    def copy_text(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            raise ClipboardError(f"Failed to copy text to clipboard: {exc}") from exc

    def copy_file(self, path: Path) -> None:
        """Put the file itself on the clipboard; raises ``ClipboardError`` when unsupported."""
        if not path.is_file():
            raise ClipboardError(f"File not found: {path}")
        command, stdin_path = self._file_command(path)
        try:
            if stdin_path is not None:
                with open(stdin_path, "rb") as handle:
                    self._run(command, stdin=handle, check=True, capture_output=True)
            else:
                self._run(command, check=True, capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", "replace") if isinstance(exc.stderr, bytes) else exc.stderr
            raise ClipboardError(f"{command[0]} failed: {(stderr or '').strip()}") from exc
        except OSError as exc:
            raise ClipboardError(f"Failed to run {command[0]}: {exc}") from exc

    def _file_command(self, path: Path) -> tuple[list[str], Optional[Path]]:
        resolved = str(path.resolve())
        if self.platform == "darwin":
            escaped = resolved.replace("\\", "\\\\").replace('"', '\\"')
            script = f'set the clipboard to (POSIX file "{escaped}") as «class furl»'
            return ["osascript", "-e", script], None
        if self.platform.startswith("linux"):
            mime = _mime_type(path)
            if os.environ.get("WAYLAND_DISPLAY") and self._which("wl-copy"):
                return ["wl-copy", "--type", mime], path
            if self._which("xclip"):
                return ["xclip", "-selection", "clipboard", "-t", mime, "-i", resolved], None
            raise ClipboardError("No clipboard tool found; install wl-clipboard or xclip")
        if self.platform == "win32":
            literal = resolved.replace("'", "''")
            return ["powershell", "-NoProfile", "-Command", f"Set-Clipboard -Path '{literal}'"], None
        raise ClipboardError(f"Copying files is not supported on {self.platform}")
