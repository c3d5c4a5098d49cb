"""
Minimal logging context for gifpicker.
Single place to control all output: screen + file, with flush.
"""
import json
import os
from pathlib import Path
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.text import Text

_PREFIX_STYLES = {
    "[INFO]": "cyan",
    "[WARNING]": "yellow",
    "[ERROR]": "red",
    "[OK]": "green",
}
_TOAST_PREFIXES = {
    "success": "[OK] ",
    "info": "[INFO] ",
    "error": "[ERROR] ",
}


class GifpickerLogger:
    """Minimal logger: print to screen + file, always flush"""

    def __init__(self, log_file: Optional[Path] = None, debug: bool = False, quiet: bool = False):
        self.log_file = log_file
        self._file_handle = None
        self._start_time = datetime.now()
        self.debug_mode = debug
        self._console = Console(highlight=False)
        self._status_active = False

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_file, 'w', buffering=1, encoding='utf-8')

        if not quiet:
            from gifpicker import __version__
            self.log(f"({self._start_time.strftime('%H:%M:%S')}  Started gifpicker {__version__})")

    def _screen_text(self, output: str) -> Text:
        """Render a log line for the screen; brackets stay literal, known prefixes get colour."""
        text = Text(output)
        for prefix, style in _PREFIX_STYLES.items():
            start = output.find(prefix)
            if start != -1:
                text.stylize(style, start, start + len(prefix))
        if "[DEBUG]" in output:
            text.stylize("grey50")
        return text

    def log(self, msg: str, prefix: str = ""):
        """Log to screen and file"""
        output = f"{prefix}{msg}" if prefix else msg

        if self._status_active:
            print("\r" + " " * self._console.width + "\r", end="", flush=True)
            self._status_active = False
        self._console.print(self._screen_text(output))

        if self._file_handle:
            self._file_handle.write(output + "\n")
            self._file_handle.flush()
            os.fsync(self._file_handle.fileno())

    def status(self, msg: str):
        """Inline status line, overwritten by the next message"""
        print(f"\r{msg}", end="", flush=True)
        self._status_active = True

    def info(self, msg: str):
        """Info message"""
        self.log(msg)

    def warning(self, msg: str):
        """Warning message"""
        self.log(msg, "[WARNING] ")

    def error(self, msg: str):
        """Error message"""
        self.log(msg, "[ERROR] ")

    def toast(self, msg: str, kind: str = "info"):
        """Transient user notification (success, info or error)."""
        self.log(msg, _TOAST_PREFIXES.get(kind, "[INFO] "))

    def debug(self, msg: str):
        """Debug message (only shown in debug mode)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(msg, f"[{timestamp}] [DEBUG] ")

    def api_request(self, method: str, url: str, params: dict):
        """Log API request (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Request: {method} {url}", f"[{timestamp}] ")
            if params:
                self.log(f"  Params: {json.dumps(params, indent=2)}", f"[{timestamp}] ")

    def api_response(self, status: int, data: object, elapsed_ms: float):
        """Log API response (debug mode only)"""
        if self.debug_mode:
            timestamp = datetime.now().strftime('%H:%M:%S.%f')[:-3]
            self.log(f"API Response ({elapsed_ms:.0f}ms): Status {status}", f"[{timestamp}] ")
            if data:
                data_str = json.dumps(data, indent=2)
                if len(data_str) > 5000:
                    data_str = data_str[:5000] + "\n  ... (truncated)"
                self.log(f"  Data: {data_str}", f"[{timestamp}] ")

    def api_failed(self, service: str, detail: str):
        """Log API failure"""
        self.log(f"{service} request failed: {detail}", "[ERROR] ")

    def close(self):
        """Close file handle with goodbye message"""
        if self._file_handle:
            end_time = datetime.now()
            elapsed = end_time - self._start_time
            goodbye = f"({end_time.strftime('%H:%M:%S')}  Ended session, elapsed {elapsed.total_seconds():.1f}s)"
            self.log(goodbye)
            self._file_handle.close()
            self._file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


# Global instance (set by the CLI)
_logger: Optional[GifpickerLogger] = None

def set_logger(logger: GifpickerLogger):
    """Set global logger instance"""
    global _logger
    _logger = logger

def get_logger() -> GifpickerLogger:
    """Get global logger instance"""
    global _logger
    if _logger is None:
        # Fallback: create stdout-only logger
        _logger = GifpickerLogger(quiet=True)
    return _logger

# Convenience functions
def log(msg: str):
    get_logger().log(msg)

def info(msg: str):
    get_logger().info(msg)

def warning(msg: str):
    get_logger().warning(msg)

def error(msg: str):
    get_logger().error(msg)

def toast(msg: str, kind: str = "info"):
    get_logger().toast(msg, kind)
