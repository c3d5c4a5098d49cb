"""
config.py - Configuration model for gifpicker
"""

from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
import sys

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib

console = Console()

DEFAULT_DATA_DIR = Path.home() / ".gifpicker"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.toml"


class APIKeysConfig(BaseModel):
    klipy_key: str = ""
    klipy_key_no_ads: str = ""

    def key_for(self, show_ads: bool) -> str:
        """Pick the Klipy app key matching the ad preference."""
        if show_ads:
            return self.klipy_key or self.klipy_key_no_ads
        return self.klipy_key_no_ads or self.klipy_key


class PathsConfig(BaseModel):
    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Directory holding the SQLite database and cached media",
    )

    @property
    def database_path(self) -> Path:
        return self.data_dir / "gifpicker.db"

    @property
    def media_dir(self) -> Path:
        return self.data_dir / "media"


class SearchConfig(BaseModel):
    """Timing and paging parameters for the search coordinator."""

    page_size: int = Field(default=25, gt=0, description="GIFs requested per page")
    debounce_ms: int = Field(default=300, ge=0, description="Quiet period before a typed query is searched")
    watchdog_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound before a stuck loading flag is force-cleared",
    )
    autocomplete_debounce_ms: int = Field(default=150, ge=0)
    autocomplete_limit: int = Field(default=8, gt=0)
    suggestions_limit: int = Field(default=15, gt=0)


class HTTPConfig(BaseModel):
    timeout: int = Field(default=10, gt=0, description="Total request timeout in seconds")


class GifpickerConfig(BaseModel):
    api_keys: APIKeysConfig = Field(default_factory=APIKeysConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    config_path: Optional[Path] = None


def load_config(config_path: Path) -> GifpickerConfig:
    """Load configuration from TOML file"""

    if not config_path.exists():
        console.print(f"[red][ERROR][/red] Configuration file not found: {config_path}")
        console.print("Please create config.toml with your Klipy API key")
        sys.exit(1)

    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)

        paths_data = dict(config_data.get("paths", {}))
        if "data_dir" in paths_data:
            paths_data["data_dir"] = Path(paths_data["data_dir"]).expanduser()

        config = GifpickerConfig(
            api_keys=APIKeysConfig(**config_data.get("api_keys", {})),
            paths=PathsConfig(**paths_data),
            search=SearchConfig(**config_data.get("search", {})),
            http=HTTPConfig(**config_data.get("http", {})),
            config_path=config_path,
        )

        if not (config.api_keys.klipy_key or config.api_keys.klipy_key_no_ads):
            console.print("[yellow][WARNING][/yellow] No Klipy API key configured; remote search will fail")

        return config

    except (OSError, tomllib.TOMLDecodeError, ValidationError, TypeError) as e:
        console.print(f"[red][ERROR][/red] Error loading configuration: {e}")
        sys.exit(1)
