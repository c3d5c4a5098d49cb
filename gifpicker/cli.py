#!/usr/bin/env python3
"""
cli.py - Entry point for gifpicker
Search Klipy, keep favorites, copy GIFs to the clipboard.
"""

try:
    import asyncio
    import sys
    import argparse
    import time
    from pathlib import Path
    from rich.console import Console
    from rich.prompt import Prompt
    from rich.table import Table
    from typing import Any, Optional
    import gifpicker as pkg
    from .app import AppContext, build_app, wipe_data
    from .config import DEFAULT_CONFIG_PATH, GifpickerConfig, load_config
    from .errors import GifpickerError, StoreError
    from .logger import GifpickerLogger, set_logger
    from .search.coordinator import SearchState
    from .search.selection import SelectionState
    from .search.types import FavoriteItem, ResultItem
except ImportError as e:
    print(f"Error: Missing required dependency: {e}")
    print("Please install required dependencies: pip install -e .")
    sys.exit(1)

console = Console()
CELL_WIDTH_PX = 8
_CLI_SESSION_START_MONOTONIC = time.monotonic()
COMMAND_HELP: tuple[tuple[str, str], ...] = (
    ("<text>", "Search Klipy (empty input shows favorites)"),
    ("/more", "Load the next page"),
    ("/trending", "Show trending GIFs"),
    ("/categories", "List categories"),
    ("/cat N", "Open category N"),
    ("/h /j /k /l", "Move the selection left, down, up, right"),
    ("/go [N]", "Copy the selected (or Nth) item to the clipboard"),
    ("/url [N]", "Copy the item's URL"),
    ("/fav [N]", "Add to or remove from favorites"),
    ("/del [N]", "Delete a favorite"),
    ("/import PATH", "Import a local file as a favorite"),
    ("/settings", "Show settings"),
    ("/set KEY VALUE", "Change a setting"),
    ("/home", "Clear the search and show favorites"),
    ("/quit", "Exit"),
)


def _ui_info(message: str) -> None:
    console.print(f"[cyan][INFO][/cyan] {message}")


def _ui_warn(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {message}")


def _ui_error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {message}")


def _ui_prompt(label: str, default: str | None = None) -> str:
    if default is None:
        return Prompt.ask(label)
    return Prompt.ask(label, default=default)


def _ui_prompt_yesno(label: str, *, default_yes: bool) -> bool:
    suffix = "[Y/n]" if default_yes else "[y/N]"
    choice = _ui_prompt(f"{label} {suffix}", default="Y" if default_yes else "N").strip().lower()
    if not choice:
        return default_yes
    if choice[0] == "y":
        return True
    if choice[0] == "n":
        return False
    return default_yes


def _reset_cli_session_timer() -> None:
    global _CLI_SESSION_START_MONOTONIC
    _CLI_SESSION_START_MONOTONIC = time.monotonic()


def _format_elapsed_runtime(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3_600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3_600:.1f}h"


def _ui_goodbye_with_elapsed() -> None:
    elapsed = max(0.0, time.monotonic() - _CLI_SESSION_START_MONOTONIC)
    _ui_info(f"Goodbye! Elapsed {_format_elapsed_runtime(elapsed)}")


def parse_setting_value(raw: str) -> Any:
    """Interpret ``/set`` values: booleans and integers, anything else stays a string."""
    lowered = raw.strip().lower()
    if lowered in {"true", "yes", "on"}:
        return True
    if lowered in {"false", "no", "off"}:
        return False
    try:
        return int(lowered)
    except ValueError:
        return raw.strip()


def describe_item(item: ResultItem) -> tuple[str, str, str]:
    """Title, source and size columns for the results table."""
    if isinstance(item, FavoriteItem):
        favorite = item.favorite
        title = favorite.description or favorite.filename
        source = f"★ {favorite.source or 'local'}"
        width, height = favorite.width, favorite.height
    else:
        gif = item.gif
        title = gif.title or gif.slug
        source = "klipy"
        width, height = gif.width, gif.height
    size = f"{width}x{height}" if width and height else ""
    return title, source, size


def render_results(state: SearchState, selection: SelectionState) -> None:
    if state.view == "categories":
        table = Table(title="Categories")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Category", style="cyan")
        for idx, category in enumerate(state.categories, start=1):
            table.add_row(str(idx), category.name)
        console.print(table)
    else:
        title = {
            "favorites": "Favorites",
            "trending": "Trending",
            "search": f"Results for '{state.query}'",
            "category": f"Category '{state.current_category.name if state.current_category else state.query}'",
        }.get(state.view, state.view)
        table = Table(title=title)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Title")
        table.add_column("Source", style="cyan")
        table.add_column("Size", style="green")
        for idx, item in enumerate(state.items):
            marker = ">" if idx == selection.index else ""
            item_title, source, size = describe_item(item)
            style = "bold reverse" if idx == selection.index else None
            table.add_row(f"{marker}{idx + 1}", item_title, source, size, style=style)
        console.print(table)

    if state.is_searching:
        _ui_info("Searching...")
    if state.is_loading_more:
        _ui_info("Loading more...")
    if state.error:
        _ui_error(state.error)
    if state.view in ("search", "category", "trending"):
        shown = len(state.items)
        total = f" of {state.total_count}" if state.total_count else ""
        more = " (/more for next page)" if state.has_more else ""
        console.print(f"[dim]{shown}{total} shown, page {state.page}{more}[/dim]")
    if state.suggestions:
        console.print(f"[dim]Related: {', '.join(state.suggestions)}[/dim]")


def render_settings(app: AppContext) -> None:
    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key, value in app.settings.model_dump(mode="json").items():
        table.add_row(key, str(value))
    console.print(table)


def show_command_help() -> None:
    for command, description in COMMAND_HELP:
        console.print(f"    [bold]{command:<16}[/bold] {description}")


class CliSession:
    """Interactive loop state: the app services plus the keyboard selection."""

    def __init__(self, app: AppContext):
        self.app = app
        self.selection = SelectionState()
        self.selection.set_viewport_width(console.width * CELL_WIDTH_PX)

    @property
    def state(self) -> SearchState:
        return self.app.coordinator.state

    def render(self) -> None:
        self.selection.sync(self.state.items)
        render_results(self.state, self.selection)

    async def handle_input(self, line: str) -> bool:
        """Run one line of input. Returns False when the session should end."""
        coordinator = self.app.coordinator
        text = line.strip()
        if not text.startswith("/"):
            await coordinator.set_query(text)
            await coordinator.flush()
            if text and coordinator.state.view == "search" and not coordinator.state.error:
                await coordinator.fetch_suggestions(text)
            return True

        command, _, argument = text.partition(" ")
        argument = argument.strip()
        command = command.lower()

        if command in ("/quit", "/q"):
            return False
        if command in ("/help", "/?"):
            show_command_help()
        elif command == "/more":
            await coordinator.load_more()
        elif command == "/trending":
            await coordinator.load_trending()
        elif command == "/categories":
            await coordinator.load_categories()
        elif command == "/cat":
            await self._open_category(argument)
        elif command == "/home":
            await coordinator.go_home()
        elif command in ("/h", "/j", "/k", "/l"):
            self._move(command)
        elif command == "/go":
            item = self._target(argument)
            if item is not None:
                copied = await self.app.actions.activate(item, self.app.settings)
                if copied and self.app.settings.close_after_selection:
                    return False
        elif command == "/url":
            item = self._target(argument)
            if item is not None:
                self.app.actions.copy_url(item)
        elif command == "/fav":
            item = self._target(argument)
            if item is not None and await self.app.actions.toggle_favorite(item):
                await self._refresh_favorites()
        elif command == "/del":
            await self._delete(argument)
        elif command == "/import":
            if not argument:
                _ui_warn("Usage: /import PATH")
            elif await self.app.actions.import_file(Path(argument).expanduser()) is not None:
                await self._refresh_favorites()
        elif command == "/settings":
            render_settings(self.app)
        elif command == "/set":
            self._set(argument)
        else:
            _ui_warn(f"Unknown command {command}. Type /help for a list.")
        return True

    def _move(self, command: str) -> None:
        self.selection.sync(self.state.items)
        {
            "/h": self.selection.move_left,
            "/j": self.selection.move_down,
            "/k": self.selection.move_up,
            "/l": self.selection.move_right,
        }[command]()

    def _target(self, argument: str) -> Optional[ResultItem]:
        """Item named by a 1-based index argument, or the current selection."""
        items = self.state.items
        self.selection.sync(items)
        if argument:
            try:
                position = int(argument)
            except ValueError:
                _ui_warn(f"Not a number: {argument}")
                return None
            if not 1 <= position <= len(items):
                _ui_warn(f"No item {position}")
                return None
            self.selection.select(position - 1)
        item = self.selection.current(items)
        if item is None:
            _ui_warn("Nothing selected. Use /h /j /k /l or give an item number.")
        return item

    async def _open_category(self, argument: str) -> None:
        categories = self.state.categories
        if not categories:
            _ui_warn("Load categories first with /categories")
            return
        try:
            position = int(argument)
        except ValueError:
            _ui_warn("Usage: /cat N")
            return
        if not 1 <= position <= len(categories):
            _ui_warn(f"No category {position}")
            return
        await self.app.coordinator.load_category(categories[position - 1])

    async def _delete(self, argument: str) -> None:
        item = self._target(argument)
        if item is None:
            return
        if not isinstance(item, FavoriteItem):
            _ui_warn("Only favorites can be deleted")
            return
        if await self.app.actions.delete_favorite(item.favorite):
            await self._refresh_favorites()

    async def _refresh_favorites(self) -> None:
        if self.state.view == "favorites":
            await self.app.coordinator.show_favorites()

    def _set(self, argument: str) -> None:
        key, _, raw_value = argument.partition(" ")
        if not key or not raw_value.strip():
            _ui_warn("Usage: /set KEY VALUE")
            return
        try:
            settings = self.app.update_setting(key, parse_setting_value(raw_value))
        except StoreError as exc:
            _ui_error(str(exc))
            return
        _ui_info(f"{key} = {getattr(settings, key)}")


async def run_interactive(config: GifpickerConfig) -> None:
    app = build_app(config)
    session = CliSession(app)
    try:
        await app.coordinator.show_favorites()
        while True:
            console.print()
            session.render()
            line = await asyncio.to_thread(_ui_prompt, "[bold]gifpicker[/bold]", "")
            if not await session.handle_input(line):
                break
    finally:
        await app.coordinator.drain()
        await app.close()


def show_help(parser: argparse.ArgumentParser) -> None:
    print(f"gifpicker v{getattr(pkg, '__version__', '0.0.0')} - Search Klipy and copy GIFs to the clipboard")
    print()
    parser.print_help()
    print()
    print("Commands inside the session:")
    show_command_help()


def resolve_config_path(args_config: Optional[str]) -> Path:
    if args_config:
        p = Path(args_config).expanduser()
        if p.is_dir():
            p = p / "config.toml"
        return p

    cwd_candidate = Path.cwd() / "config.toml"
    if cwd_candidate.exists():
        return cwd_candidate
    return DEFAULT_CONFIG_PATH


def main():
    """Entry point"""
    _reset_cli_session_timer()
    parser = argparse.ArgumentParser(add_help=False)
    for args, kwargs in (
        (("-h", "--help"), {"action": "store_true", "help": "Show help"}),
        (("-c", "--config"), {"metavar": "PATH", "help": "Path to config.toml (file or directory)"}),
        (("-d", "--debug"), {"action": "store_true", "help": "Debug mode with API calls, JSON responses, timestamps"}),
        (("--log-file",), {"metavar": "PATH", "help": "Also write log output to this file"}),
        (("--wipe-data",), {"action": "store_true", "help": "Delete the database and cached media, then exit"}),
    ):
        parser.add_argument(*args, **kwargs)

    try:
        args = parser.parse_args()
        if args.help:
            show_help(parser)
            sys.exit(0)

        config = load_config(resolve_config_path(args.config))
        log_file = Path(args.log_file).expanduser() if args.log_file else None
        with GifpickerLogger(log_file=log_file, debug=args.debug, quiet=not args.debug) as log:
            set_logger(log)
            if args.wipe_data:
                if not _ui_prompt_yesno(f"Delete all data in {config.paths.data_dir}?", default_yes=False):
                    _ui_info("Nothing deleted.")
                    sys.exit(0)
                removed = wipe_data(config)
                _ui_info(f"Removed {len(removed)} item(s).")
                sys.exit(0)

            asyncio.run(run_interactive(config))
        _ui_goodbye_with_elapsed()
        sys.exit(0)
    except KeyboardInterrupt:
        _ui_goodbye_with_elapsed()
        sys.exit(0)
    except GifpickerError as e:
        _ui_error(str(e))
        sys.exit(1)
    except Exception as e:
        _ui_error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
