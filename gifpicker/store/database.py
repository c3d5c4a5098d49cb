"""SQLite connection and forward-only schema migrations."""

from __future__ import annotations

import re
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from gifpicker import logger
from gifpicker.errors import StoreError

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
_MIGRATION_NAME = re.compile(r"^(\d+)_([\w-]+)\.sql$")


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    path: Path

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> List[Migration]:
    """Return ``NNN_name.sql`` scripts in version order."""
    migrations = []
    for path in directory.glob("*.sql"):
        match = _MIGRATION_NAME.match(path.name)
        if not match:
            continue
        migrations.append(Migration(int(match.group(1)), path.stem, path))
    migrations.sort(key=lambda m: m.version)
    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise StoreError(f"Duplicate migration versions in {directory}")
    return migrations


class Database:
    """Single SQLite connection shared across threads behind a lock."""

    def __init__(self, db_path: Path | str, migrations_dir: Path = MIGRATIONS_DIR):
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self.migrations_dir = migrations_dir
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open database {db_path}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialized access; commits on success, rolls back on error."""
        with self._lock:
            with self.conn:
                yield self.conn

    def run_migrations(self) -> List[str]:
        """Apply every migration not yet recorded in ``_migrations``. Returns applied names."""
        applied: List[str] = []
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS _migrations (
                            version INTEGER PRIMARY KEY,
                            name TEXT NOT NULL,
                            applied_at TEXT NOT NULL
                        )
                        """
                    )
                done = {row["version"] for row in self.conn.execute("SELECT version FROM _migrations")}
                for migration in discover_migrations(self.migrations_dir):
                    if migration.version in done:
                        continue
                    self._apply(migration)
                    applied.append(migration.name)
                    logger.get_logger().debug(f"Applied migration: {migration.name}")
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to run migrations: {exc}") from exc
        return applied

    def _apply(self, migration: Migration) -> None:
        applied_at = datetime.now(timezone.utc).isoformat()
        script = (
            "BEGIN;\n"
            f"{migration.read_sql()}\n"
            f"INSERT INTO _migrations (version, name, applied_at) "
            f"VALUES ({migration.version}, '{migration.name}', '{applied_at}');\n"
            "COMMIT;"
        )
        try:
            self.conn.executescript(script)
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StoreError(f"Failed to run migration {migration.name}: {exc}") from exc

    def applied_versions(self) -> List[int]:
        with self._lock:
            rows = self.conn.execute("SELECT version FROM _migrations ORDER BY version").fetchall()
        return [row["version"] for row in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()


def open_database(db_path: Path | str, migrations_dir: Optional[Path] = None) -> Database:
    """Open the database and bring its schema up to date."""
    database = Database(db_path, migrations_dir or MIGRATIONS_DIR)
    database.run_migrations()
    return database
