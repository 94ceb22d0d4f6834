from __future__ import annotations

import sqlite3
from pathlib import Path

from config.config import Settings

from .flatfile import FileStorage
from .interfaces import GatekeeperStore
from .migrations import MIGRATIONS
from .sqlite import Storage

# Other processes (the web admin panel) may hold the database briefly
BUSY_TIMEOUT_SECONDS = 10.0


def init_storage(settings: Settings) -> GatekeeperStore:
    """Open the backend selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "files":
        return FileStorage(data_dir=settings.DATA_DIR)
    return open_sqlite_storage(settings.STORAGE_DB_PATH)


def open_sqlite_storage(db_path: Path) -> Storage:
    """
    Open the SQLite store. Ensures migrations are applied and the connection
    is configured for concurrent access from other processes.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(
        path,
        timeout=BUSY_TIMEOUT_SECONDS,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row

    with conn:
        conn.execute("PRAGMA journal_mode=WAL;")

    _apply_migrations(conn)
    return Storage(conn=conn)


def _apply_migrations(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY)")

    applied = {
        row["version"]
        for row in conn.execute("SELECT version FROM schema_migrations ORDER BY version")
    }

    for version, sql in MIGRATIONS:
        if version in applied:
            continue

        with conn:
            conn.executescript(sql)
            conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))
