from __future__ import annotations

MIGRATIONS: tuple[tuple[int, str], ...] = (
    (
        1,
        """
        -- groups the bot is a member of, with per-group moderation flags
        CREATE TABLE IF NOT EXISTS groups (
            group_id INTEGER PRIMARY KEY,
            delete_restricted BOOLEAN NOT NULL DEFAULT 0,
            updated_at DATETIME NOT NULL DEFAULT (CURRENT_TIMESTAMP)
        );

        -- users restricted by the daemon, pending platform confirmation
        CREATE TABLE IF NOT EXISTS restricted_users (
            user_id INTEGER PRIMARY KEY,
            added_at DATETIME NOT NULL DEFAULT (CURRENT_TIMESTAMP)
        );

        -- single-row ingestion cursor
        CREATE TABLE IF NOT EXISTS update_cursor (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            update_id INTEGER NOT NULL,
            updated_at DATETIME NOT NULL DEFAULT (CURRENT_TIMESTAMP)
        );
        """,
    ),
)

__all__ = ["MIGRATIONS"]
