from __future__ import annotations

import contextlib
import sqlite3
from threading import RLock
from typing import Dict, Iterator, Set

from .interfaces import CursorStore, GroupRegistryStore, RestrictionLedgerStore


class Storage:
    """
    Entry point for the SQLite-backed stores. Keeps a single connection
    guarded by an RLock; every write is its own transaction, so other
    processes sharing the database file see either the old or the new row.
    """

    def __init__(self, *, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = RLock()
        self.groups: GroupRegistryStore = _GroupRegistryStore(conn, self._lock)
        self.ledger: RestrictionLedgerStore = _RestrictionLedgerStore(conn, self._lock)
        self.cursor: CursorStore = _CursorStore(conn, self._lock)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class _SQLiteRepoBase:
    def __init__(self, conn: sqlite3.Connection, lock: RLock):
        self._conn = conn
        self._lock = lock

    @contextlib.contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            cur = self._conn.cursor()
            try:
                yield cur
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()


class _GroupRegistryStore(_SQLiteRepoBase, GroupRegistryStore):
    def load(self) -> Dict[int, bool]:
        with self._cursor() as cur:
            cur.execute("SELECT group_id, delete_restricted FROM groups ORDER BY group_id ASC")
            rows = cur.fetchall()
        return {int(row["group_id"]): bool(row["delete_restricted"]) for row in rows}

    def upsert(self, group_id: int, delete_restricted: bool) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO groups(group_id, delete_restricted)
                VALUES (?, ?)
                ON CONFLICT(group_id) DO UPDATE SET
                    delete_restricted = excluded.delete_restricted,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (group_id, int(delete_restricted)),
            )

    def remove(self, group_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM groups WHERE group_id = ?", (group_id,))


class _RestrictionLedgerStore(_SQLiteRepoBase, RestrictionLedgerStore):
    def load(self) -> Set[int]:
        with self._cursor() as cur:
            cur.execute("SELECT user_id FROM restricted_users")
            rows = cur.fetchall()
        return {int(row["user_id"]) for row in rows}

    def add(self, user_id: int) -> None:
        with self._cursor() as cur:
            cur.execute(
                "INSERT OR IGNORE INTO restricted_users(user_id) VALUES (?)",
                (user_id,),
            )

    def remove(self, user_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM restricted_users WHERE user_id = ?", (user_id,))


class _CursorStore(_SQLiteRepoBase, CursorStore):
    def load(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT update_id FROM update_cursor WHERE id = 1")
            row = cur.fetchone()
        if not row:
            return 0
        try:
            return max(0, int(row["update_id"]))
        except (TypeError, ValueError):
            return 0

    def store(self, value: int) -> None:
        # max() keeps the cursor non-decreasing even if a stale batch is replayed
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO update_cursor(id, update_id)
                VALUES (1, ?)
                ON CONFLICT(id) DO UPDATE SET
                    update_id = max(update_id, excluded.update_id),
                    updated_at = CURRENT_TIMESTAMP
                """,
                (int(value),),
            )
