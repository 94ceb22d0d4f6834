"""
services/verification.py
────────────────────────────────────────────────────────
Оракул верификации: «связан ли этот пользователь Telegram с вики-аккаунтом?»

• Хранилище принадлежит веб-компоненту; демон только читает его.
• Запись с непустым w_id считается подтверждённой.
• Любая ошибка доступа → OracleUnavailableError (демон не угадывает).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from core.errors import OracleUnavailableError
from utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class VerificationRecord:
    telegram_id: int
    telegram_username: str | None
    wiki_username: str | None
    wiki_id: int | None
    verified_at: datetime | None

    @property
    def is_verified(self) -> bool:
        return self.wiki_id is not None


class VerificationOracle(Protocol):
    def lookup(self, telegram_id: int) -> Optional[VerificationRecord]: ...

    def is_verified(self, telegram_id: int) -> bool: ...


class SQLiteVerificationOracle:
    """Read-only lookups against the `verifications` table.

    A fresh read-only connection is opened per query, so the web flow can
    rewrite rows at any time and a missing database file is reported as an
    outage rather than silently created.
    """

    def __init__(self, db_path: Path, *, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def lookup(self, telegram_id: int) -> Optional[VerificationRecord]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    """
                    SELECT t_id, t_date, t_username, w_username, w_id
                    FROM verifications
                    WHERE t_id = ?
                    """,
                    (telegram_id,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise OracleUnavailableError(f"verification store {self.db_path}: {exc}") from exc

        if row is None:
            return None
        return VerificationRecord(
            telegram_id=int(row["t_id"]),
            telegram_username=row["t_username"],
            wiki_username=row["w_username"],
            wiki_id=int(row["w_id"]) if row["w_id"] is not None else None,
            verified_at=_parse_auth_date(row["t_date"]),
        )

    def is_verified(self, telegram_id: int) -> bool:
        record = self.lookup(telegram_id)
        return record is not None and record.is_verified


def _parse_auth_date(raw: object) -> datetime | None:
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


__all__ = ["VerificationOracle", "VerificationRecord", "SQLiteVerificationOracle"]
