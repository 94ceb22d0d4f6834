from __future__ import annotations

import asyncio
import sqlite3
from typing import Callable, TypeVar

from core.errors import PersistenceError
from utils.logger import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_WRITE_ERRORS = (OSError, sqlite3.Error)


async def retry_write(
    action: Callable[[], T],
    *,
    what: str,
    attempts: int = 3,
    delay: float = 1.0,
) -> T:
    """Run a blocking store write, retrying disk/database errors.

    Raises PersistenceError once ``attempts`` are exhausted.
    """
    last_exc: BaseException | None = None
    for attempt in range(1, max(1, attempts) + 1):
        try:
            return action()
        except RETRYABLE_WRITE_ERRORS as exc:
            last_exc = exc
            LOGGER.warning("Write %s failed (attempt %d/%d): %s", what, attempt, attempts, exc)
            if attempt < attempts:
                await asyncio.sleep(delay)
    raise PersistenceError(f"{what}: {last_exc}") from last_exc


__all__ = ["retry_write", "RETRYABLE_WRITE_ERRORS"]
