from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from telegram import Bot
from telegram.error import TelegramError

from core.events import ALLOWED_UPDATES, parse_update
from core.types import IncomingUpdate
from utils.logger import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of one long-poll call.

    ``ok=False`` means transport or API failure; the caller waits a fixed
    interval before polling again. An ok result with no updates is a normal
    poll that simply timed out.
    """

    updates: Tuple[IncomingUpdate, ...] = ()
    ok: bool = True

    @property
    def last_update_id(self) -> int | None:
        if not self.updates:
            return None
        return max(update.update_id for update in self.updates)


class EventSource:
    def __init__(self, bot: Bot, *, poll_timeout: int = 30):
        self.bot = bot
        self.poll_timeout = poll_timeout

    async def fetch(self, cursor: int) -> FetchResult:
        """Block until updates newer than ``cursor`` arrive or the wait elapses."""
        try:
            raw_updates = await self.bot.get_updates(
                offset=cursor + 1,
                timeout=self.poll_timeout,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramError as exc:
            LOGGER.error("Failed to fetch updates from Telegram API: %s", exc)
            return FetchResult(ok=False)

        parsed: List[IncomingUpdate] = []
        for raw in raw_updates:
            update = parse_update(raw)
            if update is None:
                continue
            if update.update_id <= cursor:
                LOGGER.debug("Dropping already processed update %s (cursor=%s)", update.update_id, cursor)
                continue
            parsed.append(update)

        parsed.sort(key=lambda update: update.update_id)
        return FetchResult(updates=tuple(parsed))


__all__ = ["EventSource", "FetchResult"]
