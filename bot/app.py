"""
bot/app.py
────────────────────────────────────────────────────────
Долгоживущий демон: получение обновлений и сверка членства.

Одна итерация цикла строго последовательно:
  1. перечитать реестр групп и реестр ограничений (их правит и веб-панель);
  2. прочитать курсор;
  3. long-poll getUpdates с offset = курсор + 1;
  4. обработать пачку по возрастанию update_id;
  5. один раз сохранить курсор, если все записи в реестры удались;
     иначе пачка будет получена и применена заново.

Недоступность оракула верификации фатальна: пауза и выход с кодом 1,
перезапуск — забота внешнего супервизора.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Awaitable, Callable

from telegram import Bot

from bot.actuator import TelegramActuator
from bot.source import EventSource
from config.config import Settings
from core.errors import OracleUnavailableError, PersistenceError
from core.reconciler import Reconciler
from core.types import ReconcileState
from services.verification import SQLiteVerificationOracle
from storage import init_storage
from storage.interfaces import GatekeeperStore
from utils.logger import get_logger
from utils.retry import retry_write

LOGGER = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GatekeeperDaemon:
    def __init__(
        self,
        *,
        settings: Settings,
        store: GatekeeperStore,
        source: EventSource,
        reconciler: Reconciler,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.store = store
        self.source = source
        self.reconciler = reconciler
        self._sleep = sleep
        self.iterations = 0

    def load_state(self) -> ReconcileState:
        return ReconcileState(
            groups=dict(self.store.groups.load()),
            ledger=set(self.store.ledger.load()),
        )

    async def run_once(self) -> int | None:
        """Run one loop iteration; returns the stored cursor, if it advanced.

        OracleUnavailableError propagates to the caller untouched, so a batch
        interrupted by an oracle outage never advances the cursor.
        """
        self.iterations += 1
        try:
            state = self.load_state()
            cursor = self.store.cursor.load()
        except (OSError, sqlite3.Error) as exc:
            LOGGER.error("Failed to load persisted state: %s", exc)
            await self._sleep(self.settings.FETCH_RETRY_DELAY_SECONDS)
            return None

        prune_every = self.settings.LEDGER_PRUNE_EVERY
        if prune_every and self.iterations % prune_every == 0 and state.ledger:
            pruned = await self.reconciler.prune_ledger(state)
            LOGGER.debug("Ledger pruning removed %d entries", pruned)

        result = await self.source.fetch(cursor)
        if not result.ok:
            await self._sleep(self.settings.FETCH_RETRY_DELAY_SECONDS)
            return None
        if not result.updates:
            await self._sleep(self.settings.IDLE_DELAY_SECONDS)
            return None

        LOGGER.debug("Processing %d updates after cursor %s", len(result.updates), cursor)
        for update in result.updates:
            await self.reconciler.handle(update, state)

        if state.dirty:
            LOGGER.error("Registry or ledger write failed, batch after cursor %s will be reprocessed", cursor)
            await self._sleep(self.settings.FETCH_RETRY_DELAY_SECONDS)
            return None

        last = result.last_update_id
        if last is None or last <= cursor:
            return None
        try:
            await retry_write(
                lambda: self.store.cursor.store(last),
                what=f"cursor {last}",
                attempts=self.settings.WRITE_RETRY_ATTEMPTS,
                delay=self.settings.WRITE_RETRY_DELAY_SECONDS,
            )
        except PersistenceError as exc:
            # the batch will be fetched again; every handler is safe to re-run
            LOGGER.error("Cursor not saved, batch will be reprocessed: %s", exc)
            return None
        return last

    async def serve(self) -> int:
        """Loop until killed; returns a process exit code on fatal errors."""
        LOGGER.info("▶️  Gatekeeper daemon started (backend=%s)", self.settings.STORAGE_BACKEND)
        while True:
            try:
                await self.run_once()
            except OracleUnavailableError as exc:
                pause = self.settings.ORACLE_FAILURE_PAUSE_SECONDS
                LOGGER.error("Database connection error: %s", exc)
                LOGGER.info("Exiting in %s seconds; the supervisor restarts the daemon.", pause)
                await self._sleep(pause)
                return 1


async def run_daemon(settings: Settings) -> int:
    store = init_storage(settings)
    bot = Bot(settings.BOT_TOKEN)
    try:
        async with bot:
            daemon = GatekeeperDaemon(
                settings=settings,
                store=store,
                source=EventSource(bot, poll_timeout=settings.POLL_TIMEOUT_SECONDS),
                reconciler=Reconciler(
                    store=store,
                    actuator=TelegramActuator(bot),
                    oracle=SQLiteVerificationOracle(settings.VERIFICATIONS_DB_PATH),
                    write_attempts=settings.WRITE_RETRY_ATTEMPTS,
                    write_delay=settings.WRITE_RETRY_DELAY_SECONDS,
                ),
            )
            return await daemon.serve()
    finally:
        store.close()
        LOGGER.info("Daemon stopped.")


def run_polling(settings: Settings) -> int:
    return asyncio.run(run_daemon(settings))


__all__ = ["GatekeeperDaemon", "run_daemon", "run_polling"]
