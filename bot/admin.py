"""
bot/admin.py
────────────────────────────────────────────────────────
Операторские команды (то же, что делает веб-панель администратора).

• unmute      — снять ограничение с подтверждённого пользователя
• admins      — администраторы группы и их вики-аккаунты
• groups      — текущий реестр групп
• set-delete  — включить / выключить удаление сообщений ограниченных
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from bot.actuator import TelegramActuator
from core.errors import GatekeeperError
from services.verification import VerificationOracle
from storage.interfaces import GatekeeperStore
from utils.logger import get_logger

LOGGER = get_logger(__name__)


class NotVerifiedError(GatekeeperError):
    """Refusing to lift a restriction for a user without a linked wiki account."""


@dataclass(frozen=True, slots=True)
class AdminEntry:
    telegram_id: int
    telegram_username: str | None
    wiki_username: str | None


async def unmute_user(
    *,
    actuator: TelegramActuator,
    oracle: VerificationOracle,
    store: GatekeeperStore,
    group_id: int,
    user_id: int,
    grace_seconds: int = 100,
) -> bool:
    if not oracle.is_verified(user_id):
        raise NotVerifiedError(f"user {user_id} is not verified")

    if not await actuator.lift_restriction(group_id, user_id, grace_seconds=grace_seconds):
        LOGGER.error("Failed to unmute user %s in chat %s.", user_id, group_id)
        return False

    store.ledger.remove(user_id)
    LOGGER.info("Unmuted user %s in chat %s.", user_id, group_id)
    return True


async def list_admins(
    *,
    actuator: TelegramActuator,
    oracle: VerificationOracle,
    group_id: int,
) -> Optional[List[AdminEntry]]:
    admins = await actuator.get_chat_administrators(group_id)
    if admins is None:
        return None

    entries: List[AdminEntry] = []
    for admin in admins:
        if admin.is_bot:
            continue
        record = oracle.lookup(admin.id)
        wiki = record.wiki_username if record is not None and record.is_verified else None
        entries.append(AdminEntry(telegram_id=admin.id, telegram_username=admin.username, wiki_username=wiki))
    return entries


def set_delete_flag(store: GatekeeperStore, group_id: int, enabled: bool) -> bool:
    """Returns False when the bot is not in that group."""
    if group_id not in store.groups.load():
        return False
    store.groups.upsert(group_id, enabled)
    LOGGER.info("Group %s: delete messages from restricted users = %s", group_id, enabled)
    return True


__all__ = ["AdminEntry", "NotVerifiedError", "list_admins", "set_delete_flag", "unmute_user"]
