"""
bot/actuator.py
────────────────────────────────────────────────────────
Исходящие вызовы Telegram Bot API через python-telegram-bot.

• get_chat_member / restrict_chat_member / delete_message — для демона
• get_chat_administrators / lift_restriction — для операторских команд

Каждый вызов — один HTTP-запрос без внутренних повторов. Ошибки Telegram
не пробрасываются: метод возвращает False / None, а решение о том,
можно ли ими пренебречь, принимает вызывающий код.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol

from telegram import Bot, ChatPermissions
from telegram.error import TelegramError

from core.types import MemberStatus, SubjectUser
from utils.logger import get_logger

LOGGER = get_logger(__name__)

# No messages, media, polls, invites, pin, topic management or info changes
DENY_ALL = ChatPermissions(
    can_send_messages=False,
    can_send_audios=False,
    can_send_documents=False,
    can_send_photos=False,
    can_send_videos=False,
    can_send_video_notes=False,
    can_send_voice_notes=False,
    can_send_polls=False,
    can_send_other_messages=False,
    can_add_web_page_previews=False,
    can_change_info=False,
    can_invite_users=False,
    can_pin_messages=False,
    can_manage_topics=False,
)

# What a verified member gets back; group-management rights stay denied
MEMBER_DEFAULTS = ChatPermissions(
    can_send_messages=True,
    can_send_audios=True,
    can_send_documents=True,
    can_send_photos=True,
    can_send_videos=True,
    can_send_video_notes=True,
    can_send_voice_notes=True,
    can_send_polls=True,
    can_send_other_messages=True,
    can_add_web_page_previews=True,
    can_change_info=False,
    can_invite_users=True,
    can_pin_messages=False,
    can_manage_topics=False,
)


class PlatformActuator(Protocol):
    async def get_chat_member(self, group_id: int, user_id: int) -> Optional[MemberStatus]: ...

    async def restrict_chat_member(
        self, group_id: int, user_id: int, permissions: ChatPermissions = DENY_ALL
    ) -> bool: ...

    async def delete_message(self, group_id: int, message_id: int) -> bool: ...

    async def get_chat_administrators(self, group_id: int) -> Optional[List[SubjectUser]]: ...


class TelegramActuator:
    def __init__(self, bot: Bot):
        self.bot = bot

    async def get_chat_member(self, group_id: int, user_id: int) -> Optional[MemberStatus]:
        """Current status straight from the platform, or None if unknown."""
        try:
            member = await self.bot.get_chat_member(chat_id=group_id, user_id=user_id)
        except TelegramError as exc:
            LOGGER.warning("getChatMember(%s, %s) failed: %s", group_id, user_id, exc)
            return None
        try:
            return MemberStatus(getattr(member.status, "value", member.status))
        except ValueError:
            LOGGER.warning("getChatMember(%s, %s): unknown status %r", group_id, user_id, member.status)
            return None

    async def restrict_chat_member(
        self,
        group_id: int,
        user_id: int,
        permissions: ChatPermissions = DENY_ALL,
        *,
        until_date: datetime | None = None,
    ) -> bool:
        try:
            ok = await self.bot.restrict_chat_member(
                chat_id=group_id,
                user_id=user_id,
                permissions=permissions,
                until_date=until_date,
                use_independent_chat_permissions=True,
            )
        except TelegramError as exc:
            LOGGER.warning("restrictChatMember(%s, %s) failed: %s", group_id, user_id, exc)
            return False
        return bool(ok)

    async def lift_restriction(self, group_id: int, user_id: int, *, grace_seconds: int = 100) -> bool:
        """Grant member permissions for a bounded period.

        After ``grace_seconds`` the restriction expires and the group's own
        default permissions apply to the user.
        """
        until = datetime.now(timezone.utc) + timedelta(seconds=grace_seconds)
        return await self.restrict_chat_member(group_id, user_id, MEMBER_DEFAULTS, until_date=until)

    async def delete_message(self, group_id: int, message_id: int) -> bool:
        try:
            ok = await self.bot.delete_message(chat_id=group_id, message_id=message_id)
        except TelegramError as exc:
            LOGGER.warning("deleteMessage(%s, %s) failed: %s", group_id, message_id, exc)
            return False
        return bool(ok)

    async def get_chat_administrators(self, group_id: int) -> Optional[List[SubjectUser]]:
        try:
            admins = await self.bot.get_chat_administrators(chat_id=group_id)
        except TelegramError as exc:
            LOGGER.warning("getChatAdministrators(%s) failed: %s", group_id, exc)
            return None
        return [
            SubjectUser(id=admin.user.id, username=admin.user.username, is_bot=admin.user.is_bot)
            for admin in admins
        ]


__all__ = ["DENY_ALL", "MEMBER_DEFAULTS", "PlatformActuator", "TelegramActuator"]
