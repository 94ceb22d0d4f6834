"""
core/events.py
────────────────────────────────────────────────────────
Разбор обновлений Telegram в типизированные события.

• my_chat_member → BotMembershipChanged
• chat_member    → UserMembershipChanged
• message        → MessagePosted

Вид события определяется один раз здесь; обработчики получают узкий тип.
Обновление с неполными полями не даёт событий, но его update_id всё равно
продвигает курсор.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Type, TypeVar

from core.types import (
    BotMembershipChanged,
    ChatKind,
    Event,
    IncomingUpdate,
    MemberStatus,
    MessagePosted,
    SubjectUser,
    UserMembershipChanged,
)
from utils.logger import get_logger

LOGGER = get_logger(__name__)

ALLOWED_UPDATES = ["chat_member", "message", "my_chat_member"]

E = TypeVar("E", bound=Enum)


def _as_enum(enum_cls: Type[E], raw: Any) -> Optional[E]:
    if raw is None:
        return None
    try:
        return enum_cls(getattr(raw, "value", raw))
    except ValueError:
        return None


def _as_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None
    return raw


def _parse_bot_membership(update_id: int, payload: Any) -> Optional[BotMembershipChanged]:
    chat = getattr(payload, "chat", None)
    member = getattr(payload, "new_chat_member", None)
    group_id = _as_int(getattr(chat, "id", None))
    kind = _as_enum(ChatKind, getattr(chat, "type", None))
    status = _as_enum(MemberStatus, getattr(member, "status", None))
    if group_id is None or kind is None or status is None:
        return None
    return BotMembershipChanged(update_id=update_id, group_id=group_id, chat_kind=kind, status=status)


def _parse_user_membership(update_id: int, payload: Any) -> Optional[UserMembershipChanged]:
    chat = getattr(payload, "chat", None)
    member = getattr(payload, "new_chat_member", None)
    user = getattr(member, "user", None)
    group_id = _as_int(getattr(chat, "id", None))
    kind = _as_enum(ChatKind, getattr(chat, "type", None))
    status = _as_enum(MemberStatus, getattr(member, "status", None))
    user_id = _as_int(getattr(user, "id", None))
    if group_id is None or kind is None or status is None or user_id is None:
        return None
    subject = SubjectUser(
        id=user_id,
        username=getattr(user, "username", None),
        is_bot=bool(getattr(user, "is_bot", False)),
    )
    return UserMembershipChanged(
        update_id=update_id,
        group_id=group_id,
        chat_kind=kind,
        user=subject,
        status=status,
    )


def _parse_message(update_id: int, payload: Any) -> Optional[MessagePosted]:
    chat = getattr(payload, "chat", None)
    author = getattr(payload, "from_user", None)
    group_id = _as_int(getattr(chat, "id", None))
    message_id = _as_int(getattr(payload, "message_id", None))
    author_id = _as_int(getattr(author, "id", None))
    if group_id is None or message_id is None or author_id is None:
        return None
    return MessagePosted(update_id=update_id, group_id=group_id, message_id=message_id, author_id=author_id)


def parse_update(update: Any) -> Optional[IncomingUpdate]:
    """Convert a telegram.Update (or anything shaped like one).

    Returns None only when the update has no usable ``update_id``; such an
    update cannot be ordered or acknowledged.
    """
    update_id = _as_int(getattr(update, "update_id", None))
    if update_id is None:
        LOGGER.debug("Skipping update without update_id: %r", update)
        return None

    events: List[Event] = []
    parsers = (
        ("my_chat_member", _parse_bot_membership),
        ("chat_member", _parse_user_membership),
        ("message", _parse_message),
    )
    for attr, parser in parsers:
        payload = getattr(update, attr, None)
        if payload is None:
            continue
        event = parser(update_id, payload)
        if event is None:
            LOGGER.debug("Update %s: malformed %s payload, skipped", update_id, attr)
            continue
        events.append(event)

    if not events:
        LOGGER.debug("Update %s matched no handler", update_id)
    return IncomingUpdate(update_id=update_id, events=tuple(events))


__all__ = ["ALLOWED_UPDATES", "parse_update"]
