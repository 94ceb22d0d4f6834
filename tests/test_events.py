import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace as NS

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from telegram import Chat, ChatMemberLeft, ChatMemberMember, ChatMemberUpdated, Message, Update, User

from core.events import parse_update
from core.types import (
    BotMembershipChanged,
    ChatKind,
    MemberStatus,
    MessagePosted,
    SubjectUser,
    UserMembershipChanged,
)


def chat(chat_id=-100123, kind="supergroup"):
    return NS(id=chat_id, type=kind)


class ParseUpdateTest(unittest.TestCase):
    def test_my_chat_member(self) -> None:
        raw = NS(update_id=7, my_chat_member=NS(chat=chat(), new_chat_member=NS(status="administrator")))
        parsed = parse_update(raw)
        self.assertEqual(parsed.update_id, 7)
        self.assertEqual(
            parsed.events,
            (BotMembershipChanged(7, -100123, ChatKind.SUPERGROUP, MemberStatus.ADMINISTRATOR),),
        )

    def test_chat_member(self) -> None:
        user = NS(id=42, username="newbie", is_bot=False)
        raw = NS(update_id=8, chat_member=NS(chat=chat(), new_chat_member=NS(status="member", user=user)))
        (event,) = parse_update(raw).events
        self.assertIsInstance(event, UserMembershipChanged)
        self.assertEqual(event.user, SubjectUser(42, "newbie", False))
        self.assertEqual(event.status, MemberStatus.MEMBER)

    def test_message(self) -> None:
        raw = NS(update_id=9, message=NS(message_id=555, chat=chat(), from_user=NS(id=7)))
        self.assertEqual(parse_update(raw).events, (MessagePosted(9, -100123, 555, 7),))

    def test_malformed_payloads_yield_no_events(self) -> None:
        cases = (
            NS(update_id=1, message=NS(message_id=5, chat=chat(), from_user=None)),
            NS(update_id=2, chat_member=NS(chat=chat(), new_chat_member=NS(status="member", user=None))),
            NS(update_id=3, my_chat_member=NS(chat=chat(kind="galaxy"), new_chat_member=NS(status="member"))),
            NS(update_id=4, my_chat_member=NS(chat=chat(), new_chat_member=NS(status="banished"))),
            NS(update_id=5, edited_message=NS()),
        )
        for raw in cases:
            with self.subTest(update_id=raw.update_id):
                parsed = parse_update(raw)
                self.assertEqual(parsed.update_id, raw.update_id)
                self.assertEqual(parsed.events, ())

    def test_missing_update_id(self) -> None:
        self.assertIsNone(parse_update(NS(message=None)))
        self.assertIsNone(parse_update(NS(update_id="12")))

    def test_real_telegram_objects(self) -> None:
        group = Chat(id=-100123, type="supergroup")
        user = User(id=42, first_name="Ann", is_bot=False, username="ann")
        admin = User(id=1, first_name="Root", is_bot=False)
        joined = ChatMemberUpdated(
            chat=group,
            from_user=admin,
            date=datetime(2024, 5, 1, tzinfo=timezone.utc),
            old_chat_member=ChatMemberLeft(user=user),
            new_chat_member=ChatMemberMember(user=user),
        )
        posted = Message(
            message_id=555,
            date=datetime(2024, 5, 1, tzinfo=timezone.utc),
            chat=group,
            from_user=user,
            text="hi",
        )

        (join_event,) = parse_update(Update(update_id=100, chat_member=joined)).events
        (message_event,) = parse_update(Update(update_id=101, message=posted)).events

        self.assertEqual(join_event.status, MemberStatus.MEMBER)
        self.assertEqual(join_event.chat_kind, ChatKind.SUPERGROUP)
        self.assertEqual(join_event.user, SubjectUser(42, "ann", False))
        self.assertEqual(message_event, MessagePosted(101, -100123, 555, 42))


if __name__ == "__main__":
    unittest.main()
