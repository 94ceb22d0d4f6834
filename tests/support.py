"""In-memory stand-ins for the stores, the platform and the oracle."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.errors import OracleUnavailableError
from core.types import (
    BotMembershipChanged,
    ChatKind,
    IncomingUpdate,
    MemberStatus,
    MessagePosted,
    SubjectUser,
    UserMembershipChanged,
)
from services.verification import VerificationRecord


class MemoryGroups:
    def __init__(self, initial: Optional[Dict[int, bool]] = None):
        self.data: Dict[int, bool] = dict(initial or {})
        self.writes = 0

    def load(self) -> Dict[int, bool]:
        return dict(self.data)

    def upsert(self, group_id: int, delete_restricted: bool) -> None:
        self.writes += 1
        self.data[group_id] = delete_restricted

    def remove(self, group_id: int) -> None:
        self.writes += 1
        self.data.pop(group_id, None)


class MemoryLedger:
    def __init__(self, initial: Optional[Set[int]] = None):
        self.data: Set[int] = set(initial or ())
        self.writes = 0
        self.fail_writes = 0

    def load(self) -> Set[int]:
        return set(self.data)

    def add(self, user_id: int) -> None:
        self._maybe_fail()
        self.data.add(user_id)

    def remove(self, user_id: int) -> None:
        self._maybe_fail()
        self.data.discard(user_id)

    def _maybe_fail(self) -> None:
        self.writes += 1
        if self.fail_writes:
            self.fail_writes -= 1
            raise OSError("disk full")


class MemoryCursor:
    def __init__(self, value: int = 0):
        self.value = value
        self.history: List[int] = []
        self.fail_writes = 0

    def load(self) -> int:
        return self.value

    def store(self, value: int) -> None:
        if self.fail_writes:
            self.fail_writes -= 1
            raise OSError("read-only file system")
        self.history.append(value)
        self.value = max(self.value, value)


class MemoryStore:
    def __init__(
        self,
        groups: Optional[Dict[int, bool]] = None,
        ledger: Optional[Set[int]] = None,
        cursor: int = 0,
    ):
        self.groups = MemoryGroups(groups)
        self.ledger = MemoryLedger(ledger)
        self.cursor = MemoryCursor(cursor)
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeActuator:
    def __init__(
        self,
        *,
        member_status: Optional[MemberStatus] = MemberStatus.MEMBER,
        restrict_ok: bool = True,
        delete_ok: bool = True,
        lift_ok: bool = True,
        admins: Optional[List[SubjectUser]] = None,
    ):
        self.member_status = member_status
        self.restrict_ok = restrict_ok
        self.delete_ok = delete_ok
        self.lift_ok = lift_ok
        self.admins = admins
        self.calls: List[Tuple] = []

    async def get_chat_member(self, group_id: int, user_id: int) -> Optional[MemberStatus]:
        self.calls.append(("get_chat_member", group_id, user_id))
        return self.member_status

    async def restrict_chat_member(self, group_id: int, user_id: int, permissions=None, **_: object) -> bool:
        self.calls.append(("restrict", group_id, user_id))
        return self.restrict_ok

    async def lift_restriction(self, group_id: int, user_id: int, *, grace_seconds: int = 100) -> bool:
        self.calls.append(("lift", group_id, user_id, grace_seconds))
        return self.lift_ok

    async def delete_message(self, group_id: int, message_id: int) -> bool:
        self.calls.append(("delete", group_id, message_id))
        return self.delete_ok

    async def get_chat_administrators(self, group_id: int) -> Optional[List[SubjectUser]]:
        self.calls.append(("admins", group_id))
        return self.admins

    def named(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeOracle:
    def __init__(self, verified: Optional[Dict[int, str]] = None, *, available: bool = True):
        self.verified: Dict[int, str] = dict(verified or {})
        self.available = available
        self.lookups: List[int] = []

    def lookup(self, telegram_id: int) -> Optional[VerificationRecord]:
        self.lookups.append(telegram_id)
        if not self.available:
            raise OracleUnavailableError("connection refused")
        if telegram_id not in self.verified:
            return None
        return VerificationRecord(
            telegram_id=telegram_id,
            telegram_username=None,
            wiki_username=self.verified[telegram_id],
            wiki_id=1000 + telegram_id,
            verified_at=None,
        )

    def is_verified(self, telegram_id: int) -> bool:
        record = self.lookup(telegram_id)
        return record is not None and record.is_verified


# ───────────────────────────────
# Event builders
# ───────────────────────────────
GROUP = -100123


def bot_status(update_id: int, status: MemberStatus, *, group_id: int = GROUP,
               kind: ChatKind = ChatKind.SUPERGROUP) -> IncomingUpdate:
    event = BotMembershipChanged(update_id=update_id, group_id=group_id, chat_kind=kind, status=status)
    return IncomingUpdate(update_id=update_id, events=(event,))


def user_status(update_id: int, user_id: int, status: MemberStatus, *, group_id: int = GROUP,
                kind: ChatKind = ChatKind.SUPERGROUP, is_bot: bool = False,
                username: str | None = None) -> IncomingUpdate:
    event = UserMembershipChanged(
        update_id=update_id,
        group_id=group_id,
        chat_kind=kind,
        user=SubjectUser(id=user_id, username=username, is_bot=is_bot),
        status=status,
    )
    return IncomingUpdate(update_id=update_id, events=(event,))


def message(update_id: int, author_id: int, message_id: int, *, group_id: int = GROUP) -> IncomingUpdate:
    event = MessagePosted(update_id=update_id, group_id=group_id, message_id=message_id, author_id=author_id)
    return IncomingUpdate(update_id=update_id, events=(event,))
