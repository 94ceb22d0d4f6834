from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Set, Tuple, Union


class ChatKind(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"


class MemberStatus(str, Enum):
    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    KICKED = "kicked"


@dataclass(frozen=True, slots=True)
class SubjectUser:
    id: int
    username: str | None = None
    is_bot: bool = False

    @property
    def label(self) -> str:
        return f"@{self.username}" if self.username else str(self.id)


# ───────────────────────────────
# Events: decided once at ingestion, one class per kind
# ───────────────────────────────
@dataclass(frozen=True, slots=True)
class BotMembershipChanged:
    update_id: int
    group_id: int
    chat_kind: ChatKind
    status: MemberStatus


@dataclass(frozen=True, slots=True)
class UserMembershipChanged:
    update_id: int
    group_id: int
    chat_kind: ChatKind
    user: SubjectUser
    status: MemberStatus


@dataclass(frozen=True, slots=True)
class MessagePosted:
    update_id: int
    group_id: int
    message_id: int
    author_id: int


Event = Union[BotMembershipChanged, UserMembershipChanged, MessagePosted]


@dataclass(frozen=True, slots=True)
class IncomingUpdate:
    """One raw update from the stream; may carry zero events if unrecognised."""

    update_id: int
    events: Tuple[Event, ...] = ()


@dataclass(slots=True)
class ReconcileState:
    """Snapshot of the persisted stores, reloaded every loop iteration."""

    groups: Dict[int, bool] = field(default_factory=dict)
    ledger: Set[int] = field(default_factory=set)
    # a registry/ledger write gave up; the batch must not advance the cursor
    dirty: bool = False

    def deletes_enabled(self, group_id: int) -> bool:
        return self.groups.get(group_id, False)
