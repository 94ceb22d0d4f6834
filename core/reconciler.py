"""
core/reconciler.py
────────────────────────────────────────────────────────
Машина состояний «вступил → ограничен → подтверждён» для каждого события.

• BotMembershipChanged  → реестр групп (добавить / удалить)
• MessagePosted         → удалить сообщение ограниченного пользователя,
                          если в группе включено удаление
• UserMembershipChanged → status=restricted: снять отметку в реестре
                          ограничений; status=member: проверка допуска

Все обработчики идемпотентны: после падения демона пачка событий
обрабатывается заново, и повтор не меняет итоговое состояние.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from core.errors import PersistenceError
from core.types import (
    BotMembershipChanged,
    ChatKind,
    Event,
    IncomingUpdate,
    MemberStatus,
    MessagePosted,
    ReconcileState,
    UserMembershipChanged,
)
from storage.interfaces import GatekeeperStore
from utils.logger import get_logger
from utils.retry import retry_write

if TYPE_CHECKING:
    from bot.actuator import PlatformActuator
    from services.verification import VerificationOracle

LOGGER = get_logger(__name__)

BOT_PRESENT = {MemberStatus.MEMBER, MemberStatus.ADMINISTRATOR}
BOT_GONE = {MemberStatus.KICKED, MemberStatus.LEFT}


class Reconciler:
    """
    Applies one event at a time to the stores and the platform.

    The ``state`` snapshot passed to every handler is the one loaded at the
    start of the loop iteration; handlers keep it in sync with their writes
    so later events of the same batch see the effect of earlier ones.
    """

    def __init__(
        self,
        *,
        store: GatekeeperStore,
        actuator: "PlatformActuator",
        oracle: "VerificationOracle",
        write_attempts: int = 3,
        write_delay: float = 1.0,
    ):
        self.store = store
        self.actuator = actuator
        self.oracle = oracle
        self.write_attempts = write_attempts
        self.write_delay = write_delay

    async def handle(self, update: IncomingUpdate, state: ReconcileState) -> None:
        for event in update.events:
            await self.dispatch(event, state)

    async def dispatch(self, event: Event, state: ReconcileState) -> None:
        if isinstance(event, BotMembershipChanged):
            await self.on_bot_membership(event, state)
        elif isinstance(event, MessagePosted):
            await self.on_message(event, state)
        elif isinstance(event, UserMembershipChanged):
            # one raw event, two independent checks
            await self.on_restriction_confirmed(event, state)
            await self.on_member_joined(event, state)
        else:
            LOGGER.debug("Unknown event type %s, skipped", type(event).__name__)

    # ───────────────────────────────
    # Handlers
    # ───────────────────────────────
    async def on_bot_membership(self, event: BotMembershipChanged, state: ReconcileState) -> None:
        group_id = event.group_id
        if event.chat_kind == ChatKind.PRIVATE:
            LOGGER.debug("Update %s: bot status in private chat %s ignored", event.update_id, group_id)
            return

        if event.status in BOT_PRESENT:
            if group_id in state.groups:
                LOGGER.debug("Group %s already registered", group_id)
                return
            # new groups start with deletion off; the admin panel turns it on
            await self._persist(
                state, f"group {group_id} add", lambda: self.store.groups.upsert(group_id, False)
            )
            state.groups[group_id] = False
            LOGGER.info("Added group %s to groups list.", group_id)
        elif event.status in BOT_GONE:
            if group_id not in state.groups:
                LOGGER.debug("Group %s not registered, nothing to remove", group_id)
                return
            await self._persist(state, f"group {group_id} remove", lambda: self.store.groups.remove(group_id))
            state.groups.pop(group_id, None)
            LOGGER.info("Removed group %s from groups list.", group_id)
        else:
            LOGGER.debug("Group %s: bot status %s needs no registry change", group_id, event.status.value)

    async def on_message(self, event: MessagePosted, state: ReconcileState) -> None:
        deletes_enabled = state.deletes_enabled(event.group_id)
        restricted = event.author_id in state.ledger
        if not (deletes_enabled and restricted):
            LOGGER.debug(
                "Message %s in %s kept (delete flag=%s, author %s in ledger=%s)",
                event.message_id,
                event.group_id,
                deletes_enabled,
                event.author_id,
                restricted,
            )
            return

        if await self.actuator.delete_message(event.group_id, event.message_id):
            LOGGER.info(
                "Deleted message %s from restricted user %s in chat %s.",
                event.message_id,
                event.author_id,
                event.group_id,
            )
        else:
            LOGGER.error(
                "Failed to delete message %s from restricted user %s in chat %s.",
                event.message_id,
                event.author_id,
                event.group_id,
            )

    async def on_restriction_confirmed(self, event: UserMembershipChanged, state: ReconcileState) -> None:
        if event.status != MemberStatus.RESTRICTED:
            return
        user_id = event.user.id
        if user_id not in state.ledger:
            LOGGER.debug("User %s restricted in %s, not in ledger", user_id, event.group_id)
            return
        await self._persist(state, f"ledger remove {user_id}", lambda: self.store.ledger.remove(user_id))
        state.ledger.discard(user_id)
        LOGGER.info("Removed user %s from restricted users list.", user_id)

    async def on_member_joined(self, event: UserMembershipChanged, state: ReconcileState) -> None:
        user = event.user
        group_id = event.group_id
        if event.chat_kind == ChatKind.PRIVATE:
            LOGGER.debug("Update %s: private chat %s ignored", event.update_id, group_id)
            return
        if user.is_bot:
            LOGGER.debug("Update %s: %s is a bot, ignored", event.update_id, user.label)
            return
        if event.status != MemberStatus.MEMBER:
            LOGGER.debug(
                "Update %s: %s status %s is not a join", event.update_id, user.label, event.status.value
            )
            return

        # before any mutation: verified users are never touched
        if self.oracle.is_verified(user.id):
            LOGGER.info("User %s (%s) already verified.", user.label, user.id)
            return

        current = await self.actuator.get_chat_member(group_id, user.id)
        if current != MemberStatus.MEMBER:
            LOGGER.info(
                "User %s (%s) is now %s in chat %s, not restricting.",
                user.label,
                user.id,
                current.value if current else "unknown",
                group_id,
            )
            return

        if not await self.actuator.restrict_chat_member(group_id, user.id):
            LOGGER.error("Failed to restrict %s (%s) in chat %s.", user.label, user.id, group_id)
            return

        LOGGER.info("Restricted %s (%s) in chat %s.", user.label, user.id, group_id)
        await self._persist(state, f"ledger add {user.id}", lambda: self.store.ledger.add(user.id))
        state.ledger.add(user.id)

    # ───────────────────────────────
    # Maintenance
    # ───────────────────────────────
    async def prune_ledger(self, state: ReconcileState) -> int:
        """Drop ledger entries of users who have since been verified.

        The platform restriction itself is left alone; lifting it is the
        job of the verification flow (or `main.py unmute`).
        """
        pruned = 0
        for user_id in sorted(state.ledger):
            if not self.oracle.is_verified(user_id):
                continue
            await self._persist(
                state, f"ledger prune {user_id}", lambda uid=user_id: self.store.ledger.remove(uid)
            )
            state.ledger.discard(user_id)
            pruned += 1
            LOGGER.info("Pruned verified user %s from restricted users list.", user_id)
        return pruned

    async def _persist(self, state: ReconcileState, what: str, action: Callable[[], None]) -> bool:
        """Retried store write; on exhaustion marks the snapshot dirty.

        The daemon then keeps the cursor where it was, so the whole batch is
        fetched and applied again on the next iteration.
        """
        try:
            await retry_write(action, what=what, attempts=self.write_attempts, delay=self.write_delay)
        except PersistenceError as exc:
            LOGGER.error("Giving up on %s: %s", what, exc)
            state.dirty = True
            return False
        return True


__all__ = ["Reconciler"]
