from __future__ import annotations

from typing import Mapping, Protocol, Set


class GroupRegistryStore(Protocol):
    """group id → "delete messages from restricted users" flag."""

    def load(self) -> Mapping[int, bool]: ...

    def upsert(self, group_id: int, delete_restricted: bool) -> None: ...

    def remove(self, group_id: int) -> None: ...


class RestrictionLedgerStore(Protocol):
    """User ids the daemon restricted and has not yet seen confirmed."""

    def load(self) -> Set[int]: ...

    def add(self, user_id: int) -> None: ...

    def remove(self, user_id: int) -> None: ...


class CursorStore(Protocol):
    """Highest fully processed update_id; 0 when absent."""

    def load(self) -> int: ...

    def store(self, value: int) -> None: ...


class GatekeeperStore(Protocol):
    groups: GroupRegistryStore
    ledger: RestrictionLedgerStore
    cursor: CursorStore

    def close(self) -> None: ...
