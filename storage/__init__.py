from __future__ import annotations

from .bootstrap import init_storage, open_sqlite_storage
from .flatfile import FileStorage
from .interfaces import CursorStore, GatekeeperStore, GroupRegistryStore, RestrictionLedgerStore

__all__ = [
    "init_storage",
    "open_sqlite_storage",
    "FileStorage",
    "CursorStore",
    "GatekeeperStore",
    "GroupRegistryStore",
    "RestrictionLedgerStore",
]
