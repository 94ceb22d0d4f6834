"""
storage/flatfile.py
────────────────────────────────────────────────────────
Файловое хранилище, совместимое с веб-панелью администратора.

• groups_list.inc        — строки `groupId` или `groupId:true`, flag по умолчанию false
• restricted_users.inc   — по одному user id на строку
• telegram_offset.inc    — одно целое число

Каждая запись перечитывает файл, применяет изменение и атомарно заменяет
его (временный файл + os.replace), поэтому параллельный читатель видит
либо старую, либо новую версию целиком.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from threading import RLock
from typing import Dict, Iterable, List, Set

from utils.logger import get_logger

from .interfaces import CursorStore, GroupRegistryStore, RestrictionLedgerStore

LOGGER = get_logger(__name__)

GROUPS_FILE = "groups_list.inc"
LEDGER_FILE = "restricted_users.inc"
CURSOR_FILE = "telegram_offset.inc"

_TRUE_WORDS = {"1", "true", "yes", "on"}


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _read_lines(path: Path) -> List[str]:
    try:
        # files are shared with the web panel; undecodable bytes become garbage lines
        raw = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return []
    return [line.strip() for line in raw.splitlines() if line.strip()]


def _parse_int(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def parse_groups(lines: Iterable[str]) -> Dict[int, bool]:
    groups: Dict[int, bool] = {}
    for line in lines:
        group_raw, sep, flag_raw = line.partition(":")
        group_id = _parse_int(group_raw.strip())
        if group_id is None:
            LOGGER.debug("Ignoring malformed group line: %r", line)
            continue
        groups[group_id] = bool(sep) and flag_raw.strip().lower() in _TRUE_WORDS
    return groups


def format_groups(groups: Dict[int, bool]) -> str:
    if not groups:
        return ""
    # a bare id is how the web panel and older daemons write "deletion off"
    lines = [f"{group_id}:true" if flag else str(group_id) for group_id, flag in groups.items()]
    return "\n".join(lines) + "\n"


class FileStorage:
    """Same surface as storage.sqlite.Storage, backed by the shared files."""

    def __init__(self, *, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()
        self.groups: GroupRegistryStore = _GroupFile(self.data_dir / GROUPS_FILE, self._lock)
        self.ledger: RestrictionLedgerStore = _LedgerFile(self.data_dir / LEDGER_FILE, self._lock)
        self.cursor: CursorStore = _CursorFile(self.data_dir / CURSOR_FILE, self._lock)

    def close(self) -> None:
        return None


class _FileRepoBase:
    def __init__(self, path: Path, lock: RLock):
        self.path = path
        self._lock = lock


class _GroupFile(_FileRepoBase, GroupRegistryStore):
    def load(self) -> Dict[int, bool]:
        return parse_groups(_read_lines(self.path))

    def upsert(self, group_id: int, delete_restricted: bool) -> None:
        with self._lock:
            groups = self.load()
            if group_id in groups and groups[group_id] == delete_restricted:
                return
            groups[group_id] = delete_restricted
            atomic_write_text(self.path, format_groups(groups))

    def remove(self, group_id: int) -> None:
        with self._lock:
            groups = self.load()
            if group_id not in groups:
                return
            del groups[group_id]
            atomic_write_text(self.path, format_groups(groups))


class _LedgerFile(_FileRepoBase, RestrictionLedgerStore):
    def _load_ordered(self) -> List[int]:
        seen: List[int] = []
        for line in _read_lines(self.path):
            user_id = _parse_int(line)
            if user_id is None:
                LOGGER.debug("Ignoring malformed ledger line: %r", line)
                continue
            if user_id not in seen:
                seen.append(user_id)
        return seen

    def load(self) -> Set[int]:
        return set(self._load_ordered())

    def add(self, user_id: int) -> None:
        with self._lock:
            ids = self._load_ordered()
            if user_id in ids:
                return
            ids.append(user_id)
            atomic_write_text(self.path, "".join(f"{uid}\n" for uid in ids))

    def remove(self, user_id: int) -> None:
        with self._lock:
            ids = self._load_ordered()
            if user_id not in ids:
                return
            ids.remove(user_id)
            atomic_write_text(self.path, "".join(f"{uid}\n" for uid in ids))


class _CursorFile(_FileRepoBase, CursorStore):
    def load(self) -> int:
        lines = _read_lines(self.path)
        if not lines:
            return 0
        value = _parse_int(lines[0])
        if value is None or value < 0:
            LOGGER.warning("Cursor file %s is corrupt (%r), starting from 0", self.path, lines[0])
            return 0
        return value

    def store(self, value: int) -> None:
        with self._lock:
            current = self.load()
            if value <= current and self.path.exists():
                return
            atomic_write_text(self.path, str(int(value)))
