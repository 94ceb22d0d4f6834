# wikiverify-gatekeeper/config/config.py
"""
Конфигурация демона «wikiverify-gatekeeper».

▪️ Загружает переменные окружения из файла .env (в корне репозитория).
▪️ Собирает типизированный контейнер Settings через load_settings().
▪️ Settings создаётся один раз в main.py и передаётся компонентам явно.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

# ───────────────────────────────
#  Пути по умолчанию
# ───────────────────────────────
ROOT_DIR = Path(__file__).resolve().parents[1]

STORAGE_BACKENDS = {"sqlite", "files"}


# ───────────────────────────────
#  Типизированный контейнер
# ───────────────────────────────
@dataclass(frozen=True, slots=True)
class Settings:
    BOT_TOKEN: str

    STORAGE_BACKEND: str
    STORAGE_DB_PATH: Path
    DATA_DIR: Path
    VERIFICATIONS_DB_PATH: Path

    # Long-poll and retry timings, seconds
    POLL_TIMEOUT_SECONDS: int = 30
    FETCH_RETRY_DELAY_SECONDS: float = 5.0
    IDLE_DELAY_SECONDS: float = 0.2
    ORACLE_FAILURE_PAUSE_SECONDS: float = 15.0
    WRITE_RETRY_ATTEMPTS: int = 3
    WRITE_RETRY_DELAY_SECONDS: float = 1.0

    LEDGER_PRUNE_EVERY: int = 0
    UNMUTE_GRACE_SECONDS: int = 100

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = ROOT_DIR / "logs"


# ───────────────────────────────
#  Парс вспомогательных полей
# ───────────────────────────────
def _resolve_path(raw: str | None, default: Path) -> Path:
    if not raw:
        return default
    path = Path(raw).expanduser()
    return path if path.is_absolute() else ROOT_DIR / path


def _non_negative(name: str, value: float) -> float:
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


# ───────────────────────────────
#  Сборка Settings
# ───────────────────────────────
def load_settings(
    env: Mapping[str, str] | None = None,
    *,
    dotenv_path: Path | None = None,
) -> Settings:
    """Build Settings from the process environment (or an explicit mapping).

    When ``env`` is omitted the .env file next to the repository root is
    loaded first; existing environment variables win over .env values.
    """
    if env is None:
        load_dotenv(dotenv_path or ROOT_DIR / ".env")
        env = os.environ

    try:
        bot_token = env["BOT_TOKEN"]
    except KeyError as miss:
        raise RuntimeError(f"Переменная {miss.args[0]} не задана в .env") from None
    if not bot_token.strip():
        raise RuntimeError("Переменная BOT_TOKEN пуста")

    backend = env.get("STORAGE_BACKEND", "sqlite").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError("STORAGE_BACKEND должен быть sqlite | files")

    data_dir = _resolve_path(env.get("DATA_DIR"), ROOT_DIR / "data")
    storage_db_path = _resolve_path(env.get("STORAGE_DB_PATH"), data_dir / "gatekeeper.sqlite")
    verifications_db_path = _resolve_path(
        env.get("VERIFICATIONS_DB_PATH"), data_dir / "verifications.sqlite"
    )

    poll_timeout = int(_non_negative("POLL_TIMEOUT_SECONDS", int(env.get("POLL_TIMEOUT_SECONDS", "30"))))
    fetch_retry_delay = _non_negative(
        "FETCH_RETRY_DELAY_SECONDS", float(env.get("FETCH_RETRY_DELAY_SECONDS", "5"))
    )
    idle_delay = _non_negative("IDLE_DELAY_SECONDS", float(env.get("IDLE_DELAY_SECONDS", "0.2")))
    oracle_pause = _non_negative(
        "ORACLE_FAILURE_PAUSE_SECONDS", float(env.get("ORACLE_FAILURE_PAUSE_SECONDS", "15"))
    )

    write_attempts = int(env.get("WRITE_RETRY_ATTEMPTS", "3"))
    if write_attempts < 1:
        raise ValueError("WRITE_RETRY_ATTEMPTS must be >= 1")
    write_delay = _non_negative(
        "WRITE_RETRY_DELAY_SECONDS", float(env.get("WRITE_RETRY_DELAY_SECONDS", "1"))
    )

    prune_every = int(_non_negative("LEDGER_PRUNE_EVERY", int(env.get("LEDGER_PRUNE_EVERY", "0"))))
    unmute_grace = int(_non_negative("UNMUTE_GRACE_SECONDS", int(env.get("UNMUTE_GRACE_SECONDS", "100"))))

    log_level = env.get("LOG_LEVEL", "INFO").strip().upper()
    log_dir = _resolve_path(env.get("LOG_DIR"), ROOT_DIR / "logs")

    return Settings(
        BOT_TOKEN=bot_token.strip(),
        STORAGE_BACKEND=backend,
        STORAGE_DB_PATH=storage_db_path,
        DATA_DIR=data_dir,
        VERIFICATIONS_DB_PATH=verifications_db_path,
        POLL_TIMEOUT_SECONDS=poll_timeout,
        FETCH_RETRY_DELAY_SECONDS=fetch_retry_delay,
        IDLE_DELAY_SECONDS=idle_delay,
        ORACLE_FAILURE_PAUSE_SECONDS=oracle_pause,
        WRITE_RETRY_ATTEMPTS=write_attempts,
        WRITE_RETRY_DELAY_SECONDS=write_delay,
        LEDGER_PRUNE_EVERY=prune_every,
        UNMUTE_GRACE_SECONDS=unmute_grace,
        LOG_LEVEL=log_level,
        LOG_DIR=log_dir,
    )


__all__ = ["Settings", "load_settings", "STORAGE_BACKENDS"]
