"""
utils/logger.py
────────────────────────────────────────────────────────
Централизованная конфигурация logging.

• Настраивает root-логгер ровно один раз (setup_logging).
• Выводит логи в консоль и во вращающийся файл logs/gatekeeper.log.
• Уровень берётся из Settings.LOG_LEVEL; флаг --verbose включает DEBUG,
  где логируется каждая ветка решения Reconciler.
• Экспортирует функцию `get_logger(name)` для получения
  именованных логгеров в других модулях.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FMT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "gatekeeper.log"
_ROOT_LOGGER_INITIALIZED = False


def setup_logging(
    level: str = "INFO",
    *,
    log_dir: Path | None = None,
    verbose: bool = False,
) -> None:
    """Install console and rotating-file handlers on the root logger.

    Subsequent calls only adjust the level, so the daemon and the operator
    commands can both call it safely.
    """
    global _ROOT_LOGGER_INITIALIZED

    root = logging.getLogger()
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    root.setLevel(resolved)

    if _ROOT_LOGGER_INITIALIZED:
        return

    formatter = logging.Formatter(LOG_FMT, DATE_FMT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=2_000_000,       # ~2 MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every long-poll request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _ROOT_LOGGER_INITIALIZED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Возвратить именованный логгер (или root, если name не указан).
    Использование:
        logger = get_logger(__name__)
        logger.info("Hello!")
    """
    return logging.getLogger(name or "root")


__all__ = ["get_logger", "setup_logging"]
