from __future__ import annotations

import argparse
import asyncio
import sqlite3
import sys
from typing import List, Optional

from telegram import Bot
from telegram.error import TelegramError

from config.config import Settings, load_settings
from core.errors import GatekeeperError
from utils.logger import get_logger, setup_logging

LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatekeeper",
        description="Restricts unverified newcomers in Telegram groups until they link a wiki account.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log every reconciler decision (DEBUG)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="run the update-ingestion daemon (default)")

    unmute = sub.add_parser("unmute", help="lift the restriction of a verified user")
    unmute.add_argument("group_id", type=int)
    unmute.add_argument("user_id", type=int)

    admins = sub.add_parser("admins", help="list group administrators and their wiki accounts")
    admins.add_argument("group_id", type=int)

    sub.add_parser("groups", help="show the group registry")

    set_delete = sub.add_parser("set-delete", help="toggle deletion of messages from restricted users")
    set_delete.add_argument("group_id", type=int)
    set_delete.add_argument("state", choices=["on", "off"])

    return parser


def _cmd_groups(settings: Settings) -> int:
    from storage import init_storage

    store = init_storage(settings)
    try:
        groups = store.groups.load()
    finally:
        store.close()
    if not groups:
        print("(no groups)")
    for group_id, flag in sorted(groups.items()):
        print(f"{group_id}\tdelete_restricted={'on' if flag else 'off'}")
    return 0


def _cmd_set_delete(settings: Settings, group_id: int, enabled: bool) -> int:
    from bot.admin import set_delete_flag
    from storage import init_storage

    store = init_storage(settings)
    try:
        if not set_delete_flag(store, group_id, enabled):
            LOGGER.error("Group %s is not in the registry.", group_id)
            return 1
    finally:
        store.close()
    return 0


async def _cmd_with_bot(settings: Settings, args: argparse.Namespace) -> int:
    from bot.actuator import TelegramActuator
    from bot.admin import list_admins, unmute_user
    from services.verification import SQLiteVerificationOracle
    from storage import init_storage

    oracle = SQLiteVerificationOracle(settings.VERIFICATIONS_DB_PATH)
    store = init_storage(settings)
    try:
        async with Bot(settings.BOT_TOKEN) as bot:
            actuator = TelegramActuator(bot)
            if args.command == "unmute":
                ok = await unmute_user(
                    actuator=actuator,
                    oracle=oracle,
                    store=store,
                    group_id=args.group_id,
                    user_id=args.user_id,
                    grace_seconds=settings.UNMUTE_GRACE_SECONDS,
                )
                return 0 if ok else 1

            entries = await list_admins(actuator=actuator, oracle=oracle, group_id=args.group_id)
            if entries is None:
                return 1
            for entry in entries:
                tg = f"@{entry.telegram_username}" if entry.telegram_username else str(entry.telegram_id)
                print(f"{tg}\t{entry.wiki_username or '(not verified)'}")
            return 0
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        setup_logging(verbose=args.verbose)
        LOGGER.critical("Invalid configuration: %s — прекращаю работу.", exc)
        return 2

    setup_logging(settings.LOG_LEVEL, log_dir=settings.LOG_DIR, verbose=args.verbose)

    command = args.command or "run"
    try:
        if command == "run":
            from bot.app import run_polling

            return run_polling(settings)
        if command == "groups":
            return _cmd_groups(settings)
        if command == "set-delete":
            return _cmd_set_delete(settings, args.group_id, args.state == "on")
        return asyncio.run(_cmd_with_bot(settings, args))
    except (GatekeeperError, TelegramError, OSError, sqlite3.Error) as exc:
        LOGGER.error("%s failed: %s", command, exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.info("Получен KeyboardInterrupt — выход.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
