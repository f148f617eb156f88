"""Application entry point for noteping.

Every subcommand is a thin adapter over the notes store or the reminder
triggers; results are printed as JSON on stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sqlite3
import sys
from dataclasses import asdict
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import text2art
from dotenv import load_dotenv

import settings
from adapters.sqlite_store import SQLiteNoteStore, User
from client import build_dispatcher
from core.config import SweepConfig
from core.deadline import parse_deadline, utc_now
from core.errors import ReminderError
from core.orchestrator import ReminderOrchestrator
from core.phone import normalize_phone, to_dispatch_form
from core.triggers import ReminderTriggers

NAME = "NOTEPING"
FONT = "standard"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    # stdout carries JSON results, so the banner goes to stderr.
    sys.stderr.write(text2art(NAME, font=FONT, space=1))
    sys.stderr.write("\n")


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["FONNTE_TOKEN"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # Logs share the terminal with JSON output, so they go to stderr.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/noteping.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _iso_datetime(value: str) -> datetime:
    try:
        return parse_deadline(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _fail(error: Exception) -> int:
    _emit({"success": False, "error": str(error)})
    return 1


def _open_store() -> SQLiteNoteStore:
    store = SQLiteNoteStore(settings.DB_PATH)
    store.init_db()
    return store


def _build_triggers(store: SQLiteNoteStore) -> ReminderTriggers:
    sweep_config = SweepConfig(
        window_hours=settings.WINDOW_HOURS,
        max_concurrency=settings.MAX_CONCURRENCY,
    )
    orchestrator = ReminderOrchestrator(build_dispatcher(), sweep_config)
    return ReminderTriggers(store, orchestrator, window_hours=sweep_config.window_hours)


def _require_user(store: SQLiteNoteStore, username: str) -> User:
    user = store.find_user(username)
    if user is None:
        raise LookupError("User not found")
    return user


def _auto_check(store: SQLiteNoteStore, note_id: str, user: User) -> dict[str, Any]:
    """Run the single-note check after a mutation; failures do not undo the mutation."""

    triggers = _build_triggers(store)
    try:
        result = asyncio.run(triggers.check_note(note_id, user.id))
    except ReminderError as exc:
        LOGGER.warning("Auto-check for note %s failed: %s", note_id, exc)
        return {"success": False, "error": str(exc)}
    return {"success": True, **result.to_dict()}


# Reminder commands


def _cmd_sweep(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    triggers = _build_triggers(store)
    try:
        result = asyncio.run(triggers.scheduled_sweep(now=args.now))
    except ReminderError as exc:
        LOGGER.error("Deadline sweep failed: %s", exc)
        return _fail(exc)
    _emit({"success": True, **result.to_dict()})
    return 0


def _cmd_check_note(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    triggers = _build_triggers(store)
    try:
        result = asyncio.run(
            triggers.check_note(args.note_id, user.id, deadline=args.deadline, now=args.now)
        )
    except ReminderError as exc:
        LOGGER.error("Deadline check for note %s failed: %s", args.note_id, exc)
        return _fail(exc)
    _emit({"success": True, **result.to_dict()})
    return 0


def _cmd_send(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    """Send an ad hoc WhatsApp message outside any sweep."""

    dispatcher = build_dispatcher()
    try:
        phone = to_dispatch_form(normalize_phone(args.phone), dispatcher.country_code)
        receipt = asyncio.run(dispatcher.dispatch(phone, args.message))
    except ReminderError as exc:
        LOGGER.error("Manual send to %s failed: %s", args.phone, exc)
        return _fail(exc)
    _emit({"success": True, "phoneNumber": receipt.target, "data": receipt.payload})
    return 0


def _keep_alive(store: SQLiteNoteStore) -> dict[str, Any]:
    try:
        users = store.ping()
    except Exception as exc:
        LOGGER.exception("Keep-alive failed")
        return {"success": False, "error": str(exc)}
    LOGGER.info("Keep-alive successful")
    return {"success": True, "message": "Database is active", "users": users}


def _cmd_keep_alive(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    result = _keep_alive(store)
    _emit({**result, "timestamp": utc_now().isoformat()})
    return 0 if result["success"] else 1


def _cmd_tasks(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    """Keep-alive plus deadline sweep in one run, each reported separately."""

    keep_alive = _keep_alive(store)
    triggers = _build_triggers(store)
    try:
        result = asyncio.run(triggers.scheduled_sweep(now=args.now))
        deadline_check = {"success": True, **result.to_dict()}
    except ReminderError as exc:
        LOGGER.error("Deadline sweep failed: %s", exc)
        deadline_check = {"success": False, "error": str(exc)}
    _emit(
        {
            "keepAlive": keep_alive,
            "deadlineCheck": deadline_check,
            "timestamp": utc_now().isoformat(),
        }
    )
    return 0 if keep_alive["success"] and deadline_check["success"] else 1


# Note commands


def _cmd_register(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = store.register_user(args.username, args.phone)
    _emit({"success": True, "user": asdict(user)})
    return 0


def _cmd_add_note(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    note = store.create_note(user.id, args.title, content=args.content, deadline=args.deadline)
    payload: dict[str, Any] = {"success": True, "note": asdict(note)}
    if note.deadline:
        payload["reminder"] = _auto_check(store, note.id, user)
    _emit(payload)
    return 0


def _cmd_update_note(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    note = store.update_note(
        args.note_id,
        user.id,
        title=args.title,
        content=args.content,
        deadline=args.deadline,
        clear_deadline=args.clear_deadline,
    )
    payload: dict[str, Any] = {"success": True, "note": asdict(note)}
    if note.deadline:
        payload["reminder"] = _auto_check(store, note.id, user)
    _emit(payload)
    return 0


def _cmd_complete_note(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    note = store.set_completed(args.note_id, user.id, not args.undo)
    _emit({"success": True, "note": asdict(note)})
    return 0


def _cmd_delete_note(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    store.delete_note(args.note_id, user.id)
    _emit({"success": True, "noteId": args.note_id})
    return 0


def _cmd_notes(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    completed = {"all": None, "active": False, "completed": True}[args.filter]
    notes = store.list_notes(user.id, query=args.search, completed=completed)
    _emit({"success": True, "notes": [asdict(note) for note in notes]})
    return 0


def _cmd_history(args: argparse.Namespace, store: SQLiteNoteStore) -> int:
    user = _require_user(store, args.user)
    entries = store.list_history(user.id, limit=args.limit, action=args.action)
    _emit({"success": True, "history": [asdict(entry) for entry in entries]})
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="noteping")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sweep = subparsers.add_parser("sweep", help="Send reminders for deadlines in the next 24 hours")
    sweep.add_argument("--now", type=_iso_datetime, help="Reference time (ISO-8601), defaults to now")
    sweep.set_defaults(handler=_cmd_sweep)

    check = subparsers.add_parser("check-note", help="Check one note right after it changed")
    check.add_argument("note_id")
    check.add_argument("--user", required=True, help="Owner username")
    check.add_argument("--deadline", type=_iso_datetime, help="Override the stored deadline")
    check.add_argument("--now", type=_iso_datetime)
    check.set_defaults(handler=_cmd_check_note)

    send = subparsers.add_parser("send", help="Send an ad hoc WhatsApp message")
    send.add_argument("phone")
    send.add_argument("message")
    send.set_defaults(handler=_cmd_send)

    keep_alive = subparsers.add_parser("keep-alive", help="Ping the database")
    keep_alive.set_defaults(handler=_cmd_keep_alive)

    tasks = subparsers.add_parser("tasks", help="Keep-alive plus deadline sweep, for cron")
    tasks.add_argument("--now", type=_iso_datetime)
    tasks.set_defaults(handler=_cmd_tasks)

    register = subparsers.add_parser("register", help="Register a user")
    register.add_argument("username")
    register.add_argument("phone")
    register.set_defaults(handler=_cmd_register)

    add_note = subparsers.add_parser("add-note", help="Create a note")
    add_note.add_argument("title")
    add_note.add_argument("--user", required=True)
    add_note.add_argument("--content")
    add_note.add_argument("--deadline", type=_iso_datetime)
    add_note.set_defaults(handler=_cmd_add_note)

    update_note = subparsers.add_parser("update-note", help="Edit a note")
    update_note.add_argument("note_id")
    update_note.add_argument("--user", required=True)
    update_note.add_argument("--title")
    update_note.add_argument("--content")
    deadline_group = update_note.add_mutually_exclusive_group()
    deadline_group.add_argument("--deadline", type=_iso_datetime)
    deadline_group.add_argument("--clear-deadline", action="store_true")
    update_note.set_defaults(handler=_cmd_update_note)

    complete = subparsers.add_parser("complete-note", help="Mark a note as completed")
    complete.add_argument("note_id")
    complete.add_argument("--user", required=True)
    complete.add_argument("--undo", action="store_true", help="Mark as incomplete instead")
    complete.set_defaults(handler=_cmd_complete_note)

    delete = subparsers.add_parser("delete-note", help="Delete a note")
    delete.add_argument("note_id")
    delete.add_argument("--user", required=True)
    delete.set_defaults(handler=_cmd_delete_note)

    notes = subparsers.add_parser("notes", help="List a user's notes")
    notes.add_argument("--user", required=True)
    notes.add_argument("--search", help="Match title or content, case-insensitive")
    notes.add_argument("--filter", choices=("all", "active", "completed"), default="all")
    notes.set_defaults(handler=_cmd_notes)

    history = subparsers.add_parser("history", help="Show recent note history")
    history.add_argument("--user", required=True)
    history.add_argument("--limit", type=int, default=50)
    history.add_argument("--action", choices=("created", "updated", "completed", "deleted"))
    history.set_defaults(handler=_cmd_history)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _print_banner()
    _configure_logging()

    try:
        return args.handler(args, _open_store())
    except (LookupError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return _fail(exc)
    except sqlite3.Error as exc:
        LOGGER.exception("%s failed on a database error", args.command)
        return _fail(exc)


if __name__ == "__main__":
    sys.exit(main())
