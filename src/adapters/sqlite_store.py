"""SQLite notes store adapter.

Implements the core CandidateSourcePort plus the user and note operations of
the notes app using a simple SQLite database.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from core.deadline import as_utc, parse_deadline
from core.errors import CandidateFetchError
from core.models import ReminderCandidate

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    id: str
    username: str
    phone_number: Optional[str]
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class Note:
    id: str
    user_id: str
    title: str
    content: Optional[str]
    deadline: Optional[str]
    is_completed: bool
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class NoteHistoryEntry:
    id: int
    note_id: str
    user_id: str
    action: str
    action_details: Optional[str]
    created_at: str


def _timestamp(value: Optional[datetime] = None) -> str:
    # Fixed precision keeps lexical ordering in SQL equal to time ordering.
    moment = as_utc(value) if value is not None else datetime.now(timezone.utc)
    return moment.isoformat(timespec="seconds")


def _note_from_row(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        content=row["content"],
        deadline=row["deadline"],
        is_completed=bool(row["is_completed"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        phone_number=row["phone_number"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _candidate_from_row(row: sqlite3.Row) -> ReminderCandidate:
    deadline = None
    if row["deadline"]:
        try:
            deadline = parse_deadline(row["deadline"])
        except ValueError as exc:
            raise CandidateFetchError(f"Note {row['id']} has an unparseable deadline: {row['deadline']!r}") from exc
    return ReminderCandidate(
        note_id=row["id"],
        title=row["title"],
        deadline=deadline,
        phone_number=row["phone_number"],
        is_completed=bool(row["is_completed"]),
    )


class SQLiteNoteStore:
    """Thin SQLite wrapper that satisfies the CandidateSourcePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - users: username plus the phone number reminders are sent to
        - notes: one row per note, deadline stored as UTC ISO-8601 text
        - note_history: append-only log of note mutations
        """

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    phone_number TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    content TEXT,
                    deadline TEXT,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            # History keeps no foreign key on note_id so deleted notes stay
            # visible in the log.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS note_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    note_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    action_details TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_notes_deadline ON notes (deadline)")

    # Users

    def register_user(self, username: str, phone_number: str) -> User:
        """Create a user; usernames are unique."""

        now = _timestamp()
        user_id = uuid.uuid4().hex
        # The UNIQUE constraint is the only check, so concurrent registrations
        # of one name cannot both succeed.
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO users (id, username, phone_number, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                    (user_id, username, phone_number, now, now),
                )
        except sqlite3.IntegrityError as exc:
            raise ValueError("Username already taken") from exc
        return User(id=user_id, username=username, phone_number=phone_number, created_at=now, updated_at=now)

    def find_user(self, username: str) -> Optional[User]:
        """Plain username lookup, there is no password."""

        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return _user_from_row(row) if row else None

    # Notes

    def _record_history(
        self, conn: sqlite3.Connection, note_id: str, user_id: str, action: str, details: str
    ) -> None:
        # History is best effort: a failed insert must not undo the mutation.
        try:
            conn.execute(
                """
                INSERT INTO note_history (note_id, user_id, action, action_details, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (note_id, user_id, action, details, _timestamp()),
            )
        except sqlite3.Error:
            LOGGER.warning("Failed to record %s history for note %s", action, note_id, exc_info=True)

    def _get_note(self, conn: sqlite3.Connection, note_id: str, user_id: str) -> Optional[Note]:
        row = conn.execute(
            "SELECT * FROM notes WHERE id = ? AND user_id = ?",
            (note_id, user_id),
        ).fetchone()
        return _note_from_row(row) if row else None

    def create_note(
        self,
        user_id: str,
        title: str,
        content: Optional[str] = None,
        deadline: Optional[datetime] = None,
    ) -> Note:
        now = _timestamp()
        note = Note(
            id=uuid.uuid4().hex,
            user_id=user_id,
            title=title,
            content=content,
            deadline=_timestamp(deadline) if deadline is not None else None,
            is_completed=False,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            if not conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone():
                raise LookupError("User not found")
            conn.execute(
                """
                INSERT INTO notes (id, user_id, title, content, deadline, is_completed, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (note.id, user_id, title, content, note.deadline, now, now),
            )
            self._record_history(conn, note.id, user_id, "created", f'Note "{title}" created')
        LOGGER.info("Note %s created", note.id)
        return note

    def update_note(
        self,
        note_id: str,
        user_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        deadline: Optional[datetime] = None,
        clear_deadline: bool = False,
    ) -> Note:
        """Update the given fields; None leaves a field unchanged."""

        changes: dict[str, Optional[str]] = {}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        if clear_deadline:
            changes["deadline"] = None
        elif deadline is not None:
            changes["deadline"] = _timestamp(deadline)
        changes["updated_at"] = _timestamp()

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE notes SET {assignments} WHERE id = ? AND user_id = ?",
                (*changes.values(), note_id, user_id),
            )
            if cur.rowcount == 0:
                raise LookupError("Note not found or access denied")
            note = self._get_note(conn, note_id, user_id)
            self._record_history(conn, note_id, user_id, "updated", f'Note "{note.title}" updated')
        return note

    def set_completed(self, note_id: str, user_id: str, completed: bool) -> Note:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE notes SET is_completed = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (int(completed), _timestamp(), note_id, user_id),
            )
            if cur.rowcount == 0:
                raise LookupError("Note not found or access denied")
            note = self._get_note(conn, note_id, user_id)
            state = "completed" if completed else "incomplete"
            self._record_history(conn, note_id, user_id, "completed", f'Note "{note.title}" marked as {state}')
        return note

    def delete_note(self, note_id: str, user_id: str) -> None:
        with self._connect() as conn:
            note = self._get_note(conn, note_id, user_id)
            if note is None:
                raise LookupError("Note not found or access denied")
            conn.execute("DELETE FROM notes WHERE id = ? AND user_id = ?", (note_id, user_id))
            self._record_history(conn, note_id, user_id, "deleted", f'Note "{note.title}" deleted')

    def list_notes(
        self,
        user_id: str,
        query: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> list[Note]:
        """List a user's notes, newest first.

        query matches title or content case-insensitively; completed=None
        returns both open and completed notes.
        """

        clauses = ["user_id = ?"]
        params: list[object] = [user_id]
        if query:
            pattern = f"%{query.lower()}%"
            clauses.append("(LOWER(title) LIKE ? OR LOWER(COALESCE(content, '')) LIKE ?)")
            params.extend([pattern, pattern])
        if completed is not None:
            clauses.append("is_completed = ?")
            params.append(int(completed))

        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM notes WHERE {' AND '.join(clauses)} ORDER BY created_at DESC",
                params,
            ).fetchall()
        return [_note_from_row(row) for row in rows]

    def list_history(self, user_id: str, limit: int = 50, action: Optional[str] = None) -> list[NoteHistoryEntry]:
        """Return the newest history entries for a user, optionally for one action."""

        sql = "SELECT * FROM note_history WHERE user_id = ?"
        params: list[object] = [user_id]
        if action:
            sql += " AND action = ?"
            params.append(action)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            NoteHistoryEntry(
                id=row["id"],
                note_id=row["note_id"],
                user_id=row["user_id"],
                action=row["action"],
                action_details=row["action_details"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def ping(self) -> int:
        """Keep-alive query; returns the number of users."""

        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    # CandidateSourcePort

    def fetch_candidates(self, window_start: datetime, window_end: datetime) -> list[ReminderCandidate]:
        """Open notes with a deadline inside [window_start, window_end]."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT n.id, n.title, n.deadline, n.is_completed, u.phone_number
                    FROM notes n
                    JOIN users u ON u.id = n.user_id
                    WHERE n.deadline IS NOT NULL
                      AND n.is_completed = 0
                      AND n.deadline >= ?
                      AND n.deadline <= ?
                    ORDER BY n.deadline
                    """,
                    (_timestamp(window_start), _timestamp(window_end)),
                ).fetchall()
        except sqlite3.Error as exc:
            raise CandidateFetchError(f"Failed to fetch reminder candidates: {exc}") from exc

        candidates = []
        for row in rows:
            # A bad row is skipped; the remaining candidates are still returned.
            try:
                candidates.append(_candidate_from_row(row))
            except CandidateFetchError:
                LOGGER.warning("Skipping note %s with unparseable deadline %r", row["id"], row["deadline"])
        return candidates

    def get_candidate(self, note_id: str, user_id: str) -> Optional[ReminderCandidate]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT n.id, n.title, n.deadline, n.is_completed, u.phone_number
                    FROM notes n
                    JOIN users u ON u.id = n.user_id
                    WHERE n.id = ? AND n.user_id = ?
                    """,
                    (note_id, user_id),
                ).fetchone()
        except sqlite3.Error as exc:
            raise CandidateFetchError(f"Failed to fetch note {note_id}: {exc}") from exc
        return _candidate_from_row(row) if row else None
