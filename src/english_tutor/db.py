from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Sequence

from .config import DATA_DIR
from .errors import StorageError
from .models import PronunciationAttempt, Turn, User

DEFAULT_DB_PATH = DATA_DIR / "english_tutor.db"
DB_PATH = Path(os.environ.get("ENGLISH_TUTOR_DB_PATH", DEFAULT_DB_PATH))

_PROFILE_COLUMNS: tuple[str, ...] = (
    "name",
    "native_language",
    "level",
    "learning_goal",
    "interests",
    "focus",
    "occupation",
    "preferred_topics",
    "preferred_content_type",
    "voice",
)
_LIST_COLUMNS: set[str] = {"interests", "preferred_topics"}


@contextmanager
def connect() -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection; commit on success and always close."""

    try:
        connection = _open_connection()
    except sqlite3.Error as exc:
        raise StorageError(f"Could not open database: {exc}") from exc
    try:
        yield connection
        connection.commit()
    except sqlite3.Error as exc:
        connection.rollback()
        raise StorageError(str(exc)) from exc
    finally:
        connection.close()


def _open_connection() -> sqlite3.Connection:
    db_path = Path(DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def now_iso(value: datetime | None = None) -> str:
    """Return the current UTC timestamp (seconds precision) as ISO 8601."""

    moment = value or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    else:
        moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="seconds")


def init_db() -> None:
    """Initialise the database schema if tables are missing."""

    with connect() as connection:
        _create_tables(connection)


def _create_tables(connection: sqlite3.Connection) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            native_language TEXT,
            level TEXT,
            learning_goal TEXT,
            interests TEXT NOT NULL DEFAULT '[]',
            focus TEXT,
            occupation TEXT,
            preferred_topics TEXT NOT NULL DEFAULT '[]',
            preferred_content_type TEXT,
            voice TEXT,
            created_at TEXT NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS turns (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            user_message TEXT NOT NULL,
            model_response TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_turns_user_created ON turns(user_id, created_at)"
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS pronunciation_attempts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            word TEXT NOT NULL,
            audio_url TEXT NOT NULL,
            accuracy INTEGER NOT NULL DEFAULT 0,
            feedback TEXT NOT NULL,
            created_at TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
            CHECK(accuracy BETWEEN 0 AND 100)
        )
        """
    )
    connection.execute(
        "CREATE INDEX IF NOT EXISTS idx_attempts_user_created ON pronunciation_attempts(user_id, created_at)"
    )


# ── Users ────────────────────────────────────────────────────────────────────


def normalize_email(email: str) -> str:
    return email.strip().lower()


def upsert_user(email: str, **profile: Any) -> User:
    """Create a user, or update the given profile fields of an existing one."""

    normalized = normalize_email(email)
    if not normalized:
        raise ValueError("email must not be empty")
    unknown = set(profile) - set(_PROFILE_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {sorted(unknown)}")

    values = {key: _dump_column(key, value) for key, value in profile.items()}
    with connect() as connection:
        row = connection.execute(
            "SELECT id FROM users WHERE email = ?", (normalized,)
        ).fetchone()
        if row is None:
            columns = ["email", "created_at", *values.keys()]
            params = [normalized, now_iso(), *values.values()]
            placeholders = ", ".join("?" for _ in columns)
            connection.execute(
                f"INSERT INTO users ({', '.join(columns)}) VALUES ({placeholders})",
                params,
            )
        elif values:
            assignments = ", ".join(f"{key} = ?" for key in values)
            connection.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                [*values.values(), int(row["id"])],
            )
    user = get_user_by_email(normalized)
    if user is None:
        raise StorageError("Failed to read user after upsert")
    return user


def get_user_by_email(email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    with connect() as connection:
        row = connection.execute(
            "SELECT * FROM users WHERE email = ?", (normalized,)
        ).fetchone()
    if row is None:
        return None
    return _row_to_user(row)


def _dump_column(column: str, value: Any) -> Any:
    if column not in _LIST_COLUMNS:
        return value
    if value is None:
        return "[]"
    if isinstance(value, str):
        return json.dumps([value]) if value.strip() else "[]"
    return json.dumps([str(item) for item in value])


def _load_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return [raw]
    if isinstance(parsed, list):
        return [str(item) for item in parsed if str(item).strip()]
    if isinstance(parsed, str) and parsed.strip():
        return [parsed]
    return []


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=int(row["id"]),
        email=str(row["email"]),
        name=row["name"],
        native_language=row["native_language"],
        level=row["level"],
        learning_goal=row["learning_goal"],
        interests=_load_list(row["interests"]),
        focus=row["focus"],
        occupation=row["occupation"],
        preferred_topics=_load_list(row["preferred_topics"]),
        preferred_content_type=row["preferred_content_type"],
        voice=row["voice"],
        created_at=str(row["created_at"]),
    )


# ── Turns ────────────────────────────────────────────────────────────────────


def insert_turn(user_id: int, user_message: str, model_response: str) -> Turn:
    timestamp = now_iso()
    with connect() as connection:
        cursor = connection.execute(
            """
            INSERT INTO turns (user_id, user_message, model_response, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, user_message, model_response, timestamp, timestamp),
        )
        turn_id = int(cursor.lastrowid)
    return Turn(
        id=turn_id,
        user_id=user_id,
        user_message=user_message,
        model_response=model_response,
        created_at=timestamp,
        updated_at=timestamp,
    )


def get_turn(turn_id: int) -> Turn | None:
    with connect() as connection:
        row = connection.execute("SELECT * FROM turns WHERE id = ?", (turn_id,)).fetchone()
    if row is None:
        return None
    return _row_to_turn(row)


def fetch_recent_turns(
    user_id: int,
    *,
    limit: int = 5,
    exclude_turn_id: int | None = None,
) -> list[Turn]:
    """Return up to ``limit`` turns for the user, newest first."""

    query = "SELECT * FROM turns WHERE user_id = ?"
    params: list[Any] = [user_id]
    if exclude_turn_id is not None:
        query += " AND id != ?"
        params.append(exclude_turn_id)
    query += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)
    with connect() as connection:
        rows = connection.execute(query, params).fetchall()
    return [_row_to_turn(row) for row in rows]


def fetch_all_turns(user_id: int) -> list[Turn]:
    """Return every turn for the user in chronological order."""

    with connect() as connection:
        rows = connection.execute(
            "SELECT * FROM turns WHERE user_id = ? ORDER BY created_at ASC, id ASC",
            (user_id,),
        ).fetchall()
    return [_row_to_turn(row) for row in rows]


def count_turns(user_id: int) -> int:
    with connect() as connection:
        row = connection.execute(
            "SELECT COUNT(*) AS total FROM turns WHERE user_id = ?", (user_id,)
        ).fetchone()
    return int(row["total"]) if row else 0


def update_turn_message(turn_id: int, user_id: int, user_message: str) -> bool:
    """Overwrite the student message if ``user_id`` owns the turn.

    Ownership and mutation happen in one statement; returns False when no row
    matched (missing turn or a different owner).
    """

    with connect() as connection:
        cursor = connection.execute(
            "UPDATE turns SET user_message = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (user_message, now_iso(), turn_id, user_id),
        )
        return cursor.rowcount > 0


def update_turn_response(turn_id: int, user_id: int, model_response: str) -> bool:
    with connect() as connection:
        cursor = connection.execute(
            "UPDATE turns SET model_response = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (model_response, now_iso(), turn_id, user_id),
        )
        return cursor.rowcount > 0


def delete_turn(turn_id: int, user_id: int) -> bool:
    with connect() as connection:
        cursor = connection.execute(
            "DELETE FROM turns WHERE id = ? AND user_id = ?",
            (turn_id, user_id),
        )
        return cursor.rowcount > 0


def _row_to_turn(row: sqlite3.Row) -> Turn:
    return Turn(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        user_message=str(row["user_message"]),
        model_response=str(row["model_response"]),
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


# ── Pronunciation attempts ───────────────────────────────────────────────────


def insert_pronunciation_attempt(
    *,
    user_id: int,
    word: str,
    audio_url: str,
    accuracy: int,
    feedback: str,
) -> PronunciationAttempt:
    timestamp = now_iso()
    with connect() as connection:
        cursor = connection.execute(
            """
            INSERT INTO pronunciation_attempts (user_id, word, audio_url, accuracy, feedback, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, word, audio_url, accuracy, feedback, timestamp),
        )
        attempt_id = int(cursor.lastrowid)
    return PronunciationAttempt(
        id=attempt_id,
        user_id=user_id,
        word=word,
        audio_url=audio_url,
        accuracy=accuracy,
        feedback=feedback,
        created_at=timestamp,
    )


def fetch_pronunciation_attempts(user_id: int, *, limit: int | None = None) -> list[PronunciationAttempt]:
    """Return attempts for the user, newest first."""

    query = "SELECT * FROM pronunciation_attempts WHERE user_id = ? ORDER BY created_at DESC, id DESC"
    params: Sequence[Any] = (user_id,)
    if limit is not None:
        query += " LIMIT ?"
        params = (user_id, limit)
    with connect() as connection:
        rows = connection.execute(query, params).fetchall()
    return [
        PronunciationAttempt(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            word=str(row["word"]),
            audio_url=str(row["audio_url"]),
            accuracy=int(row["accuracy"]),
            feedback=str(row["feedback"]),
            created_at=str(row["created_at"]),
        )
        for row in rows
    ]


__all__ = [
    "DB_PATH",
    "connect",
    "count_turns",
    "delete_turn",
    "fetch_all_turns",
    "fetch_pronunciation_attempts",
    "fetch_recent_turns",
    "get_turn",
    "get_user_by_email",
    "init_db",
    "insert_pronunciation_attempt",
    "insert_turn",
    "normalize_email",
    "now_iso",
    "update_turn_message",
    "update_turn_response",
    "upsert_user",
]
