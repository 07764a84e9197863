"""SQLite-backed record store and change channel for person records."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .config import DEFAULT_CHANNEL, DEFAULT_POOL_SIZE, DEFAULT_QUERY_TIMEOUT
from .errors import StoreError
from .models import Person
from .schemas import encode_person

logger = logging.getLogger("people.database")

SEARCH_LIMIT = 50


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize_stack(stack: Optional[Tuple[str, ...]]) -> Optional[str]:
    if stack is None:
        return None
    return json.dumps(list(stack))


def _search_text(person: Person) -> str:
    parts = [person.name, person.nick, *(person.stack or ())]
    return " ".join(parts).casefold()


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_person(row: sqlite3.Row) -> Person:
    try:
        raw_stack = row["stack"]
        stack = tuple(json.loads(raw_stack)) if raw_stack is not None else None
        return Person(
            id=uuid.UUID(row["id"]),
            name=row["name"],
            nick=row["nick"],
            birth_date=date.fromisoformat(row["birth_date"]),
            stack=stack,
        )
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Stored person row could not be decoded: {exc}") from exc


@dataclass(frozen=True)
class Notification:
    """A single message received from a change channel."""

    id: int
    channel: str
    payload: str


class Database:
    """Authoritative store for person records.

    Every committed insert also writes one message onto the configured change
    channel inside the same transaction, so listeners in any process sharing
    the database file observe each commit exactly when it becomes durable.
    """

    def __init__(
        self,
        path: Path,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        channel: str = DEFAULT_CHANNEL,
        timeout: float = DEFAULT_QUERY_TIMEOUT,
    ) -> None:
        _ensure_directory(path)
        self._path = path
        self._channel = channel
        self._timeout = timeout
        self._slots = threading.BoundedSemaphore(pool_size)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def channel(self) -> str:
        return self._channel

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow one of the pool's connection slots for a single transaction."""

        if not self._slots.acquire(timeout=self._timeout):
            raise StoreError("Timed out waiting for a free database connection")
        try:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()
        finally:
            self._slots.release()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS people (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    nick TEXT NOT NULL,
                    birth_date TEXT NOT NULL,
                    stack TEXT,
                    search TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    CONSTRAINT people_nick_unique UNIQUE (nick)
                );

                CREATE TABLE IF NOT EXISTS notifications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    channel TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_notifications_channel ON notifications(channel, id);
                """
            )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def insert_person(self, person: Person) -> uuid.UUID:
        """Insert ``person`` and publish it on the change channel.

        ``sqlite3.IntegrityError`` propagates when the nickname is taken; the
        registry translates it.
        """

        created_at = _current_timestamp()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO people (id, name, nick, birth_date, stack, search, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(person.id),
                    person.name,
                    person.nick,
                    person.birth_date.isoformat(),
                    _serialize_stack(person.stack),
                    _search_text(person),
                    created_at,
                ),
            )
            self._notify(conn, self._channel, encode_person(person), created_at)
        return person.id

    def get_person(self, person_id: uuid.UUID) -> Optional[Person]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT id, name, nick, birth_date, stack
                FROM people
                WHERE id = ?
                """,
                (str(person_id),),
            ).fetchone()
        if row is None:
            return None
        return _row_to_person(row)

    def search_people(self, text: str, *, limit: int = SEARCH_LIMIT) -> List[Person]:
        """Return up to ``limit`` people whose name, nick or stack contains ``text``.

        Both sides are case-folded, so the match ignores case beyond ASCII.
        """

        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, name, nick, birth_date, stack
                FROM people
                WHERE search LIKE ? ESCAPE '\\'
                LIMIT ?
                """,
                (f"%{_escape_like(text.casefold())}%", min(limit, SEARCH_LIMIT)),
            ).fetchall()
        return [_row_to_person(row) for row in rows]

    def count_people(self) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM people").fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Change channel
    # ------------------------------------------------------------------
    @staticmethod
    def _notify(conn: sqlite3.Connection, channel: str, payload: str, created_at: str) -> None:
        conn.execute(
            "INSERT INTO notifications (channel, payload, created_at) VALUES (?, ?, ?)",
            (channel, payload, created_at),
        )

    def publish(self, channel: str, payload: str) -> None:
        """Publish an arbitrary payload on ``channel`` outside of a record insert."""

        with self._connection() as conn:
            self._notify(conn, channel, payload, _current_timestamp())

    def listen(self, channel: str, *, from_start: bool = False) -> "NotificationListener":
        """Open a dedicated listener connection subscribed to ``channel``.

        Unless ``from_start`` is set, the listener only receives messages
        committed after this call returns.
        """

        conn = self._connect()
        try:
            if from_start:
                cursor = 0
            else:
                row = conn.execute(
                    "SELECT COALESCE(MAX(id), 0) AS latest FROM notifications WHERE channel = ?",
                    (channel,),
                ).fetchone()
                cursor = int(row["latest"])
        except sqlite3.Error:
            conn.close()
            raise
        logger.debug("Listening on channel %s from message %s", channel, cursor)
        return NotificationListener(conn, channel, cursor)


class NotificationListener:
    """Receives messages from one channel in commit order."""

    def __init__(self, conn: sqlite3.Connection, channel: str, cursor: int, *, batch_size: int = 500) -> None:
        self._conn = conn
        self._channel = channel
        self._cursor = cursor
        self._batch_size = batch_size
        self._closed = False

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def cursor(self) -> int:
        return self._cursor

    def receive(self) -> List[Notification]:
        """Return every message committed since the previous call, oldest first.

        An empty list means the channel is silent. ``sqlite3.Error`` is
        raised when the connection is lost.
        """

        if self._closed:
            raise sqlite3.ProgrammingError("Listener is closed")
        rows = self._conn.execute(
            """
            SELECT id, channel, payload
            FROM notifications
            WHERE channel = ? AND id > ?
            ORDER BY id
            LIMIT ?
            """,
            (self._channel, self._cursor, self._batch_size),
        ).fetchall()
        messages = [Notification(id=row["id"], channel=row["channel"], payload=row["payload"]) for row in rows]
        if messages:
            self._cursor = messages[-1].id
        return messages

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._conn.close()


__all__ = [
    "Database",
    "Notification",
    "NotificationListener",
    "SEARCH_LIMIT",
]
