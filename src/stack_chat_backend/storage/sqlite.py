"""SQLite-backed thread store."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

from stack_toolkit.models.messages import dump_messages, load_messages

from stack_chat_backend.errors import (
    ConflictError,
    OwnershipError,
    StoreUnavailableError,
    ThreadExistsError,
    ThreadNotFoundError,
)
from stack_chat_backend.storage.base import ThreadRecord, timestamp

if TYPE_CHECKING:
    from collections.abc import Iterator

    from stack_toolkit.models.messages import Message

logger = logging.getLogger(__name__)

_COLUMNS = "id, title, messages, owner, is_public, cost, version, created_at, updated_at"
# Mutations only apply when the stored owner is absent or matches.
_OWNER_CONDITION = "(owner IS NULL OR owner = ?)"


class SQLiteThreadStore:
    """Thread store on a single SQLite table.

    Every mutation runs in its own ``BEGIN IMMEDIATE`` transaction, so the
    condition check and the write are atomic with respect to other writers,
    including other processes sharing the database file.
    """

    def __init__(self, db_path: str | Path, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout
        self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def create(self, record: ThreadRecord) -> ThreadRecord:
        now = timestamp()
        created_at = record.created_at or now
        stored = replace(record, created_at=created_at, updated_at=record.updated_at or created_at)
        with self._transaction() as conn:
            try:
                conn.execute(
                    f"INSERT INTO threads ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",  # noqa: S608
                    (
                        stored.id,
                        stored.title,
                        json.dumps(dump_messages(stored.messages), ensure_ascii=True),
                        stored.owner,
                        int(stored.is_public),
                        stored.cost,
                        stored.version,
                        stored.created_at,
                        stored.updated_at,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ThreadExistsError(record.id) from exc
        return stored

    def get(self, thread_id: str) -> ThreadRecord | None:
        rows = self._fetch_all(
            f"SELECT {_COLUMNS} FROM threads WHERE id = ?",  # noqa: S608
            (thread_id,),
        )
        return _row_to_record(rows[0]) if rows else None

    def update(
        self,
        thread_id: str,
        *,
        messages: list[Message],
        title: str | None = None,
        expected_owner: str | None = None,
        expected_version: int | None = None,
        cost_delta: float = 0.0,
    ) -> ThreadRecord:
        if cost_delta < 0:
            msg = "Cost delta must not be negative"
            raise ValueError(msg)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""UPDATE threads
                   SET messages = ?, title = COALESCE(?, title), owner = COALESCE(owner, ?),
                       version = version + 1, cost = cost + ?, updated_at = ?
                   WHERE id = ? AND {_OWNER_CONDITION} AND (? IS NULL OR version = ?)""",  # noqa: S608
                (
                    json.dumps(dump_messages(messages), ensure_ascii=True),
                    title,
                    expected_owner,
                    cost_delta,
                    timestamp(),
                    thread_id,
                    expected_owner,
                    expected_version,
                    expected_version,
                ),
            )
            if cursor.rowcount == 0:
                self._raise_failed_condition(conn, thread_id, expected_owner, expected_version)
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM threads WHERE id = ?",  # noqa: S608
                (thread_id,),
            ).fetchone()
        return _row_to_record(row)

    def add_cost(
        self, thread_id: str, delta: float, *, expected_owner: str | None = None
    ) -> float:
        if delta < 0:
            msg = "Cost delta must not be negative"
            raise ValueError(msg)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"""UPDATE threads SET cost = cost + ?, updated_at = ?
                   WHERE id = ? AND {_OWNER_CONDITION}""",  # noqa: S608
                (delta, timestamp(), thread_id, expected_owner),
            )
            if cursor.rowcount == 0:
                self._raise_failed_condition(conn, thread_id, expected_owner)
            (total,) = conn.execute("SELECT cost FROM threads WHERE id = ?", (thread_id,)).fetchone()
        return float(total)

    def list_by_owner(self, owner: str, limit: int = 50) -> list[ThreadRecord]:
        rows = self._fetch_all(
            f"""SELECT {_COLUMNS} FROM threads WHERE owner = ?
               ORDER BY created_at DESC LIMIT ?""",  # noqa: S608
            (owner, limit),
        )
        return [_row_to_record(row) for row in rows]

    def delete(self, thread_id: str, *, expected_owner: str | None = None) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                f"DELETE FROM threads WHERE id = ? AND {_OWNER_CONDITION}",  # noqa: S608
                (thread_id, expected_owner),
            )
            if cursor.rowcount == 0:
                self._raise_failed_condition(conn, thread_id, expected_owner)

    @staticmethod
    def _raise_failed_condition(
        conn: sqlite3.Connection,
        thread_id: str,
        expected_owner: str | None,
        expected_version: int | None = None,
    ) -> None:
        row = conn.execute(
            "SELECT owner, version FROM threads WHERE id = ?", (thread_id,)
        ).fetchone()
        if row is None:
            raise ThreadNotFoundError(thread_id)
        owner, version = row
        if owner is not None and owner != expected_owner:
            raise OwnershipError(thread_id)
        msg = (
            f"Thread {thread_id} was modified concurrently "
            f"(expected version {expected_version}, found {version})"
        )
        raise ConflictError(msg)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            msg = f"Thread store unavailable: {exc}"
            raise StoreUnavailableError(msg) from exc
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.exception("SQLite transaction failed")
            msg = f"Thread store unavailable: {exc}"
            raise StoreUnavailableError(msg) from exc
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _fetch_all(self, query: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        try:
            conn = self._connect()
            try:
                return conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.exception("SQLite query failed")
            msg = f"Thread store unavailable: {exc}"
            raise StoreUnavailableError(msg) from exc

    def _init_db(self) -> None:
        try:
            conn = self._connect()
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS threads (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL DEFAULT '',
                        messages TEXT NOT NULL,
                        owner TEXT,
                        is_public INTEGER NOT NULL DEFAULT 0,
                        cost REAL NOT NULL DEFAULT 0,
                        version INTEGER NOT NULL DEFAULT 1,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS threads_owner_created "
                    "ON threads (owner, created_at DESC)"
                )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            msg = f"Could not initialise thread store at {self._db_path}: {exc}"
            raise StoreUnavailableError(msg) from exc


def _row_to_record(row: tuple[Any, ...]) -> ThreadRecord:
    return ThreadRecord(
        id=row[0],
        title=row[1] or "",
        messages=load_messages(json.loads(row[2])),
        owner=row[3],
        is_public=bool(row[4]),
        cost=float(row[5]),
        version=int(row[6]),
        created_at=row[7],
        updated_at=row[8],
    )
