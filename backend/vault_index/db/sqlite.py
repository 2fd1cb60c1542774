"""SQLite management utilities."""

from __future__ import annotations

import sqlite3
import threading
from array import array
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA temp_store=MEMORY;",
)


class SQLiteDatabase:
    """Thin wrapper around sqlite3 shared between the event loop and worker threads.

    Every statement runs under one lock; the connection is opened with
    ``check_same_thread=False`` so ``asyncio.to_thread`` callers can use it.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        self.lock = threading.RLock()
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        with self.lock:
            if self._connection is None:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                connection = sqlite3.connect(self.db_path, check_same_thread=False)
                connection.row_factory = sqlite3.Row
                for pragma in DEFAULT_PRAGMAS:
                    connection.execute(pragma)
                self._connection = connection
            return self._connection

    def close(self) -> None:
        with self.lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def executescript(self, script: str) -> None:
        with self.lock:
            self.connect().executescript(script)

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        with self.lock:
            return self.connect().execute(sql, params or []).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        with self.lock:
            conn = self.connect()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()


def iter_rows(cursor: sqlite3.Cursor) -> Iterator[sqlite3.Row]:
    """Yield rows from a cursor lazily."""
    while True:
        row = cursor.fetchone()
        if row is None:
            break
        yield row


def vector_to_blob(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def blob_to_vector(blob: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(blob)
    return list(floats)


__all__ = ["SQLiteDatabase", "iter_rows", "vector_to_blob", "blob_to_vector"]
