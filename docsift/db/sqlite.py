"""SQLite management utilities."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from docsift.core.errors import StorageConstraintError

MEMORY_PATH = ":memory:"

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA busy_timeout=5000;",
    "PRAGMA temp_store=MEMORY;",
)


class SQLiteDatabase:
    """Thin wrapper around sqlite3 providing pragmatic defaults.

    Writes are grouped with :meth:`transaction`, which nests: only the
    outermost block issues ``BEGIN`` and ``COMMIT``/``ROLLBACK``.
    """

    def __init__(self, db_path: Path | str, read_only: bool = False) -> None:
        self.db_path = db_path if db_path == MEMORY_PATH else Path(db_path).expanduser()
        self.read_only = read_only
        self._connection: sqlite3.Connection | None = None
        self._depth = 0

    @property
    def in_memory(self) -> bool:
        return self.db_path == MEMORY_PATH

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            if self.in_memory:
                self._connection = sqlite3.connect(MEMORY_PATH)
            elif self.read_only:
                uri = f"file:{self.db_path}?mode=ro"
                self._connection = sqlite3.connect(uri, uri=True)
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._connection = sqlite3.connect(self.db_path)
            self._connection.row_factory = sqlite3.Row
            for pragma in DEFAULT_PRAGMAS:
                self._connection.execute(pragma)
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._depth = 0

    def __enter__(self) -> "SQLiteDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        self.close()

    def commit(self) -> None:
        if self._connection is not None:
            self._connection.commit()

    def rollback(self) -> None:
        if self._connection is not None:
            self._connection.rollback()

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        conn = self.connect()
        try:
            return conn.execute(sql, params or [])
        except sqlite3.IntegrityError as exc:
            raise StorageConstraintError(str(exc)) from exc

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> sqlite3.Cursor:
        conn = self.connect()
        try:
            return conn.executemany(sql, seq_of_params)
        except sqlite3.IntegrityError as exc:
            raise StorageConstraintError(str(exc)) from exc

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        cursor = self.execute(sql, params)
        return cursor.fetchall()

    def query_one(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
        return self.execute(sql, params).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        outermost = self._depth == 0
        if outermost and not conn.in_transaction:
            conn.execute("BEGIN")
        self._depth += 1
        try:
            yield conn
        except BaseException:
            self._depth -= 1
            if outermost:
                conn.rollback()
            raise
        else:
            self._depth -= 1
            if outermost:
                conn.commit()

    def migrate(self) -> int:
        """Apply pending schema migrations and return the schema version."""
        from docsift.db.migrations import apply_migrations

        return apply_migrations(self)


def placeholders(count: int) -> str:
    """Return ``?, ?, ...`` for an ``IN`` clause of ``count`` items."""
    return ", ".join("?" for _ in range(count))


__all__ = ["SQLiteDatabase", "MEMORY_PATH", "placeholders"]
