"""Files repository."""

from __future__ import annotations

import sqlite3

from docsift.core.errors import NotFoundError
from docsift.db.sqlite import SQLiteDatabase
from docsift.models.entities import FileRecord
from docsift.utils.time import iso_now


class FilesRepository:
    """One row per document path per source, as last observed by sync."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create_file(
        self, source_id: int, path: str, mtime: int, size: int, hash: str, is_deleted: bool = False
    ) -> FileRecord:
        with self.db.transaction():
            cursor = self.db.execute(
                """
                INSERT INTO files (source_id, path, mtime, size, hash, is_deleted, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [source_id, path, mtime, size, hash, int(is_deleted), iso_now()],
            )
        return self._require(cursor.lastrowid)

    def update_file(
        self, file_id: int, mtime: int, size: int, hash: str, is_deleted: bool = False
    ) -> FileRecord:
        with self.db.transaction():
            self.db.execute(
                """
                UPDATE files
                SET mtime = ?, size = ?, hash = ?, is_deleted = ?, updated_at = ?
                WHERE id = ?
                """,
                [mtime, size, hash, int(is_deleted), iso_now(), file_id],
            )
        return self._require(file_id)

    def mark_file_deleted(self, file_id: int) -> None:
        with self.db.transaction():
            self.db.execute("UPDATE files SET is_deleted = 1, updated_at = ? WHERE id = ?", [iso_now(), file_id])

    def get_file_by_id(self, file_id: int) -> FileRecord | None:
        row = self.db.query_one("SELECT * FROM files WHERE id = ?", [file_id])
        return _map_file(row) if row else None

    def get_file_by_path(self, source_id: int, path: str) -> FileRecord | None:
        row = self.db.query_one("SELECT * FROM files WHERE source_id = ? AND path = ?", [source_id, path])
        return _map_file(row) if row else None

    def list_files_by_source(self, source_id: int) -> list[FileRecord]:
        rows = self.db.query("SELECT * FROM files WHERE source_id = ? ORDER BY path ASC", [source_id])
        return [_map_file(row) for row in rows]

    def count_files_by_source(self, source_id: int, include_deleted: bool = False) -> int:
        sql = "SELECT COUNT(*) AS count FROM files WHERE source_id = ?"
        if not include_deleted:
            sql += " AND is_deleted = 0"
        row = self.db.query_one(sql, [source_id])
        return int(row["count"]) if row else 0

    def _require(self, file_id: int | None) -> FileRecord:
        record = self.get_file_by_id(file_id) if file_id is not None else None
        if record is None:
            raise NotFoundError(f"File not found: {file_id}")
        return record


def _map_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["id"],
        source_id=row["source_id"],
        path=row["path"],
        mtime=row["mtime"],
        size=row["size"],
        hash=row["hash"],
        is_deleted=bool(row["is_deleted"]),
        updated_at=row["updated_at"],
    )


__all__ = ["FilesRepository"]
