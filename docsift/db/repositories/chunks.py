"""Chunks repository; keeps the chunk catalog and its FTS rows in step."""

from __future__ import annotations

import sqlite3
from typing import Sequence

from docsift.core.errors import NotFoundError
from docsift.db.sqlite import SQLiteDatabase
from docsift.ingest.types import TextChunk
from docsift.models.entities import ChunkRecord
from docsift.utils.time import iso_now


class ChunksRepository:
    """Chunk rows plus the ``chunks_fts`` text index keyed by chunk id."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create_chunk(
        self,
        file_id: int,
        chunk_index: int,
        token_count: int,
        text: str,
        source_id: int,
        is_deleted: bool = False,
    ) -> ChunkRecord:
        with self.db.transaction():
            cursor = self.db.execute(
                """
                INSERT INTO chunks (file_id, chunk_index, token_count, is_deleted, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [file_id, chunk_index, token_count, int(is_deleted), iso_now()],
            )
            chunk_id = cursor.lastrowid
            self.db.execute(
                "INSERT INTO chunks_fts (rowid, chunk_id, text, is_deleted, source_id) VALUES (?, ?, ?, ?, ?)",
                [chunk_id, chunk_id, text, int(is_deleted), source_id],
            )
        record = self.get_chunk_by_id(chunk_id) if chunk_id is not None else None
        if record is None:
            raise NotFoundError(f"Chunk not found: {chunk_id}")
        return record

    def create_chunks(self, file_id: int, source_id: int, chunks: Sequence[TextChunk]) -> list[ChunkRecord]:
        """Insert every chunk of a file atomically, in chunk order."""
        with self.db.transaction():
            return [
                self.create_chunk(
                    file_id=file_id,
                    chunk_index=chunk.index,
                    token_count=chunk.token_count,
                    text=chunk.text,
                    source_id=source_id,
                )
                for chunk in chunks
            ]

    def mark_chunks_deleted_by_file(self, file_id: int) -> None:
        with self.db.transaction():
            self.db.execute(
                "UPDATE chunks SET is_deleted = 1, updated_at = ? WHERE file_id = ?",
                [iso_now(), file_id],
            )
            self.db.execute(
                "UPDATE chunks_fts SET is_deleted = 1 WHERE rowid IN (SELECT id FROM chunks WHERE file_id = ?)",
                [file_id],
            )

    def delete_chunks_by_file(self, file_id: int) -> None:
        """Hard-delete a file's chunks and FTS rows; embeddings cascade."""
        with self.db.transaction():
            self.db.execute(
                "DELETE FROM chunks_fts WHERE rowid IN (SELECT id FROM chunks WHERE file_id = ?)",
                [file_id],
            )
            self.db.execute("DELETE FROM chunks WHERE file_id = ?", [file_id])

    def get_chunk_by_id(self, chunk_id: int) -> ChunkRecord | None:
        row = self.db.query_one("SELECT * FROM chunks WHERE id = ?", [chunk_id])
        return _map_chunk(row) if row else None

    def list_chunks_by_file(self, file_id: int) -> list[ChunkRecord]:
        rows = self.db.query("SELECT * FROM chunks WHERE file_id = ? ORDER BY chunk_index ASC", [file_id])
        return [_map_chunk(row) for row in rows]

    def count_active_chunks(self, source_id: int | None = None) -> int:
        sql = """
            SELECT COUNT(*) AS count
            FROM chunks c
            JOIN files f ON f.id = c.file_id
            WHERE c.is_deleted = 0 AND f.is_deleted = 0
        """
        params: list[int] = []
        if source_id is not None:
            sql += " AND f.source_id = ?"
            params.append(source_id)
        row = self.db.query_one(sql, params)
        return int(row["count"]) if row else 0


def _map_chunk(row: sqlite3.Row) -> ChunkRecord:
    return ChunkRecord(
        id=row["id"],
        file_id=row["file_id"],
        chunk_index=row["chunk_index"],
        token_count=row["token_count"],
        is_deleted=bool(row["is_deleted"]),
        updated_at=row["updated_at"],
    )


__all__ = ["ChunksRepository"]
