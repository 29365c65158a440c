"""Batch hydration of chunk ids into display details."""

from __future__ import annotations

from typing import Sequence

from docsift.db.sqlite import SQLiteDatabase, placeholders
from docsift.models.entities import ChunkDetail


class ChunkDetailsRepository:
    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def get_chunk_details_by_ids(self, chunk_ids: Sequence[int], source_id: int | None = None) -> list[ChunkDetail]:
        """Join chunk text, file path and source name for live chunks only.

        Ids whose chunk or file is soft-deleted, or that no longer exist, are
        absent from the result.
        """
        if not chunk_ids:
            return []
        sql = f"""
            SELECT c.id AS chunk_id,
                   f.path AS file_path,
                   s.id AS source_id,
                   s.name AS source_name,
                   ft.text AS chunk_text
            FROM chunks c
            JOIN files f ON f.id = c.file_id
            JOIN sources s ON s.id = f.source_id
            JOIN chunks_fts ft ON ft.rowid = c.id
            WHERE c.id IN ({placeholders(len(chunk_ids))})
              AND c.is_deleted = 0
              AND f.is_deleted = 0
              AND ft.is_deleted = 0
        """
        params: list[int] = list(chunk_ids)
        if source_id is not None:
            sql += " AND s.id = ?"
            params.append(source_id)
        return [
            ChunkDetail(
                chunk_id=row["chunk_id"],
                chunk_text=row["chunk_text"],
                file_path=row["file_path"],
                source_id=row["source_id"],
                source_name=row["source_name"],
            )
            for row in self.db.query(sql, params)
        ]


__all__ = ["ChunkDetailsRepository"]
