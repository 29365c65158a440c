"""Embeddings repository: chunk id <-> vector id mappings per model."""

from __future__ import annotations

import sqlite3
from typing import Sequence

from docsift.core.errors import NotFoundError
from docsift.db.sqlite import SQLiteDatabase, placeholders
from docsift.models.entities import EmbeddingRecord
from docsift.utils.time import iso_now


class EmbeddingsRepository:
    """Embedding rows. Deleting a row never touches the vector index."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create_embedding(self, chunk_id: int, vector_id: int, model_name: str, dimension: int) -> EmbeddingRecord:
        with self.db.transaction():
            cursor = self.db.execute(
                """
                INSERT INTO embeddings (chunk_id, vector_id, model_name, dimension, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [chunk_id, vector_id, model_name, dimension, iso_now()],
            )
        row = self.db.query_one("SELECT * FROM embeddings WHERE id = ?", [cursor.lastrowid])
        if row is None:
            raise NotFoundError(f"Embedding not found: {cursor.lastrowid}")
        return _map_embedding(row)

    def list_embeddings_by_chunk(self, chunk_id: int) -> list[EmbeddingRecord]:
        rows = self.db.query("SELECT * FROM embeddings WHERE chunk_id = ? ORDER BY id ASC", [chunk_id])
        return [_map_embedding(row) for row in rows]

    def list_embeddings_by_file(self, file_id: int) -> list[EmbeddingRecord]:
        rows = self.db.query(
            """
            SELECT e.* FROM embeddings e
            JOIN chunks c ON c.id = e.chunk_id
            WHERE c.file_id = ?
            ORDER BY e.id ASC
            """,
            [file_id],
        )
        return [_map_embedding(row) for row in rows]

    def list_embeddings_by_vector_ids(self, vector_ids: Sequence[int], model_name: str) -> list[EmbeddingRecord]:
        """Resolve vector ids to live chunks for one model.

        Mappings whose chunk or file is soft-deleted are filtered out; stranded
        vector ids simply have no row.
        """
        if not vector_ids:
            return []
        rows = self.db.query(
            f"""
            SELECT e.* FROM embeddings e
            JOIN chunks c ON c.id = e.chunk_id
            JOIN files f ON f.id = c.file_id
            WHERE e.vector_id IN ({placeholders(len(vector_ids))})
              AND e.model_name = ?
              AND c.is_deleted = 0
              AND f.is_deleted = 0
            """,
            [*vector_ids, model_name],
        )
        return [_map_embedding(row) for row in rows]

    def delete_embeddings_by_file(self, file_id: int) -> int:
        with self.db.transaction():
            cursor = self.db.execute(
                "DELETE FROM embeddings WHERE chunk_id IN (SELECT id FROM chunks WHERE file_id = ?)",
                [file_id],
            )
        return cursor.rowcount

    def max_vector_id(self) -> int:
        """Highest vector id recorded, or -1 for an empty catalog."""
        row = self.db.query_one("SELECT MAX(vector_id) AS max_id FROM embeddings")
        if row is None or row["max_id"] is None:
            return -1
        return int(row["max_id"])

    def count_embeddings(self, model_name: str | None = None) -> int:
        if model_name is None:
            row = self.db.query_one("SELECT COUNT(*) AS count FROM embeddings")
        else:
            row = self.db.query_one("SELECT COUNT(*) AS count FROM embeddings WHERE model_name = ?", [model_name])
        return int(row["count"]) if row else 0


def _map_embedding(row: sqlite3.Row) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=row["id"],
        chunk_id=row["chunk_id"],
        vector_id=row["vector_id"],
        model_name=row["model_name"],
        dimension=row["dimension"],
        created_at=row["created_at"],
    )


__all__ = ["EmbeddingsRepository"]
