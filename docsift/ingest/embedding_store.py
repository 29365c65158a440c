"""Couples vector id allocation with embedding rows."""

from __future__ import annotations

from typing import Sequence

from docsift.core.errors import ValidationError
from docsift.db.repositories import EmbeddingsRepository
from docsift.models.entities import EmbeddingRecord
from docsift.retrieval.vector_index import VectorIndex


class EmbeddingStore:
    """The only writer of embedding rows.

    Every row it creates points at a vector id that the index allocated for
    exactly that vector, in the order the vectors were given.
    """

    def __init__(self, embeddings: EmbeddingsRepository, vector_index: VectorIndex) -> None:
        self.embeddings = embeddings
        self.vector_index = vector_index

    def store_embeddings(
        self,
        chunk_ids: Sequence[int],
        vectors: Sequence[Sequence[float]],
        model_name: str,
        dimension: int,
    ) -> list[EmbeddingRecord]:
        if len(chunk_ids) != len(vectors):
            raise ValidationError(
                f"chunk_ids and vectors length mismatch: {len(chunk_ids)} != {len(vectors)}"
            )
        for vector in vectors:
            if len(vector) != dimension:
                raise ValidationError(f"vector dimension mismatch: {len(vector)} != {dimension}")
        if not vectors:
            return []

        vector_ids = self.vector_index.add(vectors)
        if len(vector_ids) != len(chunk_ids):
            raise ValidationError("vector index returned an unexpected number of ids")

        return [
            self.embeddings.create_embedding(
                chunk_id=chunk_id,
                vector_id=vector_id,
                model_name=model_name,
                dimension=dimension,
            )
            for chunk_id, vector_id in zip(chunk_ids, vector_ids)
        ]


__all__ = ["EmbeddingStore"]
