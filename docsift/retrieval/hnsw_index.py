"""Persistent approximate vector index backed by hnswlib."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import numpy as np

from docsift.core.errors import BackendUnavailableError, ValidationError
from docsift.core.logging import get_logger
from docsift.retrieval.vector_index import VectorHit

logger = get_logger(__name__)

SPACES = ("cosine", "ip", "l2")


def _import_hnswlib() -> Any:
    try:
        import hnswlib
    except ImportError as exc:
        raise BackendUnavailableError(f"hnswlib is not installed: {exc}") from exc
    return hnswlib


class HnswVectorIndex:
    """HNSW graph persisted to a single file.

    Labels are allocated by this class, starting from one past the highest
    label already stored, so reopening an index never reuses an id.
    """

    def __init__(self, index: Any, index_path: Path, space: str, next_id: int) -> None:
        self._index = index
        self.index_path = index_path
        self.space = space
        self._next_id = next_id

    @classmethod
    def open(
        cls,
        index_path: Path,
        dimension: int,
        max_elements: int,
        space: str = "cosine",
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 64,
        random_seed: int = 100,
        first_id: int = 0,
    ) -> "HnswVectorIndex":
        if space not in SPACES:
            raise ValidationError(f"Unsupported vector space: {space}")
        hnswlib = _import_hnswlib()
        index_path = Path(index_path).expanduser()
        index = hnswlib.Index(space=space, dim=dimension)
        if index_path.exists():
            index.load_index(str(index_path), max_elements=max_elements)
            logger.debug("Loaded HNSW index from %s (%s vectors)", index_path, index.get_current_count())
        else:
            index.init_index(
                max_elements=max_elements,
                M=m,
                ef_construction=ef_construction,
                random_seed=random_seed,
            )
        if max_elements > index.get_max_elements():
            index.resize_index(max_elements)
        index.set_ef(ef_search)
        ids = index.get_ids_list()
        next_id = max(max(ids) + 1 if len(ids) else 0, first_id)
        return cls(index, index_path, space, next_id)

    @property
    def size(self) -> int:
        if self._index is None:
            return 0
        return int(self._index.get_current_count())

    def add(self, vectors: Sequence[Sequence[float]]) -> list[int]:
        if self._index is None:
            raise ValidationError("Vector index is closed")
        if len(vectors) == 0:
            return []
        data = np.asarray(vectors, dtype=np.float32)
        if data.ndim != 2 or data.shape[1] != self._index.dim:
            raise ValidationError("Vector dimension mismatch")
        self._ensure_capacity(len(data))
        ids = list(range(self._next_id, self._next_id + len(data)))
        self._index.add_items(data, np.asarray(ids, dtype=np.int64))
        self._next_id += len(ids)
        return ids

    def search(self, query: Sequence[float], limit: int) -> list[VectorHit]:
        count = self.size
        if limit <= 0 or count == 0:
            return []
        query_array = np.asarray(query, dtype=np.float32).reshape(1, -1)
        if query_array.shape[1] != self._index.dim:
            raise ValidationError("Query vector dimension mismatch")
        labels, distances = self._index.knn_query(query_array, k=min(limit, count))
        hits = [
            VectorHit(vector_id=int(label), score=self._to_score(float(distance)))
            for label, distance in zip(labels[0], distances[0])
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    def save(self) -> None:
        if self._index is None:
            return
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        self._index.save_index(str(self.index_path))

    def close(self) -> None:
        self._index = None

    def _ensure_capacity(self, additional: int) -> None:
        required = self._index.get_current_count() + additional
        capacity = self._index.get_max_elements()
        if required > capacity:
            logger.info("Resizing HNSW index from %s to %s elements", capacity, required)
            self._index.resize_index(required)

    def _to_score(self, distance: float) -> float:
        if self.space == "l2":
            return -distance
        return 1.0 - distance


__all__ = ["HnswVectorIndex"]
