"""Vector index abstraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence

import numpy as np

from docsift.core.errors import BackendUnavailableError, ValidationError
from docsift.core.logging import get_logger

if TYPE_CHECKING:
    from docsift.core.config import Settings

logger = get_logger(__name__)


@dataclass(slots=True)
class VectorHit:
    vector_id: int
    score: float


class VectorIndex(Protocol):
    """Append-only nearest-neighbour index.

    Ids returned by ``add`` are unique and increasing for the lifetime of the
    index and are never reused; there is no delete operation.
    """

    @property
    def size(self) -> int: ...

    def add(self, vectors: Sequence[Sequence[float]]) -> list[int]: ...

    def search(self, query: Sequence[float], limit: int) -> list[VectorHit]: ...

    def save(self) -> None: ...

    def close(self) -> None: ...


class InMemoryVectorIndex:
    """Exact in-memory index using cosine similarity.

    Vectors are stored L2-normalised, so search is a dot product against
    every stored vector.
    """

    def __init__(self, dim: int | None = None, first_id: int = 0) -> None:
        self.dim = dim
        self.first_id = first_id
        self._vectors: list[np.ndarray] = []

    @property
    def size(self) -> int:
        return len(self._vectors)

    def add(self, vectors: Sequence[Sequence[float]]) -> list[int]:
        ids: list[int] = []
        for vector in vectors:
            array = _as_array(vector)
            if self.dim is None:
                self.dim = array.shape[0]
            elif array.shape[0] != self.dim:
                raise ValidationError("Vector dimension mismatch")
            ids.append(self.first_id + len(self._vectors))
            self._vectors.append(_normalize(array))
        return ids

    def search(self, query: Sequence[float], limit: int) -> list[VectorHit]:
        if not self._vectors or limit <= 0:
            return []
        query_array = _as_array(query)
        if query_array.shape[0] != self.dim:
            raise ValidationError("Query vector dimension mismatch")
        scores = np.stack(self._vectors) @ _normalize(query_array)
        # stable sort keeps lower ids first among equal scores
        order = np.argsort(-scores, kind="stable")[:limit]
        return [VectorHit(vector_id=self.first_id + int(idx), score=float(scores[idx])) for idx in order]

    def save(self) -> None:
        return None

    def close(self) -> None:
        # later ids continue past the cleared vectors
        self.first_id += len(self._vectors)
        self._vectors = []


def open_vector_index(settings: "Settings", first_id: int = 0) -> VectorIndex:
    """Open the configured backend, degrading to the exact index if HNSW is unavailable.

    ``first_id`` is the lowest id either backend may allocate, so a missing or
    transient index never hands out vector ids already recorded in the catalog.
    """
    if settings.vector_backend == "memory":
        return InMemoryVectorIndex(dim=settings.embedding_dimension, first_id=first_id)
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    try:
        return HnswVectorIndex.open(
            index_path=settings.vector_index_path,
            dimension=settings.embedding_dimension,
            max_elements=settings.hnsw_max_elements,
            space=settings.vector_space,
            m=settings.hnsw_m,
            ef_construction=settings.hnsw_ef_construction,
            ef_search=settings.hnsw_ef_search,
            first_id=first_id,
        )
    except BackendUnavailableError as exc:
        logger.warning("HNSW backend unavailable (%s); using in-memory vector index", exc)
        return InMemoryVectorIndex(dim=settings.embedding_dimension, first_id=first_id)


def _as_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float32).reshape(-1)


def _normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return np.zeros_like(vector)
    return vector / norm


__all__ = ["VectorHit", "VectorIndex", "InMemoryVectorIndex", "open_vector_index"]
