"""Hybrid search utilities."""

from __future__ import annotations

from typing import Sequence

from docsift.core.errors import ValidationError
from docsift.ingest.types import RankedCandidate


class RrfMixer:
    """Combine a lexical and a vector ranking using reciprocal rank fusion.

    Each list contributes ``1 / (rrf_k + rank)`` per entry (rank is 1-based).
    Equal fused scores keep the order in which chunks were first seen, lexical
    list first.
    """

    def __init__(self, rrf_k: int = 60) -> None:
        if rrf_k <= 0:
            raise ValidationError("rrf_k must be positive")
        self.rrf_k = rrf_k

    def mix(self, bm25: Sequence[RankedCandidate], vector: Sequence[RankedCandidate]) -> list[RankedCandidate]:
        scores: dict[int, float] = {}
        for hits in (bm25, vector):
            for rank, candidate in enumerate(hits, start=1):
                scores[candidate.chunk_id] = scores.get(candidate.chunk_id, 0.0) + 1.0 / (self.rrf_k + rank)
        fused = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        return [RankedCandidate(chunk_id=chunk_id, score=score) for chunk_id, score in fused]


__all__ = ["RrfMixer"]
