"""Fuse, truncate and rerank candidate lists."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from docsift.core.errors import ValidationError
from docsift.ingest.types import Mixer, RankedCandidate, RerankCandidate, RerankerProvider


@dataclass(slots=True)
class RankingResult:
    chunk_id: int
    score: float
    text: str


class RankingPipeline:
    """Mix two rankings, rerank the head of the fused list, keep the top.

    Fused candidates without hydrated text are dropped before truncation;
    they refer to chunks that are no longer addressable.
    """

    def __init__(self, mixer: Mixer, reranker: RerankerProvider, rerank_limit: int, top: int) -> None:
        if rerank_limit <= 0:
            raise ValidationError("rerank_limit must be positive")
        if top <= 0:
            raise ValidationError("top must be positive")
        self.mixer = mixer
        self.reranker = reranker
        self.rerank_limit = rerank_limit
        self.top = top

    async def run(
        self,
        query: str,
        bm25: Sequence[RankedCandidate],
        vector: Sequence[RankedCandidate],
        candidates: Sequence[RerankCandidate],
    ) -> list[RankingResult]:
        text_by_id = {candidate.chunk_id: candidate.text for candidate in candidates}
        mixed = self.mixer.mix(bm25, vector)
        targets = [candidate for candidate in mixed if candidate.chunk_id in text_by_id][: self.rerank_limit]
        if not targets:
            return []
        reranked = await self.reranker.rerank(
            query,
            [RerankCandidate(chunk_id=target.chunk_id, text=text_by_id[target.chunk_id]) for target in targets],
        )
        results = [
            RankingResult(chunk_id=item.chunk_id, score=item.score, text=text_by_id[item.chunk_id])
            for item in reranked
            if item.chunk_id in text_by_id
        ]
        results.sort(key=lambda result: result.score, reverse=True)
        return results[: self.top]


__all__ = ["RankingPipeline", "RankingResult"]
