"""Reranking providers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from rapidfuzz import fuzz, utils

from docsift.core.errors import ProviderError
from docsift.ingest.types import RankedCandidate, RerankCandidate

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Wrapper around ``sentence_transformers.CrossEncoder``.

    The model is loaded on first use; load or inference failures surface as
    ``ProviderError`` rather than a silent fallback.
    """

    def __init__(self, model_name: str, device: str | None = None) -> None:
        self.model_name = model_name
        self.device = device
        self._model: Any | None = None

    async def rerank(self, query: str, candidates: Sequence[RerankCandidate]) -> list[RankedCandidate]:
        if not candidates:
            return []
        model = self._load()
        inputs = [[query, candidate.text] for candidate in candidates]
        try:
            scores = await asyncio.to_thread(model.predict, inputs, convert_to_numpy=True)
        except Exception as exc:
            raise ProviderError(f"Rerank inference failed for '{self.model_name}': {exc}") from exc
        scores = list(scores)
        if len(scores) != len(candidates):
            raise ProviderError("Unexpected reranker output length")
        return _order_by_scores(candidates, scores)

    def _load(self) -> Any:
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import CrossEncoder

            self._model = CrossEncoder(self.model_name, device=self.device)
        except Exception as exc:
            raise ProviderError(f"Failed to load rerank model '{self.model_name}': {exc}") from exc
        logger.info("Loaded rerank model %s", self.model_name)
        return self._model


class FuzzyReranker:
    """Score candidates by rapidfuzz token-set similarity to the query."""

    async def rerank(self, query: str, candidates: Sequence[RerankCandidate]) -> list[RankedCandidate]:
        scores = [
            fuzz.token_set_ratio(query, candidate.text, processor=utils.default_process) / 100.0
            for candidate in candidates
        ]
        return _order_by_scores(candidates, scores)


def _order_by_scores(candidates: Sequence[RerankCandidate], scores: Sequence[Any]) -> list[RankedCandidate]:
    ranked = [
        RankedCandidate(chunk_id=candidate.chunk_id, score=float(score))
        for candidate, score in zip(candidates, scores)
    ]
    ranked.sort(key=lambda item: item.score, reverse=True)
    return ranked


__all__ = ["CrossEncoderReranker", "FuzzyReranker"]
