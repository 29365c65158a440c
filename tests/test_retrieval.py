"""Tests for vector indexes, fusion and ranking."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from docsift.core.config import Settings
from docsift.core.errors import BackendUnavailableError, ValidationError
from docsift.ingest.types import RankedCandidate, RerankCandidate
from docsift.retrieval.hybrid import RrfMixer
from docsift.retrieval.ranking import RankingPipeline
from docsift.retrieval.rerank import FuzzyReranker
from docsift.retrieval.vector_index import InMemoryVectorIndex, open_vector_index

UNIT_VECTORS = [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]


def test_vector_index_basic() -> None:
    index = InMemoryVectorIndex(dim=3)
    assert index.add(UNIT_VECTORS) == [0, 1, 2]
    results = index.search([1.0, 0.0, 0.0], limit=1)
    assert len(results) == 1
    assert results[0].vector_id == 0
    assert results[0].score == pytest.approx(1.0)


def test_vector_index_ids_are_monotonic_from_floor() -> None:
    index = InMemoryVectorIndex(dim=3, first_id=7)
    assert index.add(UNIT_VECTORS[:2]) == [7, 8]
    assert index.add(UNIT_VECTORS[2:]) == [9]
    assert index.size == 3
    assert [hit.vector_id for hit in index.search([0.0, 0.0, 1.0], limit=3)][0] == 9


def test_vector_index_rejects_wrong_dimension() -> None:
    index = InMemoryVectorIndex(dim=3)
    with pytest.raises(ValidationError):
        index.add([[1.0, 0.0]])
    assert index.search([1.0, 0.0, 0.0], limit=0) == []


def test_hnsw_index_persists_and_never_reuses_ids(tmp_path: Path) -> None:
    pytest.importorskip("hnswlib")
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    path = tmp_path / "index.hnsw"
    index = HnswVectorIndex.open(path, dimension=3, max_elements=2)
    assert index.add(UNIT_VECTORS) == [0, 1, 2]
    hits = index.search([1.0, 0.0, 0.0], limit=10)
    assert len(hits) == 3
    assert hits[0].vector_id == 0
    assert hits[0].score == pytest.approx(1.0, abs=1e-5)
    index.save()
    index.close()
    assert index.size == 0

    reopened = HnswVectorIndex.open(path, dimension=3, max_elements=10)
    assert reopened.size == 3
    assert reopened.add([[1.0, 1.0, 0.0]]) == [3]


def test_vector_index_ids_stay_unique_after_close() -> None:
    index = InMemoryVectorIndex(dim=3)
    assert index.add(UNIT_VECTORS[:2]) == [0, 1]
    index.close()
    assert index.size == 0
    assert index.add(UNIT_VECTORS[2:]) == [2]


def test_hnsw_index_rejects_add_after_close(tmp_path: Path) -> None:
    pytest.importorskip("hnswlib")
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    index = HnswVectorIndex.open(tmp_path / "index.hnsw", dimension=3, max_elements=10)
    index.close()
    with pytest.raises(ValidationError, match="closed"):
        index.add(UNIT_VECTORS)
    assert index.search([1.0, 0.0, 0.0], limit=3) == []


@pytest.mark.parametrize(
    ("space", "distance", "score"),
    [("cosine", 0.25, 0.75), ("ip", 0.25, 0.75), ("l2", 4.0, -4.0)],
)
def test_hnsw_distance_to_score(space: str, distance: float, score: float) -> None:
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    index = HnswVectorIndex(None, Path("unused.hnsw"), space, 0)
    assert index._to_score(distance) == pytest.approx(score)


@pytest.mark.parametrize("space", ["cosine", "ip", "l2"])
def test_hnsw_search_orders_by_descending_score(tmp_path: Path, space: str) -> None:
    pytest.importorskip("hnswlib")
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    index = HnswVectorIndex.open(tmp_path / "index.hnsw", dimension=3, max_elements=10, space=space)
    index.add([[1.0, 0.0, 0.0], [0.6, 0.8, 0.0], [0.0, 0.0, 1.0]])
    hits = index.search([1.0, 0.0, 0.0], limit=3)
    assert [hit.vector_id for hit in hits] == [0, 1, 2]
    assert hits[0].score > hits[1].score > hits[2].score


def test_hnsw_index_honours_first_id(tmp_path: Path) -> None:
    pytest.importorskip("hnswlib")
    from docsift.retrieval.hnsw_index import HnswVectorIndex

    index = HnswVectorIndex.open(tmp_path / "index.hnsw", dimension=3, max_elements=10, first_id=10)
    assert index.add(UNIT_VECTORS[:2]) == [10, 11]


def test_open_vector_index_falls_back_without_hnswlib(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from docsift.retrieval import hnsw_index

    def unavailable():
        raise BackendUnavailableError("hnswlib is not installed")

    monkeypatch.setattr(hnsw_index, "_import_hnswlib", unavailable)
    settings = Settings.load(data_dir=tmp_path, embedding_dimension=3)
    index = open_vector_index(settings, first_id=5)
    assert isinstance(index, InMemoryVectorIndex)
    assert index.add(UNIT_VECTORS[:1]) == [5]


def test_open_vector_index_memory_backend(tmp_path: Path) -> None:
    settings = Settings.load(data_dir=tmp_path, vector_backend="memory", embedding_dimension=3)
    assert isinstance(open_vector_index(settings), InMemoryVectorIndex)


def _ranked(*chunk_ids: int) -> list[RankedCandidate]:
    return [RankedCandidate(chunk_id=chunk_id, score=1.0) for chunk_id in chunk_ids]


def test_rrf_prefers_chunks_in_both_lists() -> None:
    fused = RrfMixer(rrf_k=60).mix(_ranked(1, 2), _ranked(2, 3))
    assert [candidate.chunk_id for candidate in fused] == [2, 1, 3]
    assert fused[0].score == pytest.approx(1 / 62 + 1 / 61)


def test_rrf_ties_keep_first_seen_order() -> None:
    fused = RrfMixer().mix(_ranked(4), _ranked(9))
    assert [candidate.chunk_id for candidate in fused] == [4, 9]
    assert fused[0].score == fused[1].score


def test_rrf_handles_empty_lists() -> None:
    assert RrfMixer().mix([], []) == []
    assert [c.chunk_id for c in RrfMixer().mix([], _ranked(3, 1))] == [3, 1]


def test_rrf_k_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        RrfMixer(rrf_k=0)


class _LengthReranker:
    """Scores candidates by text length and records what it was asked."""

    def __init__(self) -> None:
        self.seen: list[int] = []

    async def rerank(self, query: str, candidates: Sequence[RerankCandidate]) -> list[RankedCandidate]:
        self.seen = [candidate.chunk_id for candidate in candidates]
        return [RankedCandidate(chunk_id=c.chunk_id, score=float(len(c.text))) for c in candidates]


@pytest.mark.asyncio
async def test_ranking_pipeline_drops_unhydrated_and_truncates() -> None:
    reranker = _LengthReranker()
    pipeline = RankingPipeline(RrfMixer(), reranker, rerank_limit=2, top=1)
    candidates = [RerankCandidate(chunk_id=1, text="a"), RerankCandidate(chunk_id=3, text="ccc")]
    results = await pipeline.run("q", bm25=_ranked(2, 1), vector=_ranked(3), candidates=candidates)
    assert reranker.seen == [3, 1]
    assert [(result.chunk_id, result.text) for result in results] == [(3, "ccc")]


@pytest.mark.asyncio
async def test_ranking_pipeline_without_candidates() -> None:
    reranker = _LengthReranker()
    pipeline = RankingPipeline(RrfMixer(), reranker, rerank_limit=5, top=5)
    assert await pipeline.run("q", bm25=_ranked(1), vector=[], candidates=[]) == []
    assert reranker.seen == []


def test_ranking_pipeline_validates_limits() -> None:
    with pytest.raises(ValidationError):
        RankingPipeline(RrfMixer(), FuzzyReranker(), rerank_limit=0, top=1)
    with pytest.raises(ValidationError):
        RankingPipeline(RrfMixer(), FuzzyReranker(), rerank_limit=1, top=0)


@pytest.mark.asyncio
async def test_fuzzy_reranker_orders_by_similarity() -> None:
    ranked = await FuzzyReranker().rerank(
        "vector search",
        [RerankCandidate(chunk_id=1, text="baking bread"), RerankCandidate(chunk_id=2, text="vector search in sqlite")],
    )
    assert [item.chunk_id for item in ranked] == [2, 1]
    assert 0.0 <= ranked[1].score <= ranked[0].score <= 1.0
