"""Search orchestration."""

from __future__ import annotations

from dataclasses import dataclass

from docsift.core.errors import NotFoundError
from docsift.core.logging import get_logger
from docsift.core.metrics import SEARCH_LATENCY
from docsift.db.repositories import (
    ChunkDetailsRepository,
    EmbeddingsRepository,
    FullTextSearchRepository,
    SourcesRepository,
)
from docsift.ingest.types import EmbeddingProvider, Mixer, RankedCandidate, RerankCandidate, RerankerProvider
from docsift.retrieval.ranking import RankingPipeline
from docsift.retrieval.vector_index import VectorIndex

logger = get_logger(__name__)


@dataclass(slots=True)
class SearchRequest:
    query: str
    model_name: str
    top: int = 5
    bm25_k: int = 50
    vector_k: int = 50
    rerank_k: int = 20
    source_name: str | None = None


@dataclass(slots=True)
class SearchResult:
    rank: int
    score: float
    source_name: str
    file_path: str
    chunk_text: str


class SearchEngine:
    """Coordinates lexical, vector and rerank retrieval flows."""

    def __init__(
        self,
        full_text: FullTextSearchRepository,
        embeddings: EmbeddingsRepository,
        chunk_details: ChunkDetailsRepository,
        sources: SourcesRepository,
        vector_index: VectorIndex,
        embedding_provider: EmbeddingProvider,
        mixer: Mixer,
        reranker: RerankerProvider,
    ) -> None:
        self.full_text = full_text
        self.embeddings = embeddings
        self.chunk_details = chunk_details
        self.sources = sources
        self.vector_index = vector_index
        self.embedding_provider = embedding_provider
        self.mixer = mixer
        self.reranker = reranker

    async def search(self, request: SearchRequest) -> list[SearchResult]:
        if not request.query.strip():
            return []
        with SEARCH_LATENCY.time():
            return await self._search(request)

    async def _search(self, request: SearchRequest) -> list[SearchResult]:
        source_id = self._resolve_source(request.source_name)
        bm25 = self.full_text.search(request.query, request.bm25_k, source_id=source_id)
        vector = await self._search_vectors(request)

        candidate_ids = list(dict.fromkeys([c.chunk_id for c in bm25] + [c.chunk_id for c in vector]))
        details = self.chunk_details.get_chunk_details_by_ids(candidate_ids, source_id=source_id)
        if not details:
            return []
        details_by_id = {detail.chunk_id: detail for detail in details}

        pipeline = RankingPipeline(
            mixer=self.mixer,
            reranker=self.reranker,
            rerank_limit=request.rerank_k,
            top=request.top,
        )
        ranked = await pipeline.run(
            query=request.query,
            bm25=bm25,
            vector=vector,
            candidates=[RerankCandidate(chunk_id=detail.chunk_id, text=detail.chunk_text) for detail in details],
        )
        logger.debug(
            "Search %r: %s lexical, %s vector, %s hydrated, %s returned",
            request.query,
            len(bm25),
            len(vector),
            len(details),
            len(ranked),
        )
        return [
            SearchResult(
                rank=position,
                score=item.score,
                source_name=details_by_id[item.chunk_id].source_name,
                file_path=details_by_id[item.chunk_id].file_path,
                chunk_text=item.text,
            )
            for position, item in enumerate(ranked, start=1)
        ]

    async def _search_vectors(self, request: SearchRequest) -> list[RankedCandidate]:
        if request.vector_k <= 0:
            return []
        query_vectors = await self.embedding_provider.embed([request.query])
        if not query_vectors:
            return []
        # over-fetch so stale vector ids can be dropped without starving the result
        hits = self.vector_index.search(query_vectors[0], request.vector_k * 2)
        if not hits:
            return []
        mappings = self.embeddings.list_embeddings_by_vector_ids([hit.vector_id for hit in hits], request.model_name)
        chunk_by_vector = {mapping.vector_id: mapping.chunk_id for mapping in mappings}

        results: list[RankedCandidate] = []
        seen: set[int] = set()
        for hit in hits:
            chunk_id = chunk_by_vector.get(hit.vector_id)
            if chunk_id is None or chunk_id in seen:
                continue
            seen.add(chunk_id)
            results.append(RankedCandidate(chunk_id=chunk_id, score=hit.score))
            if len(results) >= request.vector_k:
                break
        return results

    def _resolve_source(self, name: str | None) -> int | None:
        if name is None:
            return None
        source = self.sources.get_source_by_name(name)
        if source is None:
            raise NotFoundError(f"Source not found: {name}")
        return source.id


__all__ = ["SearchRequest", "SearchResult", "SearchEngine"]
