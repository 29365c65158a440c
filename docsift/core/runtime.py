"""Wires storage, vector index, providers and engines from one Settings value."""

from __future__ import annotations

from docsift.core.config import Settings
from docsift.core.logging import get_logger
from docsift.core.metrics import INDEX_SIZE
from docsift.core.providers import ProviderRegistry
from docsift.db.repositories import (
    ChunkDetailsRepository,
    ChunksRepository,
    EmbeddingsRepository,
    FilesRepository,
    FullTextSearchRepository,
    SourcesRepository,
    SyncRunsRepository,
)
from docsift.db.sqlite import SQLiteDatabase
from docsift.ingest.connectors import ConnectorRegistry
from docsift.ingest.embedding_store import EmbeddingStore
from docsift.ingest.types import EmbeddingProvider
from docsift.ingest.sync import SyncEngine
from docsift.retrieval.search import SearchEngine, SearchRequest
from docsift.retrieval.vector_index import VectorIndex, open_vector_index

logger = get_logger(__name__)


class Runtime:
    """One invocation's worth of open resources.

    Use as a context manager: the vector index is saved and closed, and the
    database closed, on every exit path including errors.
    """

    def __init__(
        self,
        settings: Settings,
        connectors: ConnectorRegistry | None = None,
        providers: ProviderRegistry | None = None,
        vector_index: VectorIndex | None = None,
        db: SQLiteDatabase | None = None,
    ) -> None:
        self.settings = settings
        self.db = db or SQLiteDatabase(settings.db_path)
        self.connectors = connectors or ConnectorRegistry()
        self.providers = providers or ProviderRegistry(settings)
        self._vector_index = vector_index
        self._provider: EmbeddingProvider | None = None
        self._sync_engine: SyncEngine | None = None
        self._search_engine: SearchEngine | None = None

        self.sources = SourcesRepository(self.db)
        self.files = FilesRepository(self.db)
        self.chunks = ChunksRepository(self.db)
        self.embeddings = EmbeddingsRepository(self.db)
        self.sync_runs = SyncRunsRepository(self.db)
        self.full_text = FullTextSearchRepository(self.db)
        self.chunk_details = ChunkDetailsRepository(self.db)

    def __enter__(self) -> "Runtime":
        self.db.migrate()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def vector_index(self) -> VectorIndex:
        if self._vector_index is None:
            self._vector_index = open_vector_index(self.settings, first_id=self.embeddings.max_vector_id() + 1)
            INDEX_SIZE.set(self._vector_index.size)
        return self._vector_index

    @property
    def sync_engine(self) -> SyncEngine:
        if self._sync_engine is None:
            provider = self._embedding_provider()
            self._sync_engine = SyncEngine(
                db=self.db,
                connectors=self.connectors,
                sources=self.sources,
                files=self.files,
                chunks=self.chunks,
                embeddings=self.embeddings,
                sync_runs=self.sync_runs,
                chunker=self.providers.get_chunker(),
                embedding_provider=provider,
                embedding_store=EmbeddingStore(self.embeddings, self.vector_index),
                model_name=provider.model_name,
                dimension=provider.dimension,
            )
        return self._sync_engine

    @property
    def search_engine(self) -> SearchEngine:
        if self._search_engine is None:
            self._search_engine = SearchEngine(
                full_text=self.full_text,
                embeddings=self.embeddings,
                chunk_details=self.chunk_details,
                sources=self.sources,
                vector_index=self.vector_index,
                embedding_provider=self._embedding_provider(),
                mixer=self.providers.get_mixer(),
                reranker=self.providers.get_reranker(),
            )
        return self._search_engine

    def build_search_request(
        self,
        query: str,
        top: int | None = None,
        bm25_k: int | None = None,
        vector_k: int | None = None,
        rerank_k: int | None = None,
        source_name: str | None = None,
    ) -> SearchRequest:
        """Fill unset search parameters from settings."""
        return SearchRequest(
            query=query,
            model_name=self._embedding_provider().model_name,
            top=top if top is not None else self.settings.top,
            bm25_k=bm25_k if bm25_k is not None else self.settings.bm25_k,
            vector_k=vector_k if vector_k is not None else self.settings.vector_k,
            rerank_k=rerank_k if rerank_k is not None else self.settings.rerank_k,
            source_name=source_name,
        )

    def close(self) -> None:
        try:
            if self._vector_index is not None:
                try:
                    self._vector_index.save()
                finally:
                    self._vector_index.close()
                    self._vector_index = None
        finally:
            self.db.close()

    def _embedding_provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = self.providers.get_embedding_provider()
        return self._provider


__all__ = ["Runtime"]
