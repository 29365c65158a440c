"""Provider registry: builds chunker, embedding, reranker and mixer from settings."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from docsift.core.config import Settings
from docsift.core.errors import NotFoundError
from docsift.ingest.chunker import TokenChunker
from docsift.ingest.embeddings import HashedEmbeddingProvider, SentenceTransformerEmbeddingProvider
from docsift.ingest.types import Chunker, EmbeddingProvider, Mixer, RerankerProvider
from docsift.retrieval.hybrid import RrfMixer
from docsift.retrieval.rerank import CrossEncoderReranker, FuzzyReranker

T = TypeVar("T")
Factory = Callable[[Settings], T]


class _Named(Generic[T]):
    """Name -> factory table for one capability."""

    def __init__(self, kind: str, factories: dict[str, Factory[T]]) -> None:
        self.kind = kind
        self.factories = factories

    def build(self, name: str, settings: Settings) -> T:
        factory = self.factories.get(name)
        if factory is None:
            raise NotFoundError(f"Unsupported {self.kind} provider: {name}")
        return factory(settings)


class ProviderRegistry:
    """Resolve the configured provider names to instances."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._chunkers: _Named[Chunker] = _Named(
            "chunker",
            {
                "token": lambda s: TokenChunker(
                    chunk_tokens=s.chunk_tokens,
                    overlap_tokens=s.overlap_tokens,
                    minimum_tokens=s.minimum_tokens,
                )
            },
        )
        self._embeddings: _Named[EmbeddingProvider] = _Named(
            "embedding",
            {
                "hashed": lambda s: HashedEmbeddingProvider(dimension=s.embedding_dimension),
                "sentence-transformers": lambda s: SentenceTransformerEmbeddingProvider(
                    model_name=s.embedding_model,
                    dimension=s.embedding_dimension,
                    device=s.embedding_device,
                ),
            },
        )
        self._rerankers: _Named[RerankerProvider] = _Named(
            "reranker",
            {
                "fuzzy": lambda s: FuzzyReranker(),
                "cross-encoder": lambda s: CrossEncoderReranker(s.rerank_model, device=s.embedding_device),
            },
        )
        self._mixers: _Named[Mixer] = _Named("mixer", {"rrf": lambda s: RrfMixer(rrf_k=s.rrf_k)})

    def register_embedding_provider(self, name: str, factory: Factory[EmbeddingProvider]) -> None:
        self._embeddings.factories[name] = factory

    def register_reranker(self, name: str, factory: Factory[RerankerProvider]) -> None:
        self._rerankers.factories[name] = factory

    def get_chunker(self, name: str = "token") -> Chunker:
        return self._chunkers.build(name, self.settings)

    def get_embedding_provider(self) -> EmbeddingProvider:
        return self._embeddings.build(self.settings.embedding_provider, self.settings)

    def get_reranker(self) -> RerankerProvider:
        return self._rerankers.build(self.settings.reranker_provider, self.settings)

    def get_mixer(self, name: str = "rrf") -> Mixer:
        return self._mixers.build(name, self.settings)


__all__ = ["ProviderRegistry"]
