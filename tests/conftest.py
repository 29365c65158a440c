"""Test fixtures for docsift."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docsift.db.repositories import (  # noqa: E402
    ChunkDetailsRepository,
    ChunksRepository,
    EmbeddingsRepository,
    FilesRepository,
    FullTextSearchRepository,
    SourcesRepository,
    SyncRunsRepository,
)
from docsift.db.sqlite import SQLiteDatabase  # noqa: E402
from docsift.ingest.chunker import TokenChunker  # noqa: E402
from docsift.ingest.connectors import ConnectorRegistry  # noqa: E402
from docsift.ingest.embedding_store import EmbeddingStore  # noqa: E402
from docsift.ingest.embeddings import HashedEmbeddingProvider  # noqa: E402
from docsift.ingest.sync import SyncEngine  # noqa: E402
from docsift.models.entities import SourceRecord  # noqa: E402
from docsift.retrieval.hybrid import RrfMixer  # noqa: E402
from docsift.retrieval.rerank import FuzzyReranker  # noqa: E402
from docsift.retrieval.search import SearchEngine  # noqa: E402
from docsift.retrieval.vector_index import InMemoryVectorIndex  # noqa: E402

DIMENSION = 32


@pytest.fixture(autouse=True)
def reset_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the user's config and data directories."""
    for key in ("DOCSIFT_CONFIG", "DOCSIFT_DB_PATH", "DOCSIFT_DATA_DIR", "DOCSIFT_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DOCSIFT_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def db(tmp_path: Path) -> Iterator[SQLiteDatabase]:
    database = SQLiteDatabase(tmp_path / "catalog.db")
    database.migrate()
    yield database
    database.close()


@pytest.fixture
def sources(db: SQLiteDatabase) -> SourcesRepository:
    return SourcesRepository(db)


@pytest.fixture
def files(db: SQLiteDatabase) -> FilesRepository:
    return FilesRepository(db)


@pytest.fixture
def chunks(db: SQLiteDatabase) -> ChunksRepository:
    return ChunksRepository(db)


@pytest.fixture
def embeddings(db: SQLiteDatabase) -> EmbeddingsRepository:
    return EmbeddingsRepository(db)


@pytest.fixture
def sync_runs(db: SQLiteDatabase) -> SyncRunsRepository:
    return SyncRunsRepository(db)


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root


@pytest.fixture
def source(sources: SourcesRepository, docs_dir: Path) -> SourceRecord:
    return sources.create_source("notes", "file-system", {"root_path": str(docs_dir)})


@pytest.fixture
def provider() -> HashedEmbeddingProvider:
    return HashedEmbeddingProvider(dimension=DIMENSION)


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(dim=DIMENSION)


@pytest.fixture
def chunker() -> TokenChunker:
    return TokenChunker(chunk_tokens=50, overlap_tokens=10, minimum_tokens=20)


@pytest.fixture
def sync_engine(
    db: SQLiteDatabase,
    sources: SourcesRepository,
    files: FilesRepository,
    chunks: ChunksRepository,
    embeddings: EmbeddingsRepository,
    sync_runs: SyncRunsRepository,
    chunker: TokenChunker,
    provider: HashedEmbeddingProvider,
    vector_index: InMemoryVectorIndex,
) -> SyncEngine:
    return SyncEngine(
        db=db,
        connectors=ConnectorRegistry(),
        sources=sources,
        files=files,
        chunks=chunks,
        embeddings=embeddings,
        sync_runs=sync_runs,
        chunker=chunker,
        embedding_provider=provider,
        embedding_store=EmbeddingStore(embeddings, vector_index),
        model_name=provider.model_name,
        dimension=provider.dimension,
    )


@pytest.fixture
def search_engine(
    db: SQLiteDatabase,
    sources: SourcesRepository,
    embeddings: EmbeddingsRepository,
    provider: HashedEmbeddingProvider,
    vector_index: InMemoryVectorIndex,
) -> SearchEngine:
    return SearchEngine(
        full_text=FullTextSearchRepository(db),
        embeddings=embeddings,
        chunk_details=ChunkDetailsRepository(db),
        sources=sources,
        vector_index=vector_index,
        embedding_provider=provider,
        mixer=RrfMixer(),
        reranker=FuzzyReranker(),
    )


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
