"""Common data structures and capability protocols."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Protocol, Sequence

from docsift.models.entities import SourceRecord


@dataclass(slots=True)
class DocumentRef:
    """A document as listed by a connector."""

    source_id: int
    path: str
    absolute_path: Path | None = None
    external_id: str | None = None


@dataclass(slots=True)
class DocumentMetadata:
    """Change-detection metadata for a document."""

    mtime: int
    size: int
    hash: str


@dataclass(slots=True)
class TextChunk:
    """Chunk produced by the chunker prior to persistence."""

    index: int
    text: str
    token_count: int


@dataclass(slots=True)
class RankedCandidate:
    chunk_id: int
    score: float


@dataclass(slots=True)
class RerankCandidate:
    chunk_id: int
    text: str


@dataclass(slots=True)
class SyncSummary:
    """Aggregated outcome of one source sync run."""

    source_id: int
    source_name: str
    scanned_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    changed_count: int = 0

    def to_dict(self) -> dict[str, int | str]:
        return asdict(self)


class Connector(Protocol):
    async def list_documents(self, source: SourceRecord) -> list[DocumentRef]: ...

    async def read_document(self, document: DocumentRef) -> str: ...

    async def get_document_metadata(self, document: DocumentRef) -> DocumentMetadata: ...


class Chunker(Protocol):
    def chunk(self, text: str) -> list[TextChunk]: ...


class EmbeddingProvider(Protocol):
    model_name: str
    dimension: int

    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...


class RerankerProvider(Protocol):
    async def rerank(self, query: str, candidates: Sequence[RerankCandidate]) -> list[RankedCandidate]: ...


class Mixer(Protocol):
    def mix(
        self, bm25: Sequence[RankedCandidate], vector: Sequence[RankedCandidate]
    ) -> list[RankedCandidate]: ...


__all__ = [
    "DocumentRef",
    "DocumentMetadata",
    "TextChunk",
    "RankedCandidate",
    "RerankCandidate",
    "SyncSummary",
    "Connector",
    "Chunker",
    "EmbeddingProvider",
    "RerankerProvider",
    "Mixer",
]
