"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class SourceRecord:
    id: int
    name: str
    connector_type: str
    connector_config: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass(slots=True)
class FileRecord:
    id: int
    source_id: int
    path: str
    mtime: int
    size: int
    hash: str
    is_deleted: bool
    updated_at: str


@dataclass(slots=True)
class ChunkRecord:
    id: int
    file_id: int
    chunk_index: int
    token_count: int
    is_deleted: bool
    updated_at: str


@dataclass(slots=True)
class EmbeddingRecord:
    id: int
    chunk_id: int
    vector_id: int
    model_name: str
    dimension: int
    created_at: str


@dataclass(slots=True)
class SyncRunRecord:
    id: int
    source_id: int
    started_at: str
    ended_at: str | None
    status: str
    changed_count: int


@dataclass(slots=True)
class ChunkDetail:
    """Display details for a live chunk, joined across chunks/files/sources."""

    chunk_id: int
    chunk_text: str
    file_path: str
    source_id: int
    source_name: str


@dataclass(slots=True)
class SourceStatus:
    name: str
    connector_type: str
    file_count: int
    last_sync_at: str | None
    last_status: str | None
    last_changed_count: int | None


__all__ = [
    "SourceRecord",
    "FileRecord",
    "ChunkRecord",
    "EmbeddingRecord",
    "SyncRunRecord",
    "ChunkDetail",
    "SourceStatus",
]
