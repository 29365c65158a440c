"""Tests for the SQLite catalog, migrations and repositories."""

from __future__ import annotations

import pytest

from docsift.core.errors import StorageConstraintError
from docsift.db.migrations import LATEST_VERSION, apply_migrations, get_schema_version
from docsift.db.repositories import (
    ChunkDetailsRepository,
    ChunksRepository,
    EmbeddingsRepository,
    FilesRepository,
    FullTextSearchRepository,
    SourcesRepository,
    SyncRunsRepository,
)
from docsift.db.repositories.full_text import build_match_expression
from docsift.db.repositories.sync_runs import STATUS_FAILED, STATUS_RUNNING, STATUS_SUCCESS
from docsift.db.sqlite import MEMORY_PATH, SQLiteDatabase
from docsift.ingest.types import TextChunk
from docsift.models.entities import SourceRecord


def _chunk(index: int, text: str) -> TextChunk:
    return TextChunk(index=index, text=text, token_count=len(text.split()))


def test_migrations_are_idempotent() -> None:
    db = SQLiteDatabase(MEMORY_PATH)
    assert apply_migrations(db) == LATEST_VERSION
    assert apply_migrations(db) == LATEST_VERSION
    assert get_schema_version(db) == LATEST_VERSION
    tables = {row["name"] for row in db.query("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')")}
    assert {"app_meta", "sources", "files", "chunks", "chunks_fts", "embeddings", "sync_runs"} <= tables
    assert db.query_one("SELECT value FROM app_meta WHERE key = 'last_migration_at'") is not None
    db.close()


def test_nested_transaction_rolls_back_outer(db: SQLiteDatabase, sources: SourcesRepository) -> None:
    with pytest.raises(RuntimeError):
        with db.transaction():
            sources.create_source("a", "file-system", {"root_path": "/tmp/a"})
            raise RuntimeError("boom")
    assert sources.list_sources() == []


def test_source_crud(sources: SourcesRepository) -> None:
    created = sources.create_source("work", "obsidian", {"vault_path": "~/vault"})
    assert created.connector_config == {"vault_path": "~/vault"}
    assert sources.get_source_by_name("work") == created

    updated = sources.update_source(created.id, "work", "obsidian", {"vault_path": "/vault"})
    assert updated.connector_config == {"vault_path": "/vault"}

    with pytest.raises(StorageConstraintError):
        sources.create_source("work", "file-system", {})

    sources.delete_source(created.id)
    assert sources.get_source_by_id(created.id) is None


def test_files_unique_per_source_path(files: FilesRepository, source: SourceRecord) -> None:
    record = files.create_file(source.id, "a.md", mtime=1, size=10, hash="h1")
    assert files.get_file_by_path(source.id, "a.md") == record
    with pytest.raises(StorageConstraintError):
        files.create_file(source.id, "a.md", mtime=2, size=10, hash="h2")

    files.mark_file_deleted(record.id)
    assert files.count_files_by_source(source.id) == 0
    assert files.count_files_by_source(source.id, include_deleted=True) == 1
    revived = files.update_file(record.id, mtime=3, size=11, hash="h3")
    assert not revived.is_deleted
    assert revived.hash == "h3"


def test_chunks_mirror_into_full_text(
    db: SQLiteDatabase, files: FilesRepository, chunks: ChunksRepository, source: SourceRecord
) -> None:
    file = files.create_file(source.id, "a.md", mtime=1, size=10, hash="h")
    created = chunks.create_chunks(file.id, source.id, [_chunk(0, "alpha beta"), _chunk(1, "gamma delta")])
    assert [chunk.chunk_index for chunk in created] == [0, 1]

    fts_rows = db.query("SELECT rowid, chunk_id, text FROM chunks_fts ORDER BY rowid")
    assert [(row["rowid"], row["chunk_id"]) for row in fts_rows] == [(c.id, c.id) for c in created]
    assert chunks.count_active_chunks(source.id) == 2

    chunks.mark_chunks_deleted_by_file(file.id)
    assert chunks.count_active_chunks() == 0
    assert all(chunk.is_deleted for chunk in chunks.list_chunks_by_file(file.id))

    chunks.delete_chunks_by_file(file.id)
    assert chunks.list_chunks_by_file(file.id) == []
    assert db.query("SELECT rowid FROM chunks_fts") == []


def test_duplicate_chunk_index_is_atomic(files: FilesRepository, chunks: ChunksRepository, source: SourceRecord) -> None:
    file = files.create_file(source.id, "a.md", mtime=1, size=10, hash="h")
    with pytest.raises(StorageConstraintError):
        chunks.create_chunks(file.id, source.id, [_chunk(0, "one"), _chunk(0, "two")])
    assert chunks.list_chunks_by_file(file.id) == []


def test_embeddings_resolve_only_live_chunks(
    files: FilesRepository,
    chunks: ChunksRepository,
    embeddings: EmbeddingsRepository,
    source: SourceRecord,
) -> None:
    assert embeddings.max_vector_id() == -1
    live = files.create_file(source.id, "live.md", mtime=1, size=1, hash="a")
    gone = files.create_file(source.id, "gone.md", mtime=1, size=1, hash="b")
    (live_chunk,) = chunks.create_chunks(live.id, source.id, [_chunk(0, "live text")])
    (gone_chunk,) = chunks.create_chunks(gone.id, source.id, [_chunk(0, "gone text")])
    embeddings.create_embedding(live_chunk.id, vector_id=4, model_name="m", dimension=3)
    embeddings.create_embedding(gone_chunk.id, vector_id=5, model_name="m", dimension=3)
    assert embeddings.max_vector_id() == 5

    files.mark_file_deleted(gone.id)
    resolved = embeddings.list_embeddings_by_vector_ids([4, 5, 99], "m")
    assert [(e.vector_id, e.chunk_id) for e in resolved] == [(4, live_chunk.id)]
    assert embeddings.list_embeddings_by_vector_ids([4], "other-model") == []

    with pytest.raises(StorageConstraintError):
        embeddings.create_embedding(live_chunk.id, vector_id=6, model_name="m", dimension=3)

    assert embeddings.delete_embeddings_by_file(live.id) == 1
    assert embeddings.count_embeddings("m") == 1


def test_deleting_source_cascades(
    db: SQLiteDatabase,
    sources: SourcesRepository,
    files: FilesRepository,
    chunks: ChunksRepository,
    embeddings: EmbeddingsRepository,
    sync_runs: SyncRunsRepository,
    source: SourceRecord,
) -> None:
    file = files.create_file(source.id, "a.md", mtime=1, size=1, hash="a")
    (chunk,) = chunks.create_chunks(file.id, source.id, [_chunk(0, "text")])
    embeddings.create_embedding(chunk.id, vector_id=0, model_name="m", dimension=3)
    sync_runs.start_sync_run(source.id)

    sources.delete_source(source.id)
    for table in ("files", "chunks", "chunks_fts", "embeddings", "sync_runs"):
        assert db.query_one(f"SELECT COUNT(*) AS count FROM {table}")["count"] == 0


def test_sync_runs_and_status(sources: SourcesRepository, files: FilesRepository, sync_runs: SyncRunsRepository, source: SourceRecord) -> None:
    statuses = sources.list_source_statuses()
    assert statuses[0].last_status is None
    assert statuses[0].file_count == 0

    first = sync_runs.start_sync_run(source.id)
    assert first.status == STATUS_RUNNING
    assert first.ended_at is None
    sync_runs.finish_sync_run(first.id, STATUS_FAILED, 1)
    second = sync_runs.start_sync_run(source.id)
    finished = sync_runs.finish_sync_run(second.id, STATUS_SUCCESS, 3)
    assert finished.ended_at is not None
    files.create_file(source.id, "a.md", mtime=1, size=1, hash="a")

    (status,) = sources.list_source_statuses()
    assert status.last_status == STATUS_SUCCESS
    assert status.last_changed_count == 3
    assert status.file_count == 1
    assert [run.id for run in sync_runs.list_sync_runs_by_source(source.id)] == [second.id, first.id]


def test_full_text_search_filters(
    db: SQLiteDatabase,
    sources: SourcesRepository,
    files: FilesRepository,
    chunks: ChunksRepository,
    source: SourceRecord,
) -> None:
    other = sources.create_source("other", "file-system", {"root_path": "/tmp/other"})
    mine = files.create_file(source.id, "a.md", mtime=1, size=1, hash="a")
    theirs = files.create_file(other.id, "b.md", mtime=1, size=1, hash="b")
    stale = files.create_file(source.id, "c.md", mtime=1, size=1, hash="c")
    (mine_chunk,) = chunks.create_chunks(mine.id, source.id, [_chunk(0, "quantum retrieval notes")])
    (theirs_chunk,) = chunks.create_chunks(theirs.id, other.id, [_chunk(0, "retrieval elsewhere")])
    chunks.create_chunks(stale.id, source.id, [_chunk(0, "retrieval retrieval stale")])
    chunks.mark_chunks_deleted_by_file(stale.id)

    full_text = FullTextSearchRepository(db)
    hits = full_text.search("retrieval", limit=10)
    assert {hit.chunk_id for hit in hits} == {mine_chunk.id, theirs_chunk.id}
    assert hits == sorted(hits, key=lambda hit: hit.score, reverse=True)

    scoped = full_text.search("retrieval", limit=10, source_id=source.id)
    assert [hit.chunk_id for hit in scoped] == [mine_chunk.id]

    assert full_text.search('"quantum" AND (NOT', limit=10)[0].chunk_id == mine_chunk.id
    assert full_text.search("?!", limit=10) == []
    assert full_text.search("retrieval", limit=0) == []

    details = ChunkDetailsRepository(db).get_chunk_details_by_ids([mine_chunk.id, theirs_chunk.id], source_id=other.id)
    assert [(d.chunk_id, d.source_name, d.file_path) for d in details] == [(theirs_chunk.id, "other", "b.md")]


def test_build_match_expression_quotes_terms() -> None:
    assert build_match_expression('Foo "bar" foo-baz') == '"foo" OR "bar" OR "baz"'
    assert build_match_expression("   ") == ""
