"""Incremental source synchronisation."""

from __future__ import annotations

from docsift.core.errors import NotFoundError, ValidationError
from docsift.core.logging import get_logger
from docsift.core.metrics import INDEX_SIZE, SYNC_DOCUMENTS, SYNC_DURATION
from docsift.db.repositories import (
    ChunksRepository,
    EmbeddingsRepository,
    FilesRepository,
    SourcesRepository,
    SyncRunsRepository,
)
from docsift.db.repositories.sync_runs import STATUS_FAILED, STATUS_SUCCESS
from docsift.db.sqlite import SQLiteDatabase
from docsift.ingest.connectors import ConnectorRegistry
from docsift.ingest.embedding_store import EmbeddingStore
from docsift.ingest.types import Chunker, Connector, DocumentRef, EmbeddingProvider, SyncSummary
from docsift.models.entities import FileRecord, SourceRecord

logger = get_logger(__name__)


class SyncEngine:
    """Reconcile a source's current documents against the catalog.

    Documents are processed one at a time and each document's rows are
    committed on their own, so a failure leaves earlier documents intact.
    Only changed documents are re-chunked and re-embedded.
    """

    def __init__(
        self,
        db: SQLiteDatabase,
        connectors: ConnectorRegistry,
        sources: SourcesRepository,
        files: FilesRepository,
        chunks: ChunksRepository,
        embeddings: EmbeddingsRepository,
        sync_runs: SyncRunsRepository,
        chunker: Chunker,
        embedding_provider: EmbeddingProvider,
        embedding_store: EmbeddingStore,
        model_name: str,
        dimension: int,
    ) -> None:
        self.db = db
        self.connectors = connectors
        self.sources = sources
        self.files = files
        self.chunks = chunks
        self.embeddings = embeddings
        self.sync_runs = sync_runs
        self.chunker = chunker
        self.embedding_provider = embedding_provider
        self.embedding_store = embedding_store
        self.model_name = model_name
        self.dimension = dimension

    async def sync_all(self) -> list[SyncSummary]:
        """Sync every registered source in name order, one after another."""
        summaries: list[SyncSummary] = []
        for source in self.sources.list_sources():
            summaries.append(await self.sync_source(source.id))
        return summaries

    async def sync_by_name(self, name: str) -> SyncSummary:
        source = self.sources.get_source_by_name(name)
        if source is None:
            raise NotFoundError(f"Source not found: {name}")
        return await self.sync_source(source.id)

    async def sync_source(self, source_id: int) -> SyncSummary:
        source = self.sources.get_source_by_id(source_id)
        if source is None:
            raise NotFoundError(f"Source not found: {source_id}")
        connector = self.connectors.get_connector(source)

        run = self.sync_runs.start_sync_run(source.id)
        summary = SyncSummary(source_id=source.id, source_name=source.name)
        logger.info("Sync started for source %s", source.name, extra={"ctx_source": source.name, "ctx_run": run.id})
        with SYNC_DURATION.labels(source=source.name).time():
            try:
                await self._reconcile(source, connector, summary)
            except Exception:
                self.sync_runs.finish_sync_run(run.id, STATUS_FAILED, _changed(summary))
                logger.exception("Sync failed for source %s", source.name, extra={"ctx_run": run.id})
                raise
            finally:
                # committed embedding rows must not outlive their vectors
                self.embedding_store.vector_index.save()
        summary.changed_count = _changed(summary)
        self.sync_runs.finish_sync_run(run.id, STATUS_SUCCESS, summary.changed_count)
        INDEX_SIZE.set(self.embedding_store.vector_index.size)
        logger.info(
            "Sync finished for source %s: %s changed, %s errors",
            source.name,
            summary.changed_count,
            summary.error_count,
            extra={"ctx_summary": summary.to_dict()},
        )
        return summary

    async def _reconcile(self, source: SourceRecord, connector: Connector, summary: SyncSummary) -> None:
        existing = {record.path: record for record in self.files.list_files_by_source(source.id)}
        documents = await connector.list_documents(source)
        summary.scanned_count = len(documents)
        listed: set[str] = set()

        for document in documents:
            listed.add(document.path)
            try:
                outcome = await self._sync_document(source, connector, document, existing.get(document.path))
            except ValidationError:
                raise
            except Exception as exc:
                summary.error_count += 1
                SYNC_DOCUMENTS.labels(outcome="error").inc()
                logger.warning(
                    "Failed to process %s: %s",
                    document.path,
                    exc,
                    extra={"ctx_source": source.name, "ctx_path": document.path},
                )
                continue
            SYNC_DOCUMENTS.labels(outcome=outcome).inc()
            if outcome == "created":
                summary.created_count += 1
            elif outcome == "updated":
                summary.updated_count += 1
            else:
                summary.skipped_count += 1

        for path, record in existing.items():
            if path in listed or record.is_deleted:
                continue
            with self.db.transaction():
                self.files.mark_file_deleted(record.id)
                self.chunks.mark_chunks_deleted_by_file(record.id)
                self.embeddings.delete_embeddings_by_file(record.id)
            summary.deleted_count += 1
            SYNC_DOCUMENTS.labels(outcome="deleted").inc()
            logger.debug("Soft-deleted %s", path)

    async def _sync_document(
        self,
        source: SourceRecord,
        connector: Connector,
        document: DocumentRef,
        existing: FileRecord | None,
    ) -> str:
        metadata = await connector.get_document_metadata(document)
        if existing is None:
            with self.db.transaction():
                record = self.files.create_file(
                    source_id=source.id,
                    path=document.path,
                    mtime=metadata.mtime,
                    size=metadata.size,
                    hash=metadata.hash,
                )
                await self._index_document(connector, document, record.id, source.id)
            return "created"

        if existing.is_deleted or existing.mtime != metadata.mtime or existing.hash != metadata.hash:
            with self.db.transaction():
                self.files.update_file(
                    existing.id,
                    mtime=metadata.mtime,
                    size=metadata.size,
                    hash=metadata.hash,
                    is_deleted=False,
                )
                self.embeddings.delete_embeddings_by_file(existing.id)
                self.chunks.delete_chunks_by_file(existing.id)
                await self._index_document(connector, document, existing.id, source.id)
            return "updated"

        return "skipped"

    async def _index_document(self, connector: Connector, document: DocumentRef, file_id: int, source_id: int) -> None:
        text = await connector.read_document(document)
        pieces = self.chunker.chunk(text)
        if not pieces:
            logger.debug("Document %s produced no chunks", document.path)
            return
        records = self.chunks.create_chunks(file_id, source_id, pieces)
        vectors = await self.embedding_provider.embed([piece.text for piece in pieces])
        self.embedding_store.store_embeddings(
            chunk_ids=[record.id for record in records],
            vectors=vectors,
            model_name=self.model_name,
            dimension=self.dimension,
        )


def _changed(summary: SyncSummary) -> int:
    return summary.created_count + summary.updated_count + summary.deleted_count


__all__ = ["SyncEngine"]
