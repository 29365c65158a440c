"""Repository classes over the docsift catalog."""

from .chunk_details import ChunkDetailsRepository
from .chunks import ChunksRepository
from .embeddings import EmbeddingsRepository
from .files import FilesRepository
from .full_text import FullTextSearchRepository
from .sources import SourcesRepository
from .sync_runs import SyncRunsRepository

__all__ = [
    "ChunkDetailsRepository",
    "ChunksRepository",
    "EmbeddingsRepository",
    "FilesRepository",
    "FullTextSearchRepository",
    "SourcesRepository",
    "SyncRunsRepository",
]
