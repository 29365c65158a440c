"""Retrieval orchestration components."""

from .vector_index import InMemoryVectorIndex, VectorHit, VectorIndex, open_vector_index
from .hybrid import RrfMixer
from .rerank import CrossEncoderReranker, FuzzyReranker
from .ranking import RankingPipeline, RankingResult
from .search import SearchEngine, SearchRequest, SearchResult

__all__ = [
    "VectorIndex",
    "VectorHit",
    "InMemoryVectorIndex",
    "open_vector_index",
    "RrfMixer",
    "CrossEncoderReranker",
    "FuzzyReranker",
    "RankingPipeline",
    "RankingResult",
    "SearchEngine",
    "SearchRequest",
    "SearchResult",
]
