"""BM25 lexical search over the ``chunks_fts`` index."""

from __future__ import annotations

import re
from typing import Sequence

from docsift.db.sqlite import SQLiteDatabase
from docsift.ingest.types import RankedCandidate

_TERM_RE = re.compile(r"\w+", re.UNICODE)


class FullTextSearchRepository:
    """Ranks live chunks with SQLite's built-in ``bm25()`` function."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def search(self, query: str, limit: int, source_id: int | None = None) -> list[RankedCandidate]:
        """Return up to ``limit`` chunks, best first; scores are higher-is-better."""
        match = build_match_expression(query)
        if not match or limit <= 0:
            return []
        sql = """
            SELECT chunk_id, bm25(chunks_fts) AS score
            FROM chunks_fts
            WHERE chunks_fts MATCH ? AND is_deleted = 0
        """
        params: list[object] = [match]
        if source_id is not None:
            sql += " AND source_id = ?"
            params.append(source_id)
        sql += " ORDER BY score ASC LIMIT ?"
        params.append(limit)
        rows = self.db.query(sql, params)
        return [RankedCandidate(chunk_id=int(row["chunk_id"]), score=-float(row["score"])) for row in rows]


def build_match_expression(query: str) -> str:
    """Quote each term so user punctuation cannot break FTS5 query syntax."""
    terms = _dedupe(_TERM_RE.findall(query.lower()))
    return " OR ".join(f'"{term}"' for term in terms)


def _dedupe(terms: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for term in terms:
        if term not in seen:
            seen.add(term)
            unique.append(term)
    return unique


__all__ = ["FullTextSearchRepository", "build_match_expression"]
