"""Chunking utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass

from docsift.core.errors import ValidationError
from docsift.ingest.types import TextChunk

_TOKEN_RE = re.compile(r"\S+")


@dataclass(slots=True)
class TokenSpan:
    start: int
    end: int


class TokenChunker:
    """Split text into overlapping windows of whitespace-delimited tokens.

    Windows hold ``chunk_tokens`` tokens and start ``chunk_tokens -
    overlap_tokens`` tokens after the previous one. A trailing window is only
    emitted when it adds at least ``minimum_tokens`` tokens beyond the end of
    the previous window; text shorter than ``minimum_tokens`` yields nothing.
    Chunk text is sliced from the source, so inner whitespace is preserved.
    """

    def __init__(self, chunk_tokens: int = 512, overlap_tokens: int = 64, minimum_tokens: int = 50) -> None:
        if chunk_tokens <= 0:
            raise ValidationError("chunk_tokens must be positive")
        if overlap_tokens < 0 or overlap_tokens >= chunk_tokens:
            raise ValidationError("overlap_tokens must be non-negative and less than chunk_tokens")
        if minimum_tokens <= 0 or minimum_tokens > chunk_tokens:
            raise ValidationError("minimum_tokens must be positive and at most chunk_tokens")
        self.chunk_tokens = chunk_tokens
        self.overlap_tokens = overlap_tokens
        self.minimum_tokens = minimum_tokens

    def chunk(self, text: str) -> list[TextChunk]:
        normalized = text.strip()
        spans = _token_spans(normalized)
        if len(spans) < self.minimum_tokens:
            return []

        chunks: list[TextChunk] = []
        start = 0
        while True:
            end = min(start + self.chunk_tokens, len(spans))
            chunks.append(
                TextChunk(
                    index=len(chunks),
                    text=normalized[spans[start].start : spans[end - 1].end],
                    token_count=end - start,
                )
            )
            if end >= len(spans):
                break
            next_start = end - self.overlap_tokens
            next_end = min(next_start + self.chunk_tokens, len(spans))
            if next_end - end < self.minimum_tokens:
                break
            start = next_start
        return chunks


def _token_spans(text: str) -> list[TokenSpan]:
    return [TokenSpan(start=match.start(), end=match.end()) for match in _TOKEN_RE.finditer(text)]


def count_tokens(text: str) -> int:
    return len(_TOKEN_RE.findall(text))


__all__ = ["TokenChunker", "count_tokens"]
