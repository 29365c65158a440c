"""Embedding providers."""

from __future__ import annotations

import asyncio
import hashlib
import math
import re
from typing import Any, Sequence

from docsift.core.errors import ProviderError, ValidationError
from docsift.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


class HashedEmbeddingProvider:
    """Deterministic hashed bag-of-words embeddings.

    Needs no model download, which makes it the default for tests and
    offline use. Texts sharing words get overlapping vectors, so cosine
    similarity still tracks lexical overlap.
    """

    def __init__(self, dimension: int = 384, model_name: str = "hashed") -> None:
        if dimension <= 0:
            raise ValidationError("dimension must be positive")
        self.dimension = dimension
        self.model_name = model_name

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        return [self._encode(text) for text in texts]

    def _encode(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _tokenize(text):
            vector[_hash_token(token, self.dimension)] += 1.0
        _normalize(vector)
        return vector


class SentenceTransformerEmbeddingProvider:
    """Wrapper around ``sentence_transformers.SentenceTransformer``.

    The model is loaded lazily on first use and inference runs in a worker
    thread that is awaited immediately.
    """

    def __init__(self, model_name: str, dimension: int, device: str | None = None, batch_size: int = 16) -> None:
        self.model_name = model_name
        self.dimension = dimension
        self.device = device
        self.batch_size = batch_size
        self._model: Any | None = None

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._load()
        try:
            encoded = await asyncio.to_thread(
                model.encode,
                list(texts),
                batch_size=self.batch_size,
                convert_to_numpy=True,
                normalize_embeddings=True,
            )
        except Exception as exc:
            raise ProviderError(f"Embedding inference failed for '{self.model_name}': {exc}") from exc
        vectors = [[float(value) for value in row] for row in encoded]
        for vector in vectors:
            if len(vector) != self.dimension:
                raise ProviderError(
                    f"Model '{self.model_name}' returned dimension {len(vector)}, expected {self.dimension}"
                )
        return vectors

    def _load(self) -> Any:
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self.model_name, device=self.device)
        except Exception as exc:
            raise ProviderError(f"Failed to load embedding model '{self.model_name}': {exc}") from exc
        logger.info("Loaded embedding model %s", self.model_name)
        return self._model


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["HashedEmbeddingProvider", "SentenceTransformerEmbeddingProvider"]
