"""Error taxonomy shared across docsift."""

from __future__ import annotations


class DocsiftError(Exception):
    """Base class for all docsift errors."""


class NotFoundError(DocsiftError):
    """Unknown source, file, connector type or provider name."""


class ValidationError(DocsiftError):
    """Malformed input or configuration; always fatal."""


class DocumentIOError(DocsiftError, OSError):
    """A document could not be read (oversize, invalid encoding)."""


class StorageConstraintError(DocsiftError):
    """Uniqueness or foreign-key violation reported by SQLite."""


class ProviderError(DocsiftError):
    """Embedding or reranking backend failed to initialise or run."""


class BackendUnavailableError(DocsiftError):
    """The native vector index backend cannot be loaded on this host."""


__all__ = [
    "DocsiftError",
    "NotFoundError",
    "ValidationError",
    "DocumentIOError",
    "StorageConstraintError",
    "ProviderError",
    "BackendUnavailableError",
]
