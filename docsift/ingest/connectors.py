"""Document source connectors."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Callable, Iterator, Mapping

from docsift.core.errors import DocumentIOError, NotFoundError, ValidationError
from docsift.core.logging import get_logger
from docsift.ingest.types import Connector, DocumentMetadata, DocumentRef
from docsift.models.entities import SourceRecord
from docsift.utils.hashing import sha256_file
from docsift.utils.paths import resolve_path
from docsift.utils.text import normalize_newlines, strip_front_matter

logger = get_logger(__name__)

MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024
TEXT_EXTENSIONS = frozenset({".md", ".markdown", ".txt"})
MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
EXCLUDED_DIRECTORIES = frozenset({".git", "node_modules", ".docsift"})


class FileSystemConnector:
    """Walk a directory tree and expose its text documents.

    Source config keys: ``root_path`` (required), ``include`` and ``exclude``
    (optional comma separated globs matched against the POSIX path relative
    to the root; ``{a,b}`` alternatives are expanded).
    """

    root_key = "root_path"
    extensions: frozenset[str] = TEXT_EXTENSIONS
    excluded_directories: frozenset[str] = EXCLUDED_DIRECTORIES

    async def list_documents(self, source: SourceRecord) -> list[DocumentRef]:
        config = source.connector_config
        root = self.resolve_root(source)
        include = config.get("include")
        exclude = config.get("exclude")
        documents: list[DocumentRef] = []
        for absolute in self._walk(root):
            relative = absolute.relative_to(root).as_posix()
            if absolute.suffix.lower() not in self.extensions:
                continue
            if not _matches_patterns(relative, include, exclude):
                continue
            if absolute.stat().st_size > MAX_FILE_SIZE_BYTES:
                logger.warning("Skipping %s: larger than %s bytes", absolute, MAX_FILE_SIZE_BYTES)
                continue
            documents.append(DocumentRef(source_id=source.id, path=relative, absolute_path=absolute))
        return documents

    async def read_document(self, document: DocumentRef) -> str:
        path = _document_path(document)
        _check_size(path)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise DocumentIOError(f"Cannot read {path}: {exc}") from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentIOError(f"Invalid UTF-8 content: {path}") from exc
        return strip_front_matter(normalize_newlines(text)).strip()

    async def get_document_metadata(self, document: DocumentRef) -> DocumentMetadata:
        path = _document_path(document)
        stats = _check_size(path)
        return DocumentMetadata(
            mtime=stats.st_mtime_ns // 1_000_000,
            size=stats.st_size,
            hash=sha256_file(path),
        )

    def resolve_root(self, source: SourceRecord) -> Path:
        value = source.connector_config.get(self.root_key)
        if not value:
            raise ValidationError(f"Missing {self.root_key} for source: {source.name}")
        root = resolve_path(value)
        if not root.is_dir():
            raise NotFoundError(f"Source directory does not exist: {root}")
        return root

    def _walk(self, directory: Path) -> Iterator[Path]:
        with os.scandir(directory) as entries:
            ordered = sorted(entries, key=lambda entry: entry.name)
        for entry in ordered:
            if entry.is_symlink() or entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name in self.excluded_directories:
                    continue
                yield from self._walk(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                yield Path(entry.path)


class ObsidianConnector(FileSystemConnector):
    """Markdown notes of an Obsidian vault (config key ``vault_path``)."""

    root_key = "vault_path"
    extensions = MARKDOWN_EXTENSIONS
    excluded_directories = EXCLUDED_DIRECTORIES | {".obsidian", ".trash"}


ConnectorFactory = Callable[[SourceRecord], Connector]


class ConnectorRegistry:
    """Map a source's connector type to a connector instance."""

    def __init__(self, factories: Mapping[str, ConnectorFactory] | None = None) -> None:
        file_system = FileSystemConnector()
        obsidian = ObsidianConnector()
        self._factories: dict[str, ConnectorFactory] = {
            "file-system": lambda source: file_system,
            "obsidian": lambda source: obsidian,
        }
        if factories:
            self._factories.update(factories)

    def register(self, connector_type: str, factory: ConnectorFactory) -> None:
        self._factories[connector_type] = factory

    def get_connector(self, source: SourceRecord) -> Connector:
        factory = self._factories.get(source.connector_type)
        if factory is None:
            raise NotFoundError(f"Unsupported connector type: {source.connector_type}")
        return factory(source)

    def connector_types(self) -> list[str]:
        return sorted(self._factories)


def _document_path(document: DocumentRef) -> Path:
    if document.absolute_path is None:
        raise DocumentIOError(f"Document has no absolute path: {document.path}")
    return document.absolute_path


def _check_size(path: Path) -> os.stat_result:
    try:
        stats = path.stat()
    except OSError as exc:
        raise DocumentIOError(f"Cannot stat {path}: {exc}") from exc
    if stats.st_size > MAX_FILE_SIZE_BYTES:
        raise DocumentIOError(f"File too large: {path}")
    return stats


def _matches_patterns(path: str, include: str | None, exclude: str | None) -> bool:
    if exclude and any(fnmatch.fnmatch(path, pattern) for pattern in _expand_patterns(exclude)):
        return False
    if include:
        return any(fnmatch.fnmatch(path, pattern) for pattern in _expand_patterns(include))
    return True


def _expand_patterns(pattern: str) -> list[str]:
    patterns = []
    for part in _split_outside_braces(pattern):
        part = part.strip()
        if not part:
            continue
        if "{" in part and "}" in part:
            prefix = part[: part.index("{")]
            suffix = part[part.index("}") + 1 :]
            options = part[part.index("{") + 1 : part.index("}")].split(",")
            for option in options:
                patterns.append(f"{prefix}{option.strip()}{suffix}")
        else:
            patterns.append(part)
    return patterns or [pattern]


def _split_outside_braces(pattern: str) -> list[str]:
    # "a,{b,c}" -> ["a", "{b,c}"]
    parts: list[str] = []
    depth = 0
    current = ""
    for char in pattern:
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts


__all__ = [
    "FileSystemConnector",
    "ObsidianConnector",
    "ConnectorRegistry",
    "MAX_FILE_SIZE_BYTES",
]
