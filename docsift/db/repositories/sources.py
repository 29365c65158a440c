"""Sources repository."""

from __future__ import annotations

import sqlite3
from typing import Any

import orjson

from docsift.core.errors import NotFoundError
from docsift.db.sqlite import SQLiteDatabase
from docsift.models.entities import SourceRecord, SourceStatus
from docsift.utils.time import iso_now


class SourcesRepository:
    """Registered document sources."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def create_source(self, name: str, connector_type: str, connector_config: dict[str, Any]) -> SourceRecord:
        now = iso_now()
        with self.db.transaction():
            cursor = self.db.execute(
                """
                INSERT INTO sources (name, connector_type, connector_config_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [name, connector_type, orjson.dumps(connector_config).decode("utf-8"), now, now],
            )
        return self._require(cursor.lastrowid)

    def update_source(
        self, source_id: int, name: str, connector_type: str, connector_config: dict[str, Any]
    ) -> SourceRecord:
        with self.db.transaction():
            self.db.execute(
                """
                UPDATE sources
                SET name = ?, connector_type = ?, connector_config_json = ?, updated_at = ?
                WHERE id = ?
                """,
                [name, connector_type, orjson.dumps(connector_config).decode("utf-8"), iso_now(), source_id],
            )
        return self._require(source_id)

    def delete_source(self, source_id: int) -> None:
        """Remove a source; files, chunks, embeddings and runs cascade."""
        with self.db.transaction():
            self.db.execute("DELETE FROM sources WHERE id = ?", [source_id])

    def get_source_by_id(self, source_id: int) -> SourceRecord | None:
        row = self.db.query_one("SELECT * FROM sources WHERE id = ?", [source_id])
        return _map_source(row) if row else None

    def get_source_by_name(self, name: str) -> SourceRecord | None:
        row = self.db.query_one("SELECT * FROM sources WHERE name = ?", [name])
        return _map_source(row) if row else None

    def list_sources(self) -> list[SourceRecord]:
        return [_map_source(row) for row in self.db.query("SELECT * FROM sources ORDER BY name ASC")]

    def list_source_statuses(self) -> list[SourceStatus]:
        """Active file counts and the latest sync run for every source."""
        rows = self.db.query(
            """
            SELECT
              s.name,
              s.connector_type,
              (SELECT COUNT(*) FROM files f WHERE f.source_id = s.id AND f.is_deleted = 0) AS file_count,
              r.started_at AS last_sync_at,
              r.status AS last_status,
              r.changed_count AS last_changed_count
            FROM sources s
            LEFT JOIN sync_runs r ON r.id = (
              SELECT id FROM sync_runs WHERE source_id = s.id ORDER BY started_at DESC, id DESC LIMIT 1
            )
            ORDER BY s.name ASC
            """
        )
        return [
            SourceStatus(
                name=row["name"],
                connector_type=row["connector_type"],
                file_count=int(row["file_count"]),
                last_sync_at=row["last_sync_at"],
                last_status=row["last_status"],
                last_changed_count=row["last_changed_count"],
            )
            for row in rows
        ]

    def _require(self, source_id: int | None) -> SourceRecord:
        record = self.get_source_by_id(source_id) if source_id is not None else None
        if record is None:
            raise NotFoundError(f"Source not found: {source_id}")
        return record


def _map_source(row: sqlite3.Row) -> SourceRecord:
    try:
        config = orjson.loads(row["connector_config_json"])
    except orjson.JSONDecodeError:
        config = {}
    return SourceRecord(
        id=row["id"],
        name=row["name"],
        connector_type=row["connector_type"],
        connector_config=config if isinstance(config, dict) else {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


__all__ = ["SourcesRepository"]
