"""Sync run audit trail."""

from __future__ import annotations

import sqlite3

from docsift.core.errors import NotFoundError
from docsift.db.sqlite import SQLiteDatabase
from docsift.models.entities import SyncRunRecord
from docsift.utils.time import iso_now

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


class SyncRunsRepository:
    """Append-only sync run records, one per sync invocation."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def start_sync_run(self, source_id: int, status: str = STATUS_RUNNING) -> SyncRunRecord:
        with self.db.transaction():
            cursor = self.db.execute(
                "INSERT INTO sync_runs (source_id, started_at, ended_at, status, changed_count) VALUES (?, ?, NULL, ?, 0)",
                [source_id, iso_now(), status],
            )
        return self._require(cursor.lastrowid)

    def finish_sync_run(self, run_id: int, status: str, changed_count: int) -> SyncRunRecord:
        with self.db.transaction():
            self.db.execute(
                "UPDATE sync_runs SET ended_at = ?, status = ?, changed_count = ? WHERE id = ?",
                [iso_now(), status, changed_count, run_id],
            )
        return self._require(run_id)

    def get_sync_run(self, run_id: int) -> SyncRunRecord | None:
        row = self.db.query_one("SELECT * FROM sync_runs WHERE id = ?", [run_id])
        return _map_sync_run(row) if row else None

    def list_sync_runs_by_source(self, source_id: int) -> list[SyncRunRecord]:
        rows = self.db.query(
            "SELECT * FROM sync_runs WHERE source_id = ? ORDER BY started_at DESC, id DESC",
            [source_id],
        )
        return [_map_sync_run(row) for row in rows]

    def _require(self, run_id: int | None) -> SyncRunRecord:
        record = self.get_sync_run(run_id) if run_id is not None else None
        if record is None:
            raise NotFoundError(f"Sync run not found: {run_id}")
        return record


def _map_sync_run(row: sqlite3.Row) -> SyncRunRecord:
    return SyncRunRecord(
        id=row["id"],
        source_id=row["source_id"],
        started_at=row["started_at"],
        ended_at=row["ended_at"],
        status=row["status"],
        changed_count=row["changed_count"],
    )


__all__ = ["SyncRunsRepository", "STATUS_RUNNING", "STATUS_SUCCESS", "STATUS_FAILED"]
