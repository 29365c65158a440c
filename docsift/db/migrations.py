"""Forward-only schema migrations.

The schema version lives in the ``app_meta`` key/value table. Each migration
runs inside its own transaction together with the version bump, so a version
is either fully applied or not at all.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from docsift.utils.time import iso_now

if TYPE_CHECKING:
    from docsift.db.sqlite import SQLiteDatabase

_CREATE_APP_META = """
CREATE TABLE IF NOT EXISTS app_meta (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
)
"""

_V1 = [
    """
    CREATE TABLE IF NOT EXISTS sources (
        id                     INTEGER PRIMARY KEY AUTOINCREMENT,
        name                   TEXT NOT NULL UNIQUE,
        connector_type         TEXT NOT NULL,
        connector_config_json  TEXT NOT NULL,
        created_at             TEXT NOT NULL,
        updated_at             TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        source_id   INTEGER NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
        path        TEXT NOT NULL,
        mtime       INTEGER NOT NULL,
        size        INTEGER NOT NULL,
        hash        TEXT NOT NULL,
        is_deleted  INTEGER NOT NULL DEFAULT 0,
        updated_at  TEXT NOT NULL,
        UNIQUE (source_id, path)
    )
    """,
    "CREATE INDEX IF NOT EXISTS files_source_id_is_deleted ON files (source_id, is_deleted)",
    "CREATE INDEX IF NOT EXISTS files_hash ON files (hash)",
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        file_id      INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
        chunk_index  INTEGER NOT NULL,
        token_count  INTEGER NOT NULL,
        is_deleted   INTEGER NOT NULL DEFAULT 0,
        updated_at   TEXT NOT NULL,
        UNIQUE (file_id, chunk_index)
    )
    """,
    "CREATE INDEX IF NOT EXISTS chunks_file_id_is_deleted ON chunks (file_id, is_deleted)",
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
        chunk_id UNINDEXED,
        text,
        is_deleted UNINDEXED,
        source_id UNINDEXED
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS embeddings (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        chunk_id    INTEGER NOT NULL REFERENCES chunks(id) ON DELETE CASCADE,
        vector_id   INTEGER NOT NULL,
        model_name  TEXT NOT NULL,
        dimension   INTEGER NOT NULL,
        created_at  TEXT NOT NULL,
        UNIQUE (chunk_id, model_name)
    )
    """,
    "CREATE INDEX IF NOT EXISTS embeddings_vector_id ON embeddings (vector_id)",
    """
    CREATE TABLE IF NOT EXISTS sync_runs (
        id             INTEGER PRIMARY KEY AUTOINCREMENT,
        source_id      INTEGER NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
        started_at     TEXT NOT NULL,
        ended_at       TEXT,
        status         TEXT NOT NULL,
        changed_count  INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS sync_runs_source_id_started_at ON sync_runs (source_id, started_at)",
]

_V2 = [
    # FTS rows are not covered by foreign keys; drop them with their source.
    """
    CREATE TRIGGER IF NOT EXISTS sources_delete_fts
    AFTER DELETE ON sources
    BEGIN
        DELETE FROM chunks_fts WHERE source_id = OLD.id;
    END
    """,
]

# Append-only. Each entry: (version, statements).
MIGRATIONS: list[tuple[int, list[str]]] = [
    (1, _V1),
    (2, _V2),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def get_schema_version(db: "SQLiteDatabase") -> int:
    row = db.query_one("SELECT value FROM app_meta WHERE key = ?", ["schema_version"])
    if row is None:
        return 0
    try:
        return int(row["value"])
    except ValueError:
        return 0


def apply_migrations(db: "SQLiteDatabase") -> int:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    db.execute(_CREATE_APP_META)
    db.commit()
    current = get_schema_version(db)
    for version, statements in MIGRATIONS:
        if version <= current:
            continue
        with db.transaction():
            for statement in statements:
                db.execute(statement)
            _set_meta(db, "schema_version", str(version))
            _set_meta(db, "last_migration_at", iso_now())
        current = version
    return current


def _set_meta(db: "SQLiteDatabase", key: str, value: str) -> None:
    db.execute("INSERT OR REPLACE INTO app_meta (key, value) VALUES (?, ?)", [key, value])


__all__ = ["MIGRATIONS", "LATEST_VERSION", "apply_migrations", "get_schema_version"]
