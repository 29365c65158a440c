"""CLI and runtime integration tests."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import orjson
import pytest
from typer.testing import CliRunner

from docsift.cli.formatters import OutputFormat, format_search_results, format_sync_summaries
from docsift.cli.main import app
from docsift.core.config import Settings
from docsift.core.runtime import Runtime
from docsift.ingest.types import SyncSummary
from docsift.retrieval.search import SearchResult

NOTE = " ".join(
    [
        "Reciprocal rank fusion merges the lexical ranking and the vector ranking into one list.",
        "Each list contributes one over k plus rank for every chunk it contains.",
        "Chunks found by both retrievers therefore rise to the top of the fused list.",
        "The reranker then rescores the head of that list against the query text.",
        "Only the best few results are shown to the user with their source and path.",
    ]
)

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DOCSIFT_LOG_LEVEL", "ERROR")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "config.yaml"


def _invoke(config_path: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_path), "--format", "json", *args])


def test_cli_end_to_end(config_path: Path, docs_dir: Path) -> None:
    (docs_dir / "fusion.md").write_text(NOTE, encoding="utf-8")

    result = _invoke(config_path, "init")
    assert result.exit_code == 0, result.output
    assert config_path.exists()

    result = _invoke(config_path, "sources", "add", "notes", str(docs_dir))
    assert result.exit_code == 0, result.output
    assert orjson.loads(result.output)[0]["connector_config"] == {"root_path": str(docs_dir.resolve())}

    result = _invoke(config_path, "sync", "notes")
    assert result.exit_code == 0, result.output
    (summary,) = orjson.loads(result.output)
    assert summary["created_count"] == 1

    result = _invoke(config_path, "search", "reciprocal rank fusion", "--top", "3")
    assert result.exit_code == 0, result.output
    results = orjson.loads(result.output)["results"]
    assert results[0]["file_path"] == "fusion.md"
    assert results[0]["rank"] == 1

    result = _invoke(config_path, "sources", "status")
    (status,) = orjson.loads(result.output)
    assert status["file_count"] == 1
    assert status["last_status"] == "success"

    result = _invoke(config_path, "sources", "remove", "notes")
    assert result.exit_code == 0, result.output
    assert orjson.loads(_invoke(config_path, "sources", "list").output) == []


def test_cli_reports_errors(config_path: Path, docs_dir: Path) -> None:
    result = _invoke(config_path, "search", "anything", "--source", "missing")
    assert result.exit_code == 1
    assert "Source not found: missing" in result.output

    result = _invoke(config_path, "sources", "add", "notes", str(docs_dir), "--type", "dropbox")
    assert result.exit_code == 1

    result = _invoke(config_path, "sync", "notes", "--all")
    assert result.exit_code == 2

    assert _invoke(config_path, "init").exit_code == 0
    assert _invoke(config_path, "init").exit_code == 1


def test_cli_config_show_and_metrics(config_path: Path) -> None:
    result = _invoke(config_path, "config", "show")
    assert result.exit_code == 0, result.output
    assert orjson.loads(result.output)["search"]["top"] == 5

    result = runner.invoke(app, ["--config", str(config_path), "metrics"])
    assert result.exit_code == 0
    assert "docsift_sync_documents_total" in result.output


def test_runtime_never_reuses_vector_ids(tmp_path: Path, docs_dir: Path) -> None:
    settings = Settings.load(data_dir=tmp_path / "data", vector_backend="memory", embedding_dimension=16)
    (docs_dir / "fusion.md").write_text(NOTE, encoding="utf-8")

    with Runtime(settings) as runtime:
        runtime.sources.create_source("notes", "file-system", {"root_path": str(docs_dir)})
        asyncio.run(runtime.sync_engine.sync_by_name("notes"))
        highest = runtime.embeddings.max_vector_id()
    assert highest >= 0

    with Runtime(settings) as runtime:
        assert runtime.vector_index.add([[1.0] * 16]) == [highest + 1]


def test_synced_vectors_survive_without_runtime_close(tmp_path: Path, docs_dir: Path) -> None:
    pytest.importorskip("hnswlib")
    settings = Settings.load(data_dir=tmp_path / "data", vector_backend="hnsw", embedding_dimension=16)
    (docs_dir / "fusion.md").write_text(NOTE, encoding="utf-8")

    runtime = Runtime(settings)
    runtime.db.migrate()
    runtime.sources.create_source("notes", "file-system", {"root_path": str(docs_dir)})
    asyncio.run(runtime.sync_engine.sync_by_name("notes"))
    # the process dies here; only the database handle is released
    runtime.db.close()

    with Runtime(settings) as reopened:
        assert reopened.vector_index.size == 1
        request = reopened.build_search_request("reciprocal rank fusion", bm25_k=0)
        results = asyncio.run(reopened.search_engine.search(request))
    assert results[0].file_path == "fusion.md"


def test_formatters_render_all_formats() -> None:
    summary = SyncSummary(source_id=1, source_name="notes", scanned_count=2, created_count=1)
    result = SearchResult(rank=1, score=0.5, source_name="notes", file_path="a.md", chunk_text="hello")

    assert "| notes | 2 | 1 |" in format_sync_summaries([summary], OutputFormat.md)
    assert "created=1" in format_sync_summaries([summary], OutputFormat.text)
    assert orjson.loads(format_sync_summaries([summary], OutputFormat.json))[0]["scanned_count"] == 2

    assert "score=0.5000" in format_search_results([result], OutputFormat.text)
    assert "## 1. notes" in format_search_results([result], OutputFormat.md)
    assert orjson.loads(format_search_results([result], OutputFormat.json))["results"][0]["chunk_text"] == "hello"
