"""Render command results as markdown, plain text or JSON."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import orjson
import yaml

from docsift.core.config import Settings
from docsift.ingest.types import SyncSummary
from docsift.models.entities import SourceRecord, SourceStatus
from docsift.retrieval.search import SearchResult


class OutputFormat(str, Enum):
    md = "md"
    text = "text"
    json = "json"


def to_json(payload: Any) -> str:
    if is_dataclass(payload) and not isinstance(payload, type):
        payload = asdict(payload)
    elif isinstance(payload, list):
        payload = [asdict(item) if is_dataclass(item) else item for item in payload]
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2, default=str).decode("utf-8")


def format_message(message: str, fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json({"message": message})
    if fmt is OutputFormat.text:
        return message
    return f"# Result\n\n{message}"


def format_config(settings: Settings, fmt: OutputFormat) -> str:
    nested = settings.to_yaml_dict()
    if fmt is OutputFormat.json:
        return to_json(nested)
    body = yaml.safe_dump(nested, sort_keys=False)
    if fmt is OutputFormat.text:
        return body
    return f"# Config\n\n```yaml\n{body}```"


def format_init(config_path: Path, fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json({"config_path": str(config_path)})
    if fmt is OutputFormat.text:
        return f"Config created: {config_path}"
    return f"# Config\n\nCreated: {config_path}"


def format_source_list(sources: Sequence[SourceRecord], fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json(list(sources))
    if fmt is OutputFormat.text:
        return "\n".join(f"{s.name}\t{s.connector_type}\t{s.created_at}" for s in sources)
    rows = "\n".join(f"| {s.name} | {s.connector_type} | {s.created_at} |" for s in sources)
    return f"# Sources\n\n| Name | Type | Created |\n| --- | --- | --- |\n{rows}"


def format_source_status(statuses: Sequence[SourceStatus], fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json(list(statuses))
    if fmt is OutputFormat.text:
        return "\n".join(
            f"{s.name}\tfiles={s.file_count}\tlast={s.last_sync_at or 'never'}"
            f"\tstatus={s.last_status or 'n/a'}\tchanged={s.last_changed_count or 0}"
            for s in statuses
        )
    rows = "\n".join(
        f"| {s.name} | {s.file_count} | {s.last_sync_at or 'never'} | {s.last_status or 'n/a'} "
        f"| {s.last_changed_count or 0} |"
        for s in statuses
    )
    return (
        "# Source Status\n\n| Name | Files | Last Sync | Status | Changed |\n"
        f"| --- | --- | --- | --- | --- |\n{rows}"
    )


def format_sync_summaries(summaries: Sequence[SyncSummary], fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json([summary.to_dict() for summary in summaries])
    if fmt is OutputFormat.text:
        return "\n".join(
            f"{s.source_name}\tscanned={s.scanned_count}\tcreated={s.created_count}\tupdated={s.updated_count}"
            f"\tdeleted={s.deleted_count}\tskipped={s.skipped_count}\terrors={s.error_count}"
            for s in summaries
        )
    rows = "\n".join(
        f"| {s.source_name} | {s.scanned_count} | {s.created_count} | {s.updated_count} "
        f"| {s.deleted_count} | {s.skipped_count} | {s.error_count} |"
        for s in summaries
    )
    return (
        "# Sync Summary\n\n| Source | Scanned | Created | Updated | Deleted | Skipped | Errors |\n"
        f"| --- | --- | --- | --- | --- | --- | --- |\n{rows}"
    )


def format_search_results(results: Sequence[SearchResult], fmt: OutputFormat) -> str:
    if fmt is OutputFormat.json:
        return to_json({"results": [asdict(result) for result in results]})
    if fmt is OutputFormat.text:
        return "\n\n".join(
            f"[{r.rank}] score={r.score:.4f} source={r.source_name} path={r.file_path}\n{r.chunk_text}"
            for r in results
        )
    sections = "\n\n".join(
        f"## {r.rank}. {r.source_name}\n\n- score: {r.score:.4f}\n- path: {r.file_path}\n\n```text\n{r.chunk_text}\n```"
        for r in results
    )
    return f"# Search Results\n\n{sections}"


__all__ = [
    "OutputFormat",
    "to_json",
    "format_message",
    "format_config",
    "format_init",
    "format_source_list",
    "format_source_status",
    "format_sync_summaries",
    "format_search_results",
]
