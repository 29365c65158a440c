"""CLI entrypoint for docsift."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from docsift.cli.formatters import (
    OutputFormat,
    format_config,
    format_init,
    format_message,
    format_search_results,
    format_source_list,
    format_source_status,
    format_sync_summaries,
)
from docsift.core.config import Settings, resolve_config_path, write_default_config
from docsift.core.errors import DocsiftError, NotFoundError, ValidationError
from docsift.core.logging import configure_logging, get_logger
from docsift.core.metrics import render_metrics
from docsift.core.runtime import Runtime
from docsift.ingest.connectors import FileSystemConnector
from docsift.ingest.watcher import ChangeTracker, Watcher, resync_on_change, watch_patterns
from docsift.utils.paths import resolve_path

app = typer.Typer(name="docsift", help="Local hybrid document search", no_args_is_help=True)
sources_app = typer.Typer(name="sources", help="Manage document sources", no_args_is_help=True)
config_app = typer.Typer(name="config", help="Inspect configuration", no_args_is_help=True)
app.add_typer(sources_app, name="sources")
app.add_typer(config_app, name="config")

logger = get_logger(__name__)

CONNECTOR_ROOT_KEYS = {"file-system": "root_path", "obsidian": "vault_path"}


@dataclass
class CliState:
    config_path: Path | None
    fmt: OutputFormat
    quiet: bool
    verbose: bool

    def settings(self) -> Settings:
        overrides = {"log_level": "DEBUG"} if self.verbose else None
        settings = Settings.from_yaml(self.config_path, overrides=overrides)
        configure_logging(settings.log_level, use_json=settings.log_json)
        return settings

    def emit(self, output: str) -> None:
        if not self.quiet:
            typer.echo(output if output.endswith("\n") else f"{output}\n", nl=False)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Config file path"),
    fmt: OutputFormat = typer.Option(OutputFormat.md, "--format", help="Output format"),
    quiet: bool = typer.Option(False, "--quiet", help="Suppress output"),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose logging"),
) -> None:
    ctx.obj = CliState(config_path=config, fmt=fmt, quiet=quiet, verbose=verbose)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _fail(exc: DocsiftError) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the default config file and the catalog database."""
    state = _state(ctx)
    try:
        path = write_default_config(state.config_path)
        with Runtime(state.settings()):
            pass
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_init(path, state.fmt))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    state = _state(ctx)
    try:
        settings = state.settings()
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_config(settings, state.fmt))


@config_app.command("path")
def config_path(ctx: typer.Context) -> None:
    """Print the config file location."""
    state = _state(ctx)
    state.emit(format_message(str(resolve_config_path(state.config_path)), state.fmt))


@sources_app.command("add")
def add_source(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Unique source name"),
    path: Path = typer.Argument(..., help="Directory or vault to index"),
    connector_type: str = typer.Option("file-system", "--type", help="Connector type"),
    include: Optional[str] = typer.Option(None, "--include", help="Include globs, comma separated"),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="Exclude globs, comma separated"),
) -> None:
    """Register a document source."""
    state = _state(ctx)
    try:
        root_key = CONNECTOR_ROOT_KEYS.get(connector_type)
        if root_key is None:
            raise NotFoundError(f"Unsupported connector type: {connector_type}")
        connector_config: dict[str, str] = {root_key: str(resolve_path(path))}
        if include:
            connector_config["include"] = include
        if exclude:
            connector_config["exclude"] = exclude
        with Runtime(state.settings()) as runtime:
            if runtime.sources.get_source_by_name(name) is not None:
                raise ValidationError(f"Source already exists: {name}")
            source = runtime.sources.create_source(name, connector_type, connector_config)
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_source_list([source], state.fmt))


@sources_app.command("list")
def list_sources(ctx: typer.Context) -> None:
    """List registered sources."""
    state = _state(ctx)
    try:
        with Runtime(state.settings()) as runtime:
            sources = runtime.sources.list_sources()
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_source_list(sources, state.fmt))


@sources_app.command("remove")
def remove_source(ctx: typer.Context, name: str = typer.Argument(..., help="Source name")) -> None:
    """Remove a source and everything indexed from it."""
    state = _state(ctx)
    try:
        with Runtime(state.settings()) as runtime:
            source = runtime.sources.get_source_by_name(name)
            if source is None:
                raise NotFoundError(f"Source not found: {name}")
            runtime.sources.delete_source(source.id)
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_message(f"Removed source: {name}", state.fmt))


@sources_app.command("status")
def source_status(ctx: typer.Context) -> None:
    """Show file counts and the latest sync run per source."""
    state = _state(ctx)
    try:
        with Runtime(state.settings()) as runtime:
            statuses = runtime.sources.list_source_statuses()
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_source_status(statuses, state.fmt))


@app.command()
def sync(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Source name; omit to sync every source"),
    all_sources: bool = typer.Option(False, "--all", help="Sync every registered source"),
) -> None:
    """Bring the index up to date with the sources."""
    state = _state(ctx)
    if name and all_sources:
        typer.echo("Error: pass a source name or --all, not both", err=True)
        raise typer.Exit(code=2)
    try:
        with Runtime(state.settings()) as runtime:
            if name:
                summaries = [asyncio.run(runtime.sync_engine.sync_by_name(name))]
            else:
                summaries = asyncio.run(runtime.sync_engine.sync_all())
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_sync_summaries(summaries, state.fmt))


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Query text"),
    top: Optional[int] = typer.Option(None, "--top", min=1, help="Number of results to return"),
    bm25_k: Optional[int] = typer.Option(None, "--bm25-k", min=0, help="Lexical candidates"),
    vector_k: Optional[int] = typer.Option(None, "--vector-k", min=0, help="Vector candidates"),
    rerank_k: Optional[int] = typer.Option(None, "--rerank-k", min=1, help="Candidates passed to the reranker"),
    source: Optional[str] = typer.Option(None, "--source", help="Restrict to one source"),
) -> None:
    """Search the index."""
    state = _state(ctx)
    try:
        with Runtime(state.settings()) as runtime:
            request = runtime.build_search_request(
                query,
                top=top,
                bm25_k=bm25_k,
                vector_k=vector_k,
                rerank_k=rerank_k,
                source_name=source,
            )
            results = asyncio.run(runtime.search_engine.search(request))
    except DocsiftError as exc:
        _fail(exc)
    state.emit(format_search_results(results, state.fmt))


@app.command()
def watch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Source name"),
    settle: float = typer.Option(2.0, "--settle", min=0.0, help="Seconds of quiet before re-syncing"),
) -> None:
    """Re-sync a source whenever its files change."""
    state = _state(ctx)
    try:
        with Runtime(state.settings()) as runtime:
            source = runtime.sources.get_source_by_name(name)
            if source is None:
                raise NotFoundError(f"Source not found: {name}")
            connector = runtime.connectors.get_connector(source)
            if not isinstance(connector, FileSystemConnector):
                raise ValidationError(f"Source {name} cannot be watched")
            root = connector.resolve_root(source)
            include, exclude = watch_patterns(connector.extensions, connector.excluded_directories)

            async def resync(source_name: str) -> None:
                summary = await runtime.sync_engine.sync_by_name(source_name)
                state.emit(format_sync_summaries([summary], state.fmt))

            tracker = ChangeTracker(settle_seconds=settle)
            watcher = Watcher()
            watcher.add_source(name, root, tracker.record, include=include, exclude=exclude)
            watcher.start()
            logger.info("Watching %s for changes", root)
            try:
                asyncio.run(_watch_loop(name, tracker, resync))
            except KeyboardInterrupt:
                logger.info("Stopped watching %s", root)
            finally:
                watcher.close()
    except DocsiftError as exc:
        _fail(exc)


async def _watch_loop(name: str, tracker: ChangeTracker, resync) -> None:
    await resync(name)
    await resync_on_change(tracker, resync, asyncio.Event())


@app.command()
def metrics(ctx: typer.Context) -> None:
    """Print this process's metrics in Prometheus text format.

    Metrics live in memory, so a standalone invocation only lists the series
    with zero values. Counts accumulate within a long-running ``watch``.
    """
    state = _state(ctx)
    state.emit(render_metrics())


if __name__ == "__main__":
    app()
