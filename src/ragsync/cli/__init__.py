"""Command-line interface for :mod:`ragsync`.

Example:
    >>> import typer
    >>> from ragsync.cli import create_app
    >>> isinstance(create_app(), typer.Typer)
    True
"""

from __future__ import annotations

import json
import os
from importlib import util as importlib_util
from pathlib import Path

import typer

from ragsync.cli.documents import create_documents_app
from ragsync.cli.init import init_workspace
from ragsync.core.config import DEFAULTS_RESOURCE_NAME, ENV_LOG_LEVEL, AppConfig
from ragsync.core.errors import ConfigError, RagSyncError, SyncConflictError
from ragsync.core.logging import configure_logging, get_logger
from ragsync.sync.models import SyncReport

from .context import (
    CLIOptions,
    RuntimeFactory,
    exit_for_error,
    open_context,
    resolve_workspace_override,
)

_app_help = (
    "Incremental sync and vector retrieval for RAG knowledge bases."
    "\n\n"
    "Use `ragsync init` to bootstrap a workspace and populate `ragsync.toml`."
)

_API_SENTINELS = ("fastapi", "uvicorn")


def _emit_workspace_summary(
    *,
    config: AppConfig,
    refresh: bool,
    existing: bool,
) -> None:
    typer.secho("Workspace initialized", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  workspace: {config.workspace}")
    typer.echo(f"  config: {config.workspace / 'ragsync.toml'}")
    typer.echo(f"  defaults: packaged resource ({DEFAULTS_RESOURCE_NAME})")
    typer.echo(f"  log level: {config.log_level}")
    typer.echo(
        f"  chunker: size={config.chunker.size} overlap={config.chunker.overlap}"
    )
    endpoints = ", ".join(endpoint.name for endpoint in config.embedding.endpoints)
    typer.echo(f"  embedding endpoints: {endpoints}")
    if config.sync.source_folder:
        typer.echo(f"  source folder: {config.sync.source_folder}")

    if existing and not refresh:
        typer.echo("  note: existing workspace detected; config left untouched")
    elif refresh:
        typer.echo("  note: archived previous workspace before refresh")


def _emit_report(report: SyncReport) -> None:
    typer.secho("Sync complete", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"  total: {report.total}")
    typer.echo(f"  processed: {report.processed}")
    typer.echo(f"  skipped: {report.skipped}")
    typer.echo(f"  errors: {report.errors}")
    typer.echo(f"  duration: {report.duration_seconds:.2f}s")
    for item in report.files:
        if not item.success:
            typer.secho(
                f"  ! {item.file_name}: {item.error} ({item.error_kind})",
                fg=typer.colors.RED,
            )
        elif item.skipped:
            typer.echo(f"  - {item.file_name}: {item.message}")
        else:
            typer.echo(f"  + {item.file_name}: {item.chunks} chunks")


def create_app(runtime_factory: RuntimeFactory | None = None) -> "typer.Typer":
    """Return the Typer application powering the ``ragsync`` CLI.

    Args:
        runtime_factory: Optional override used to construct the component
            graph for each command.
    """

    app = typer.Typer(
        help=_app_help,
        no_args_is_help=True,
        rich_markup_mode="rich",
        invoke_without_command=False,
        cls=typer.core.TyperGroup,
    )
    app.add_typer(create_documents_app(), name="documents")

    @app.callback()
    def main_callback(
        ctx: typer.Context,
        workspace: Path | None = typer.Option(
            None,
            "--workspace",
            "-w",
            help=(
                "Override the workspace directory (defaults to "
                "RAGSYNC_WORKSPACE or ~/.ragsync)."
            ),
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            "-l",
            help="Override the logging level (DEBUG/INFO/WARNING/ERROR).",
        ),
    ) -> None:
        options = CLIOptions(workspace=workspace, log_level=log_level)
        if runtime_factory is not None:
            options.runtime_factory = runtime_factory
        ctx.obj = options

    @app.command(
        "init",
        help="Bootstrap a workspace and seed configuration files.",
    )
    def init_command(
        ctx: typer.Context,
        refresh: bool = typer.Option(
            False,
            "--refresh",
            help=(
                "Archive existing workspace contents before regenerating a "
                "clean layout."
            ),
        ),
        source_folder: str | None = typer.Option(
            None,
            "--source-folder",
            "-s",
            help="Default folder synchronized by `ragsync sync`.",
        ),
    ) -> None:
        options: CLIOptions = ctx.obj
        try:
            paths = resolve_workspace_override(options.workspace)
        except ValueError as exc:
            typer.secho(f"Workspace error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2) from exc

        log_level = options.log_level or os.environ.get(ENV_LOG_LEVEL)
        workspace_exists = paths.config_file.exists()

        try:
            config = init_workspace(
                workspace=paths.workspace,
                refresh=refresh,
                log_level=log_level,
                source_folder=source_folder,
            )
        except ConfigError as exc:
            typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2) from exc
        except OSError as exc:
            typer.secho(
                f"Failed to initialize workspace: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc

        configure_logging(level=config.log_level, logs_dir=paths.logs_dir)
        logger = get_logger(__name__, command="init")
        logger.info(
            "init-complete",
            workspace=str(config.workspace),
            refresh=refresh,
        )
        _emit_workspace_summary(
            config=config,
            refresh=refresh,
            existing=workspace_exists,
        )

    @app.command("sync", help="Run one incremental sync cycle.")
    def sync_command(
        ctx: typer.Context,
        folder: str | None = typer.Argument(
            None,
            metavar="[FOLDER]",
            help="Folder to synchronize (defaults to sync.source_folder).",
        ),
        json_output: bool = typer.Option(
            False,
            "--json",
            help="Emit the cycle report as JSON.",
        ),
    ) -> None:
        context = open_context(ctx, "sync")
        target = folder or context.runtime.default_folder
        if not target:
            exit_for_error(
                "sync",
                ConfigError(
                    "No source folder given and sync.source_folder is unset"
                ),
                logger=context.logger,
            )

        try:
            report = context.runtime.orchestrator.run(target)
        finally:
            context.runtime.close()

        if report.is_conflict:
            exit_for_error(
                "sync",
                SyncConflictError(report.message or "sync already in progress"),
                logger=context.logger,
            )
        if json_output:
            typer.echo(json.dumps(report.to_payload(), indent=2, sort_keys=True))
        elif report.success:
            _emit_report(report)
        if not report.success:
            typer.secho(f"Sync failed: {report.error}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    @app.command("status", help="Show sync state and tracked files.")
    def status_command(
        ctx: typer.Context,
        json_output: bool = typer.Option(
            False,
            "--json",
            help="Emit the status payload as JSON.",
        ),
    ) -> None:
        context = open_context(ctx, "status")
        status = context.runtime.orchestrator.status()
        if json_output:
            typer.echo(json.dumps(status.to_payload(), indent=2, sort_keys=True))
            return

        typer.secho("Sync status", fg=typer.colors.CYAN, bold=True)
        typer.echo(f"  in progress: {status.sync_in_progress}")
        typer.echo(f"  last sync: {status.last_sync_time or 'never'}")
        typer.echo(f"  files synced: {status.total_files_synced}")
        typer.echo(f"  vectors: {context.runtime.store.count()}")
        for entry in status.synced_files:
            typer.echo(f"  - {entry.name} ({entry.modified_time})")

    @app.command(
        "clear-cache",
        help="Forget tracked files so the next sync reprocesses everything.",
    )
    def clear_cache_command(ctx: typer.Context) -> None:
        context = open_context(ctx, "clear-cache")
        try:
            context.runtime.orchestrator.clear_cache()
        except SyncConflictError as exc:
            exit_for_error("clear-cache", exc, logger=context.logger)
        typer.secho("Cache cleared", fg=typer.colors.GREEN)

    @app.command("query", help="Search indexed chunks and answer a question.")
    def query_command(
        ctx: typer.Context,
        question: str = typer.Argument(..., metavar="QUESTION"),
        top_k: int = typer.Option(
            5,
            "--top-k",
            "-k",
            min=1,
            help="Number of chunks to retrieve.",
        ),
        search_only: bool = typer.Option(
            False,
            "--search-only",
            help="Print ranked chunks without assembling an answer.",
        ),
        json_output: bool = typer.Option(
            False,
            "--json",
            help="Emit results as JSON.",
        ),
    ) -> None:
        context = open_context(ctx, "query")
        try:
            if search_only:
                chunks = context.runtime.query.search(question, top_k)
                payload = {
                    "query": question,
                    "results": [chunk.to_mapping() for chunk in chunks],
                }
            else:
                result = context.runtime.query.answer(question, top_k)
                payload = result.to_payload()
        except RagSyncError as exc:
            exit_for_error("query", exc, logger=context.logger)

        if json_output:
            typer.echo(json.dumps(payload, indent=2, sort_keys=True))
            return

        if not search_only:
            typer.echo(payload["answer"])
            typer.echo(f"confidence: {payload['confidence']:.3f}")
        results = payload["results"] if search_only else payload["sources"]
        for rank, source in enumerate(results, start=1):
            typer.echo(
                f"  [{rank}] {source.get('fileName')} "
                f"#{source.get('chunkIndex')} score={source['score']:.3f}"
            )

    @app.command("serve", help="Serve the HTTP API (requires the api extra).")
    def serve_command(
        ctx: typer.Context,
        host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
        port: int = typer.Option(8000, "--port", "-p", help="Bind port."),
    ) -> None:
        missing = [
            name
            for name in _API_SENTINELS
            if importlib_util.find_spec(name) is None
        ]
        if missing:
            typer.secho(
                (
                    "The api extra is not installed (missing: "
                    f"{', '.join(missing)}). Install `ragsync[api]`."
                ),
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)

        import uvicorn

        from ragsync.api import create_api

        context = open_context(ctx, "serve")
        context.logger.info("api-serve", host=host, port=port)
        uvicorn.run(
            create_api(context.runtime),
            host=host,
            port=port,
            log_config=None,
        )

    return app


__all__ = ["create_app"]
