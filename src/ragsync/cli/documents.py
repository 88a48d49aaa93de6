"""Typer command group for indexed documents."""

from __future__ import annotations

import json

import typer

from ragsync.core.errors import SyncConflictError

from .context import exit_for_error, open_context

_documents_app = typer.Typer(
    name="documents",
    help="Inspect and evict indexed documents.",
    no_args_is_help=True,
    invoke_without_command=False,
)


@_documents_app.command("list", help="List indexed documents and chunk counts.")
def list_documents(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable JSON.",
    ),
) -> None:
    context = open_context(ctx, "documents-list")
    documents = context.runtime.store.documents()

    if json_output:
        typer.echo(
            json.dumps(
                [document.to_mapping() for document in documents],
                indent=2,
                sort_keys=True,
            )
        )
    elif not documents:
        typer.secho("No documents indexed.", fg=typer.colors.YELLOW)
    else:
        for document in documents:
            typer.secho(document.parent_id, fg=typer.colors.CYAN, bold=True)
            typer.echo(f"  fileName: {document.file_name}")
            typer.echo(f"  fileType: {document.file_type}")
            typer.echo(f"  language: {document.language}")
            typer.echo(f"  chunks: {document.chunks}")

    context.logger.info("documents-list", count=len(documents))


@_documents_app.command(
    "delete",
    help="Remove a document's chunks and its sync cache entry.",
)
def delete_document(
    ctx: typer.Context,
    parent_id: str = typer.Argument(
        ...,
        metavar="PARENT_ID",
        help="Document id as shown by `ragsync documents list`.",
    ),
) -> None:
    context = open_context(ctx, "documents-delete")
    try:
        removed = context.runtime.orchestrator.forget(parent_id)
    except SyncConflictError as exc:
        exit_for_error("documents delete", exc, logger=context.logger)

    if removed:
        typer.secho(
            f"Deleted {removed} chunks for {parent_id}",
            fg=typer.colors.GREEN,
        )
    else:
        typer.secho(f"No chunks found for {parent_id}", fg=typer.colors.YELLOW)
    context.logger.info("documents-delete", parent_id=parent_id, removed=removed)


def create_documents_app() -> "typer.Typer":
    """Return the Typer application for ``ragsync documents``."""

    return _documents_app


__all__ = ["create_documents_app"]
