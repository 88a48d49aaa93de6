"""FastAPI application exposing sync, status and query endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import APIRouter, FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ragsync.core.errors import RagSyncError, SyncConflictError
from ragsync.runtime import Runtime
from ragsync.sync.models import CONFLICT_MESSAGE

__all__ = ["QueryRequest", "SyncRequest", "create_api"]


class SyncRequest(BaseModel):
    """Body of ``POST /sync``."""

    source_folder_id: str | None = Field(
        default=None,
        alias="sourceFolderId",
        description="Folder to synchronize; defaults to sync.source_folder.",
    )

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


class QueryRequest(BaseModel):
    """Body of ``POST /query``."""

    question: str = Field(min_length=1, description="Question to answer.")
    top_k: int = Field(
        default=5,
        ge=1,
        le=100,
        alias="topK",
        description="Number of chunks retrieved for the answer.",
    )
    filter: dict[str, Any] | None = Field(
        default=None,
        description="Exact-match metadata filter applied before ranking.",
    )

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}


def _error(status_code: int, message: str, *, key: str = "error") -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, key: message},
    )


def _build_router(runtime: Runtime) -> APIRouter:
    router = APIRouter()
    logger = runtime.logger.bind(component="api")

    @router.post("/sync")
    def sync(request: SyncRequest | None = None) -> Any:
        folder = (request.source_folder_id if request else None) or (
            runtime.default_folder
        )
        if not folder:
            return _error(400, "Source folder ID not configured")

        try:
            report = runtime.orchestrator.run(folder)
        except Exception as exc:
            logger.exception("api-sync-failed", folder=folder)
            return _error(500, str(exc) or exc.__class__.__name__)

        if report.is_conflict:
            return _error(409, CONFLICT_MESSAGE, key="message")
        if not report.success:
            return JSONResponse(status_code=500, content=report.to_payload())
        return report.to_payload()

    @router.get("/status")
    def status() -> dict[str, Any]:
        return runtime.orchestrator.status().to_payload()

    @router.post("/clear-cache")
    def clear_cache() -> Any:
        try:
            runtime.orchestrator.clear_cache()
        except SyncConflictError as exc:
            return _error(409, exc.message, key="message")
        return {"success": True, "message": "Cache cleared successfully"}

    @router.get("/query")
    def search(
        q: str = Query(min_length=1, description="Question text."),
        top_k: int = Query(default=5, ge=1, le=100, alias="topK"),
        file_name: str | None = Query(default=None, alias="fileName"),
        file_type: str | None = Query(default=None, alias="fileType"),
        language: str | None = Query(default=None),
        parent_id: str | None = Query(default=None, alias="parentId"),
    ) -> Any:
        where = {
            key: value
            for key, value in (
                ("fileName", file_name),
                ("fileType", file_type),
                ("language", language),
                ("parentId", parent_id),
            )
            if value is not None
        }
        try:
            chunks = runtime.query.search(q, top_k, where or None)
        except RagSyncError as exc:
            logger.warning("api-query-failed", kind=str(exc.kind))
            return _error(500, exc.message)
        return {
            "success": True,
            "query": q,
            "results": [chunk.to_mapping() for chunk in chunks],
        }

    @router.post("/query")
    def answer(request: QueryRequest) -> Any:
        try:
            result = runtime.query.answer(
                request.question,
                request.top_k,
                request.filter,
            )
        except RagSyncError as exc:
            logger.warning("api-query-failed", kind=str(exc.kind))
            return _error(500, exc.message)
        payload = result.to_payload()
        payload["success"] = True
        return payload

    return router


def create_api(runtime: Runtime) -> FastAPI:
    """Return a FastAPI app bound to ``runtime``.

    Example:
        >>> app = create_api(runtime)  # doctest: +SKIP
        >>> sorted(route.path for route in app.routes)  # doctest: +SKIP
    """

    @asynccontextmanager
    async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        runtime.close()

    app = FastAPI(
        title="ragsync",
        description="Incremental sync and vector retrieval.",
        lifespan=_lifespan,
    )
    app.include_router(_build_router(runtime))
    return app
