"""HTTP surface (requires the ``api`` extra)."""

from __future__ import annotations

from .app import QueryRequest, SyncRequest, create_api

__all__ = ["QueryRequest", "SyncRequest", "create_api"]
