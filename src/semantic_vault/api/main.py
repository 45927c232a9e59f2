"""FastAPI entrypoint for routing, health and trace endpoints."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI

from semantic_vault.semantic.router import RouteRequest, SemanticRouter
from semantic_vault.vault.store import FilesystemVaultStore


def create_app(router: SemanticRouter) -> FastAPI:
    """Build the app around one router; sync endpoints run in a thread pool, so routing is locked."""

    app = FastAPI(title="Semantic Vault", version="0.1.0")
    lock = threading.Lock()

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "indexed_documents": router.retriever.indexed_document_count,
            "buffer_available": router.buffer.available,
            "trace_count": len(router.recent_traces(limit=1000)),
        }

    @app.post("/route")
    def route(request: RouteRequest) -> dict[str, Any]:
        with lock:
            return router.route(request)

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in router.recent_traces(limit=limit)]
        return {"items": records}

    return app


logging.basicConfig(
    level=os.getenv("SEMANTIC_VAULT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(SemanticRouter(FilesystemVaultStore(os.getenv("SEMANTIC_VAULT_ROOT", "."))))
