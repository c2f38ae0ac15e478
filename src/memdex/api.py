"""Admin HTTP surface (JSON) over a Memdex instance.

Routes are all ``async def`` so they run on the loop that owns the index
connection and the sync tasks.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator

from fastapi import APIRouter, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from memdex.errors import NotFoundError, PathEscapeError
from memdex.service import Memdex

logger = logging.getLogger(__name__)


class ActivateRequest(BaseModel):
    providerId: str
    config: dict[str, Any] = Field(default_factory=dict)


class WriteRequest(BaseModel):
    content: str
    section: str | None = None
    replace: bool = False


class DailyRequest(BaseModel):
    text: str = Field(..., min_length=1)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


async def _not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "not_found", str(exc))


async def _bad_request_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "bad_request", str(exc))


def _build_router(memdex: Memdex) -> APIRouter:
    router = APIRouter()

    @router.get("/status")
    async def get_status() -> dict[str, Any]:
        st = memdex.status()
        body: dict[str, Any] = {
            "filesIndexed": st.files_indexed,
            "totalChunks": st.total_chunks,
            "vectorsStored": st.vectors_stored,
            "vectorPending": st.vector_pending,
            "lastSync": st.last_sync,
            "provider": asdict(st.provider),
            "dbHealthy": st.db_healthy,
            "chunkerChanged": st.chunker_changed,
        }
        if st.degraded is not None:
            body["degraded"] = st.degraded.to_dict()
        return body

    @router.get("/search")
    async def search(
        q: str = Query(..., min_length=1, max_length=1024),
        sources: str | None = None,
        maxResults: int | None = Query(None, ge=1, le=200),
        minScore: float | None = Query(None, ge=0.0, le=1.0),
    ) -> dict[str, Any]:
        groups = [s.strip() for s in sources.split(",") if s.strip()] if sources else None
        response = await memdex.search(q, sources=groups, max_results=maxResults, min_score=minScore)
        return response.to_dict()

    @router.get("/files")
    async def list_files() -> list[dict[str, Any]]:
        return [
            {
                "path": f.path,
                "hash": f.hash,
                "modifiedAt": f.modified_at,
                "sizeBytes": f.size_bytes,
                "chunkCount": f.chunk_count,
                "stale": f.stale,
            }
            for f in memdex.files()
        ]

    @router.post("/rebuild")
    async def rebuild() -> dict[str, Any]:
        result = await memdex.rebuild()
        return {
            "filesScanned": result.files_scanned,
            "filesChanged": result.files_changed,
            "chunksCreated": result.chunks_created,
            "embeddingsComputed": result.embeddings_computed,
            "embeddingsCachedHit": result.embeddings_cached_hit,
            "durationMs": result.duration_ms,
            "errors": result.errors,
        }

    @router.post("/providers/activate")
    async def activate_provider(body: ActivateRequest) -> dict[str, Any]:
        result = await memdex.activate_provider(body.providerId, body.config)
        payload: dict[str, Any] = {
            "providerId": result.provider_id,
            "model": result.model,
            "healthy": result.healthy,
        }
        if result.message:
            payload["message"] = result.message
        if result.warning:
            payload["warning"] = result.warning
        return payload

    @router.get("/notebook/{path:path}")
    async def read_note(
        path: str,
        startLine: int | None = Query(None, ge=1),
        lineCount: int | None = Query(None, ge=0),
        section: str | None = None,
    ) -> dict[str, Any]:
        content = memdex.get(path, start_line=startLine, line_count=lineCount, section=section)
        return {"path": path, "content": content}

    @router.put("/notebook/{path:path}")
    async def write_note(path: str, body: WriteRequest) -> JSONResponse:
        result = await memdex.write(path, body.content, section=body.section, replace=body.replace)
        code = status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
        return JSONResponse(status_code=code, content=asdict(result))

    @router.delete("/notebook/{path:path}")
    async def delete_section(path: str, section: str = Query(..., min_length=1)) -> JSONResponse:
        result = await memdex.delete_section(path, section)
        code = status.HTTP_200_OK if result.success else status.HTTP_404_NOT_FOUND
        return JSONResponse(status_code=code, content=asdict(result))

    @router.post("/daily")
    async def append_daily(body: DailyRequest) -> dict[str, str]:
        return await memdex.append_daily_entry(body.text)

    return router


def create_app(memdex: Memdex, start: bool = True) -> FastAPI:
    """Build the FastAPI app for *memdex*.

    Args:
        memdex: The notebook index to serve.
        start: Run ``memdex.start()`` on startup and ``memdex.close()`` on
            shutdown. Watching follows ``sync.watch`` in the config.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if start:
            await memdex.start(watch=memdex.config.sync.watch)
        try:
            yield
        finally:
            if start:
                await memdex.close()

    app = FastAPI(title="memdex", lifespan=lifespan)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(PathEscapeError, _bad_request_handler)
    app.add_exception_handler(ValueError, _bad_request_handler)
    app.include_router(_build_router(memdex))
    return app
