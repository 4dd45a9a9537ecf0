"""RAG API routes - index the workspace and retrieve context for LLM prompts."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from memox.api.dependencies import get_coordinator, limiter
from memox.application.indexing.coordinator import IndexCoordinator
from memox.application.indexing.progress import CancellationToken
from memox.domain.entities.indexing_events import IndexProgress, IndexReport
from memox.domain.errors import IndexBusyError, QueryEmbeddingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rag", tags=["rag"])

# Scans left running after their SSE client went away
_background_tasks: set[asyncio.Task] = set()


def _log_abandoned_failure(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Indexing failed after client disconnected: %s", error, exc_info=error)


def _detach(task: asyncio.Task) -> None:
    """Keep a reference to an unawaited task and log how it ends."""
    _background_tasks.add(task)
    task.add_done_callback(_log_abandoned_failure)


class SearchRequest(BaseModel):
    """Request for RAG search."""

    query: str = Field(..., min_length=1, max_length=2000)
    k: int | None = Field(None, ge=0, le=100)


class ContextRequest(BaseModel):
    """Request for token-budgeted context."""

    query: str = Field(..., min_length=1, max_length=2000)
    max_tokens: int | None = Field(None, ge=0, le=100_000)
    k: int | None = Field(None, ge=0, le=100)


class ChunkResult(BaseModel):
    """Single search result."""

    content: str
    filename: str
    start_line: int
    end_line: int
    score: float


class SearchResponse(BaseModel):
    """Response from RAG search."""

    results: list[ChunkResult]
    total_chars: int


class ContextResponse(BaseModel):
    """Context string ready to paste into a prompt."""

    context: str
    tokens: int


@router.post("/index", response_model=None)
@limiter.limit("10/minute")
async def index_workspace(
    request: Request,
    incremental: bool = False,
    stream: bool = False,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> dict | EventSourceResponse:
    """Index the configured workspace roots.

    incremental: only re-chunk new/changed files and prune deleted ones.
    stream: emit progress as SSE ``progress`` events, then a ``complete`` event.
    """
    if coordinator.is_indexing:
        raise HTTPException(status_code=409, detail="Indexing already in progress")
    if stream:
        return _stream_index(coordinator, incremental)
    try:
        report = await coordinator.index_workspace(incremental=incremental)
    except IndexBusyError:
        raise HTTPException(status_code=409, detail="Indexing already in progress")
    except Exception:
        logger.exception("Workspace indexing failed")
        raise HTTPException(status_code=500, detail="Workspace indexing failed")
    return {"status": "ok", **report.model_dump()}


def _stream_index(coordinator: IndexCoordinator, incremental: bool) -> EventSourceResponse:
    """Return SSE stream of indexing progress."""

    async def event_generator():
        queue: asyncio.Queue[IndexProgress | None] = asyncio.Queue()
        cancel = CancellationToken()

        async def on_progress(event: IndexProgress) -> None:
            await queue.put(event)

        async def run() -> IndexReport:
            try:
                return await coordinator.index_workspace(on_progress=on_progress, cancel=cancel, incremental=incremental)
            finally:
                await queue.put(None)

        task = asyncio.create_task(run())
        try:
            while (event := await queue.get()) is not None:
                yield {"event": "progress", "data": event.model_dump_json()}
            report = await task
            yield {"event": "complete", "data": report.model_dump_json()}
        except IndexBusyError:
            yield {"event": "error", "data": "Indexing already in progress"}
        except Exception:
            logger.exception("Indexing stream failed")
            yield {"event": "error", "data": "Stream failed"}
        finally:
            # Client went away: stop the scan between files, keep what is persisted
            if not task.done():
                cancel.cancel()
                _detach(task)
        yield {"event": "close", "data": ""}

    return EventSourceResponse(event_generator())


@router.post("/cancel")
@limiter.limit("30/minute")
async def cancel_indexing(
    request: Request,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> dict:
    """Request cancellation of the running scan. Already persisted files stay indexed."""
    cancelled = coordinator.cancel()
    return {"status": "ok", "cancelled": cancelled}


@router.post("/search")
@limiter.limit("60/minute")
async def search_rag(
    request: Request,
    body: SearchRequest,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> SearchResponse:
    """Search the index for the chunks most similar to the query."""
    try:
        hits = await coordinator.search(body.query, body.k)
    except QueryEmbeddingError:
        logger.exception("Query embedding failed for query: %s", body.query)
        raise HTTPException(status_code=502, detail="Embedding provider failed")
    except Exception:
        logger.exception("RAG search failed for query: %s", body.query)
        raise HTTPException(status_code=500, detail="RAG search failed")

    results = [
        ChunkResult(
            content=hit.chunk.content,
            filename=hit.chunk.metadata.filename,
            start_line=hit.chunk.metadata.start_line,
            end_line=hit.chunk.metadata.end_line,
            score=hit.score,
        )
        for hit in hits
    ]
    return SearchResponse(results=results, total_chars=sum(len(r.content) for r in results))


@router.post("/context")
@limiter.limit("60/minute")
async def relevant_context(
    request: Request,
    body: ContextRequest,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> ContextResponse:
    """Context string for the query, within the max_tokens word budget."""
    try:
        context = await coordinator.get_relevant_context(body.query, body.max_tokens, body.k)
    except QueryEmbeddingError:
        logger.exception("Query embedding failed for query: %s", body.query)
        raise HTTPException(status_code=502, detail="Embedding provider failed")
    except Exception:
        logger.exception("Context retrieval failed for query: %s", body.query)
        raise HTTPException(status_code=500, detail="Context retrieval failed")
    return ContextResponse(context=context, tokens=len(context.split()))


@router.get("/status")
@limiter.limit("60/minute")
async def rag_status(
    request: Request,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> dict:
    """Get RAG index status with statistics."""
    await coordinator.initialize()
    return {"status": "ok", **coordinator.stats()}


@router.get("/files")
@limiter.limit("30/minute")
async def list_indexed_files(
    request: Request,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> dict:
    """Get list of all indexed files."""
    await coordinator.initialize()
    files = coordinator.store.indexed_files()
    return {"files": files, "count": len(files)}


@router.post("/clear")
@limiter.limit("5/minute")
async def clear_index(
    request: Request,
    coordinator: IndexCoordinator = Depends(get_coordinator),
) -> dict:
    """Clear all indexed data."""
    try:
        await coordinator.clear()
    except IndexBusyError:
        raise HTTPException(status_code=409, detail="Cannot clear while indexing")
    except Exception:
        logger.exception("Failed to clear RAG index")
        raise HTTPException(status_code=500, detail="Failed to clear index")
    return {"status": "ok", "message": "Index cleared"}
