"""Application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from memox import __version__
from memox.api.container import get_container
from memox.api.dependencies import default_rate_limit, limiter
from memox.api.routes.rag import router as rag_router
from memox.shared.logging import setup_logging

log = structlog.get_logger()


def _apply_logging_config(container):
    """Apply logging from container config (stderr + optional file)."""
    c = container.config
    setup_logging(
        level=c.log_level,
        file_path=c.log_file or "",
        rotation_max_mb=c.log_rotation_max_mb,
        rotation_backups=c.log_rotation_backups,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: setup logging, load the persisted index. Shutdown: cancel any running scan."""
    container = get_container()
    _apply_logging_config(container)
    log.info(
        "startup_begin",
        embeddings_provider=container.config.embeddings.provider,
        roots=container.config.rag.workspace_roots,
    )
    await container.coordinator.initialize()
    log.info("startup_complete", total_chunks=container.coordinator.store.count())
    yield
    log.info("shutdown_begin")
    if container.coordinator.cancel():
        log.info("indexing_cancelled_on_shutdown")
    log.info("shutdown_complete")


# Create app
app = FastAPI(
    title="memox",
    version=__version__,
    description="Workspace code index and context retrieval for LLM prompts",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
container = get_container()
app.add_middleware(
    CORSMiddleware,
    allow_origins=container.config.security.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rag_router)


@app.get("/health")
@limiter.limit(default_rate_limit)
async def health(request: Request) -> dict:
    """Health check with embeddings provider and indexing state."""
    container = get_container()
    return {
        "status": "ok",
        "service": "memox",
        "embeddings": container.embeddings.get_stats(),
        "indexing_state": container.coordinator.state.value,
    }
