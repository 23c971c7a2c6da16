"""FastAPI application for the workflow builder."""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowbuilder.api import builder
from flowbuilder.config import get_settings
from flowbuilder.generation.client import reset_generation_client
from flowbuilder.persistence import reset_node_store

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "builder_service_started",
        persistence_backend=settings.persistence_backend,
        generation_url=settings.generation_url,
    )
    yield
    sessions = builder.get_sessions()
    logger.info("builder_service_stopping", open_sessions=len(sessions))
    # Sessions hold graphs bound to the cached store, so drop them together
    sessions.clear()
    reset_node_store()
    reset_generation_client()


app = FastAPI(
    title=settings.app_name,
    description="Canvas backend: graph edits, layout and prompt compilation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)

app.include_router(builder.router, prefix="/api", tags=["builder"])


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": "0.1.0",
        "persistence_backend": settings.persistence_backend,
    }
