"""SessionHub FastAPI Backend — main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sessionhub import config
from sessionhub.observability import initialize as initialize_observability, shutdown as shutdown_observability
from sessionhub.registry.session_registry import SessionRegistry
from sessionhub.routers.sessions import sessions_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("sessionhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("SessionHub backend starting up")
    initialize_observability(app)

    # Registry is owned here and reached by routers through app.state.
    app.state.session_registry = SessionRegistry(config.PROJECTS_DIR)
    logger.info("Reading transcripts from %s", config.PROJECTS_DIR)

    yield

    logger.info("SessionHub backend shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="SessionHub API",
    description="Session catalog for coding-agent clients",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:1420",
        "http://127.0.0.1:1420",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sessions_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    registry: SessionRegistry | None = getattr(app.state, "session_registry", None)
    return {
        "status": "ok",
        "projectsDir": str(config.PROJECTS_DIR),
        "activeSessions": len(registry.active_sessions) if registry else 0,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("sessionhub.main:app", host=config.HOST, port=config.PORT)
