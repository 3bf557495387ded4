"""
agentrun HTTP API.

FastAPI surface over the run coordinator. Engine rejections are mapped to
HTTP errors here; the engine itself knows nothing about transport.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from agentrun import __version__
from agentrun.core.config import Settings, get_settings
from agentrun.core.errors import ErrorKind, OrchestrationError
from agentrun.core.logging import configure_logging
from agentrun.orchestration.coordinator import RunCoordinator
from agentrun.store.memory import InMemoryAgentDirectory, InMemoryRunStore

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.REFERENCE: 400,
    ErrorKind.GUARD: 400,
    ErrorKind.ILLEGAL_RUN_TRANSITION: 400,
    ErrorKind.INCOMPLETE_RUN: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.ADMISSION_LIMIT: 409,
    ErrorKind.NOT_FOUND: 404,
}


def status_for(error: OrchestrationError) -> int:
    """HTTP status code for an engine rejection."""
    return STATUS_BY_KIND.get(error.kind, 400)


async def orchestration_error_handler(_request: Request, exc: OrchestrationError) -> JSONResponse:
    """Render an engine rejection as a JSON error body."""
    return JSONResponse(status_code=status_for(exc), content={"error": exc.to_dict()})


def create_app(
    coordinator: RunCoordinator | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        coordinator: Coordinator to serve; defaults to one backed by the
            in-memory store and agent directory.
        settings: Optional settings override.

    Returns:
        Configured FastAPI app.
    """
    settings = settings or get_settings()
    if coordinator is None:
        coordinator = RunCoordinator(
            InMemoryRunStore(),
            InMemoryAgentDirectory(),
            settings=settings,
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings)
        logger.info("Starting agentrun API...")
        yield
        logger.info("Shutting down agentrun API...")

    app = FastAPI(
        title="agentrun API",
        description="Agent run orchestration engine",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator
    app.add_exception_handler(OrchestrationError, orchestration_error_handler)

    from agentrun.api.routes import runs, tasks

    app.include_router(runs.router, prefix="/api/agent-runs", tags=["runs"])
    app.include_router(tasks.router, prefix="/api/agent-runs", tags=["tasks"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Health status and version.
        """
        return {"status": "healthy", "version": __version__}

    return app
