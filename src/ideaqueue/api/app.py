"""FastAPI application for the admin review screens."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ideaqueue import __version__
from ideaqueue.api.routes import buckets, ideas, jobs
from ideaqueue.config import IdeaQueueConfig
from ideaqueue.errors import (
    BucketStageMismatch,
    DispatchFailure,
    IdeaQueueError,
    InvalidTransition,
    LockTimeout,
    MissingFields,
    NotFound,
    ValidationError,
    WrongStage,
)
from ideaqueue.services import Services, build_services

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[IdeaQueueError], int] = {
    ValidationError: 400,
    BucketStageMismatch: 400,
    NotFound: 404,
    InvalidTransition: 409,
    WrongStage: 409,
    MissingFields: 422,
    DispatchFailure: 502,
    LockTimeout: 503,
}


async def _handle_engine_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500
    )
    body: dict[str, object] = {"error": str(exc)}
    if isinstance(exc, MissingFields):
        body["missing"] = exc.missing
    elif isinstance(exc, DispatchFailure):
        # The mutation is already durable; tell the caller what committed.
        body.update(
            job=exc.job,
            idea_id=exc.idea_id,
            stage=exc.stage,
            status=exc.status,
            params=exc.params,
            committed=exc.idea_id is not None,
        )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body)


def create_app(config: IdeaQueueConfig, services: Services | None = None) -> FastAPI:
    """Build the API app; *services* may be injected for tests."""
    app = FastAPI(title="ideaqueue admin API", version=__version__)
    app.state.config = config
    app.state.services = services or build_services(config)

    app.add_exception_handler(IdeaQueueError, _handle_engine_error)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    app.include_router(ideas.router)
    app.include_router(ideas.queues_router)
    app.include_router(buckets.router)
    app.include_router(jobs.router)
    return app
