# src/comment_relay/main.py
"""Main entry point for the comment relay application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from comment_relay.api.v1 import auth_router, comments_router
from comment_relay.core.lifecycle import ShutdownContext
from comment_relay.core.settings import settings
from comment_relay.db.session import create_tables
from comment_relay.services.errors import (
    AlreadyBound,
    CommentFlowError,
    Expired,
    InvalidRequest,
    NotFound,
    StoreFailure,
    TokenMismatch,
    Unauthorized,
    UpstreamFailure,
)
from comment_relay.services.oauth import get_oauth_relay

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("comment_relay")

_STATUS_BY_ERROR: dict[type[CommentFlowError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Expired: status.HTTP_410_GONE,
    TokenMismatch: status.HTTP_409_CONFLICT,
    AlreadyBound: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    InvalidRequest: status.HTTP_400_BAD_REQUEST,
    UpstreamFailure: status.HTTP_502_BAD_GATEWAY,
    StoreFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error(exc: CommentFlowError) -> int:
    """Return the HTTP status that reports ``exc`` to the browser."""
    for error_type, code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="OAuth-backed comment service for static blogs",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(comments_router, prefix="/api/v1")


@app.exception_handler(CommentFlowError)
async def comment_flow_error_handler(request: Request, exc: CommentFlowError) -> JSONResponse:
    code = status_for_error(exc)
    if code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": exc.public_detail})


@app.on_event("startup")
async def on_startup() -> None:
    shutdown = ShutdownContext()
    app.state.shutdown = shutdown
    get_oauth_relay().shutdown = shutdown
    if settings.auto_create_tables:
        create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    shutdown: ShutdownContext | None = getattr(app.state, "shutdown", None)
    if shutdown is not None:
        shutdown.request_shutdown()
    await get_oauth_relay().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("comment_relay.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
