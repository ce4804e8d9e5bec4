"""containerflow FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from containerflow import __version__
from containerflow.api.dependencies import init_runtime, reset_runtime
from containerflow.api.v1 import (
    containers_router,
    health_router,
    services_router,
    setup_router,
)
from containerflow.config import get_config
from containerflow.errors import StackError
from containerflow.infra import close_docker
from containerflow.logging import setup_logging
from containerflow.logging_schema import LogEvent

# Import metrics to ensure they are registered
import containerflow.metrics  # noqa: F401

_config = get_config()
setup_logging(_config.logging)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting containerflow",
        extra={
            "event": LogEvent.APP_STARTED,
            "version": __version__,
            "network": _config.stack.network,
        },
    )
    init_runtime()

    yield
    logger.info("Shutting down containerflow", extra={"event": LogEvent.APP_STOPPED})
    reset_runtime()
    await close_docker()


app = FastAPI(
    title="containerflow",
    description="Reverse-proxied WordPress hosting on a single Docker host",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StackError)
async def stack_error_handler(request: Request, exc: StackError) -> JSONResponse:
    """Translate stack errors to the error response format."""
    logger.warning(
        "Stack error",
        extra={
            "event": LogEvent.STACK_ERROR,
            "error_code": exc.code.value,
            "error_message": exc.message,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        extra={
            "event": LogEvent.UNHANDLED_EXCEPTION,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def api_key_middleware(
    request: Request, call_next: Callable[[Request], Response]
) -> Response:
    """Validate API key for non-health endpoints."""
    config = get_config()

    if request.url.path in ("/health", "/metrics"):
        return await call_next(request)

    if config.server.api_key:
        auth_header = request.headers.get("Authorization", "")
        if auth_header != f"Bearer {config.server.api_key}":
            return Response(
                content='{"detail": "Invalid API key"}',
                status_code=401,
                media_type="application/json",
            )

    return await call_next(request)


app.include_router(health_router)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


app.include_router(setup_router, prefix="/api/v1")
app.include_router(services_router, prefix="/api/v1")
app.include_router(containers_router, prefix="/api/v1")


def main() -> None:
    """Run the API server."""
    config = get_config()
    uvicorn.run(
        "containerflow.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
