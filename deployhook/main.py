"""FastAPI application factory with lifespan context manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from deployhook.config import settings
from deployhook.dependencies import init_runtime
from deployhook.logging_config import configure_logging
from deployhook.routers import events, health, webhooks
from deployhook.services.config_resolver import check_for_potential_mistakes, load_config


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the deployment document and run the dispatch worker for the app's lifetime."""
    configure_logging(
        json_logs=not settings.debug, log_level=settings.log_level, service=settings.app_name
    )
    logger = structlog.get_logger()

    config = load_config(settings.config_path)
    check_for_potential_mistakes(config)

    dispatch = init_runtime(
        config,
        command_timeout=settings.command_timeout,
        dispatch_queue_size=settings.dispatch_queue_size,
        history_size=settings.history_size,
    )
    dispatch.start()
    logger.info(
        "listening_for_webhooks",
        config_path=settings.config_path,
        repositories=sorted(config.specific),
    )

    yield
    await dispatch.stop()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for any unhandled exception."""
    logger = structlog.get_logger()
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(events.router)
