"""
FastAPI application for the chat reaction service.
This module sets up the API server with routes, metrics, and error handling.
"""

import logging
import sys
from contextlib import asynccontextmanager

from chatreact.core.config import get_settings
from chatreact.core.error_handlers import (
    base_exception_handler,
    reaction_error_handler,
    unhandled_exception_handler,
)
from chatreact.core.exceptions import BaseAppException, ReactionError
from chatreact.reactions.lifecycle import reaction_lifespan
from chatreact.routes import health, reactions
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator
from prometheus_fastapi_instrumentator import metrics as instrumentator_metrics

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("chatreact.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Application startup...")

    settings = get_settings()
    app.state.settings = settings

    async with reaction_lifespan(app, settings):
        logger.info("Application startup complete")
        yield
        # Shutdown
        logger.info("Application shutdown...")


# Create FastAPI application
app = FastAPI(
    title=get_settings().PROJECT_NAME,
    docs_url="/api/docs",
    lifespan=lifespan,
)

# Set up Prometheus metrics
# Reaction counters live in the default REGISTRY next to the HTTP metrics
instrumentator = Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    should_respect_env_var=False,  # Always enable metrics
    excluded_handlers=["/health", "/health/live", "/metrics"],
)
instrumentator.add(instrumentator_metrics.default())
instrumentator.instrument(app)
logger.info("Prometheus metrics instrumentation initialized")


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint (HTTP and reaction counters)."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(reactions.router)


# Register exception handlers
# Register specific application exceptions first
app.add_exception_handler(BaseAppException, base_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(ReactionError, reaction_error_handler)  # type: ignore[arg-type]
# Then register generic exception handler as fallback
app.add_exception_handler(Exception, unhandled_exception_handler)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # Bind to 0.0.0.0 only in DEBUG mode (container/development)
    host = "0.0.0.0" if settings.DEBUG else "127.0.0.1"

    uvicorn.run(
        "chatreact.main:app",
        host=host,
        port=8000,
        reload=settings.DEBUG,
    )
