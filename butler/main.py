"""FastAPI application wiring for the hotel guest butler.

This module bootstraps the HTTP API:

- Configures logging, Prometheus metrics and rate limiting.
- Builds the service graph once at startup (Postgres when ``DATABASE_URL`` is
  set, in-memory storage otherwise) and stores it on ``app.state.services``.
- Mounts the webhook, approval, autonomy, task and conversation routers and
  exposes health/version endpoints.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from butler.__version__ import __build_date__, __commit_sha__, __version__
from butler.app_logging import init_logging
from butler.config import get_settings
from butler.container import Services, build_services
from butler.core.db import connect, ensure_schema
from butler.rate_limit import limiter
from butler.routers import approvals, autonomy, conversations, tasks, webhooks

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "services", None) is not None:
        yield
        return

    settings = get_settings()
    conn = None
    if settings.database_url:
        conn = await connect(settings.database_url)
        await ensure_schema(conn)
    app.state.services = build_services(settings, conn=conn)
    await app.state.services.autonomy.ensure_loaded()
    logger.info(
        "Butler services started",
        extra={"storage": "postgres" if conn is not None else "memory"},
    )
    try:
        yield
    finally:
        app.state.services = None
        if conn is not None:
            await conn.close()


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application; pass ``services`` to skip startup wiring."""

    app = FastAPI(title="Hotel Guest Butler", version=__version__, lifespan=lifespan)
    init_logging(app)
    app.state.services = services
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(webhooks.router)
    app.include_router(approvals.router)
    app.include_router(autonomy.router)
    app.include_router(tasks.router)
    app.include_router(conversations.router)

    @app.get("/api/health")
    async def health():
        """Liveness/readiness probe with a minimal JSON body."""
        return {"status": "ok"}

    @app.get("/api/version")
    async def version():
        """Return version information for the application."""
        return {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }

    # Expose Prometheus metrics
    Instrumentator().instrument(app).expose(
        app, include_in_schema=False, endpoint="/api/metrics"
    )
    return app


app = create_app()
