"""WIP Analytics Service - FastAPI Application."""

import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from wip_analytics import __version__
from wip_analytics.config import settings
from wip_analytics.database import async_session_maker, engine, init_db
from wip_analytics.deps import DbSession
from wip_analytics.logger import configure_logging, get_logger
from wip_analytics.routers import analytics
from wip_analytics.services.cache import create_result_cache
from wip_analytics.services.ledger_repository import SqlLedgerRepository
from wip_analytics.services.service_lines import ServiceLineMapper
from wip_analytics.services.wip_engine import WipAnalyticsEngine

# Initialize logging early
configure_logging()
logger = get_logger(__name__)


def _init_otel_instrumentation() -> None:
    """Initialize OpenTelemetry auto-instrumentation for FastAPI and SQLAlchemy."""
    if not settings.otel_exporter_otlp_endpoint:
        return

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

        FastAPIInstrumentor.instrument()
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)

        logger.info("OTEL instrumentation initialized", components=["fastapi", "sqlalchemy"])
    except Exception:  # pragma: no cover - optional dependency
        logger.warning("OTEL instrumentation not available", exc_info=True)


_init_otel_instrumentation()


def build_engine() -> WipAnalyticsEngine:
    repository = SqlLedgerRepository(async_session_maker)
    return WipAnalyticsEngine(
        repository=repository,
        cache=create_result_cache(settings),
        mapper=ServiceLineMapper(
            repository.service_line_mappings,
            ttl_seconds=settings.wip_service_line_ttl_seconds,
        ),
        app_settings=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - build the analytics engine on startup."""
    await init_db()
    app.state.engine = build_engine()
    logger.info("Application started", version=__version__, environment=settings.environment)
    yield
    await app.state.engine.cache.close()
    await engine.dispose()
    logger.info("Application shutting down")


app = FastAPI(
    title="WIP Analytics API",
    description="Work-in-progress and profitability aggregation over practice ledger data",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Middleware to inject Request-ID and log request details."""
    request_id = request.headers.get("X-Request-ID", str(uuid4()))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.info(
            "HTTP Request",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        response.headers["X-Request-ID"] = request_id
        # Analytics payloads are cached server side only
        response.headers["Cache-Control"] = "no-store"
        return response
    except Exception as exc:
        duration = time.perf_counter() - start_time
        logger.exception(
            "HTTP Request Failed",
            duration_ms=round(duration * 1000, 2),
            error=str(exc),
        )
        raise


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure JSON response."""
    if settings.debug:
        detail = str(exc)
        trace = traceback.format_exc()
    else:
        detail = "An internal server error occurred. Please try again later."
        trace = None

    return JSONResponse(
        status_code=500,
        content={
            "detail": detail,
            "trace": trace,
            "request_id": structlog.contextvars.get_contextvars().get("request_id"),
        },
    )


app.include_router(analytics.router)


# --- Health Endpoints ---


@app.get("/ping")
async def ping() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/health")
async def health_check(db: DbSession) -> Response:
    """Readiness probe: 200 when the ledger database answers, 503 otherwise."""
    try:
        await db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as exc:
        logger.error(
            "Health check: database unreachable",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        database_ok = False

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {"database": database_ok},
            "version": __version__,
            "environment": settings.environment,
        },
    )
