"""Application entrypoint for the FastAPI service."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api import admin_router, router
from app.config import Config, config
from app.core.contracts import GenerationClient
from app.errors import AppError, InternalError, RateLimitExceeded, ValidationError
from app.jobs import setup_all_jobs, shutdown_scheduler, start_scheduler
from app.llm import RecommendationGenerator
from app.logging import get_logger, setup_logging
from app.resilience import CircuitBreaker, RateLimiter, SqlControlStore, VersionedStore
from app.storage import close_engine, create_schema, get_session_factory, seed_catalog

setup_logging(config.log_level)
logger = get_logger(__name__)

GENERATION_BREAKER_NAME = "generation"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")
    cfg: Config = app.state.config

    # Ensure all tables exist (idempotent)
    session_factory = app.state.session_factory
    await create_schema(session_factory.kw.get("bind"))
    async with session_factory() as session:
        inserted = await seed_catalog(session)
    logger.info(f"Database ready, {inserted} catalog questions seeded")

    if cfg.jobs_enabled:
        start_scheduler()
        setup_all_jobs()

    yield

    logger.info("Shutting down application")
    if cfg.jobs_enabled:
        shutdown_scheduler()
    await close_engine()


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(exc.retry_after)}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError(
        "Invalid request body",
        {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    error = InternalError("Internal server error")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(
    cfg: Config | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    control_store: VersionedStore | None = None,
    generator: GenerationClient | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        cfg: Configuration (defaults to the environment config)
        session_factory: Database session factory
        control_store: Store shared by the breaker and rate limiter
        generator: Generation service client

    Returns:
        Configured application
    """
    cfg = cfg or config
    session_factory = session_factory or get_session_factory()
    control_store = control_store or SqlControlStore(session_factory)

    app = FastAPI(
        title="WhatNext Engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.session_factory = session_factory
    app.state.generator = generator or RecommendationGenerator(cfg)
    app.state.breaker = CircuitBreaker(
        GENERATION_BREAKER_NAME,
        control_store,
        threshold=cfg.breaker_threshold,
        cooldown_seconds=cfg.breaker_cooldown_seconds,
        trial_timeout_seconds=cfg.breaker_trial_timeout_seconds,
        max_retries=cfg.cas_max_retries,
    )
    app.state.rate_limiter = RateLimiter(
        control_store,
        limit=cfg.rate_limit_per_window,
        window_ms=cfg.rate_limit_window_ms,
        max_retries=cfg.cas_max_retries,
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"ok": True}

    app.include_router(router)
    app.include_router(admin_router)
    return app


app = create_app()


def main() -> None:
    """Run the API server."""
    logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
    uvicorn.run(
        "app.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
