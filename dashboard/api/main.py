"""Binance Dashboard - FastAPI backend."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashboard.config.logging import logger
from dashboard.config.settings import settings
from dashboard.core.exceptions import AppError
from dashboard.services.cache import ResponseCache
from dashboard.services.portfolio import PortfolioService, build_service

from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    logger.info(f"Starting Binance Dashboard backend (cutoff {app.state.service.since.date()})")
    yield
    app.state.cache.clear()
    logger.info("Shutting down Binance Dashboard backend")


def create_app(service: Optional[PortfolioService] = None, cache: Optional[ResponseCache] = None) -> FastAPI:
    app = FastAPI(title="Binance Dashboard", lifespan=lifespan)

    # Process-scoped state, rebuilt on restart
    app.state.service = service or build_service(settings)
    app.state.cache = cache or (ResponseCache.from_settings(settings) if settings else ResponseCache())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if settings else [],
        allow_origin_regex=settings.CORS_ORIGIN_REGEX if settings else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        logger.error(f"Request failed ({request.url.path}): {exc}")
        return JSONResponse(status_code=500, content={"error": "Request failed", "details": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.critical(f"Unhandled error ({request.url.path}): {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})

    app.include_router(router)
    return app


app = create_app()
