"""PricePulse -- FastAPI application entry point.

Runs the delegated acquisition server: the same pipeline the clients use,
minus the delegated method itself.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pricepulse.api.v1.router import api_v1_router
from pricepulse.config import settings
from pricepulse.core.logging import configure_logging
from pricepulse.scrapers.methods import METHOD_DELEGATED
from pricepulse.services.acquisition_service import build_acquisition_service

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    configure_logging(settings)

    # Startup
    logger.info("server_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    service = build_acquisition_service(settings, exclude={METHOD_DELEGATED})
    app.state.acquisition_service = service

    cache_healthy = await service.cache.health_check()
    if cache_healthy:
        logger.info("cache_connected", backend=settings.CACHE_BACKEND)
    else:
        logger.warning("cache_unavailable", backend=settings.CACHE_BACKEND)

    async def _sweep_cache_loop():
        while True:
            await asyncio.sleep(settings.CACHE_SWEEP_INTERVAL_SECONDS)
            await service.sweep_cache()

    sweep_task = asyncio.create_task(_sweep_cache_loop())

    yield

    # Shutdown
    logger.info("server_stopping")
    sweep_task.cancel()
    await asyncio.gather(sweep_task, return_exceptions=True)

    app.state.acquisition_service = None
    await service.close()


app = FastAPI(
    title="PricePulse API",
    description="Delegated product and price acquisition",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
cors_origins = settings.get_cors_origins_list()
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "PricePulse API",
        "version": "0.1.0",
        "description": "Delegated product and price acquisition",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
