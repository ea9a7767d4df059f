"""
Main FastAPI application for the GameLib library sync API.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from gamelib.api.routes import sync
from gamelib.core.config import settings
from gamelib.core.database import init_db
from gamelib.core.logging import configure_logging, get_logger
from gamelib.core.middleware import CorrelationIdMiddleware

# Configure structured logging (JSON in deployed environments, colored locally)
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    init_db()
    logger.info("Application started")

    yield

    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Cross-platform game library sync: Steam, PlayStation and Riot libraries reconciled against IGDB",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Prometheus scrape endpoint for the sync counters in gamelib.core.metrics
app.mount("/metrics", make_asgi_app())

# Routers keep their own prefix under /api: /api/sync/...
app.include_router(sync.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "platforms": ["steam", "playstation", "riot"],
        "endpoints": {
            "library": "/api/sync/{platform}/library",
            "wishlist": "/api/sync/steam/wishlist",
            "playtimes": "/api/sync/{platform}/playtimes",
            "status": "/api/sync/status/{user_id}",
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gamelib.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
