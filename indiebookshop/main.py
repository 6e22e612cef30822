"""
Main FastAPI application.

Read API for the bookshop directory plus the crawler-facing pages.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from indiebookshop.core.config import get_settings
from indiebookshop.core.database import check_connection, create_tables, dispose_engine
from indiebookshop.core.rate_limiter import (
    RateLimitMiddleware,
    RateLimitStore,
    default_rules,
    run_sweeper,
)
from indiebookshop.core.storage import SlugIndex
from indiebookshop.api import pages
from indiebookshop.api.v1 import bookshops, catalog, directory, site_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Indie Bookshop Directory"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info(f"Starting {SERVICE_NAME}")
    logger.info(f"Log level: {settings.log_level}")

    try:
        create_tables()
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    app.state.slug_index = SlugIndex()
    app.state.rate_limit_enabled = settings.rate_limit_enabled
    app.state.rate_limit_rules = default_rules(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )
    app.state.rate_limit_store = RateLimitStore()
    sweeper = asyncio.create_task(
        run_sweeper(app.state.rate_limit_store, settings.rate_limit_sweep_interval_seconds)
    )

    yield

    # Shutdown
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    dispose_engine()
    logger.info("Shutting down")


# Create FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="Searchable, filterable directory of independent bookshops",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include routers
app.include_router(bookshops.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")
app.include_router(directory.router, prefix="/api/v1")
app.include_router(site_config.router, prefix="/api/v1")
app.include_router(pages.router)


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "docs": "/docs",
        "api": "/api/v1",
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Returns status of the service and database connectivity.
    """
    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown"
    }

    try:
        check_connection()
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
