"""
FastAPI application entry point for the Control Tower API.

This module configures logging and CORS, manages the shared collaborator HTTP
client across the application lifespan, and registers the API routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from control_tower import __version__
from control_tower.api import api_router
from control_tower.core.config import get_settings
from control_tower.core.http_client import close_http_client, init_http_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Create the shared collaborator HTTP client

    On shutdown:
        - Close the collaborator HTTP client
    """
    # Startup
    logger.info("Control Tower API starting")
    await init_http_client()

    yield

    # Shutdown
    logger.info("Control Tower API shutting down")
    try:
        await close_http_client()
    except Exception as e:
        logger.error(f"Error closing collaborator client: {e}")


# Create FastAPI application
app = FastAPI(
    title="Control Tower API",
    version=__version__,
    description=(
        "Executive overview for a service business: KPIs, business score, funnel, "
        "alerts, pipeline SLA, data quality, cohorts, attribution and action center "
        "aggregated from the dashboard collaborators."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Control Tower API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "control_tower.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
