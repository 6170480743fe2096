"""
Vehicle Sales Lifecycle API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from services.audit_service import get_audit_sink, set_audit_sink

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Sales lifecycle API starting", extra={"version": __version__})
    yield
    # Drain pending audit writes before the worker thread goes away.
    get_audit_sink().flush(timeout=10)
    set_audit_sink(None)


# Create FastAPI application
app = FastAPI(
    title="Vehicle Sales Lifecycle API",
    description="Reservations, sales, voids and vehicle stage tracking for a used-car dealership",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins to the dashboard domain once it has a fixed host
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "sales-lifecycle-api"
    }


# Import and include routers
from api.routers import catalog, reservations, sales, vehicles  # noqa: E402

app.include_router(vehicles.router, prefix="/api/v1", tags=["Vehicles"])
app.include_router(catalog.router, prefix="/api/v1", tags=["Catalog"])
app.include_router(reservations.router, prefix="/api/v1", tags=["Reservations"])
app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
