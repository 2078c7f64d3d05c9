"""TaxLedger FastAPI Application.

Stateless report API: every request runs its own accounting engine.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .routers import health, reports
from .services.config import config_service, ConfigValidationException
from .services.logging_service import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: Validate configuration
    try:
        config_service.load_and_validate()
    except ConfigValidationException as e:
        print(f"FATAL: {e}")
        print("Server cannot start with invalid configuration.")
        sys.exit(1)

    configure_logging(
        config_service.get("logging.level", "INFO"),
        config_service.get("logging.format"),
    )
    logger.info("Configuration validated successfully")

    yield

    logger.info("Shutdown complete")


app = FastAPI(
    title="TaxLedger API",
    description="FIFO tax lot accounting and fiscal year reports",
    version=__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


@app.get("/")
async def root():
    """Root endpoint redirect to docs."""
    return {"message": "TaxLedger API", "docs": "/docs"}
