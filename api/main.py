"""
FastAPI application initialization
"""

from fastapi import FastAPI
import logging

from api.middleware import RequestContextMiddleware
from api.routes import health, reports
from core.config import settings
from core.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Report Sync Admin API",
    description="Health and sync state administration for the report warehouse sync",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(reports.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Report Sync Admin API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"State file: {settings.STATE_FILE}")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Report Sync Admin API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "reports": "/reports",
            "reset": "/reports/{report_name}/reset"
        }
    }
