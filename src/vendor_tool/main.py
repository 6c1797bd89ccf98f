"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from src.vendor_tool.api.endpoints import health, csv_import
from src.vendor_tool.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Vendor Tool API in {settings.APP_ENV} environment")
    logger.info(
        f"CSV import: max upload {settings.CSV_MAX_UPLOAD_MB}MB, "
        f"session TTL {settings.IMPORT_SESSION_TTL_MINUTES} min, "
        f"name matching '{settings.IMPORT_NAME_MATCH_MODE}'"
    )

    yield

    logger.info("Shutting down Vendor Tool API")


app = FastAPI(
    title="Vendor Tool - Bulk Import",
    description="CSV bulk import and reconciliation for vendor team members and timesheets",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router, tags=["Health"])
app.include_router(csv_import.router, tags=["Import"])


@app.get("/")
def root():
    return {
        "message": "Vendor Tool API",
        "environment": settings.APP_ENV,
        "docs": "/docs"
    }
