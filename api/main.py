"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from api.routes import analytics, caregivers, carelogs, etl, health
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.database import engine
from core.logging import setup_logging
from ingestion.scheduler import ETLScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the optional scheduler; release pooled connections on shutdown"""
    logger.info("Starting Carelog ETL API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    scheduler = None
    if settings.ETL_SCHEDULE_ENABLED:
        scheduler = ETLScheduler()
        scheduler.start()

    yield

    logger.info("Shutting down Carelog ETL API")
    if scheduler is not None:
        scheduler.stop()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title="Carelog ETL API",
    description="Caregiver and carelog ingestion, lookup and analytics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(caregivers.router)
app.include_router(carelogs.router)
app.include_router(analytics.router)
app.include_router(etl.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Carelog ETL API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "caregivers": "/caregivers",
            "carelogs": "/carelogs",
            "analytics": "/analytics",
            "etl": "/etl"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)
