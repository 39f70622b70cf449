"""
Health check endpoint with database and pipeline run status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, PipelineRunInfo
from models.pipeline_run import PipelineRun
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])

RECENT_RUNS = 5


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - The most recent pipeline runs
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    recent_runs = []
    if db_connected:
        try:
            result = await db.execute(
                select(PipelineRun).order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc()).limit(RECENT_RUNS)
            )
            recent_runs = [PipelineRunInfo.model_validate(run) for run in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch pipeline runs: {str(e)}")

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        recent_runs=recent_runs
    )
