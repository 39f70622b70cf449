"""
Trigger pipeline runs and read the run history
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import ETLRunRequest, ETLRunResponse, ETLRunsResponse, PipelineRunInfo
from core.exceptions import ConfigurationError, ExtractionRetriesExhausted
from ingestion.audit import run_and_record
from ingestion.entities import ENTITY_STRATEGIES
from models.pipeline_run import PipelineRun
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/etl", tags=["ETL"])


@router.post("/{entity}/run", response_model=ETLRunResponse)
async def run_pipeline(entity: str, request: ETLRunRequest, db: AsyncSession = Depends(get_db)):
    """
    Run the pipeline synchronously and return its result.

    A run whose load phase aborted (circuit breaker, failed commit) still
    returns 200 with ``success: false``; the audit status says ``failed``.

    Errors:
    - 422: unknown entity, invalid source descriptor or options
    - 502: the source could not be read after all retries
    """
    logger.info(f"POST /etl/{entity}/run - source={request.source.get('type')}")

    try:
        result, run = await run_and_record(db, entity, request.source, request.options)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail={"category": e.category, "errors": [e.message]})
    except ExtractionRetriesExhausted as e:
        raise HTTPException(status_code=502, detail={
            "category": e.category,
            "errors": [e.message],
            "result": e.result.model_dump(mode="json") if e.result is not None else None,
        })

    return ETLRunResponse(run_id=run.run_id, status=run.status, result=result)


@router.get("/runs", response_model=ETLRunsResponse)
async def list_runs(
    limit: int = Query(20, ge=1, le=200),
    entity: Optional[str] = Query(None, description="Only runs for this entity"),
    db: AsyncSession = Depends(get_db)
):
    """Most recent pipeline runs first"""
    if entity is not None and entity not in ENTITY_STRATEGIES:
        raise HTTPException(status_code=422, detail=f"Unknown entity '{entity}'")

    query = select(PipelineRun)
    count_query = select(func.count()).select_from(PipelineRun)
    if entity:
        query = query.where(PipelineRun.entity == entity)
        count_query = count_query.where(PipelineRun.entity == entity)

    total = (await db.execute(count_query)).scalar()
    result = await db.execute(
        query.order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc()).limit(limit)
    )
    return ETLRunsResponse(
        runs=[PipelineRunInfo.model_validate(run) for run in result.scalars().all()],
        total=total
    )
