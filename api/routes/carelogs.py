"""
Carelog endpoints with filtering and single-record ingestion
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from api.dependencies import get_db
from api.routes.records import ingest_single, update_single
from schemas.api import CarelogListResponse, CarelogResponse, PaginationMetadata
from models.base import CarelogStatus
from models.carelog import Carelog
from ingestion.entities.carelog import CarelogStrategy
from typing import Any, Dict, Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/carelogs", tags=["Carelogs"])


@router.get("", response_model=CarelogListResponse)
async def list_carelogs(
    request: Request,
    limit: int = Query(50, ge=1, le=1000, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    status_filter: Optional[CarelogStatus] = Query(None, alias="status", description="Filter by status"),
    caregiver_id: Optional[int] = Query(None, description="Filter by caregiver"),
    franchisor_id: Optional[int] = Query(None, description="Filter by franchisor"),
    agency_id: Optional[int] = Query(None, description="Filter by agency"),
    db: AsyncSession = Depends(get_db)
):
    """
    Retrieve carelogs, newest scheduled visit first.

    Features:
    - limit/offset pagination
    - status, caregiver, franchisor and agency filters
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    applied = {k: v for k, v in {
        "status": status_filter.value if status_filter else None,
        "caregiver_id": caregiver_id,
        "franchisor_id": franchisor_id,
        "agency_id": agency_id,
    }.items() if v is not None}

    logger.info(f"[{request_id}] GET /carelogs - limit={limit}, offset={offset}, filters={applied}")

    filters = [getattr(Carelog, column) == value for column, value in applied.items()]

    query = select(Carelog)
    count_query = select(func.count()).select_from(Carelog)
    if filters:
        query = query.where(and_(*filters))
        count_query = count_query.where(and_(*filters))

    total_items = (await db.execute(count_query)).scalar()
    result = await db.execute(
        query.order_by(Carelog.start_datetime.desc(), Carelog.id.desc()).offset(offset).limit(limit)
    )
    carelogs = result.scalars().all()

    return CarelogListResponse(
        items=[CarelogResponse.model_validate(c) for c in carelogs],
        pagination=PaginationMetadata(
            total_items=total_items,
            limit=limit,
            offset=offset,
            has_next=offset + limit < total_items,
            has_previous=offset > 0
        ),
        filters_applied=applied
    )


@router.get("/{carelog_id}", response_model=CarelogResponse)
async def get_carelog(carelog_id: int, db: AsyncSession = Depends(get_db)):
    carelog = await db.get(Carelog, carelog_id)
    if carelog is None:
        raise HTTPException(status_code=404, detail=f"Carelog {carelog_id} not found")
    return CarelogResponse.model_validate(carelog)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CarelogResponse)
async def create_carelog(
    payload: Dict[str, Any] = Body(..., examples=[{
        "caregiver_id": 1,
        "start_datetime": "2024-03-01T09:00:00",
        "end_datetime": "2024-03-01T11:00:00",
        "status": "scheduled"
    }]),
    db: AsyncSession = Depends(get_db)
):
    """Ingest one carelog through the pipeline's transform and load path"""
    carelog_id = await ingest_single(db, CarelogStrategy(), payload)
    carelog = await db.get(Carelog, carelog_id)
    return CarelogResponse.model_validate(carelog)


@router.put("/{carelog_id}", response_model=CarelogResponse)
async def update_carelog(
    carelog_id: int,
    payload: Dict[str, Any] = Body(..., examples=[{"status": "completed", "clock_out_actual_datetime": "2024-03-01T11:05:00"}]),
    db: AsyncSession = Depends(get_db)
):
    """Merge the payload over the stored carelog and re-validate it"""
    await update_single(db, CarelogStrategy(), carelog_id, payload)
    logger.info(f"Updated carelog {carelog_id} fields={sorted(payload)}")
    carelog = await db.get(Carelog, carelog_id)
    return CarelogResponse.model_validate(carelog)


@router.delete("/{carelog_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_carelog(carelog_id: int, db: AsyncSession = Depends(get_db)):
    carelog = await db.get(Carelog, carelog_id)
    if carelog is None:
        raise HTTPException(status_code=404, detail=f"Carelog {carelog_id} not found")
    await db.delete(carelog)
    await db.commit()
    logger.info(f"Deleted carelog {carelog_id}")
