"""
Caregiver endpoints: listing, lookup, single-record ingestion, update, deletion
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from api.dependencies import get_db
from api.routes.records import ingest_single, update_single
from schemas.api import CaregiverListResponse, CaregiverResponse, PaginationMetadata
from models.base import EmploymentStatus
from models.caregiver import Caregiver, Profile
from models.carelog import Carelog
from ingestion.entities.caregiver import CaregiverStrategy
from typing import Any, Dict, Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/caregivers", tags=["Caregivers"])


async def _fetch(db: AsyncSession, caregiver_id: int) -> Optional[Caregiver]:
    # populate_existing: rows inserted by this session lack their relationships
    result = await db.execute(
        select(Caregiver).where(Caregiver.id == caregiver_id).execution_options(populate_existing=True)
    )
    return result.scalars().unique().one_or_none()


async def _list(db: AsyncSession, limit: int, offset: int, status_filter: Optional[str]) -> CaregiverListResponse:
    query = select(Caregiver)
    count_query = select(func.count()).select_from(Caregiver)
    if status_filter:
        query = query.where(Caregiver.status == status_filter)
        count_query = count_query.where(Caregiver.status == status_filter)

    total_items = (await db.execute(count_query)).scalar()
    result = await db.execute(query.order_by(Caregiver.id).offset(offset).limit(limit))
    caregivers = result.scalars().unique().all()

    return CaregiverListResponse(
        items=[CaregiverResponse.from_model(c) for c in caregivers],
        pagination=PaginationMetadata(
            total_items=total_items,
            limit=limit,
            offset=offset,
            has_next=offset + limit < total_items,
            has_previous=offset > 0
        ),
        filters_applied={"status": status_filter} if status_filter else {}
    )


@router.get("", response_model=CaregiverListResponse)
async def list_caregivers(
    request: Request,
    limit: int = Query(50, ge=1, le=1000, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
    status_filter: Optional[EmploymentStatus] = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db)
):
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(f"[{request_id}] GET /caregivers - limit={limit}, offset={offset}, status={status_filter}")
    return await _list(db, limit, offset, status_filter.value if status_filter else None)


@router.get("/active", response_model=CaregiverListResponse)
async def list_active_caregivers(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    return await _list(db, limit, offset, EmploymentStatus.ACTIVE.value)


@router.get("/{caregiver_id}", response_model=CaregiverResponse)
async def get_caregiver(caregiver_id: int, db: AsyncSession = Depends(get_db)):
    caregiver = await _fetch(db, caregiver_id)
    if caregiver is None:
        raise HTTPException(status_code=404, detail=f"Caregiver {caregiver_id} not found")
    return CaregiverResponse.from_model(caregiver)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CaregiverResponse)
async def create_caregiver(
    payload: Dict[str, Any] = Body(..., examples=[{"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"}]),
    db: AsyncSession = Depends(get_db)
):
    """
    Ingest one caregiver through the same transform and load path as a
    pipeline run. 422 when the record is invalid or references missing rows,
    409 on duplicates.
    """
    caregiver_id = await ingest_single(db, CaregiverStrategy(), payload)
    caregiver = await _fetch(db, caregiver_id)
    return CaregiverResponse.from_model(caregiver)


@router.put("/{caregiver_id}", response_model=CaregiverResponse)
async def update_caregiver(
    caregiver_id: int,
    payload: Dict[str, Any] = Body(..., examples=[{"status": "inactive", "hourly_rate": "24.00"}]),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a caregiver. The payload is merged over the stored profile,
    external id and caregiver row and goes through the same validation as
    POST. 404 when the caregiver does not exist.
    """
    await update_single(db, CaregiverStrategy(), caregiver_id, payload)
    logger.info(f"Updated caregiver {caregiver_id} fields={sorted(payload)}")
    caregiver = await _fetch(db, caregiver_id)
    return CaregiverResponse.from_model(caregiver)


@router.delete("/{caregiver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_caregiver(caregiver_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a caregiver and its profile; refused while carelogs reference it"""
    caregiver = await _fetch(db, caregiver_id)
    if caregiver is None:
        raise HTTPException(status_code=404, detail=f"Caregiver {caregiver_id} not found")

    visits = (await db.execute(
        select(func.count()).select_from(Carelog).where(Carelog.caregiver_id == caregiver_id)
    )).scalar()
    if visits:
        raise HTTPException(
            status_code=409,
            detail=f"Caregiver {caregiver_id} has {visits} carelogs and cannot be deleted"
        )

    profile_id = caregiver.profile_id
    await db.delete(caregiver)
    await db.flush()
    if profile_id is not None:
        await db.execute(delete(Profile).where(Profile.id == profile_id))
    await db.commit()
    logger.info(f"Deleted caregiver {caregiver_id}")
