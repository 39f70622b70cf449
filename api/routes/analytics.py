"""
Read-only aggregate rankings over stored carelogs.

Durations are computed from epoch seconds so the same queries run on
PostgreSQL and SQLite; rounding happens in Python.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case, extract, literal
from api.dependencies import get_db
from schemas.api import (
    AnalyticsResponse,
    CommentingCaregiver,
    FranchisePerformance,
    LowReliabilityCaregiver,
    OvertimeCaregiver,
    TopCaregiver,
)
from models.base import CarelogStatus
from models.caregiver import Caregiver, Profile
from models.carelog import Carelog
from models.organization import Franchisor
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/analytics", tags=["Analytics"])

ON_TIME_GRACE_SECONDS = 5 * 60
LATE_ARRIVAL_SECONDS = 15 * 60
EARLY_DEPARTURE_SECONDS = 30 * 60


def _epoch(column):
    return extract("epoch", column)


def _seconds_between(later, earlier):
    return _epoch(later) - _epoch(earlier)


ACTUAL_SECONDS = _seconds_between(Carelog.clock_out_actual_datetime, Carelog.clock_in_actual_datetime)
SCHEDULED_SECONDS = _seconds_between(Carelog.end_datetime, Carelog.start_datetime)
ON_TIME = _epoch(Carelog.clock_in_actual_datetime) <= _epoch(Carelog.start_datetime) + ON_TIME_GRACE_SECONDS

CAREGIVER_NAME = func.coalesce(Profile.first_name, literal("")) + literal(" ") + func.coalesce(Profile.last_name, literal(""))


def _caregiver_query(*columns):
    """Carelogs joined to their caregiver and profile, grouped per caregiver"""
    return (
        select(Caregiver.id.label("caregiver_id"), CAREGIVER_NAME.label("name"), *columns)
        .select_from(Carelog)
        .join(Caregiver, Carelog.caregiver_id == Caregiver.id)
        .outerjoin(Profile, Caregiver.profile_id == Profile.id)
        .group_by(Caregiver.id, Profile.first_name, Profile.last_name)
    )


def _num(value, digits: int = 2) -> float:
    return round(float(value or 0), digits)


@router.get("/top-caregivers", response_model=AnalyticsResponse)
async def top_caregivers(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """
    Rank caregivers by completed visits, hours worked and punctual arrivals.

    performance_score = visits * 0.4 + hours * 0.3 + on-time arrivals * 0.3,
    where on time means clocking in no later than 5 minutes after the
    scheduled start.
    """
    total_visits = func.count(Carelog.id)
    on_time_count = func.count(case((ON_TIME, 1)))
    score = total_visits * 0.4 + func.sum(ACTUAL_SECONDS) / 3600.0 * 0.3 + on_time_count * 0.3

    query = (
        _caregiver_query(
            total_visits.label("total_visits"),
            func.avg(ACTUAL_SECONDS / 60.0).label("avg_visit_minutes"),
            func.sum(ACTUAL_SECONDS / 60.0).label("total_visit_minutes"),
            func.avg(_seconds_between(Carelog.clock_in_actual_datetime, Carelog.start_datetime) / 60.0)
            .label("avg_clock_in_deviation_minutes"),
            on_time_count.label("on_time_count"),
            score.label("performance_score"),
        )
        .where(
            Carelog.status == CarelogStatus.COMPLETED.value,
            Carelog.clock_in_actual_datetime.isnot(None),
            Carelog.clock_out_actual_datetime.isnot(None),
        )
        .order_by(score.desc(), Caregiver.id)
        .limit(limit)
    )
    rows = (await db.execute(query)).mappings().all()

    items = [
        TopCaregiver(
            caregiver_id=row["caregiver_id"],
            name=row["name"].strip(),
            total_visits=row["total_visits"],
            avg_visit_minutes=_num(row["avg_visit_minutes"]),
            total_visit_minutes=_num(row["total_visit_minutes"]),
            avg_clock_in_deviation_minutes=_num(row["avg_clock_in_deviation_minutes"]),
            on_time_count=row["on_time_count"],
            performance_score=_num(row["performance_score"]),
        )
        for row in rows
    ]
    return AnalyticsResponse(metric="top_caregivers", items=items)


@router.get("/low-reliability", response_model=AnalyticsResponse)
async def low_reliability(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """
    Caregivers with the most late arrivals (more than 15 minutes after the
    scheduled start), cancellations/no-shows and early departures (more than
    30 minutes before the scheduled end).
    """
    late = func.count(case((
        _epoch(Carelog.clock_in_actual_datetime) > _epoch(Carelog.start_datetime) + LATE_ARRIVAL_SECONDS, 1
    )))
    cancellations = func.count(case((
        Carelog.status.in_([CarelogStatus.CANCELLED.value, CarelogStatus.NO_SHOW.value]), 1
    )))
    early = func.count(case((
        _epoch(Carelog.clock_out_actual_datetime) < _epoch(Carelog.end_datetime) - EARLY_DEPARTURE_SECONDS, 1
    )))

    query = (
        _caregiver_query(
            late.label("late_arrivals"),
            cancellations.label("cancellations"),
            early.label("early_departures"),
        )
        .order_by(late.desc(), cancellations.desc(), early.desc(), Caregiver.id)
        .limit(limit)
    )
    rows = (await db.execute(query)).mappings().all()

    items = [
        LowReliabilityCaregiver(
            caregiver_id=row["caregiver_id"],
            name=row["name"].strip(),
            late_arrivals=row["late_arrivals"],
            cancellations=row["cancellations"],
            early_departures=row["early_departures"],
        )
        for row in rows
    ]
    return AnalyticsResponse(metric="low_reliability", items=items)


@router.get("/detailed-comments", response_model=AnalyticsResponse)
async def detailed_comments(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Caregivers who write the most visit comments"""
    total_chars = func.sum(Carelog.general_comment_char_count)
    query = (
        _caregiver_query(
            total_chars.label("total_comment_chars"),
            func.avg(Carelog.general_comment_char_count).label("avg_comment_length"),
        )
        .where(Carelog.general_comment_char_count > 0)
        .order_by(total_chars.desc(), Caregiver.id)
        .limit(limit)
    )
    rows = (await db.execute(query)).mappings().all()

    items = [
        CommentingCaregiver(
            caregiver_id=row["caregiver_id"],
            name=row["name"].strip(),
            total_comment_chars=int(row["total_comment_chars"] or 0),
            avg_comment_length=_num(row["avg_comment_length"]),
        )
        for row in rows
    ]
    return AnalyticsResponse(metric="detailed_comments", items=items)


@router.get("/overtime", response_model=AnalyticsResponse)
async def overtime(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Caregivers whose actual visits ran longest past the scheduled duration"""
    overtime_minutes = func.sum(ACTUAL_SECONDS - SCHEDULED_SECONDS) / 60.0
    query = (
        _caregiver_query(overtime_minutes.label("total_overtime_minutes"))
        .where(
            Carelog.clock_in_actual_datetime.isnot(None),
            Carelog.clock_out_actual_datetime.isnot(None),
            Carelog.clock_out_actual_datetime > Carelog.end_datetime,
        )
        .order_by(overtime_minutes.desc(), Caregiver.id)
        .limit(limit)
    )
    rows = (await db.execute(query)).mappings().all()

    items = [
        OvertimeCaregiver(
            caregiver_id=row["caregiver_id"],
            name=row["name"].strip(),
            total_overtime_minutes=_num(row["total_overtime_minutes"]),
        )
        for row in rows
    ]
    return AnalyticsResponse(metric="overtime", items=items)


@router.get("/franchise-performance", response_model=AnalyticsResponse)
async def franchise_performance(db: AsyncSession = Depends(get_db)):
    """Visit counts, completions, comment length and overtime per franchisor"""
    completed = func.sum(case((Carelog.status == CarelogStatus.COMPLETED.value, 1), else_=0))
    query = (
        select(
            Franchisor.id.label("franchisor_id"),
            Franchisor.name.label("name"),
            func.count(Carelog.id).label("total_visits"),
            completed.label("completed_visits"),
            func.avg(Carelog.general_comment_char_count).label("avg_comment_length"),
            (func.sum(ACTUAL_SECONDS - SCHEDULED_SECONDS) / 60.0).label("total_overtime_minutes"),
        )
        .select_from(Franchisor)
        .outerjoin(Carelog, Carelog.franchisor_id == Franchisor.id)
        .group_by(Franchisor.id, Franchisor.name)
        .order_by(completed.desc(), Franchisor.id)
    )
    rows = (await db.execute(query)).mappings().all()

    items = [
        FranchisePerformance(
            franchisor_id=row["franchisor_id"],
            name=row["name"],
            total_visits=row["total_visits"],
            completed_visits=int(row["completed_visits"] or 0),
            avg_comment_length=_num(row["avg_comment_length"]),
            total_overtime_minutes=_num(row["total_overtime_minutes"]),
        )
        for row in rows
    ]
    logger.info(f"Franchise performance computed for {len(items)} franchisors")
    return AnalyticsResponse(metric="franchise_performance", items=items)
