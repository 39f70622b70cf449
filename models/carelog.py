from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey,
    CheckConstraint, Index
)
from models.base import Base, CarelogStatus


class ParentVisit(Base):
    """
    Groups related care visits (split or multi-segment shifts).

    Carelogs reference it through ``parent_id``.
    """
    __tablename__ = "parent"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)

    scheduled_start_datetime = Column(DateTime, nullable=False, index=True)
    scheduled_end_datetime = Column(DateTime, nullable=False, index=True)
    primary_caregiver_id = Column(Integer, ForeignKey("caregivers.id", ondelete="SET NULL"), nullable=True, index=True)

    visit_type = Column(String(50), default="regular")
    service_type = Column(String(100), nullable=True)
    priority_level = Column(String(20), default="normal")

    is_split = Column(Boolean, default=False, index=True)
    split_reason = Column(String(255), nullable=True)
    total_child_visits = Column(Integer, default=1)

    status = Column(String(20), default="active", index=True)
    care_instructions = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "scheduled_end_datetime > scheduled_start_datetime",
            name="valid_scheduled_datetime_range"
        ),
    )


class Carelog(Base):
    """Individual care visit: scheduled window, actual clock times, status"""
    __tablename__ = "carelogs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    external_id = Column(String(50), unique=True, nullable=True, index=True)
    caregiver_id = Column(Integer, ForeignKey("caregivers.id", ondelete="RESTRICT"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("parent.id", ondelete="SET NULL"), nullable=True, index=True)

    # Scheduled times
    start_datetime = Column(DateTime, nullable=False, index=True)
    end_datetime = Column(DateTime, nullable=False, index=True)

    # Actual clock-in/out times
    clock_in_actual_datetime = Column(DateTime, nullable=True)
    clock_out_actual_datetime = Column(DateTime, nullable=True)

    # Source systems send numeric method codes, kept verbatim
    clock_in_method = Column(String(20), nullable=True)
    clock_out_method = Column(String(20), nullable=True)

    status = Column(String(20), nullable=False, default=CarelogStatus.SCHEDULED.value, index=True)
    split = Column(Boolean, default=False)
    documentation = Column(Text, nullable=True)
    general_comment_char_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("end_datetime > start_datetime", name="valid_datetime_range"),
        CheckConstraint(
            "clock_out_actual_datetime IS NULL OR clock_in_actual_datetime IS NULL "
            "OR clock_out_actual_datetime > clock_in_actual_datetime",
            name="valid_actual_times"
        ),
        Index("idx_carelogs_caregiver_date", "caregiver_id", "start_datetime"),
        Index("idx_carelogs_status_date", "status", "start_datetime"),
    )
