from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey,
    CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, Gender, ProfileStatus, EmploymentStatus, enum_values


class Profile(Base):
    """
    Caregiver personal and professional details.

    One profile per caregiver row; ``email`` is unique across profiles.
    """
    __tablename__ = "profile"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True)

    # Personal information
    subdomain = Column(String(100), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone_number = Column(String(20), nullable=True)
    gender = Column(String(20), nullable=True)
    birthday_date = Column(Date, nullable=True)

    # Professional information
    certification_level = Column(String(50), nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    onboarding_date = Column(Date, nullable=True)

    # Status information
    applicant = Column(Boolean, default=False, index=True)
    applicant_status = Column(String(50), nullable=True, index=True)
    sstatus = Column(String(50), default=ProfileStatus.ACTIVE.value, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(f"gender IN ({enum_values(Gender)})", name="ck_profile_gender"),
        CheckConstraint(f"sstatus IN ({enum_values(ProfileStatus)})", name="ck_profile_sstatus"),
        Index("idx_profile_name", "last_name", "first_name"),
    )


class External(Base):
    """Caregiver identifier from a system outside this store"""
    __tablename__ = "external"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(100), unique=True, nullable=False, index=True)
    system_name = Column(String(50), default="legacy_csv", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Caregiver(Base):
    """Core caregiver record linking profile and external identifier"""
    __tablename__ = "caregivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    profile_id = Column(Integer, ForeignKey("profile.id", ondelete="SET NULL"), nullable=True, index=True)
    external_id = Column(Integer, ForeignKey("external.id", ondelete="SET NULL"), nullable=True, index=True)
    applicant_status = Column(String(100), nullable=True, index=True)
    status = Column(String(50), default=EmploymentStatus.ACTIVE.value, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = relationship("Profile", lazy="joined")
    external = relationship("External", lazy="joined")

    __table_args__ = (
        CheckConstraint(f"status IN ({enum_values(EmploymentStatus)})", name="ck_caregivers_status"),
    )
