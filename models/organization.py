from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, ForeignKey,
    CheckConstraint, UniqueConstraint, Index
)
from models.base import Base


class Franchisor(Base):
    """Top-level organization owning multiple care agencies"""
    __tablename__ = "franchisors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    status = Column(String(20), default="active", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive', 'suspended')", name="ck_franchisors_status"),
    )


class Agency(Base):
    """Regional care agency operating under a franchisor"""
    __tablename__ = "agencies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    region = Column(String(100), nullable=True, index=True)
    status = Column(String(20), default="active", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("franchisor_id", "code", name="uq_agencies_franchisor_code"),
        CheckConstraint("status IN ('active', 'inactive', 'suspended')", name="ck_agencies_status"),
    )


class Location(Base):
    """Physical location where care is provided"""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(50), default="USA")
    latitude = Column(Numeric(10, 8), nullable=True)
    longitude = Column(Numeric(11, 8), nullable=True)
    location_type = Column(String(50), default="client_home", index=True)
    status = Column(String(20), default="active")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "location_type IN ('client_home', 'facility', 'office', 'community')",
            name="ck_locations_type"
        ),
        Index("idx_locations_coordinates", "latitude", "longitude"),
    )


class Client(Base):
    """Person receiving care services"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchisor_id = Column(Integer, ForeignKey("franchisors.id", ondelete="RESTRICT"), nullable=True, index=True)
    agency_id = Column(Integer, ForeignKey("agencies.id", ondelete="RESTRICT"), nullable=True, index=True)
    primary_location_id = Column(Integer, ForeignKey("locations.id", ondelete="SET NULL"), nullable=True)
    external_id = Column(String(100), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    status = Column(String(20), default="active", index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive', 'discharged')", name="ck_clients_status"),
        Index("idx_clients_name", "last_name", "first_name"),
    )
