"""
Typed, normalized records produced by the transformer and consumed by the loader
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.base import Gender, ProfileStatus, CarelogStatus


class ValidatedRecord(BaseModel):
    """Base for records that passed transform-time validation"""
    model_config = ConfigDict(use_enum_values=True, frozen=True)


class CaregiverRecord(ValidatedRecord):
    """
    One caregiver, shaped for the profile/external/caregivers tables.

    Ensures:
    - first and last name are present and non-empty
    - enumerated fields hold normalized values
    """

    # Organization (optional foreign keys)
    franchisor_id: Optional[int] = None
    agency_id: Optional[int] = None
    location_id: Optional[int] = None

    # Personal information
    subdomain: Optional[str] = Field(None, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=20)
    gender: Optional[Gender] = None
    birthday_date: Optional[date] = None

    # Professional information
    certification_level: Optional[str] = Field(None, max_length=50)
    hourly_rate: Optional[Decimal] = None
    onboarding_date: Optional[date] = None

    # Status information
    applicant: bool = False
    applicant_status: Optional[str] = Field(None, max_length=50)
    sstatus: ProfileStatus = ProfileStatus.ACTIVE

    # External identifier
    external_system_id: Optional[str] = Field(None, max_length=100)
    system_name: Optional[str] = Field(None, max_length=50)

    @field_validator("first_name", "last_name")
    def clean_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty after stripping")
        return v


class CarelogRecord(ValidatedRecord):
    """One care visit, shaped for the carelogs table"""

    caregiver_id: int
    franchisor_id: Optional[int] = None
    agency_id: Optional[int] = None
    parent_id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=50)

    # Scheduled window
    start_datetime: datetime
    end_datetime: datetime

    # Actual clock times
    clock_in_actual_datetime: Optional[datetime] = None
    clock_out_actual_datetime: Optional[datetime] = None
    clock_in_method: Optional[str] = Field(None, max_length=20)
    clock_out_method: Optional[str] = Field(None, max_length=20)

    status: CarelogStatus = CarelogStatus.SCHEDULED
    split: bool = False
    documentation: Optional[str] = None
    general_comment_char_count: int = 0
