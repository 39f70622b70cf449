"""
SQLAlchemy ORM models for the destination store.

Models:
    base: Declarative base and shared enums (SourceType, ETLStatus, Gender, ...)
    organization: Franchisors, agencies, locations and clients
    caregiver: Profile, external identifiers and caregivers
    carelog: Parent visits and carelogs
    pipeline_run: Audit trail of pipeline runs

Relationships:
    - Franchisor -> Agency -> Location (organizational hierarchy)
    - Caregiver -> Profile, Caregiver -> External (one each)
    - Carelog -> Caregiver (required), Carelog -> ParentVisit (optional)

Importing this package registers every table on ``Base.metadata``.
"""

from models.base import (
    Base,
    SourceType,
    ETLStatus,
    Gender,
    ProfileStatus,
    EmploymentStatus,
    CarelogStatus,
)
from models.organization import Franchisor, Agency, Location, Client
from models.caregiver import Profile, External, Caregiver
from models.carelog import ParentVisit, Carelog
from models.pipeline_run import PipelineRun

__all__ = [
    "Base",
    "SourceType",
    "ETLStatus",
    "Gender",
    "ProfileStatus",
    "EmploymentStatus",
    "CarelogStatus",
    "Franchisor",
    "Agency",
    "Location",
    "Client",
    "Profile",
    "External",
    "Caregiver",
    "ParentVisit",
    "Carelog",
    "PipelineRun",
]
