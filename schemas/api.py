"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal

from schemas.pipeline import PipelineRunResult


# ============================================================================
# Pipeline Run Schemas
# ============================================================================

class PipelineRunInfo(BaseModel):
    """Audit row for one pipeline run"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    run_id: str
    entity: str
    source_type: str
    source_label: Optional[str] = None
    validate_only: bool = False
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    records_extracted: int = 0
    records_transformed: int = 0
    records_loaded: int = 0
    records_failed: int = 0
    error_message: Optional[str] = None


class ETLRunRequest(BaseModel):
    """
    Body of POST /etl/{entity}/run.

    ``source`` and ``options`` are validated by the pipeline so that invalid
    values surface as configuration errors.
    """
    source: Dict[str, Any]
    options: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "source": {"type": "file", "path": "/app/data/carelogs.csv"},
            "options": {"batch_size": 100, "validate_only": False}
        }
    })


class ETLRunResponse(BaseModel):
    run_id: str
    status: str
    result: PipelineRunResult


class ETLRunsResponse(BaseModel):
    runs: List[PipelineRunInfo]
    total: int


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    recent_runs: List[PipelineRunInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def determine_status(self):
        """Unhealthy without a database; degraded when the latest run failed"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif self.recent_runs and self.recent_runs[0].status == "failed":
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self


# ============================================================================
# Caregiver / Carelog Schemas
# ============================================================================

class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    limit: int
    offset: int
    has_next: bool
    has_previous: bool


class CaregiverResponse(BaseModel):
    """Caregiver with its profile and external identifier flattened"""
    id: int
    franchisor_id: Optional[int] = None
    agency_id: Optional[int] = None
    status: str
    applicant_status: Optional[str] = None

    profile_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    gender: Optional[str] = None
    sstatus: Optional[str] = None
    certification_level: Optional[str] = None
    hourly_rate: Optional[Decimal] = None
    birthday_date: Optional[date] = None
    onboarding_date: Optional[date] = None
    location_id: Optional[int] = None

    external_system_id: Optional[str] = None
    system_name: Optional[str] = None

    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, caregiver):
        profile = caregiver.profile
        external = caregiver.external
        return cls(
            id=caregiver.id,
            franchisor_id=caregiver.franchisor_id,
            agency_id=caregiver.agency_id,
            status=caregiver.status,
            applicant_status=caregiver.applicant_status,
            profile_id=caregiver.profile_id,
            first_name=profile.first_name if profile else None,
            last_name=profile.last_name if profile else None,
            email=profile.email if profile else None,
            phone_number=profile.phone_number if profile else None,
            gender=profile.gender if profile else None,
            sstatus=profile.sstatus if profile else None,
            certification_level=profile.certification_level if profile else None,
            hourly_rate=profile.hourly_rate if profile else None,
            birthday_date=profile.birthday_date if profile else None,
            onboarding_date=profile.onboarding_date if profile else None,
            location_id=profile.location_id if profile else None,
            external_system_id=external.external_id if external else None,
            system_name=external.system_name if external else None,
            created_at=caregiver.created_at,
        )


class CaregiverListResponse(BaseModel):
    items: List[CaregiverResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class CarelogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    external_id: Optional[str] = None
    caregiver_id: int
    franchisor_id: Optional[int] = None
    agency_id: Optional[int] = None
    parent_id: Optional[int] = None
    start_datetime: datetime
    end_datetime: datetime
    clock_in_actual_datetime: Optional[datetime] = None
    clock_out_actual_datetime: Optional[datetime] = None
    clock_in_method: Optional[str] = None
    clock_out_method: Optional[str] = None
    status: str
    split: Optional[bool] = False
    documentation: Optional[str] = None
    general_comment_char_count: Optional[int] = 0
    created_at: Optional[datetime] = None


class CarelogListResponse(BaseModel):
    items: List[CarelogResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Analytics Schemas
# ============================================================================

class TopCaregiver(BaseModel):
    caregiver_id: int
    name: str
    total_visits: int
    avg_visit_minutes: float
    total_visit_minutes: float
    avg_clock_in_deviation_minutes: float
    on_time_count: int
    performance_score: float


class LowReliabilityCaregiver(BaseModel):
    caregiver_id: int
    name: str
    late_arrivals: int
    cancellations: int
    early_departures: int


class CommentingCaregiver(BaseModel):
    caregiver_id: int
    name: str
    total_comment_chars: int
    avg_comment_length: float


class OvertimeCaregiver(BaseModel):
    caregiver_id: int
    name: str
    total_overtime_minutes: float


class FranchisePerformance(BaseModel):
    franchisor_id: int
    name: str
    total_visits: int
    completed_visits: int
    avg_comment_length: float
    total_overtime_minutes: float


class AnalyticsResponse(BaseModel):
    """Ranked rows for one analytics query"""
    metric: str
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    items: List[Any]
