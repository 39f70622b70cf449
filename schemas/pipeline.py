"""
Pydantic schemas for load statistics and pipeline run results
"""

import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Phase(str, enum.Enum):
    """Pipeline phase an error originated in"""
    EXTRACT = "extract"
    TRANSFORM = "transform"
    LOAD = "load"
    PIPELINE = "pipeline"


class PipelineState(str, enum.Enum):
    EXTRACTING = "extracting"
    TRANSFORMING = "transforming"
    VALIDATED = "validated"
    LOADING = "loading"
    COMPLETED = "completed"
    FAILED = "failed"


class LoadErrorEntry(BaseModel):
    """One record the loader could not persist"""
    row_index: int
    error_message: str
    category: str
    record: Dict[str, Any] = Field(default_factory=dict)


class LoadSummary(BaseModel):
    """Derived statistics over a load call"""
    success_rate: float = 0.0
    error_rate: float = 0.0
    avg_record_ms: float = 0.0
    records_per_second: float = 0.0
    errors_by_category: Dict[str, int] = Field(default_factory=dict)


class LoadResult(BaseModel):
    """
    Outcome of a load call.

    ``success_count`` only counts committed records. Records undone when a
    fatal error rolled back the in-progress batch are in ``rolled_back_count``.
    """
    total_processed: int = 0
    success_count: int = 0
    error_count: int = 0
    rolled_back_count: int = 0
    batch_count: int = 0
    errors: List[LoadErrorEntry] = Field(default_factory=list)
    summary: LoadSummary = Field(default_factory=LoadSummary)

    @classmethod
    def empty(cls) -> "LoadResult":
        return cls()


class PhaseError(BaseModel):
    """Structured form of one entry of ``PipelineRunResult.errors``"""
    phase: Phase
    message: str
    row_index: Optional[int] = None
    category: Optional[str] = None

    def render(self) -> str:
        if self.row_index is not None:
            return f"[{self.phase.value}] row {self.row_index}: {self.message}"
        return f"[{self.phase.value}] {self.message}"


class PipelineRunResult(BaseModel):
    """Everything a caller learns about one pipeline run"""
    entity: str
    source_type: str
    state: PipelineState = PipelineState.EXTRACTING
    success: bool = False
    validate_only: bool = False

    extracted_count: int = 0
    transformed_count: int = 0
    loaded_count: int = 0
    error_count: int = 0

    errors: List[str] = Field(default_factory=list)
    error_details: List[PhaseError] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    load_result: Optional[LoadResult] = None
    duration_ms: float = 0.0

    def add_error(
        self,
        phase: Phase,
        message: str,
        row_index: Optional[int] = None,
        category: Optional[str] = None
    ):
        detail = PhaseError(phase=phase, message=message, row_index=row_index, category=category)
        self.error_details.append(detail)
        self.errors.append(detail.render())
        self.error_count = len(self.error_details)
