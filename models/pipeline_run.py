from sqlalchemy import Column, BigInteger, String, DateTime, Float, Integer, Text, Boolean, JSON, Index
from datetime import datetime
import uuid
from models.base import Base, ETLStatus


class PipelineRun(Base):
    """
    Audit trail of pipeline executions.

    Purpose:
    - Run history for the API and scheduler
    - Error tracking and debugging
    - Performance monitoring
    """
    __tablename__ = "pipeline_runs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    run_id = Column(String(36), default=lambda: str(uuid.uuid4()), unique=True, nullable=False, index=True)

    # What ran
    entity = Column(String(50), nullable=False, index=True)
    source_type = Column(String(20), nullable=False, index=True)
    source_label = Column(String(500), nullable=True)
    validate_only = Column(Boolean, default=False)

    status = Column(String(20), default=ETLStatus.RUNNING.value, nullable=False, index=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    records_extracted = Column(Integer, default=0)
    records_transformed = Column(Integer, default=0)
    records_loaded = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_details = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_pipeline_run_entity_started", "entity", "started_at"),
    )
