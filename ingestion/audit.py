"""
Persist a summary of each pipeline run to ``pipeline_runs``
"""

from datetime import datetime, timedelta
from typing import Any, Optional, Tuple
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ExtractionRetriesExhausted
from ingestion.entities import get_strategy
from ingestion.runner import ETLRunner
from models.base import ETLStatus
from models.pipeline_run import PipelineRun
from schemas.pipeline import PipelineRunResult
from schemas.sources import parse_options, parse_source

logger = logging.getLogger(__name__)

MAX_STORED_ERRORS = 200


def run_status(result: PipelineRunResult) -> ETLStatus:
    """Failed runs are failed; successful runs with record errors are partial"""
    if not result.success:
        return ETLStatus.FAILED
    if result.error_count:
        return ETLStatus.PARTIAL
    return ETLStatus.SUCCESS


async def record_pipeline_run(
    db_session: AsyncSession,
    result: PipelineRunResult,
    source_label: str
) -> PipelineRun:
    """Write the audit row in its own transaction and return it"""
    completed_at = datetime.utcnow()
    status = run_status(result)

    run = PipelineRun(
        entity=result.entity,
        source_type=result.source_type,
        source_label=source_label[:500],
        validate_only=result.validate_only,
        status=status.value,
        started_at=completed_at - timedelta(milliseconds=result.duration_ms),
        completed_at=completed_at,
        duration_seconds=result.duration_ms / 1000,
        records_extracted=result.extracted_count,
        records_transformed=result.transformed_count,
        records_loaded=result.loaded_count,
        records_failed=result.error_count,
        error_message="; ".join(result.errors[:5]) or None,
        error_details=[detail.model_dump(mode="json") for detail in result.error_details[:MAX_STORED_ERRORS]],
    )
    db_session.add(run)
    await db_session.commit()
    await db_session.refresh(run)

    logger.info(
        f"Recorded pipeline run {run.run_id} ({status.value})",
        extra={"entity": result.entity, "run_id": run.run_id}
    )
    return run


async def run_and_record(
    db_session: AsyncSession,
    entity: str,
    source: Any,
    options: Any = None,
    cancel_event: Optional[asyncio.Event] = None,
    **runner_kwargs
) -> Tuple[PipelineRunResult, PipelineRun]:
    """
    Run the pipeline for ``entity`` and record the run, failed or not.

    Used by the API, the CLI and the scheduler.

    Raises:
        ConfigurationError: unknown entity, invalid source or options
        ExtractionRetriesExhausted: after the failed run has been recorded
    """
    strategy = get_strategy(entity)
    source = parse_source(source)
    options = parse_options(options)

    runner = ETLRunner(db_session, strategy, **runner_kwargs)
    try:
        result = await runner.run(source, options, cancel_event)
    except ExtractionRetriesExhausted as e:
        await record_pipeline_run(db_session, e.result, source.describe())
        raise

    run = await record_pipeline_run(db_session, result, source.describe())
    return result, run
