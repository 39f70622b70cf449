# ============================================================================
# File: ingestion/runner.py
# Description: ETL orchestrator shared by every entity stream
# ============================================================================
"""
ETL Runner - Orchestrates Extract, Transform, Load pipeline.

This module provides ETL orchestration with:
- Extraction retried as a whole with a backoff policy
- Partial failure support (bad records never abort the run)
- Dry runs (validate_only) that never open a write transaction
- Phase-tagged error reporting in a structured PipelineRunResult
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    ExtractionError,
    ExtractionRetriesExhausted,
    FatalLoadError,
    SourceUnavailable,
)
from ingestion.base import Extractor
from ingestion.entities.base import EntityStrategy
from ingestion.extractors import create_extractor
from ingestion.loaders.batch_loader import BatchLoader
from ingestion.retry import BackoffPolicy
from ingestion.transformers.transformer import RecordTransformer
from ingestion.types import RawRecord
from schemas.pipeline import LoadResult, Phase, PipelineRunResult, PipelineState
from schemas.sources import PipelineOptions, parse_options, parse_source

logger = logging.getLogger(__name__)


class ETLRunner:
    """
    ETL Orchestrator for one entity stream.

    Responsibilities:
    - Orchestrate Extract → Transform → Load
    - Retry extraction; fail the run when retries are exhausted
    - Aggregate per-record errors from transform and load
    - Turn fatal load errors into a failed (but reported) run

    State machine:
        extracting → transforming → (validated | loading) → completed
        any phase → failed
    """

    def __init__(
        self,
        db_session: AsyncSession,
        strategy: EntityStrategy,
        backoff: Optional[BackoffPolicy] = None,
        logger: Optional[logging.Logger] = None,
        extractor_options: Optional[Dict[str, Any]] = None,
        loader_options: Optional[Dict[str, Any]] = None
    ):
        self.db = db_session
        self.strategy = strategy
        self.backoff = backoff
        self.logger = logger or logging.getLogger(__name__)
        self.extractor_options = extractor_options or {}
        self.loader_options = loader_options or {}

    async def run(
        self,
        source: Any,
        options: Any = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> PipelineRunResult:
        """
        Run the full pipeline for one source.

        Args:
            source: Source descriptor (model or mapping)
            options: PipelineOptions, a mapping, or None for defaults
            cancel_event: Checked between load batches

        Returns:
            PipelineRunResult; record-level errors never raise

        Raises:
            ConfigurationError: invalid source or options (before any I/O)
            ExtractionRetriesExhausted: every extraction attempt failed;
                the failed result is attached as ``.result``
        """
        source = parse_source(source)
        options = parse_options(options)
        started = time.perf_counter()

        result = PipelineRunResult(
            entity=self.strategy.name,
            source_type=source.type,
            validate_only=options.validate_only,
        )
        extractor = create_extractor(source, self.db, logger=self.logger, **self.extractor_options)

        # --------------------------------------------------
        # PHASE 1: EXTRACTION
        # --------------------------------------------------
        self._enter(result, PipelineState.EXTRACTING)
        try:
            raw_records = await self._extract_with_retry(extractor, options, result)
        except ExtractionRetriesExhausted:
            self._finish(result, started, failed=True)
            raise

        result.extracted_count = len(raw_records)
        if not raw_records:
            self.logger.info("No records extracted; nothing to do", extra=self._extra(Phase.EXTRACT))
            return self._finish(result, started)

        # --------------------------------------------------
        # PHASE 2: TRANSFORMATION
        # --------------------------------------------------
        self._enter(result, PipelineState.TRANSFORMING)
        outcomes = RecordTransformer(self.strategy, logger=self.logger).transform(raw_records)

        for outcome in outcomes:
            if outcome.ok:
                result.transformed_count += 1
                result.warnings.extend(f"row {outcome.row_index}: {w}" for w in outcome.warnings)
            else:
                result.add_error(Phase.TRANSFORM, outcome.error_message, outcome.row_index, "validation")

        if options.validate_only:
            self._enter(result, PipelineState.VALIDATED)
            self.logger.info(
                f"Validate-only run: {result.transformed_count} of {result.extracted_count} records would be loaded",
                extra=self._extra(Phase.TRANSFORM)
            )
            return self._finish(result, started)

        # --------------------------------------------------
        # PHASE 3: LOAD
        # --------------------------------------------------
        self._enter(result, PipelineState.LOADING)
        loader = BatchLoader(self.db, self.strategy, logger=self.logger, **self.loader_options)

        fatal: Optional[FatalLoadError] = None
        try:
            load_result = await loader.load(outcomes, options.batch_size, cancel_event)
        except FatalLoadError as e:
            fatal = e
            load_result = e.load_result or LoadResult.empty()

        for entry in load_result.errors:
            result.add_error(Phase.LOAD, entry.error_message, entry.row_index, entry.category)
        result.load_result = load_result
        result.loaded_count = load_result.success_count

        if fatal is not None:
            self.logger.error(
                f"Load aborted: {fatal.message}",
                extra={**self._extra(Phase.PIPELINE), "error_kind": type(fatal).__name__,
                       "error_context": fatal.to_dict()}
            )
            result.add_error(Phase.PIPELINE, f"{type(fatal).__name__}: {fatal.message}", category=fatal.category)
            return self._finish(result, started, failed=True)

        return self._finish(result, started)

    async def _extract_with_retry(
        self,
        extractor: Extractor,
        options: PipelineOptions,
        result: PipelineRunResult
    ) -> List[RawRecord]:
        """
        Run the whole extract call up to ``max_retries`` times.

        A failed attempt's partial output is discarded.
        """
        max_retries = options.retries_for(extractor.source_type.value)
        backoff = self.backoff or BackoffPolicy(base_delay=options.retry_base_delay)
        last_error: Optional[ExtractionError] = None

        for attempt in range(max_retries):
            try:
                return await extractor.extract()

            except ExtractionError as e:
                last_error = e

            except Exception as e:
                last_error = SourceUnavailable(
                    "Unexpected error during extraction",
                    context={"source_type": extractor.source_type.value, "source": extractor.source_label},
                    original_exception=e
                )

            result.add_error(
                Phase.EXTRACT,
                f"attempt {attempt + 1}/{max_retries} failed: {last_error}",
                category=last_error.category
            )
            self.logger.warning(
                f"Extraction attempt {attempt + 1}/{max_retries} failed: {last_error}",
                extra={**self._extra(Phase.EXTRACT), "attempt": attempt + 1,
                       "error_kind": type(last_error).__name__}
            )
            await self._reset_session_after_failure(extractor)

            if attempt < max_retries - 1:
                delay = await backoff.wait(attempt + 1)
                self.logger.info(f"Retrying extraction in {delay}s", extra=self._extra(Phase.EXTRACT))

        result.state = PipelineState.FAILED
        raise ExtractionRetriesExhausted(
            f"Extraction failed after {max_retries} attempts: {last_error.message}",
            context={
                "entity": self.strategy.name,
                "source_type": extractor.source_type.value,
                "source": extractor.source_label,
                "attempts": max_retries,
            },
            original_exception=last_error,
            result=result
        )

    async def _reset_session_after_failure(self, extractor: Extractor):
        """A failed query leaves the destination transaction unusable until rolled back"""
        if extractor.source_type.value != "database":
            return
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            self.logger.exception("Rollback after failed extraction query failed")

    def _enter(self, result: PipelineRunResult, state: PipelineState):
        result.state = state
        self.logger.info(
            f"Pipeline {self.strategy.name}: {state.value}",
            extra={"entity": self.strategy.name, "state": state.value}
        )

    def _finish(self, result: PipelineRunResult, started: float, failed: bool = False) -> PipelineRunResult:
        result.duration_ms = round((time.perf_counter() - started) * 1000, 3)
        result.success = not failed
        result.state = PipelineState.FAILED if failed else PipelineState.COMPLETED

        log = self.logger.error if failed else self.logger.info
        log(
            f"ETL run {'failed' if failed else 'completed'} for {self.strategy.name}: "
            f"extracted={result.extracted_count} transformed={result.transformed_count} "
            f"loaded={result.loaded_count} errors={result.error_count} in {result.duration_ms:.1f}ms",
            extra={"entity": self.strategy.name, "state": result.state.value}
        )
        return result

    def _extra(self, phase: Phase) -> Dict[str, Any]:
        return {"phase": phase.value, "entity": self.strategy.name}
