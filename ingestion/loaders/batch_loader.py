"""
Load validated records in batches with per-record isolation
"""

from collections import Counter
from typing import List, Optional, Sequence
import asyncio
import logging
import time

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    RECORD_ERRORS,
    CircuitBreakerTripped,
    DatabaseError,
    DuplicateError,
    ETLException,
    ForeignKeyError,
    PipelineCancelled,
    RecordTimeoutError,
    TransactionError,
    ValidationError,
)
from ingestion.entities.base import EntityStrategy
from ingestion.types import TransformOutcome, TransformSuccess
from schemas.pipeline import LoadErrorEntry, LoadResult, LoadSummary
from schemas.sources import check_batch_size

logger = logging.getLogger(__name__)


class BatchLoader:
    """
    Persist TransformSuccess records through an entity strategy.

    Ensures:
    - One transaction per batch, committed when the batch completes
    - One SAVEPOINT per record: a bad record never aborts its batch
    - Foreign keys and uniqueness re-checked inside the transaction
    - A fixed per-record time budget
    - A circuit breaker on the cumulative error rate; tripping it rolls back
      the in-progress batch and keeps earlier batches committed

    Circuit breaker: trips once errors exceed ``error_threshold`` (default
    ``settings.CIRCUIT_BREAKER_THRESHOLD``, 0.5) of the records processed so
    far. It is only evaluated after ``min_records`` records (default
    ``settings.CIRCUIT_BREAKER_MIN_RECORDS``, 4); pass ``min_records=1`` for
    the bare rate rule.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        strategy: EntityStrategy,
        record_timeout: Optional[float] = None,
        batch_delay: Optional[float] = None,
        error_threshold: Optional[float] = None,
        min_records: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.db = db_session
        self.strategy = strategy
        self.record_timeout = record_timeout if record_timeout is not None else settings.LOAD_RECORD_TIMEOUT_SECONDS
        self.batch_delay = batch_delay if batch_delay is not None else settings.LOAD_BATCH_DELAY_SECONDS
        self.error_threshold = error_threshold if error_threshold is not None else settings.CIRCUIT_BREAKER_THRESHOLD
        self.min_records = min_records if min_records is not None else settings.CIRCUIT_BREAKER_MIN_RECORDS
        self.logger = logger or logging.getLogger(__name__)

    async def load(
        self,
        outcomes: Sequence[TransformOutcome],
        batch_size: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> LoadResult:
        """
        Load the successful outcomes.

        Args:
            outcomes: Transformer output; failures are skipped
            batch_size: Records per transaction, in [1, ETL_MAX_BATCH_SIZE]
            cancel_event: Checked before every batch

        Returns:
            LoadResult with per-record errors and summary statistics

        Raises:
            ConfigurationError: batch size out of range (before any I/O)
            CircuitBreakerTripped: error rate exceeded the threshold
            TransactionError: commit failed
            PipelineCancelled: cancel_event was set
        """
        batch_size = check_batch_size(settings.ETL_BATCH_SIZE if batch_size is None else batch_size)

        successes: List[TransformSuccess] = [o for o in outcomes if o.ok]
        if not successes:
            return LoadResult.empty()

        state = _LoadState()
        batches = [successes[i:i + batch_size] for i in range(0, len(successes), batch_size)]

        self.logger.info(
            f"Loading {len(successes)} {self.strategy.name} records in {len(batches)} batches of up to {batch_size}",
            extra={"phase": "load", "entity": self.strategy.name}
        )

        for number, batch in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelled(
                    f"Load cancelled before batch {number}/{len(batches)}",
                    context={"entity": self.strategy.name, "batch": number},
                    load_result=self._result(state)
                )

            state.batch_count += 1
            pending = 0

            for outcome in batch:
                record_started = time.perf_counter()
                try:
                    await self._load_record(outcome)
                    pending += 1
                except RECORD_ERRORS as e:
                    self._record_error(state, outcome, e)
                finally:
                    state.processed += 1
                    state.record_seconds += time.perf_counter() - record_started

                if self._breaker_open(state):
                    await self._rollback()
                    state.rolled_back += pending
                    result = self._result(state)
                    self.logger.error(
                        f"Circuit breaker tripped: {len(state.errors)} errors in {state.processed} records",
                        extra={"phase": "load", "entity": self.strategy.name, "error_kind": "CircuitBreakerTripped"}
                    )
                    raise CircuitBreakerTripped(
                        f"Too many errors: {len(state.errors)} of {state.processed} records failed "
                        f"(threshold {self.error_threshold:.0%})",
                        context={"entity": self.strategy.name, "batch": number},
                        load_result=result
                    )

            await self._commit(state, pending, number)
            state.success_count += pending

            self.logger.info(
                f"Batch {number}/{len(batches)}: committed {pending} of {len(batch)} records",
                extra={"phase": "load", "entity": self.strategy.name, "batch": number}
            )

            if self.batch_delay and number < len(batches):
                await asyncio.sleep(self.batch_delay)

        result = self._result(state)
        self.logger.info(
            f"Load complete: {result.success_count} loaded, {result.error_count} failed",
            extra={"phase": "load", "entity": self.strategy.name}
        )
        return result

    async def load_one(self, outcome: TransformSuccess) -> int:
        """
        Load a single record in its own transaction and return its id.

        Unlike load(), record errors propagate to the caller.
        """
        try:
            record_id = await self._load_record(outcome)
        except RECORD_ERRORS:
            await self._rollback()
            raise
        await self._commit(_LoadState(), 1, 1)
        return record_id

    async def update_one(self, record_id: int, outcome: TransformSuccess) -> int:
        """
        Write a record over the stored row ``record_id`` in its own transaction.

        Same checks as load_one; the row never collides with itself.
        """
        try:
            await self._load_record(outcome, record_id=record_id)
        except RECORD_ERRORS:
            await self._rollback()
            raise
        await self._commit(_LoadState(), 1, 1)
        return record_id

    async def _load_record(self, outcome: TransformSuccess, record_id: Optional[int] = None) -> int:
        record = outcome.record
        operation = "INSERT" if record_id is None else "UPDATE"

        violations = self.strategy.validate(record.model_dump())
        if violations:
            raise ValidationError("; ".join(violations), context={"row_index": outcome.row_index})

        try:
            if record_id is None:
                write = self._insert_in_savepoint(record)
            else:
                write = self._update_in_savepoint(record_id, record)
            return await asyncio.wait_for(write, timeout=self.record_timeout)
        except asyncio.TimeoutError as e:
            raise RecordTimeoutError(
                f"{operation.capitalize()} exceeded {self.record_timeout}s",
                context={"row_index": outcome.row_index, "timeout": self.record_timeout},
                original_exception=e
            )
        except IntegrityError as e:
            message = str(e.orig).lower()
            if "unique" in message or "duplicate" in message:
                raise DuplicateError(
                    f"Unique constraint violated: {e.orig}",
                    context={"row_index": outcome.row_index, "operation": operation},
                    original_exception=e
                )
            if "foreign key" in message:
                raise ForeignKeyError(
                    f"Foreign key constraint violated: {e.orig}",
                    context={"row_index": outcome.row_index, "operation": operation},
                    original_exception=e
                )
            raise DatabaseError(
                f"Integrity error: {e.orig}",
                context={"row_index": outcome.row_index, "operation": operation},
                original_exception=e
            )
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"{operation.capitalize()} failed: {e}",
                context={"row_index": outcome.row_index, "operation": operation},
                original_exception=e
            )

    async def _insert_in_savepoint(self, record) -> int:
        async with self.db.begin_nested():
            await self.strategy.check_references(self.db, record)
            await self.strategy.check_duplicates(self.db, record)
            return await self.strategy.insert(self.db, record)

    async def _update_in_savepoint(self, record_id: int, record) -> int:
        async with self.db.begin_nested():
            await self.strategy.check_references(self.db, record)
            await self.strategy.check_duplicates(self.db, record, exclude_id=record_id)
            return await self.strategy.update(self.db, record_id, record)

    def _record_error(self, state: "_LoadState", outcome: TransformSuccess, error: ETLException):
        state.errors.append(LoadErrorEntry(
            row_index=outcome.row_index,
            error_message=error.message,
            category=error.category,
            record=self.strategy.snapshot(outcome.record),
        ))
        self.logger.warning(
            f"Row {outcome.row_index} not loaded: {error.message}",
            extra={"phase": "load", "entity": self.strategy.name,
                   "row_index": outcome.row_index, "error_kind": type(error).__name__}
        )

    def _breaker_open(self, state: "_LoadState") -> bool:
        if state.processed < self.min_records:
            return False
        return len(state.errors) > state.processed * self.error_threshold

    async def _commit(self, state: "_LoadState", pending: int, batch_number: int):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._rollback()
            state.rolled_back += pending
            raise TransactionError(
                f"Commit of batch {batch_number} failed",
                context={"entity": self.strategy.name, "batch": batch_number},
                original_exception=e,
                load_result=self._result(state)
            )

    async def _rollback(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            raise TransactionError(
                "Rollback failed",
                context={"entity": self.strategy.name},
                original_exception=e
            )

    def _result(self, state: "_LoadState") -> LoadResult:
        processed = state.processed
        elapsed = time.perf_counter() - state.started
        summary = LoadSummary(
            success_rate=state.success_count / processed if processed else 0.0,
            error_rate=len(state.errors) / processed if processed else 0.0,
            avg_record_ms=state.record_seconds * 1000 / processed if processed else 0.0,
            records_per_second=state.success_count / elapsed if elapsed > 0 else 0.0,
            errors_by_category=dict(Counter(entry.category for entry in state.errors)),
        )
        return LoadResult(
            total_processed=processed,
            success_count=state.success_count,
            error_count=len(state.errors),
            rolled_back_count=state.rolled_back,
            batch_count=state.batch_count,
            errors=list(state.errors),
            summary=summary,
        )


class _LoadState:
    """Mutable counters for one load call"""

    def __init__(self):
        self.started = time.perf_counter()
        self.processed = 0
        self.success_count = 0
        self.rolled_back = 0
        self.batch_count = 0
        self.record_seconds = 0.0
        self.errors: List[LoadErrorEntry] = []
