"""
Unit tests for the batch loader
"""

import asyncio

import pytest
from sqlalchemy import func, select

from core.exceptions import (
    CircuitBreakerTripped,
    ConfigurationError,
    DuplicateError,
    ForeignKeyError,
    PipelineCancelled,
)
from ingestion.entities import CaregiverStrategy, CarelogStrategy
from ingestion.loaders.batch_loader import BatchLoader
from ingestion.transformers.transformer import RecordTransformer
from ingestion.types import RawRecord
from models.caregiver import Caregiver, External
from models.carelog import Carelog
from tests.factories import caregiver_row, carelog_row

MISSING_CAREGIVER = 999


def transform(rows, strategy=None):
    strategy = strategy or CarelogStrategy()
    return RecordTransformer(strategy).transform(
        [RawRecord(source_row_index=i, data=row) for i, row in enumerate(rows, start=1)]
    )


async def carelog_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(Carelog))).scalar()


def loader(db_session, strategy=None, **kwargs):
    kwargs.setdefault("batch_delay", 0)
    return BatchLoader(db_session, strategy or CarelogStrategy(), **kwargs)


class SlowCarelogStrategy(CarelogStrategy):
    """Stalls on one external id"""

    def __init__(self, slow_id: str):
        self.slow_id = slow_id

    async def check_duplicates(self, session, record):
        if record.external_id == self.slow_id:
            await asyncio.sleep(5)
        await super().check_duplicates(session, record)


class TestBatchLoader:

    @pytest.mark.asyncio
    async def test_batches_cover_every_record(self, db_session, caregivers):
        outcomes = transform([carelog_row(i, caregivers[0]) for i in range(1, 11)])

        result = await loader(db_session).load(outcomes, batch_size=3)

        assert result.batch_count == 4
        assert result.total_processed == 10
        assert result.success_count == 10
        assert result.error_count == 0
        assert result.summary.success_rate == 1.0
        assert await carelog_count(db_session) == 10

    @pytest.mark.asyncio
    async def test_transform_failures_are_skipped(self, db_session, caregivers):
        rows = [carelog_row(i, caregivers[0]) for i in range(1, 4)]
        rows[1]["start_datetime"] = ""

        result = await loader(db_session).load(transform(rows), batch_size=10)

        assert result.total_processed == 2
        assert result.success_count == 2

    @pytest.mark.asyncio
    async def test_no_successes_is_empty_result(self, db_session):
        result = await loader(db_session).load(transform([{"caregiver_id": ""}]), batch_size=5)
        assert result.total_processed == 0
        assert result.batch_count == 0

    @pytest.mark.asyncio
    async def test_missing_reference_isolated(self, db_session, caregivers):
        rows = [carelog_row(i, caregivers[0]) for i in range(1, 6)]
        rows[2]["caregiver_id"] = MISSING_CAREGIVER

        result = await loader(db_session).load(transform(rows), batch_size=5)

        assert result.success_count == 4
        assert result.error_count == 1
        error = result.errors[0]
        assert error.row_index == 3
        assert error.category == "foreign_key"
        assert "caregiver_id=999" in error.error_message
        assert error.record["caregiver_id"] == MISSING_CAREGIVER
        assert result.summary.errors_by_category == {"foreign_key": 1}
        assert await carelog_count(db_session) == 4

    @pytest.mark.asyncio
    async def test_duplicate_external_ids(self, db_session, caregivers):
        rows = [carelog_row(1, caregivers[0]), carelog_row(2, caregivers[0])]
        rows[1]["carelog_id"] = rows[0]["carelog_id"]

        result = await loader(db_session).load(transform(rows), batch_size=10)

        assert result.success_count == 1
        assert [e.category for e in result.errors] == ["duplicate"]
        assert result.errors[0].row_index == 2

    @pytest.mark.asyncio
    async def test_slow_record_times_out(self, db_session, caregivers):
        strategy = SlowCarelogStrategy(slow_id="CL-002")
        rows = [carelog_row(i, caregivers[0]) for i in range(1, 4)]

        result = await loader(db_session, strategy, record_timeout=0.2).load(transform(rows, strategy), batch_size=10)

        assert result.success_count == 2
        assert [(e.row_index, e.category) for e in result.errors] == [(2, "timeout")]
        assert await carelog_count(db_session) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [0, -1, 1001])
    async def test_batch_size_out_of_range(self, db_session, batch_size):
        with pytest.raises(ConfigurationError):
            await loader(db_session).load([], batch_size=batch_size)

    @pytest.mark.asyncio
    async def test_circuit_breaker_rolls_back_current_batch(self, db_session, caregivers):
        good, bad = caregivers[0], MISSING_CAREGIVER
        owners = [good, bad, bad, good, bad, good]
        rows = [carelog_row(i, owner) for i, owner in enumerate(owners, start=1)]

        with pytest.raises(CircuitBreakerTripped) as exc_info:
            await loader(db_session).load(transform(rows), batch_size=3)

        result = exc_info.value.load_result
        assert result.total_processed == 5
        assert result.success_count == 1
        assert result.rolled_back_count == 1
        assert result.error_count == 3
        assert result.batch_count == 2
        # batch 1 stays committed; row 4 was undone with batch 2
        assert await carelog_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_breaker_needs_minimum_sample(self, db_session, caregivers):
        rows = [carelog_row(1, MISSING_CAREGIVER), carelog_row(2, MISSING_CAREGIVER), carelog_row(3, caregivers[0])]

        result = await loader(db_session).load(transform(rows), batch_size=10)

        assert result.error_count == 2
        assert result.success_count == 1

    @pytest.mark.asyncio
    async def test_breaker_without_minimum_sample(self, db_session, caregivers):
        rows = [carelog_row(1, MISSING_CAREGIVER), carelog_row(2, caregivers[0])]

        with pytest.raises(CircuitBreakerTripped) as exc_info:
            await loader(db_session, min_records=1).load(transform(rows), batch_size=10)

        assert exc_info.value.load_result.total_processed == 1
        assert await carelog_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_cancel_between_batches(self, db_session, caregivers):
        cancel = asyncio.Event()
        cancel.set()
        outcomes = transform([carelog_row(i, caregivers[0]) for i in range(1, 4)])

        with pytest.raises(PipelineCancelled) as exc_info:
            await loader(db_session).load(outcomes, batch_size=2, cancel_event=cancel)

        assert exc_info.value.load_result.success_count == 0
        assert await carelog_count(db_session) == 0


class TestCaregiverLoads:

    @pytest.mark.asyncio
    async def test_external_row_is_reused(self, db_session):
        db_session.add(External(external_id="EXT-001", system_name="legacy_csv"))
        await db_session.commit()

        strategy = CaregiverStrategy()
        result = await loader(db_session, strategy).load(transform([caregiver_row(1)], strategy), batch_size=5)

        assert result.success_count == 1
        externals = (await db_session.execute(select(External))).scalars().all()
        assert len(externals) == 1
        caregiver = (await db_session.execute(select(Caregiver))).scalars().unique().one()
        assert caregiver.external_id == externals[0].id

    @pytest.mark.asyncio
    async def test_email_and_external_collisions(self, db_session):
        strategy = CaregiverStrategy()
        rows = [
            caregiver_row(1),
            caregiver_row(2, email="CAREGIVER1@example.com"),
            caregiver_row(3),
            caregiver_row(4, caregiver_id="EXT-001"),
            caregiver_row(5),
            caregiver_row(6, caregiver_id="EXT-001", external_system="payroll"),
        ]

        result = await loader(db_session, strategy).load(transform(rows, strategy), batch_size=10)

        assert result.success_count == 3
        assert [(e.row_index, e.category) for e in result.errors] == [
            (2, "duplicate"), (4, "duplicate"), (6, "duplicate")
        ]
        assert "already exists" in result.errors[0].error_message
        assert "already belongs to a caregiver" in result.errors[1].error_message
        assert "registered under system" in result.errors[2].error_message


class TestLoadOne:

    @pytest.mark.asyncio
    async def test_returns_new_id(self, db_session, caregivers):
        [outcome] = transform([carelog_row(1, caregivers[1])])

        carelog_id = await loader(db_session).load_one(outcome)

        carelog = await db_session.get(Carelog, carelog_id)
        assert carelog.caregiver_id == caregivers[1]

    @pytest.mark.asyncio
    async def test_record_errors_propagate(self, db_session, caregivers):
        [outcome] = transform([carelog_row(1, caregivers[0])])
        await loader(db_session).load_one(outcome)

        with pytest.raises(DuplicateError):
            await loader(db_session).load_one(outcome)

        [orphan] = transform([carelog_row(2, MISSING_CAREGIVER)])
        with pytest.raises(ForeignKeyError):
            await loader(db_session).load_one(orphan)
        assert await carelog_count(db_session) == 1
