from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ingestion.audit import record_pipeline_run
from ingestion.scheduler import ETLScheduler
from models.carelog import Carelog
from models.pipeline_run import PipelineRun
from tests.factories import carelog_row


@pytest.mark.asyncio
async def test_scheduler_initialization():
    scheduler = ETLScheduler(jobs=[], interval_minutes=5)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 5
    assert not scheduler.cancel_event.is_set()


@pytest.mark.asyncio
async def test_scheduler_job_execution(session_factory, db_session, caregivers, carelog_csv, tmp_path):
    path = carelog_csv([carelog_row(1, caregivers[0]), carelog_row(2, caregivers[1])])
    jobs = [
        {"entity": "carelog", "source": {"type": "file", "path": str(path)}, "options": {"batch_size": 10}},
        # a broken job is logged and does not stop the others
        {"entity": "carelog", "source": {"type": "file", "path": str(tmp_path / "missing.csv")},
         "options": {"max_retries": 1}},
        {"entity": "visits", "source": {"type": "file", "path": str(path)}},
    ]

    scheduler = ETLScheduler(jobs=jobs, session_factory=session_factory)
    await scheduler.run_etl_job()

    carelogs = (await db_session.execute(select(Carelog))).scalars().all()
    assert len(carelogs) == 2

    runs = (await db_session.execute(select(PipelineRun).order_by(PipelineRun.id))).scalars().all()
    assert [run.status for run in runs] == ["success", "failed"]


@pytest.mark.asyncio
async def test_scheduler_start_stop():
    scheduler = ETLScheduler(jobs=[], interval_minutes=1)
    scheduler.start()
    assert scheduler.scheduler.get_job("etl_job") is not None

    scheduler.stop()
    assert scheduler.cancel_event.is_set()


@pytest.mark.asyncio
async def test_stopped_scheduler_skips_jobs(session_factory, db_session, caregivers, carelog_csv):
    path = carelog_csv([carelog_row(1, caregivers[0])])
    scheduler = ETLScheduler(
        jobs=[{"entity": "carelog", "source": {"type": "file", "path": str(path)}}],
        session_factory=session_factory
    )
    scheduler.cancel_event.set()

    await scheduler.run_etl_job()

    assert (await db_session.execute(select(Carelog))).scalars().all() == []


@pytest.mark.asyncio
async def test_database_error_does_not_stop_later_jobs(session_factory, db_session, caregivers, carelog_csv):
    first = carelog_csv([carelog_row(1, caregivers[0])], name="first.csv")
    second = carelog_csv([carelog_row(2, caregivers[0])], name="second.csv")
    jobs = [
        {"entity": "carelog", "source": {"type": "file", "path": str(first)}},
        {"entity": "carelog", "source": {"type": "file", "path": str(second)}},
    ]
    calls = []

    async def flaky_record(session, result, source_label):
        calls.append(source_label)
        if len(calls) == 1:
            raise OperationalError("INSERT INTO pipeline_runs", {}, Exception("connection reset"))
        return await record_pipeline_run(session, result, source_label)

    scheduler = ETLScheduler(jobs=jobs, session_factory=session_factory)
    with patch("ingestion.audit.record_pipeline_run", side_effect=flaky_record):
        await scheduler.run_etl_job()

    assert calls == [str(first), str(second)]
    runs = (await db_session.execute(select(PipelineRun))).scalars().all()
    assert [run.source_label for run in runs] == [str(second)]
