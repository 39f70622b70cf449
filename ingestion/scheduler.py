import logging
import asyncio
from typing import Any, Dict, List, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.config import settings
from core.database import async_session_maker, session_scope
from core.exceptions import ETLException
from ingestion.audit import run_and_record

logger = logging.getLogger(__name__)


class ETLScheduler:
    """
    Periodic pipeline runs.

    Jobs come from ``settings.ETL_SCHEDULED_JOBS``; each is a mapping with
    ``entity``, ``source`` and optional ``options``. Stopping the scheduler
    sets the cancellation event so a running load stops between batches.
    """

    def __init__(
        self,
        jobs: Optional[List[Dict[str, Any]]] = None,
        interval_minutes: Optional[int] = None,
        session_factory: async_sessionmaker = async_session_maker
    ):
        self.scheduler = AsyncIOScheduler()
        self.jobs = settings.ETL_SCHEDULED_JOBS if jobs is None else jobs
        self.interval_minutes = interval_minutes or settings.ETL_SCHEDULE_INTERVAL_MINUTES
        self.session_factory = session_factory
        self.cancel_event = asyncio.Event()

    async def run_etl_job(self):
        """Job to run every configured pipeline once"""
        logger.info(f"Scheduler: Starting ETL job ({len(self.jobs)} pipelines)")

        for job in self.jobs:
            if self.cancel_event.is_set():
                logger.info("Scheduler: cancelled, skipping remaining pipelines")
                break

            entity = job.get("entity", "")
            try:
                async with session_scope(self.session_factory) as session:
                    result, run = await run_and_record(
                        session,
                        entity,
                        job.get("source"),
                        job.get("options"),
                        cancel_event=self.cancel_event
                    )
                logger.info(
                    f"Scheduler: {entity} run {run.run_id} finished "
                    f"(success={result.success}, loaded={result.loaded_count}, errors={result.error_count})"
                )
            except ETLException as e:
                logger.error(
                    f"Scheduler: {entity} pipeline failed - {e}",
                    extra={"entity": entity, "error_context": e.to_dict()}
                )
            except Exception as e:
                logger.exception(
                    f"Scheduler: {entity} pipeline crashed - {type(e).__name__}: {e}",
                    extra={"entity": entity}
                )

    def start(self):
        """Start the scheduler"""
        self.cancel_event.clear()
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="etl_job",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        self.cancel_event.set()
        self.scheduler.shutdown(wait=False)
        logger.info("ETL Scheduler stopped")
