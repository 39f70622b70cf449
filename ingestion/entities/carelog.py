"""
Carelog entity: one row becomes one carelogs row.
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DuplicateError
from ingestion.entities.base import EntityStrategy
from ingestion.transformers.cleaning import (
    clean_text,
    normalize_enum,
    parse_bool,
    parse_datetime,
    parse_int,
)
from models.base import CarelogStatus
from models.caregiver import Caregiver
from models.carelog import Carelog, ParentVisit
from models.organization import Agency, Franchisor
from schemas.records import CarelogRecord

logger = logging.getLogger(__name__)


CARELOG_STATUS_LOOKUP = {
    "scheduled": CarelogStatus.SCHEDULED.value,
    "in_progress": CarelogStatus.IN_PROGRESS.value,
    "inprogress": CarelogStatus.IN_PROGRESS.value,
    "started": CarelogStatus.IN_PROGRESS.value,
    "completed": CarelogStatus.COMPLETED.value,
    "complete": CarelogStatus.COMPLETED.value,
    "done": CarelogStatus.COMPLETED.value,
    "cancelled": CarelogStatus.CANCELLED.value,
    "canceled": CarelogStatus.CANCELLED.value,
    "no_show": CarelogStatus.NO_SHOW.value,
    "noshow": CarelogStatus.NO_SHOW.value,
    "deleted": CarelogStatus.DELETED.value,
}

DATETIME_FIELDS = (
    "start_datetime",
    "end_datetime",
    "clock_in_actual_datetime",
    "clock_out_actual_datetime",
)


class CarelogStrategy(EntityStrategy):
    """Care visits; every carelog must point at an existing caregiver"""

    name = "carelog"
    record_class = CarelogRecord

    aliases = {
        "carelog_id": "external_id",
        "visit_id": "external_id",
        "comment_char_count": "general_comment_char_count",
    }
    required_fields = ("caregiver_id", "start_datetime", "end_datetime")

    references = {
        "caregiver_id": Caregiver,
        "franchisor_id": Franchisor,
        "agency_id": Agency,
        "parent_id": ParentVisit,
    }

    def clean(self, data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        warnings: List[str] = []

        values = {
            "caregiver_id": parse_int(data.get("caregiver_id")),
            "franchisor_id": parse_int(data.get("franchisor_id")),
            "agency_id": parse_int(data.get("agency_id")),
            "parent_id": parse_int(data.get("parent_id")),
            "external_id": clean_text(data.get("external_id")),
            "clock_in_method": clean_text(data.get("clock_in_method")),
            "clock_out_method": clean_text(data.get("clock_out_method")),
            "status": normalize_enum(
                data.get("status"), CARELOG_STATUS_LOOKUP, CarelogStatus.SCHEDULED.value
            ) or CarelogStatus.SCHEDULED.value,
            "split": parse_bool(data.get("split")),
            "documentation": clean_text(data.get("documentation")),
        }
        for field in DATETIME_FIELDS:
            values[field] = parse_datetime(data.get(field))

        count = parse_int(data.get("general_comment_char_count"))
        values["general_comment_char_count"] = 0 if count is None else count

        for field in ("clock_in_actual_datetime", "clock_out_actual_datetime"):
            self.note_dropped(field, data.get(field), values[field], warnings)
        self.note_dropped("general_comment_char_count", data.get("general_comment_char_count"), count, warnings)

        return values, warnings

    def validate(self, values: Dict[str, Any]) -> List[str]:
        errors = []

        start, end = values.get("start_datetime"), values.get("end_datetime")
        if start is not None and end is not None and start >= end:
            errors.append("end_datetime must be after start_datetime")

        clock_in = values.get("clock_in_actual_datetime")
        clock_out = values.get("clock_out_actual_datetime")
        if clock_in is not None and clock_out is not None and clock_in >= clock_out:
            errors.append("clock_out_actual_datetime must be after clock_in_actual_datetime")

        count = values.get("general_comment_char_count")
        if count is not None and count < 0:
            errors.append("general_comment_char_count must be non-negative")

        return errors

    async def check_duplicates(
        self,
        session: AsyncSession,
        record: CarelogRecord,
        exclude_id: Optional[int] = None
    ):
        if not record.external_id:
            return
        query = select(Carelog.id).where(Carelog.external_id == record.external_id)
        if exclude_id is not None:
            query = query.where(Carelog.id != exclude_id)
        result = await session.execute(query)
        if result.scalar_one_or_none() is not None:
            raise DuplicateError(
                f"carelog external_id '{record.external_id}' already exists",
                context={"entity": self.name, "table_name": "carelogs", "external_id": record.external_id}
            )

    async def insert(self, session: AsyncSession, record: CarelogRecord) -> int:
        carelog = Carelog(**record.model_dump())
        session.add(carelog)
        await session.flush()
        return carelog.id

    async def current_values(self, session: AsyncSession, record_id: int) -> Optional[Dict[str, Any]]:
        carelog = await session.get(Carelog, record_id)
        if carelog is None:
            return None
        return {field: getattr(carelog, field) for field in CarelogRecord.model_fields}

    async def update(self, session: AsyncSession, record_id: int, record: CarelogRecord) -> int:
        carelog = await session.get(Carelog, record_id)
        for field, value in record.model_dump().items():
            setattr(carelog, field, value)
        await session.flush()
        return carelog.id
