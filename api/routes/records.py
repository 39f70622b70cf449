"""
Single-record ingestion shared by the POST and PUT endpoints
"""

from typing import Any, Dict

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import DuplicateError, RecordLoadError, RecordTimeoutError, ValidationError
from ingestion.entities.base import EntityStrategy
from ingestion.loaders.batch_loader import BatchLoader
from ingestion.transformers.transformer import RecordTransformer
from ingestion.types import RawRecord, TransformSuccess


def _transform(strategy: EntityStrategy, payload: Dict[str, Any]) -> TransformSuccess:
    outcome = RecordTransformer(strategy).transform_one(RawRecord(source_row_index=1, data=payload))
    if not outcome.ok:
        raise HTTPException(status_code=422, detail={"category": "validation", "errors": outcome.errors})
    return outcome


def _http_error(e: Exception) -> HTTPException:
    detail = {"category": e.category, "errors": [e.message]}
    if isinstance(e, DuplicateError):
        return HTTPException(status_code=409, detail=detail)
    if isinstance(e, RecordTimeoutError):
        return HTTPException(status_code=504, detail=detail)
    if isinstance(e, ValidationError) or e.category == "foreign_key":
        return HTTPException(status_code=422, detail=detail)
    return HTTPException(status_code=500, detail=detail)


async def ingest_single(db: AsyncSession, strategy: EntityStrategy, payload: Dict[str, Any]) -> int:
    """
    Transform and load one record; return its id.

    Raises:
        HTTPException: 422 invalid or unresolved references, 409 duplicate,
            504 timeout, 500 other database errors
    """
    outcome = _transform(strategy, payload)
    try:
        return await BatchLoader(db, strategy).load_one(outcome)
    except (RecordLoadError, ValidationError) as e:
        raise _http_error(e)


async def update_single(db: AsyncSession, strategy: EntityStrategy, record_id: int, payload: Dict[str, Any]) -> int:
    """
    Merge ``payload`` over the stored row, re-validate and write it back.

    Fields left out of the payload keep their stored values; sending a field
    as null clears it. Status codes as for ingest_single, plus 404.
    """
    current = await strategy.current_values(db, record_id)
    if current is None:
        raise HTTPException(status_code=404, detail=f"{strategy.name.capitalize()} {record_id} not found")

    outcome = _transform(strategy, {**current, **strategy.apply_aliases(payload)})
    try:
        return await BatchLoader(db, strategy).update_one(record_id, outcome)
    except (RecordLoadError, ValidationError) as e:
        raise _http_error(e)
