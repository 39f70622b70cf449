"""
Turn raw source rows into typed records, one outcome per row
"""

from typing import List, Optional, Sequence
import logging

from pydantic import ValidationError as PydanticValidationError

from ingestion.entities.base import EntityStrategy
from ingestion.types import RawRecord, TransformFailure, TransformOutcome, TransformSuccess

logger = logging.getLogger(__name__)


class RecordTransformer:
    """
    Clean, normalize and validate raw records for one entity.

    Handles:
    - Alias resolution and field cleaning
    - Required-field checks (every missing field is reported)
    - Business-rule validation
    - Typed record construction

    Pure: no I/O, never raises. Every input row yields exactly one outcome,
    in input order, carrying the row's source index.
    """

    def __init__(self, strategy: EntityStrategy, logger: Optional[logging.Logger] = None):
        self.strategy = strategy
        self.logger = logger or logging.getLogger(__name__)

    def transform(self, raw_records: Sequence[RawRecord]) -> List[TransformOutcome]:
        outcomes = [self.transform_one(raw) for raw in raw_records]

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        self.logger.info(
            f"Transformed {len(outcomes)} {self.strategy.name} records: "
            f"{len(outcomes) - failed} valid, {failed} invalid",
            extra={"phase": "transform", "entity": self.strategy.name}
        )
        return outcomes

    def transform_one(self, raw: RawRecord) -> TransformOutcome:
        try:
            return self._transform(raw)
        except Exception as e:
            self.logger.exception(
                f"Unexpected error transforming row {raw.source_row_index}",
                extra={"phase": "transform", "entity": self.strategy.name,
                       "row_index": raw.source_row_index, "error_kind": type(e).__name__}
            )
            return self._failure(raw, [f"unexpected error: {e}"])

    def _transform(self, raw: RawRecord) -> TransformOutcome:
        data = self.strategy.apply_aliases(raw.data)
        values, warnings = self.strategy.clean(data)

        errors = []
        missing = self.strategy.missing_required(values)
        if missing:
            errors.append(f"Missing or invalid required fields: {', '.join(missing)}")
        errors.extend(self.strategy.validate(values))

        if errors:
            return self._failure(raw, errors)

        try:
            record = self.strategy.build(values)
        except PydanticValidationError as e:
            return self._failure(raw, [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ])

        for warning in warnings:
            self.logger.warning(
                f"Row {raw.source_row_index}: {warning}",
                extra={"phase": "transform", "entity": self.strategy.name,
                       "row_index": raw.source_row_index, "error_kind": "warning"}
            )
        return TransformSuccess(row_index=raw.source_row_index, record=record, warnings=warnings)

    def _failure(self, raw: RawRecord, errors: List[str]) -> TransformFailure:
        message = "; ".join(errors)
        self.logger.warning(
            f"Row {raw.source_row_index} failed validation: {message}",
            extra={"phase": "transform", "entity": self.strategy.name,
                   "row_index": raw.source_row_index, "error_kind": "ValidationError"}
        )
        return TransformFailure(
            row_index=raw.source_row_index,
            error_message=message,
            errors=errors,
            raw=dict(raw.data),
        )
