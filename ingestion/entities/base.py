"""
Entity strategy interface.

One pipeline handles every entity stream; what differs per entity (field
aliases, cleaning, business rules, foreign keys, insert order) lives in an
EntityStrategy subclass.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ForeignKeyError
from ingestion.transformers.cleaning import clean_value
from models.base import Base
from schemas.records import ValidatedRecord

logger = logging.getLogger(__name__)


class EntityStrategy(ABC):
    """
    Per-entity transform, validate and insert behaviour.

    Responsibilities:
    - Map source column names onto canonical field names
    - Clean raw values into typed values (no I/O)
    - Business-rule validation shared by transformer and loader
    - Foreign-key and uniqueness checks against the destination store
    - Inserting one record (possibly into several tables) and updating it
    """

    name: str = ""
    record_class: Type[ValidatedRecord] = ValidatedRecord

    # source column -> canonical field
    aliases: Dict[str, str] = {}
    required_fields: Tuple[str, ...] = ()

    # canonical field -> referenced model
    references: Dict[str, Type[Base]] = {}

    def apply_aliases(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Rename aliased columns.

        A canonical column that is present and non-empty wins over its alias.
        """
        resolved = dict(data)
        for alias, canonical in self.aliases.items():
            if alias not in data:
                continue
            value = resolved.pop(alias)
            current = resolved.get(canonical)
            if current is None or (isinstance(current, str) and not current.strip()):
                resolved[canonical] = value
        return resolved

    @abstractmethod
    def clean(self, data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        """
        Turn aliased raw values into typed values.

        Returns:
            (values, warnings). Unparseable values become None.
        """
        pass

    def missing_required(self, values: Dict[str, Any]) -> List[str]:
        return [field for field in self.required_fields if values.get(field) is None]

    @abstractmethod
    def validate(self, values: Dict[str, Any]) -> List[str]:
        """Business rules over typed values; returns every violated rule"""
        pass

    def build(self, values: Dict[str, Any]) -> ValidatedRecord:
        """Construct the typed record; raises pydantic.ValidationError"""
        return self.record_class(**values)

    async def check_references(self, session: AsyncSession, record: ValidatedRecord):
        """
        Verify every referenced id exists inside the caller's transaction.

        Raises:
            ForeignKeyError: listing each missing reference
        """
        missing = []
        for field, model in self.references.items():
            value = getattr(record, field, None)
            if value is None:
                continue
            result = await session.execute(select(model.id).where(model.id == value))
            if result.scalar_one_or_none() is None:
                missing.append(f"{field}={value} not found in {model.__tablename__}")

        if missing:
            raise ForeignKeyError(
                "; ".join(missing),
                context={"entity": self.name, "missing": missing}
            )

    @abstractmethod
    async def check_duplicates(
        self,
        session: AsyncSession,
        record: ValidatedRecord,
        exclude_id: Optional[int] = None
    ):
        """
        Raise DuplicateError when the record collides with a stored row.

        ``exclude_id`` is the row being updated; it never collides with itself.
        """
        pass

    @abstractmethod
    async def insert(self, session: AsyncSession, record: ValidatedRecord) -> int:
        """Insert the record and return the primary key of its main row"""
        pass

    @abstractmethod
    async def current_values(self, session: AsyncSession, record_id: int) -> Optional[Dict[str, Any]]:
        """Stored row as canonical field values, or None when it does not exist"""
        pass

    @abstractmethod
    async def update(self, session: AsyncSession, record_id: int, record: ValidatedRecord) -> int:
        """Overwrite the stored row with the record and return its id"""
        pass

    def snapshot(self, record: ValidatedRecord) -> Dict[str, Any]:
        """JSON-safe copy of a record for error reports"""
        return record.model_dump(mode="json")

    @staticmethod
    def note_dropped(field: str, raw: Any, parsed: Any, warnings: List[str]):
        """Record a warning when a non-empty value could not be parsed"""
        if parsed is not None or clean_value(raw) is None:
            return
        warnings.append(f"could not parse {field} value '{raw}', stored as null")
