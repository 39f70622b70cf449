"""
Abstract base class for data sources
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import logging
import time

from ingestion.types import RawRecord
from models.base import SourceType

logger = logging.getLogger(__name__)


class Extractor(ABC):
    """
    Abstract base class for all data sources.

    Responsibilities:
    - Fetch untyped rows from one source (no retries; the runner owns retry)
    - Attach a 1-based ordinal to every row for error attribution
    - Translate source failures into SourceUnavailable / SourceFormatError
    """

    def __init__(
        self,
        source_type: SourceType,
        source_label: str,
        logger: Optional[logging.Logger] = None
    ):
        self.source_type = source_type
        self.source_label = source_label
        self.logger = logger or logging.getLogger(self.__class__.__module__)

    @abstractmethod
    async def fetch_data(self) -> List[Dict[str, Any]]:
        """
        Fetch every row from the source.

        Returns:
            List of raw data dictionaries, in source order

        Raises:
            SourceUnavailable: source could not be read
            SourceFormatError: payload is malformed
        """
        pass

    async def extract(self) -> List[RawRecord]:
        """Fetch rows and wrap each with its source ordinal"""
        started = time.perf_counter()
        rows = await self.fetch_data()
        records = [
            RawRecord(source_row_index=index, data=row)
            for index, row in enumerate(rows, start=1)
        ]

        self.logger.info(
            f"Extracted {len(records)} records from {self.source_type.value} source {self.source_label} "
            f"in {(time.perf_counter() - started) * 1000:.1f}ms",
            extra={"phase": "extract", "source_type": self.source_type.value, "records": len(records)}
        )
        return records
