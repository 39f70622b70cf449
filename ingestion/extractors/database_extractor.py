"""
Foreign database extractor: runs a read query and returns its rows
"""

from typing import List, Dict, Any, Optional, Union
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession
from ingestion.base import Extractor
from models.base import SourceType
from core.exceptions import SourceUnavailable
import logging

logger = logging.getLogger(__name__)

Connectable = Union[AsyncEngine, AsyncConnection, AsyncSession]


class DatabaseExtractor(Extractor):
    """
    Extract rows with a caller-supplied query.

    The query runs on ``connection`` when one is given (an engine, connection
    or session pointing at another database); otherwise on the destination
    session.
    """

    def __init__(
        self,
        query: str,
        db_session: Optional[AsyncSession] = None,
        connection: Optional[Connectable] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            source_type=SourceType.DATABASE,
            source_label=" ".join(query.split())[:200],
            logger=logger
        )
        if db_session is None and connection is None:
            raise ValueError("DatabaseExtractor needs a session or an alternate connection")
        self.query = query
        self.db = db_session
        self.connection = connection

    async def fetch_data(self) -> List[Dict[str, Any]]:
        statement = text(self.query)
        try:
            if isinstance(self.connection, AsyncEngine):
                async with self.connection.connect() as conn:
                    result = await conn.execute(statement)
                    rows = result.mappings().all()
            else:
                target = self.connection if self.connection is not None else self.db
                result = await target.execute(statement)
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise SourceUnavailable(
                "Extraction query failed",
                context={"source_type": "database", "query": self.source_label},
                original_exception=e
            )

        return [dict(row) for row in rows]
