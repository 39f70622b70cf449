"""
Source extractors (file, HTTP, database) and the descriptor -> extractor factory
"""

from typing import Any, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.base import Extractor
from ingestion.extractors.api_extractor import APIExtractor
from ingestion.extractors.csv_extractor import CSVExtractor
from ingestion.extractors.database_extractor import DatabaseExtractor
from schemas.sources import DatabaseSource, FileSource, HttpSource, parse_source


def create_extractor(
    source: Any,
    db_session: Optional[AsyncSession] = None,
    logger: Optional[logging.Logger] = None,
    **kwargs
) -> Extractor:
    """
    Build the extractor for a source descriptor.

    ``kwargs`` are passed to the extractor (``transport`` for HTTP sources,
    ``chunk_size`` for files).

    Raises:
        ConfigurationError: malformed descriptor
    """
    source = parse_source(source)

    if isinstance(source, FileSource):
        return CSVExtractor(
            file_path=source.path,
            delimiter=source.delimiter,
            encoding=source.encoding,
            logger=logger,
            **kwargs
        )
    if isinstance(source, HttpSource):
        return APIExtractor(url=source.url, headers=source.headers, logger=logger, **kwargs)
    if isinstance(source, DatabaseSource):
        return DatabaseExtractor(
            query=source.query,
            db_session=db_session,
            connection=source.connection,
            logger=logger
        )
    raise TypeError(f"Unsupported source: {type(source).__name__}")


__all__ = ["APIExtractor", "CSVExtractor", "DatabaseExtractor", "create_extractor"]
