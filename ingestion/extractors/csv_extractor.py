"""
Delimited file extractor with chunked (streaming) reads
"""

import asyncio
import pandas as pd
from typing import List, Dict, Any, Optional
from pathlib import Path
from ingestion.base import Extractor
from models.base import SourceType
from core.config import settings
from core.exceptions import SourceUnavailable, SourceFormatError
import logging

logger = logging.getLogger(__name__)


class CSVExtractor(Extractor):
    """
    Extract rows from CSV (or other delimited) files.

    Supports:
    - Chunked reads so large files never sit in memory as one frame
    - Every value read as a string; typing happens in the transformer
    - Header normalization
    """

    def __init__(
        self,
        file_path: str,
        delimiter: str = ",",
        encoding: str = "utf-8",
        chunk_size: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            source_type=SourceType.FILE,
            source_label=str(file_path),
            logger=logger
        )
        self.file_path = Path(file_path)
        self.delimiter = delimiter
        self.encoding = encoding
        self.chunk_size = chunk_size or settings.CSV_CHUNK_SIZE

    async def fetch_data(self) -> List[Dict[str, Any]]:
        if not self.file_path.is_file():
            raise SourceUnavailable(
                f"CSV file not found: {self.file_path}",
                context={"source_type": "file", "path": str(self.file_path)}
            )

        self.logger.info(f"Reading CSV from {self.file_path}")
        # pandas parsing is blocking; keep it off the event loop
        return await asyncio.to_thread(self._read_chunks)

    def _read_chunks(self) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        try:
            reader = pd.read_csv(
                self.file_path,
                sep=self.delimiter,
                encoding=self.encoding,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                chunksize=self.chunk_size,
            )
            with reader:
                for chunk in reader:
                    # Normalize column names (strip whitespace, lowercase)
                    chunk.columns = chunk.columns.str.strip().str.lower().str.replace(" ", "_")
                    records.extend(chunk.to_dict(orient="records"))
        except pd.errors.EmptyDataError:
            self.logger.warning(f"CSV file is empty: {self.file_path}")
            return []
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise SourceFormatError(
                f"Malformed CSV file: {self.file_path}",
                context={"source_type": "file", "path": str(self.file_path), "detail": str(e)},
                original_exception=e
            )
        except OSError as e:
            raise SourceUnavailable(
                f"Cannot read CSV file: {self.file_path}",
                context={"source_type": "file", "path": str(self.file_path)},
                original_exception=e
            )

        self.logger.info(f"Read {len(records)} records from CSV")
        return records
