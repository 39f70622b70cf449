"""
HTTP (REST API) data source extractor.

This module issues a single GET per extraction attempt:
- Caller-supplied headers (authentication lives there)
- Configurable timeout
- JSON array bodies, single-object bodies and {"data": [...]} envelopes
- HTTP and network failures mapped to SourceUnavailable, bad payloads to
  SourceFormatError

Retries are not done here; the runner retries the whole extract call.
"""

import httpx
from typing import List, Dict, Any, Optional
from ingestion.base import Extractor
from models.base import SourceType
from core.config import settings
from core.exceptions import SourceUnavailable, SourceFormatError
import logging

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = ("data", "results")


class APIExtractor(Extractor):
    """
    Extract records from a REST endpoint.

    Attributes:
        url: Endpoint to GET
        headers: Extra request headers
        timeout: Request timeout in seconds (default: HTTP_TIMEOUT_SECONDS)
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            source_type=SourceType.HTTP,
            source_label=url,
            logger=logger
        )
        self.url = url
        self.headers = dict(headers or {})
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport

    async def fetch_data(self) -> List[Dict[str, Any]]:
        """
        Fetch records with one GET request.

        Raises:
            SourceUnavailable: Network failure, timeout or non-2xx status
            SourceFormatError: Body is not JSON, or not records
        """
        headers = {"Accept": "application/json", **self.headers}

        self.logger.info(f"Fetching records from {self.url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(
                f"HTTP {e.response.status_code} from {self.url}",
                context={
                    "source_type": "http",
                    "url": self.url,
                    "status_code": e.response.status_code,
                    "response_body": e.response.text[:500]  # Truncate
                },
                original_exception=e
            )
        except httpx.TimeoutException as e:
            raise SourceUnavailable(
                f"Request to {self.url} timed out",
                context={"source_type": "http", "url": self.url, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"Network error requesting {self.url}",
                context={"source_type": "http", "url": self.url},
                original_exception=e
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SourceFormatError(
                "Failed to parse JSON response",
                context={
                    "source_type": "http",
                    "url": self.url,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

        records = self._records_from_body(data)
        self.logger.info(f"Fetched {len(records)} records from {self.url}")
        return records

    def _records_from_body(self, data: Any) -> List[Dict[str, Any]]:
        # Handle different API response formats
        if isinstance(data, dict):
            if len(data) == 1:
                key = next(iter(data))
                if key in ENVELOPE_KEYS and isinstance(data[key], list):
                    data = data[key]
            if isinstance(data, dict):
                return [data]

        if not isinstance(data, list):
            raise SourceFormatError(
                f"Expected a JSON array or object, got {type(data).__name__}",
                context={"source_type": "http", "url": self.url}
            )

        for position, item in enumerate(data, start=1):
            if not isinstance(item, dict):
                raise SourceFormatError(
                    f"Record {position} is {type(item).__name__}, expected an object",
                    context={"source_type": "http", "url": self.url, "record": position}
                )
        return data
