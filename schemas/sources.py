"""
Source descriptors and run options, validated before any I/O
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.exceptions import ConfigurationError


class FileSource(BaseModel):
    """Delimited file on the local filesystem"""
    type: Literal["file"] = "file"
    path: str = Field(..., min_length=1)
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str = "utf-8"

    def describe(self) -> str:
        return self.path


class HttpSource(BaseModel):
    """HTTP endpoint answering GET with a JSON array (or a single object)"""
    type: Literal["http"] = "http"
    url: str = Field(..., min_length=1)
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    def require_http_scheme(cls, v):
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v

    def describe(self) -> str:
        return self.url


class DatabaseSource(BaseModel):
    """
    Read query against the destination or an alternate connection.

    ``connection`` may be an AsyncEngine, AsyncConnection or AsyncSession;
    when omitted the destination session is used.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: Literal["database"] = "database"
    query: str = Field(..., min_length=1)
    connection: Optional[Any] = Field(default=None, exclude=True)

    def describe(self) -> str:
        return " ".join(self.query.split())[:200]


SourceDescriptor = Annotated[
    Union[FileSource, HttpSource, DatabaseSource],
    Field(discriminator="type"),
]

_source_adapter = TypeAdapter(SourceDescriptor)


def parse_source(value: Any) -> Union[FileSource, HttpSource, DatabaseSource]:
    """
    Validate a source descriptor given as a model or a plain mapping.

    Raises:
        ConfigurationError: unknown type or missing required fields
    """
    if isinstance(value, (FileSource, HttpSource, DatabaseSource)):
        return value
    try:
        return _source_adapter.validate_python(value)
    except PydanticValidationError as e:
        errors = _format_errors(e)
        raise ConfigurationError(
            f"Invalid source descriptor: {'; '.join(errors)}",
            context={"errors": errors},
            original_exception=e
        )


def check_batch_size(batch_size: int) -> int:
    """Batch sizes outside [1, ETL_MAX_BATCH_SIZE] are a configuration error"""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ConfigurationError(
            "batch_size must be an integer",
            context={"batch_size": batch_size}
        )
    if not 1 <= batch_size <= settings.ETL_MAX_BATCH_SIZE:
        raise ConfigurationError(
            f"batch_size must be between 1 and {settings.ETL_MAX_BATCH_SIZE}",
            context={"batch_size": batch_size}
        )
    return batch_size


class PipelineOptions(BaseModel):
    """Options for a single pipeline run"""
    batch_size: int = Field(default_factory=lambda: settings.ETL_BATCH_SIZE)
    validate_only: bool = False
    max_retries: Optional[int] = Field(default=None, ge=1)
    retry_base_delay: float = Field(default_factory=lambda: settings.RETRY_BASE_DELAY_SECONDS, ge=0)

    @field_validator("batch_size")
    def batch_size_in_range(cls, v):
        if not 1 <= v <= settings.ETL_MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {settings.ETL_MAX_BATCH_SIZE}")
        return v

    def retries_for(self, source_type: str) -> int:
        if self.max_retries is not None:
            return self.max_retries
        return settings.default_max_retries(source_type)


def parse_options(value: Any = None) -> PipelineOptions:
    """
    Validate run options given as a model, a mapping or None (defaults).

    Raises:
        ConfigurationError: batch size out of range, max_retries < 1, ...
    """
    if value is None:
        return PipelineOptions()
    if isinstance(value, PipelineOptions):
        return value
    try:
        return PipelineOptions.model_validate(value)
    except PydanticValidationError as e:
        errors = _format_errors(e)
        raise ConfigurationError(
            f"Invalid pipeline options: {'; '.join(errors)}",
            context={"errors": errors},
            original_exception=e
        )


def _format_errors(error: PydanticValidationError):
    return [
        f"{'.'.join(str(part) for part in err['loc']) or 'value'}: {err['msg']}"
        for err in error.errors()
    ]
