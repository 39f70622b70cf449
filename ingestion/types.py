"""
In-pipeline record types.

These live only for the duration of one run: extractors produce RawRecords,
the transformer turns each into exactly one TransformOutcome.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from schemas.records import ValidatedRecord


@dataclass(frozen=True)
class RawRecord:
    """Untyped source row plus its 1-based ordinal in the source"""
    source_row_index: int
    data: Dict[str, Any]


@dataclass(frozen=True)
class TransformSuccess:
    row_index: int
    record: ValidatedRecord
    warnings: List[str] = field(default_factory=list)

    ok = True


@dataclass(frozen=True)
class TransformFailure:
    row_index: int
    error_message: str
    errors: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    ok = False


TransformOutcome = Union[TransformSuccess, TransformFailure]
