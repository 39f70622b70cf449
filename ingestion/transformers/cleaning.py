"""
Field-level cleaning and permissive parsing.

Every parser returns None for values it cannot interpret; none of them raise.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple
import math
import re

import pandas as pd

NULL_TOKENS = {"", "none", "null", "nan", "nat"}
TRUE_TOKENS = {"true", "1", "yes"}

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NON_DIGITS = re.compile(r"\D")
MAX_PHONE_DIGITS = 20
CENTS = Decimal("0.01")


def clean_value(value: Any) -> Any:
    """Trim strings and map empty or null-like values to None"""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in NULL_TOKENS:
            return None
    return value


def clean_text(value: Any) -> Optional[str]:
    value = clean_value(value)
    if value is None:
        return None
    return str(value)


def parse_int(value: Any) -> Optional[int]:
    """Parse integers, accepting "10.0"-style strings; non-integral values are None"""
    value = clean_value(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).replace(",", ""))
    except (ValueError, TypeError):
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse money-like values ("$1,234.5" -> Decimal("1234.50"))"""
    value = clean_value(value)
    if value is None or isinstance(value, bool):
        return None
    text = str(value).replace("$", "").replace(",", "").strip()
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number.quantize(CENTS)


def parse_bool(value: Any) -> bool:
    """Case-insensitive membership in {"true", "1", "yes"}; anything else is False"""
    if isinstance(value, bool):
        return value
    value = clean_value(value)
    if value is None:
        return False
    return str(value).lower() in TRUE_TOKENS


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Permissive datetime parsing.

    Timezone-aware values are converted to UTC and made naive, matching the
    ``TIMESTAMP`` columns of the destination schema.
    """
    if isinstance(value, datetime):
        return _naive_utc(pd.Timestamp(value))
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    value = clean_value(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            stamp = pd.to_datetime(value, unit="s", errors="coerce")
        else:
            stamp = pd.to_datetime(str(value), errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if stamp is None or pd.isna(stamp):
        return None
    return _naive_utc(stamp)


def parse_date(value: Any) -> Optional[date]:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def clean_email(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Lowercase and validate an email address.

    Returns:
        (email or None, warning or None). An invalid address is dropped with
        a warning; it never fails the row.
    """
    value = clean_text(value)
    if value is None:
        return None, None
    email = value.lower()
    if not EMAIL_PATTERN.match(email):
        return None, f"invalid email '{value}' discarded"
    return email, None


def clean_phone(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """Strip everything but digits; too many digits drops the number with a warning"""
    value = clean_text(value)
    if value is None:
        return None, None
    digits = NON_DIGITS.sub("", value)
    if not digits:
        return None, f"phone number '{value}' has no digits"
    if len(digits) > MAX_PHONE_DIGITS:
        return None, f"phone number '{value}' has more than {MAX_PHONE_DIGITS} digits"
    return digits, None


def normalize_key(value: str) -> str:
    return re.sub(r"[\s\-]+", "_", value.strip().lower())


def normalize_enum(value: Any, lookup: Dict[str, str], default: str) -> Optional[str]:
    """
    Map a free-form value through a lookup table.

    None stays None; unrecognized values map to ``default`` instead of failing.
    """
    value = clean_text(value)
    if value is None:
        return None
    return lookup.get(normalize_key(value), default)


def _naive_utc(stamp: pd.Timestamp) -> datetime:
    if stamp.tzinfo is not None:
        stamp = stamp.tz_convert("UTC").tz_localize(None)
    return stamp.to_pydatetime()
