# invoicing/utils/parsing.py
"""
Request value parsers.

Blank values come back as ``None``; malformed values raise
``ValidationError`` naming the offending field.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, TypeVar
from urllib.parse import urlparse

from invoicing.errors import ValidationError
from invoicing.utils.money import to_decimal

E = TypeVar("E", bound=enum.Enum)


def _blank(val: Any) -> bool:
    return val is None or (isinstance(val, str) and val.strip() == "")


def _fits_places(value: Decimal, places: int) -> bool:
    try:
        return value == value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    except InvalidOperation:
        # too many digits to represent at that scale
        return False


def parse_decimal(val: Any, field: str, *, required: bool = False, minimum: Decimal | None = None,
                  strictly_positive: bool = False, places: int | None = None) -> Decimal | None:
    if _blank(val):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(val, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        value = to_decimal(val)
    except ValueError:
        raise ValidationError(f"{field} must be a number") from None
    if not value.is_finite():
        raise ValidationError(f"{field} must be a number")
    # Values finer than the column scale are refused, never rounded on insert.
    if places is not None and not _fits_places(value, places):
        raise ValidationError(f"{field} must have at most {places} decimal places")
    if strictly_positive and value <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return value


def parse_int(val: Any, field: str, *, default: int | None = None, minimum: int | None = None) -> int | None:
    if _blank(val):
        return default
    try:
        value = int(val)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer") from None
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return value


def parse_date(val: Any, field: str, *, required: bool = False) -> date | None:
    if _blank(val):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    raw = str(val).strip()
    try:
        # Accept both YYYY-MM-DD and full ISO timestamps
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date") from None


def parse_enum(enum_cls: type[E], val: Any, field: str, *, required: bool = False) -> E | None:
    if _blank(val):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(val, enum_cls):
        return val
    try:
        return enum_cls(str(val).strip())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}") from None


def parse_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    if _blank(val):
        return False
    return str(val).strip().lower() in ("1", "true", "yes", "on")


def parse_str(val: Any, *, maxlen: int | None = None) -> str | None:
    if _blank(val):
        return None
    s = str(val).strip()
    return s[:maxlen] if maxlen else s


def parse_url(val: Any, field: str) -> str:
    if _blank(val):
        raise ValidationError(f"{field} is required")
    raw = str(val).strip()
    parsed = urlparse(raw)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"{field} must be a valid http(s) URL")
    return raw
