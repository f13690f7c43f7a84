"""Base models and value coercions shared across domains."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any


@dataclass
class Address:
    """Postal address of a borrower."""

    street: str
    city: str
    state: str
    postal_code: str
    country: str = "US"


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a stored or user-supplied amount to ``Decimal``.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion. ``None`` and empty strings map to ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def to_date(value: Any) -> date | None:
    """Parse an ISO-8601 date or datetime string; pass dates through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def to_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))
