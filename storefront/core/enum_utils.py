"""
Helpers for VARCHAR-based status fields.

Status columns are String(50) holding UPPERCASE values; Python enums are
used only to validate input at the API boundary.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Type, TypeVar


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    >>> get_enum_value(OrderStatus.SHIPPED)
    'SHIPPED'
    >>> get_enum_value("SHIPPED")
    'SHIPPED'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def parse_enum(enum_class: Type[T], value: Any) -> Optional[T]:
    """Case-insensitive lookup of an enum member; None when the value is not a member."""
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(str(value).strip().upper())
    except ValueError:
        return None


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC value.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    database are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
