"""
Utility functions for the billing core.
Coercion helpers shared by the tax engine, schemas and services; no Django imports.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def read_field(source: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an object (model instance, dataclass)."""
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a finite Decimal, or None when the value is missing or unusable."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None
