"""
Date parsing helpers for request payloads.
"""
from datetime import date, datetime
from typing import Optional

from .exceptions import ValidationError


def parse_date(value, field: str = 'date') -> Optional[date]:
    """Parse an ISO date (YYYY-MM-DD). Dates and None pass through."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", field)


def parse_time(value, field: str) -> Optional[str]:
    """Validate an HH:MM time string."""
    if value is None:
        return None
    try:
        datetime.strptime(value, '%H:%M')
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM", field)
    return value
