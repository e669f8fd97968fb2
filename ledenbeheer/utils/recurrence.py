"""
Occurrence expansion for recurring activities.

Weekly and biweekly series step by a fixed number of days. Monthly series
step by calendar months using dateutil's relativedelta, which clamps to the
last day of a short month. Every occurrence is offset from the series start,
not from the previous occurrence, so a series starting on the 31st returns
to the 31st whenever the month has one.

    >>> expand_occurrences(date(2024, 1, 31), 'monthly', date(2024, 4, 30))
    [datetime.date(2024, 2, 29), datetime.date(2024, 3, 31), datetime.date(2024, 4, 30)]
"""
from datetime import date, timedelta
from typing import List

from dateutil.relativedelta import relativedelta

from .exceptions import ValidationError

WEEKLY = 'weekly'
BIWEEKLY = 'biweekly'
MONTHLY = 'monthly'

RECURRENCE_RULES = (WEEKLY, BIWEEKLY, MONTHLY)


def advance(start: date, rule: str, steps: int) -> date:
    """Return the date `steps` recurrence periods after `start`."""
    if rule == WEEKLY:
        return start + timedelta(days=7 * steps)
    if rule == BIWEEKLY:
        return start + timedelta(days=14 * steps)
    if rule == MONTHLY:
        return start + relativedelta(months=steps)
    raise ValidationError(f"Unknown recurrence rule '{rule}'", 'recurrence_rule')


def expand_occurrences(start: date, rule: str, end: date) -> List[date]:
    """
    Dates of every occurrence after `start`, up to and including `end`.

    The start date itself is not included: it belongs to the series head.
    """
    occurrences = []
    steps = 1
    current = advance(start, rule, steps)
    while current <= end:
        occurrences.append(current)
        steps += 1
        current = advance(start, rule, steps)
    return occurrences
