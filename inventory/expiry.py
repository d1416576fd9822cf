"""Expiry classification for batches.

``classify`` decides the alert status of a batch; ``is_within_look_ahead_window``
decides whether a batch belongs in a report at all. The two are independent:
a batch can be ``warning`` yet fall outside a 7-day report while appearing in a
30-day one.
"""

import datetime as dt
from typing import Optional, Union

from common.choices import ExpiryStatus
from django.utils.dateparse import parse_date, parse_datetime

DEFAULT_EXPIRING_SOON_DAYS = 7

DateLike = Union[dt.date, dt.datetime, str]


def to_date(value: Optional[DateLike]) -> Optional[dt.date]:
    """Normalize a date, datetime or ISO string to a date; ``None`` when unparseable."""

    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_date(value)
            if parsed is None:
                parsed_dt = parse_datetime(value)
                parsed = parsed_dt.date() if parsed_dt else None
        except ValueError:
            return None
        return parsed
    return None


def days_until_expiry(expiry_date: DateLike, today: DateLike) -> Optional[int]:
    expiry = to_date(expiry_date)
    ref = to_date(today)
    if expiry is None or ref is None:
        return None
    return round((expiry - ref) / dt.timedelta(days=1))


def classify(
    expiry_date: DateLike, today: DateLike, expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS
) -> Optional[ExpiryStatus]:
    """Return the alert status for an expiry date, or ``None`` for malformed input.

    A batch expiring today is not expired yet (it is expiring soon).
    """

    expiry = to_date(expiry_date)
    ref = to_date(today)
    if expiry is None or ref is None:
        return None
    if expiry < ref:
        return ExpiryStatus.EXPIRED
    if days_until_expiry(expiry, ref) <= expiring_soon_days:
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.WARNING


def is_within_look_ahead_window(days: int, look_ahead_days: int, status: Optional[str] = None) -> bool:
    if status == ExpiryStatus.EXPIRED or days < 0:
        return True
    return days <= look_ahead_days
