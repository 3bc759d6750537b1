"""Timezone utilities for portfolio timestamps."""

from datetime import datetime
from typing import Optional

import pytz
from dateutil import parser as date_parser

from folio.config.settings import get_settings


def get_timezone() -> pytz.BaseTzInfo:
    """Return the configured local timezone."""
    return pytz.timezone(get_settings().timezone)


def now_local() -> datetime:
    """Return current time in the configured timezone."""
    return datetime.now(get_timezone())


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the configured timezone."""
    tz = get_timezone()
    if dt.tzinfo is None:
        # Assume naive datetime is already local
        return tz.localize(dt)
    return dt.astimezone(tz)


def parse_datetime_local(value: str, default_tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Parse a datetime string and return it in the configured timezone.

    If no timezone is provided in the string, assumes the configured one.
    """
    dt = date_parser.parse(value)
    if dt.tzinfo is None:
        tz = default_tz or get_timezone()
        dt = tz.localize(dt)
    return to_local(dt)
