"""
User-facing time-range tokens → canonical feed windows.

    1h, hour                 → hour
    24h, 1d, 1day            → 1day
    7d, 7days, week          → 7days
    30d, 30days, month       → 30days
    anything else / missing  → 1day

Only the seismic feed varies its endpoint by window; the other feeds
always return what is currently active and ignore the resolved value.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Union


class TimeRange(str, Enum):
    HOUR  = "hour"
    DAY   = "1day"
    WEEK  = "7days"
    MONTH = "30days"


DEFAULT_TIME_RANGE = TimeRange.DAY

_TOKENS: Mapping[str, TimeRange] = {
    "1h": TimeRange.HOUR,
    "hour": TimeRange.HOUR,
    "24h": TimeRange.DAY,
    "1d": TimeRange.DAY,
    "1day": TimeRange.DAY,
    "7d": TimeRange.WEEK,
    "7days": TimeRange.WEEK,
    "week": TimeRange.WEEK,
    "30d": TimeRange.MONTH,
    "30days": TimeRange.MONTH,
    "month": TimeRange.MONTH,
}

# Suffix of the USGS summary feed file for each window (all_<suffix>.geojson)
USGS_FEED_WINDOW: Mapping[TimeRange, str] = {
    TimeRange.HOUR: "hour",
    TimeRange.DAY: "day",
    TimeRange.WEEK: "week",
    TimeRange.MONTH: "month",
}


def resolve_time_range(token: Union[str, TimeRange, None]) -> TimeRange:
    """
    >>> resolve_time_range("week")
    <TimeRange.WEEK: '7days'>
    >>> resolve_time_range("fortnight")
    <TimeRange.DAY: '1day'>
    """
    if isinstance(token, TimeRange):
        return token
    if not token:
        return DEFAULT_TIME_RANGE
    return _TOKENS.get(token.strip().lower(), DEFAULT_TIME_RANGE)
