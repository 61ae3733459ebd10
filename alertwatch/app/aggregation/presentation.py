"""
Display hints the dashboard renders next to each event.

    time_ago(ts)             "12 minutes ago" / "3 hours ago" / "2 days ago"
    alert_type_color(tier)   warning → red, watch → amber, advisory → green
    disaster_icon(type)      Material icon name per disaster type
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from alertwatch.app.models import AlertType, DisasterType

_ALERT_COLORS = {
    AlertType.WARNING: "red",
    AlertType.WATCH: "amber",
    AlertType.ADVISORY: "green",
}

_DISASTER_ICONS = {
    DisasterType.EARTHQUAKE: "vibration",
    DisasterType.FLOOD: "water",
    DisasterType.STORM: "bolt",
    DisasterType.WILDFIRE: "local_fire_department",
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """
    Coarse relative time, floored to whole minutes / hours / days.

    >>> from datetime import timedelta
    >>> t = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)
    >>> time_ago(t - timedelta(minutes=90), now=t)
    '1 hour ago'
    """
    now = now or datetime.now(timezone.utc)
    minutes = max(0, int((now - timestamp).total_seconds() // 60))
    hours = minutes // 60
    days = hours // 24

    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(days, "day")


def alert_type_color(alert_type: AlertType) -> str:
    return _ALERT_COLORS.get(alert_type, "blue")


def disaster_icon(disaster_type: DisasterType) -> str:
    return _DISASTER_ICONS.get(disaster_type, "warning")
