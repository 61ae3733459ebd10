"""
Dashboard summary counts over an event list.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable

from alertwatch.app.models import AlertType, DisasterEvent


def get_stats(events: Iterable[DisasterEvent]) -> Dict[str, int]:
    """
    Count events per alert tier plus the number of distinct locations.

    Areas are compared as plain strings: "Tulsa, OK" and "Tulsa, Oklahoma"
    count as two areas even though they are the same place.

    >>> get_stats([])
    {'warnings': 0, 'watches': 0, 'advisories': 0, 'affectedAreas': 0}
    """
    tiers: Counter = Counter()
    areas = set()
    for event in events:
        tiers[event.alert_type] += 1
        areas.add(event.location)

    return {
        "warnings": tiers[AlertType.WARNING],
        "watches": tiers[AlertType.WATCH],
        "advisories": tiers[AlertType.ADVISORY],
        "affectedAreas": len(areas),
    }
