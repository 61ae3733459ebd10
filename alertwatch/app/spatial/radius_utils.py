"""
radius_utils.py — Great-circle distance and radius filtering for disaster events.

Provides:
    - Haversine distance calculation between two (lat, lon) points
    - Validated coordinate pairs for query centers
    - Order-preserving radius filtering of DisasterEvent lists
    - Human-readable distance formatting

All distances are in **kilometers**. Coordinates are in **decimal degrees**
(WGS84).

Mathematical Foundation — Haversine Formula
============================================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

Where φ is latitude and λ longitude in radians and R = 6,371 km. The
result is symmetric in its two points and exactly 0 for identical points.
Behaviour for NaN or out-of-range degrees is undefined; callers validate
coordinates first (see `Coordinate`).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

from alertwatch.app.models import DisasterEvent


EARTH_RADIUS_KM: float = 6_371.0


class CoordinateError(ValueError):
    """Out-of-range degrees; `field` is "latitude" or "longitude"."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class Coordinate:
    """A validated geographic point in decimal degrees (NaN is out of range)."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.latitude <= 90.0):
            raise CoordinateError(
                "latitude", f"Latitude must be in [-90, 90], got {self.latitude}"
            )
        if not (-180.0 <= self.longitude <= 180.0):
            raise CoordinateError(
                "longitude", f"Longitude must be in [-180, 180], got {self.longitude}"
            )


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in km between two lat/lon pairs.

    Examples
    --------
    >>> haversine_km(0.0, 0.0, 0.0, 0.0)
    0.0
    >>> round(haversine_km(0.0, 0.0, 0.0, 0.1), 2)
    11.12
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    # Float noise can push a fractionally above 1 for antipodal points
    a = min(1.0, a)
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def filter_by_radius(
    events: Sequence[DisasterEvent],
    latitude: float,
    longitude: float,
    radius_km: float,
) -> List[DisasterEvent]:
    """
    Keep the events within radius_km of (latitude, longitude).

    Relative order is preserved. Events without usable coordinates are
    dropped: they cannot be placed, so they cannot be inside any radius.
    """
    return [
        event for event in events
        if event.has_coordinates
        and haversine_km(latitude, longitude, event.latitude, event.longitude) <= radius_km
    ]


def format_distance(km: float) -> str:
    """
    Format a distance for display.

    >>> format_distance(0.45)
    '450 m'
    >>> format_distance(11.1195)
    '11.12 km'
    """
    if km < 1.0:
        return f"{int(round(km * 1000))} m"
    return f"{km:.2f} km"
