"""
GeoJSON geometry → single representative point.

Area-based alerts arrive with Polygon or MultiPolygon geometries but the
dashboard places one marker per event. The marker position is a coarse
centroid: the arithmetic mean of the vertices of one linear ring.

    Point         → the point itself
    Polygon       → mean of the first (outer) ring
    MultiPolygon  → mean of the first ring of the FIRST polygon only

The MultiPolygon rule ignores every polygon after the first, so an alert
spanning two separate counties is placed inside the first county. The
vertex mean is also not the true area centroid of a concave shape. Both
are accepted approximations for marker placement.

GeoJSON rings are closed (last vertex repeats the first); the repeated
vertex is averaged like any other, exactly as received.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, NamedTuple, Optional, Sequence

logger = logging.getLogger(__name__)


class Centroid(NamedTuple):
    latitude: float
    longitude: float


def _ring_mean(ring: Sequence[Sequence[float]]) -> Optional[Centroid]:
    if not ring:
        return None
    sum_lat = sum(float(vertex[1]) for vertex in ring)
    sum_lon = sum(float(vertex[0]) for vertex in ring)
    return Centroid(sum_lat / len(ring), sum_lon / len(ring))


def resolve_centroid(geometry: Optional[Mapping[str, Any]]) -> Optional[Centroid]:
    """
    Resolve a GeoJSON geometry to one (latitude, longitude) point.

    Returns None when the geometry is absent, of an unsupported type, or
    malformed; such events carry no coordinates.

    Examples
    --------
    >>> resolve_centroid({"type": "Point", "coordinates": [-97.5, 35.4]})
    Centroid(latitude=35.4, longitude=-97.5)
    >>> square = [[0, 0], [0, 1], [1, 1], [1, 0]]
    >>> resolve_centroid({"type": "MultiPolygon", "coordinates": [[square]]})
    Centroid(latitude=0.5, longitude=0.5)
    """
    if not geometry or not isinstance(geometry, Mapping):
        return None

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    try:
        if geom_type == "Point":
            point = Centroid(float(coords[1]), float(coords[0]))
        elif geom_type == "Polygon":
            point = _ring_mean(coords[0])
        elif geom_type == "MultiPolygon":
            point = _ring_mean(coords[0][0])
        else:
            logger.debug("Unsupported geometry type: %s", geom_type)
            return None
    except (IndexError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Malformed %s geometry: %s", geom_type, exc)
        return None

    if point is None or not (math.isfinite(point.latitude) and math.isfinite(point.longitude)):
        return None
    return point
