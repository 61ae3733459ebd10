"""
FastAPI routes: /api/disasters — unified disaster feed for the dashboard.

Every route validates its filter BEFORE any upstream feed is called and
hands the aggregator a DisasterFilter. When some feeds failed but the
call still produced a result (partial failure mode), the response is 200
and carries an `X-Failed-Sources` header naming the missing feeds.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import FrozenSet, List, Optional, Type

from fastapi import APIRouter, Depends, Query, Response

from alertwatch.app.aggregation.aggregator import (
    AggregationResult,
    DisasterAggregator,
    DisasterFilter,
)
from alertwatch.app.api.dependencies import get_aggregator
from alertwatch.app.api.schemas import (
    DisasterOut,
    LastUpdatedOut,
    NearbyDisastersOut,
    StatsOut,
)
from alertwatch.app.core.config import settings
from alertwatch.app.core.errors import ValidationError
from alertwatch.app.models import AlertType, DisasterType
from alertwatch.app.spatial.radius_utils import Coordinate, CoordinateError

router = APIRouter(prefix="/api/disasters", tags=["disasters"])

_QUERY_FIELD = {"latitude": "lat", "longitude": "lon"}


# ---------------------------------------------------------------------------
# Query parsing
# ---------------------------------------------------------------------------

def _parse_enum_list(raw: Optional[str], enum_cls: Type[Enum], field: str) -> FrozenSet:
    """'storm,flood' → {STORM, FLOOD}; unknown values are rejected."""
    if not raw:
        return frozenset()
    values = set()
    for token in raw.split(","):
        token = token.strip().lower()
        if not token:
            continue
        try:
            values.add(enum_cls(token))
        except ValueError:
            raise ValidationError(
                f"Unknown {field} value '{token}'",
                field=field,
                allowed=[member.value for member in enum_cls],
            ) from None
    return frozenset(values)


def _check_center(lat: Optional[float], lon: Optional[float]) -> None:
    if (lat is None) != (lon is None):
        raise ValidationError("lat and lon must be given together", field="lat" if lat is None else "lon")
    if lat is None:
        return
    try:
        Coordinate(lat, lon)
    except CoordinateError as exc:
        raise ValidationError(str(exc), field=_QUERY_FIELD[exc.field]) from None


def _check_radius(radius: Optional[float]) -> None:
    if radius is not None and not (radius > 0 and math.isfinite(radius)):
        raise ValidationError(f"Radius must be a positive number of km, got {radius}", field="radius")


def _build_filter(
    types: Optional[str],
    alert_types: Optional[str],
    time_range: Optional[str],
    lat: Optional[float],
    lon: Optional[float],
    radius: Optional[float],
) -> DisasterFilter:
    _check_center(lat, lon)
    _check_radius(radius)
    if radius is not None and lat is None:
        raise ValidationError("radius requires lat and lon", field="radius")

    return DisasterFilter(
        types=_parse_enum_list(types, DisasterType, "types"),
        alert_types=_parse_enum_list(alert_types, AlertType, "alertTypes"),
        time_range=time_range,
        latitude=lat,
        longitude=lon,
        radius_km=(radius or settings.DEFAULT_RADIUS_KM) if lat is not None else None,
    )


def _mark_degraded(response: Response, result: AggregationResult) -> None:
    if result.degraded:
        response.headers["X-Failed-Sources"] = ",".join(sorted(result.failed_sources))


# Shared query parameter declarations
_TYPES = Query(None, description="Comma-separated: earthquake,flood,storm,wildfire")
_ALERT_TYPES = Query(None, alias="alertTypes", description="Comma-separated: warning,watch,advisory")
_TIME_RANGE = Query(None, alias="timeRange", description="1h | 24h | 7d | 30d (default 24h)")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=List[DisasterOut],
    summary="All current disasters",
    description=(
        "Earthquakes, government weather alerts and (when lat/lon are given) "
        "severe local weather, merged and filtered. With lat/lon the list is "
        "restricted to `radius` km (default 100)."
    ),
)
async def list_disasters(
    response: Response,
    types: Optional[str] = _TYPES,
    alert_types: Optional[str] = _ALERT_TYPES,
    time_range: Optional[str] = _TIME_RANGE,
    lat: Optional[float] = Query(None),
    lon: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, description="Radius in km"),
    aggregator: DisasterAggregator = Depends(get_aggregator),
):
    query = _build_filter(types, alert_types, time_range, lat, lon, radius)
    result = await aggregator.collect(query)
    _mark_degraded(response, result)
    return [DisasterOut.from_event(e, latitude=lat, longitude=lon) for e in result.events]


@router.get("/stats", response_model=StatsOut, summary="Counts per alert tier")
async def disaster_stats(
    response: Response,
    types: Optional[str] = _TYPES,
    alert_types: Optional[str] = _ALERT_TYPES,
    time_range: Optional[str] = _TIME_RANGE,
    lat: Optional[float] = Query(None),
    lon: Optional[float] = Query(None),
    radius: Optional[float] = Query(None),
    aggregator: DisasterAggregator = Depends(get_aggregator),
):
    query = _build_filter(types, alert_types, time_range, lat, lon, radius)
    result = await aggregator.collect(query)
    _mark_degraded(response, result)
    return aggregator.get_stats(result.events)


@router.get(
    "/nearby",
    response_model=NearbyDisastersOut,
    summary="Disasters around a location",
    description=(
        "Location-first lookup: earthquakes and alerts are cut to the radius "
        "per feed, local severe weather for the point is always included."
    ),
)
async def nearby_disasters(
    response: Response,
    lat: float = Query(..., description="Latitude in decimal degrees"),
    lon: float = Query(..., description="Longitude in decimal degrees"),
    radius: Optional[float] = Query(None, description="Radius in km (default 100)"),
    types: Optional[str] = _TYPES,
    alert_types: Optional[str] = _ALERT_TYPES,
    time_range: Optional[str] = _TIME_RANGE,
    aggregator: DisasterAggregator = Depends(get_aggregator),
):
    query = _build_filter(types, alert_types, time_range, lat, lon, radius)
    result = await aggregator.collect_nearby(lat, lon, query.radius_km, query)
    _mark_degraded(response, result)
    return NearbyDisastersOut(
        latitude=lat,
        longitude=lon,
        radius_km=query.radius_km,
        total=len(result.events),
        disasters=[DisasterOut.from_event(e, latitude=lat, longitude=lon) for e in result.events],
    )


@router.get("/lastUpdated", response_model=LastUpdatedOut, summary="Time of the last aggregation")
async def last_updated(aggregator: DisasterAggregator = Depends(get_aggregator)):
    return LastUpdatedOut(last_updated=aggregator.last_updated())


@router.get("/{event_id}", response_model=DisasterOut, summary="One disaster by id")
async def get_disaster(
    event_id: str,
    aggregator: DisasterAggregator = Depends(get_aggregator),
):
    event = await aggregator.find_by_id(event_id)
    return DisasterOut.from_event(event)
