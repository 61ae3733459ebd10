"""
Pydantic schemas for the disaster API.

Separated from the route handlers so they are reusable across the
codebase (tests, background refreshers). Fields are snake_case in Python
and camelCase on the wire, the shape the dashboard consumes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from alertwatch.app.aggregation.presentation import (
    alert_type_color,
    disaster_icon,
    time_ago,
)
from alertwatch.app.models import AlertType, DisasterEvent, DisasterType, Source
from alertwatch.app.spatial.radius_utils import format_distance, haversine_km


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class DisplayHints(_CamelModel):
    """Ready-to-render strings for the event card."""
    time_ago: str = Field(..., examples=["3 hours ago"])
    color: str = Field(..., examples=["red"])
    icon: str = Field(..., examples=["vibration"])
    distance: Optional[str] = Field(
        default=None,
        description="Distance from the query point, when one was given",
        examples=["11.12 km"],
    )


class DisasterOut(_CamelModel):
    """One normalised disaster event."""
    id: str = Field(..., examples=["usgs-us7000m9g4"])
    external_id: str = ""
    disaster_type: DisasterType
    alert_type: AlertType
    title: str
    description: str
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: Source
    timestamp: datetime
    valid_until: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    display: Optional[DisplayHints] = None

    @classmethod
    def from_event(
        cls,
        event: DisasterEvent,
        *,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> "DisasterOut":
        distance = None
        if latitude is not None and longitude is not None and event.has_coordinates:
            distance = format_distance(
                haversine_km(latitude, longitude, event.latitude, event.longitude)
            )

        return cls.model_validate({
            **event.to_dict(),
            "display": {
                "timeAgo": time_ago(event.timestamp),
                "color": alert_type_color(event.alert_type),
                "icon": disaster_icon(event.disaster_type),
                "distance": distance,
            },
        })


class StatsOut(_CamelModel):
    warnings: int = Field(..., ge=0)
    watches: int = Field(..., ge=0)
    advisories: int = Field(..., ge=0)
    affected_areas: int = Field(..., ge=0, description="Distinct location strings")


class LastUpdatedOut(_CamelModel):
    last_updated: datetime


class NearbyDisastersOut(_CamelModel):
    """Response for GET /api/disasters/nearby."""
    latitude: float
    longitude: float
    radius_km: float
    total: int
    disasters: List[DisasterOut]
