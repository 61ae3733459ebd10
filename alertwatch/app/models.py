"""
Unified disaster record shared by every feed adapter.

Each upstream feed has its own payload shape; adapters translate them into
`DisasterEvent`, the single immutable record the aggregator filters and the
dashboard renders. Records are frozen: filtering builds new lists, it never
edits what an adapter produced.

Serialisation (`to_dict`) emits the camelCase JSON the dashboard consumes:

    {
        "id": "usgs-us7000abcd",
        "disasterType": "earthquake",
        "alertType": "warning",
        "title": "Magnitude 5.4 Earthquake",
        "latitude": 38.2, "longitude": 142.1,
        "source": "USGS",
        "timestamp": "2026-02-22T06:14:00+00:00",
        "validUntil": null,
        "data": {"magnitude": 5.4, "depth": 12.0, "tsunami": false, ...}
    }
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional


class DisasterType(str, Enum):
    EARTHQUAKE = "earthquake"
    FLOOD      = "flood"
    STORM      = "storm"
    WILDFIRE   = "wildfire"


class AlertType(str, Enum):
    """Severity tier, ordered WARNING > WATCH > ADVISORY."""
    WARNING  = "warning"
    WATCH    = "watch"
    ADVISORY = "advisory"

    @property
    def rank(self) -> int:
        return _ALERT_RANK[self]

    @classmethod
    def most_severe(cls, candidates: Iterable["AlertType"]) -> "AlertType":
        """Highest tier among candidates; ADVISORY when there are none."""
        return max(candidates, key=lambda a: a.rank, default=cls.ADVISORY)


_ALERT_RANK = {
    AlertType.ADVISORY: 1,
    AlertType.WATCH: 2,
    AlertType.WARNING: 3,
}


class Source(str, Enum):
    """Upstream feed names, kept on every record for provenance."""
    USGS           = "USGS"
    NOAA           = "NOAA"
    OPENWEATHERMAP = "OpenWeatherMap"

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIX[self]


_ID_PREFIX = {
    Source.USGS: "usgs",
    Source.NOAA: "noaa",
    Source.OPENWEATHERMAP: "owm",
}


def make_event_id(source: Source, *parts: Any) -> str:
    """
    Deterministic record id from the source and its native identifier.

    Feeds without a stable identifier pass coordinates + timestamp instead,
    which keeps the id stable across refetches of the same observation.

    >>> make_event_id(Source.USGS, "us7000abcd")
    'usgs-us7000abcd'
    >>> make_event_id(Source.OPENWEATHERMAP, "alert", 40.7, -74.0, 1708617600)
    'owm-alert-40.7--74.0-1708617600'
    """
    return "-".join([source.id_prefix, *(str(p) for p in parts)])


@dataclass(frozen=True)
class DisasterData:
    """
    Source-specific auxiliary attributes.

    Known numeric attributes have their own optional fields; anything else a
    feed wants to carry goes into `extra`. Nothing in filtering reads these.
    """
    magnitude: Optional[float] = None
    depth: Optional[float] = None          # km
    url: Optional[str] = None
    tsunami: Optional[bool] = None
    wind_speed: Optional[float] = None     # m/s
    rainfall: Optional[float] = None       # mm
    temperature: Optional[float] = None    # °C
    pressure: Optional[float] = None       # hPa
    humidity: Optional[float] = None       # %
    weather_id: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze a private copy so callers cannot mutate it afterwards
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def to_dict(self) -> Dict[str, Any]:
        known = {
            "magnitude": self.magnitude,
            "depth": self.depth,
            "url": self.url,
            "tsunami": self.tsunami,
            "windSpeed": self.wind_speed,
            "rainfall": self.rainfall,
            "temperature": self.temperature,
            "pressure": self.pressure,
            "humidity": self.humidity,
            "weatherId": self.weather_id,
        }
        out: Dict[str, Any] = {k: v for k, v in self.extra.items() if k not in known}
        out.update({k: v for k, v in known.items() if v is not None})
        return out


@dataclass(frozen=True)
class DisasterEvent:
    """One normalised disaster signal from one feed."""
    id: str
    disaster_type: DisasterType
    alert_type: AlertType
    title: str
    description: str
    location: str
    latitude: Optional[float]
    longitude: Optional[float]
    source: Source
    timestamp: datetime                    # onset / effective time
    valid_until: Optional[datetime] = None  # absent for instantaneous events
    external_id: str = ""
    data: DisasterData = field(default_factory=DisasterData)

    @property
    def has_coordinates(self) -> bool:
        """Both coordinates present and finite."""
        return (
            self.latitude is not None
            and self.longitude is not None
            and math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "externalId": self.external_id,
            "disasterType": self.disaster_type.value,
            "alertType": self.alert_type.value,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
            "validUntil": self.valid_until.isoformat() if self.valid_until else None,
            "data": self.data.to_dict(),
        }
