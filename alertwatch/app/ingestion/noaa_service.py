"""
noaa_service.py — Active weather alerts from the National Weather Service.

Endpoint: GET {NOAA_ALERTS_URL}[?area=XX]   (GeoJSON FeatureCollection)

The service rejects requests without an identifying User-Agent, so one is
always sent (NOAA_USER_AGENT).

Mapping rules
=============
1. PRE-FILTER  — keep only alerts whose `event` name matches the hazard
   lexicon (tornado, flood, hurricane, tropical/winter storm, blizzard,
   tsunami, fire / red flag ...). Everything else is dropped outright.
2. TYPE        — first lexicon keyword found in the event name.
3. TIER        — CAP `severity` keyword (Extreme/Severe → WARNING,
   Moderate → WATCH, otherwise ADVISORY).
4. POSITION    — Point as-is, Polygon / MultiPolygon via the vertex-mean
   centroid in spatial.geometry. Many alerts are zone-based and carry no
   geometry at all; those keep latitude/longitude = None and are only
   returned from queries without a radius.
5. TIME        — `effective` is the event time, `expires` the validity end.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from alertwatch.app.classification.disaster_type import match_hazard_event
from alertwatch.app.classification.severity import classify_cap_severity
from alertwatch.app.core.config import settings
from alertwatch.app.core.errors import UpstreamFetchError
from alertwatch.app.ingestion.http import DEFAULT_HTTP_POLICY, HttpPolicy, fetch_json
from alertwatch.app.ingestion.parsing import as_mapping, parse_iso
from alertwatch.app.models import (
    DisasterData,
    DisasterEvent,
    Source,
    make_event_id,
)
from alertwatch.app.spatial.geometry import resolve_centroid
from alertwatch.app.spatial.radius_utils import filter_by_radius

logger = logging.getLogger(__name__)


class WeatherAlertSource:
    """Adapter for the government weather-alert feed."""

    source = Source.NOAA

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        alerts_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        policy: HttpPolicy = DEFAULT_HTTP_POLICY,
    ):
        self.client = client
        self.alerts_url = alerts_url or settings.NOAA_ALERTS_URL
        self.user_agent = user_agent or settings.NOAA_USER_AGENT
        self.policy = policy

    async def fetch(self, area: Optional[str] = None) -> List[DisasterEvent]:
        """
        Fetch active alerts, optionally restricted to one area code
        (two-letter state / marine area, e.g. "OK").
        """
        params: Dict[str, str] = {"area": area} if area else {}
        payload = await fetch_json(
            self.client,
            self.source.value,
            self.alerts_url,
            params=params,
            headers={
                "Accept": "application/geo+json",
                "User-Agent": self.user_agent,
            },
            policy=self.policy,
        )

        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list):
            raise UpstreamFetchError(self.source.value, "payload has no features array")

        events = self.parse_features(features)
        logger.info(
            "NOAA: %d of %d alerts are recognised hazards%s",
            len(events), len(features), f" (area={area})" if area else "",
            extra={"source": self.source.value, "event_count": len(events)},
        )
        return events

    def parse_features(self, features: Sequence[Mapping[str, Any]]) -> List[DisasterEvent]:
        events: List[DisasterEvent] = []
        for feature in features:
            event = self.parse_feature(feature)
            if event is not None:
                events.append(event)
        return events

    def parse_feature(self, feature: Mapping[str, Any]) -> Optional[DisasterEvent]:
        """Map one alert; None for unrecognised hazards or unusable alerts."""
        if not isinstance(feature, Mapping):
            return None
        props = as_mapping(feature.get("properties"))
        event_name = props.get("event")

        disaster_type = match_hazard_event(event_name)
        if disaster_type is None:
            return None

        timestamp = parse_iso(props.get("effective")) or parse_iso(props.get("sent"))
        if timestamp is None:
            logger.warning("Skipping NOAA alert %s without effective time", feature.get("id"))
            return None

        centroid = resolve_centroid(feature.get("geometry"))
        native_id = str(props.get("id") or feature.get("id") or "")
        event_id = (
            make_event_id(self.source, native_id)
            if native_id
            else make_event_id(
                self.source,
                centroid.latitude if centroid else None,
                centroid.longitude if centroid else None,
                int(timestamp.timestamp()),
            )
        )

        return DisasterEvent(
            id=event_id,
            external_id=native_id,
            disaster_type=disaster_type,
            alert_type=classify_cap_severity(props.get("severity")),
            title=str(props.get("headline") or event_name),
            description=str(props.get("description") or ""),
            location=str(props.get("areaDesc") or ""),
            latitude=centroid.latitude if centroid else None,
            longitude=centroid.longitude if centroid else None,
            source=self.source,
            timestamp=timestamp,
            valid_until=parse_iso(props.get("expires")),
            data=DisasterData(
                extra={
                    "event": event_name,
                    "severity": props.get("severity"),
                    "urgency": props.get("urgency"),
                    "certainty": props.get("certainty"),
                },
            ),
        )

    @staticmethod
    def filter_by_location(
        events: Sequence[DisasterEvent],
        latitude: float,
        longitude: float,
        radius_km: float = 100.0,
    ) -> List[DisasterEvent]:
        """Alerts whose centroid is within radius_km; unplaced alerts dropped."""
        return filter_by_radius(events, latitude, longitude, radius_km)
