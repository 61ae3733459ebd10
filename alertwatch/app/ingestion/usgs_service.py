"""
usgs_service.py — Earthquake events from the USGS GeoJSON summary feed.

Feed files are pre-built by USGS and refreshed every few minutes:

    {USGS_FEED_URL}/all_hour.geojson
    {USGS_FEED_URL}/all_day.geojson
    {USGS_FEED_URL}/all_week.geojson
    {USGS_FEED_URL}/all_month.geojson

Feature shape:

    {
        "type": "Feature",
        "id": "us7000m9g4",
        "properties": {
            "mag": 5.2, "place": "42 km NW of Tobelo, Indonesia",
            "time": 1708617600000, "url": "https://...", "tsunami": 0,
            "title": "M 5.2 - 42 km NW of Tobelo, Indonesia", ...
        },
        "geometry": {"type": "Point", "coordinates": [lon, lat, depth_km]}
    }

One feature becomes one DisasterEvent of type EARTHQUAKE. The alert tier
comes from the magnitude alone (see classification.severity); depth, the
detail URL and the tsunami flag travel in `data`.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

import httpx

from alertwatch.app.classification.severity import (
    DEFAULT_SEISMIC_THRESHOLDS,
    SeismicThresholds,
    classify_magnitude,
)
from alertwatch.app.core.config import settings
from alertwatch.app.core.errors import UpstreamFetchError
from alertwatch.app.ingestion.http import DEFAULT_HTTP_POLICY, HttpPolicy, fetch_json
from alertwatch.app.ingestion.parsing import as_mapping, from_epoch_ms, safe_float
from alertwatch.app.ingestion.time_range import (
    USGS_FEED_WINDOW,
    TimeRange,
    resolve_time_range,
)
from alertwatch.app.models import (
    DisasterData,
    DisasterEvent,
    DisasterType,
    Source,
    make_event_id,
)
from alertwatch.app.spatial.radius_utils import filter_by_radius

logger = logging.getLogger(__name__)


class SeismicSource:
    """
    Adapter for the USGS earthquake feed.

    Usage:
        async with httpx.AsyncClient() as client:
            quakes = await SeismicSource(client).fetch("7d")
    """

    source = Source.USGS

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        feed_url: Optional[str] = None,
        thresholds: SeismicThresholds = DEFAULT_SEISMIC_THRESHOLDS,
        policy: HttpPolicy = DEFAULT_HTTP_POLICY,
    ):
        self.client = client
        self.feed_url = (feed_url or settings.USGS_FEED_URL).rstrip("/")
        self.thresholds = thresholds
        self.policy = policy

    def feed_url_for(self, time_range: Union[str, TimeRange, None]) -> str:
        window = USGS_FEED_WINDOW[resolve_time_range(time_range)]
        return f"{self.feed_url}/all_{window}.geojson"

    async def fetch(
        self,
        time_range: Union[str, TimeRange, None] = TimeRange.DAY,
    ) -> List[DisasterEvent]:
        """
        Fetch and normalise every earthquake in the window.

        Raises UpstreamFetchError when the feed cannot be read or its body
        is not a GeoJSON FeatureCollection.
        """
        url = self.feed_url_for(time_range)
        payload = await fetch_json(
            self.client,
            self.source.value,
            url,
            headers={"Accept": "application/geo+json, application/json"},
            policy=self.policy,
        )

        features = payload.get("features") if isinstance(payload, dict) else None
        if not isinstance(features, list):
            raise UpstreamFetchError(self.source.value, "payload has no features array")

        events = self.parse_features(features)
        logger.info(
            "USGS: %d earthquakes (%s)", len(events), url.rsplit("/", 1)[-1],
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
        """
        Map one GeoJSON feature; None (logged) when it cannot be placed in time.
        """
        if not isinstance(feature, Mapping):
            return None
        try:
            props = as_mapping(feature.get("properties"))
            coords = as_mapping(feature.get("geometry")).get("coordinates") or []

            magnitude = safe_float(props.get("mag")) or 0.0
            longitude = safe_float(coords[0]) if len(coords) > 0 else None
            latitude = safe_float(coords[1]) if len(coords) > 1 else None
            depth = safe_float(coords[2]) if len(coords) > 2 else None
            timestamp = from_epoch_ms(props.get("time"))
        except (AttributeError, KeyError, TypeError) as exc:
            logger.warning("Failed to parse USGS feature: %s", exc)
            return None

        if timestamp is None:
            logger.warning("Skipping USGS feature %s without event time", feature.get("id"))
            return None

        native_id = str(feature.get("id") or "")
        event_id = (
            make_event_id(self.source, native_id)
            if native_id
            else make_event_id(self.source, latitude, longitude, int(timestamp.timestamp()))
        )

        return DisasterEvent(
            id=event_id,
            external_id=native_id,
            disaster_type=DisasterType.EARTHQUAKE,
            alert_type=classify_magnitude(magnitude, self.thresholds),
            title=f"Magnitude {magnitude:.1f} Earthquake",
            description=str(props.get("title") or ""),
            location=str(props.get("place") or "Unknown"),
            latitude=latitude,
            longitude=longitude,
            source=self.source,
            timestamp=timestamp,
            data=DisasterData(
                magnitude=magnitude,
                depth=depth,
                url=props.get("url"),
                tsunami=safe_float(props.get("tsunami")) == 1,
            ),
        )

    @staticmethod
    def filter_by_location(
        events: Sequence[DisasterEvent],
        latitude: float,
        longitude: float,
        radius_km: float = 100.0,
    ) -> List[DisasterEvent]:
        """Earthquakes within radius_km of a point; unplaceable ones dropped."""
        return filter_by_radius(events, latitude, longitude, radius_km)
