"""
openweather_service.py — Severe-weather events derived from OpenWeatherMap.

Unlike the two other feeds, OpenWeatherMap reports weather, not disasters.
Events are DERIVED from observations, keyed by one (lat, lon) point.

Two read paths
==============
fetch_current(lat, lon)              GET {OWM_BASE_URL}/weather
    Current observation. If any reported condition code is in the severe
    set (thunderstorm 200–232, extreme rain, heavy snow, tornado) exactly
    one event is emitted; otherwise none. Tier from wind speed and 3h
    rainfall (classification.severity.classify_weather_conditions).

fetch_forecast_with_alerts(lat, lon) GET {OWM_BASE_URL}/onecall
    1. Every entry of the native `alerts` array becomes an event, typed
       and tiered from the wording of its event name.
    2. The current block is analysed like fetch_current, then the next 12
       hourly forecast slots are scanned: heavy hourly rain anywhere in
       that window raises the tier to at least WATCH.
    Alert events come first, then the condition event. They describe the
    same place and are intentionally not merged.

Missing API key
===============
Not an error: both paths log a warning and return [] so the rest of the
aggregation carries on. Network / HTTP / payload failures do raise
UpstreamFetchError like every other feed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from alertwatch.app.classification.disaster_type import (
    infer_from_alert_name,
    infer_from_condition_code,
    is_severe_condition_code,
)
from alertwatch.app.classification.severity import (
    DEFAULT_WEATHER_THRESHOLDS,
    WeatherThresholds,
    classify_event_name,
    classify_weather_conditions,
    escalate,
    forecast_expects_heavy_rain,
)
from alertwatch.app.core.config import settings
from alertwatch.app.core.errors import ConfigurationGap, UpstreamFetchError
from alertwatch.app.ingestion.http import DEFAULT_HTTP_POLICY, HttpPolicy, fetch_json
from alertwatch.app.ingestion.parsing import as_mapping, from_epoch_s, safe_float
from alertwatch.app.models import (
    AlertType,
    DisasterData,
    DisasterEvent,
    Source,
    make_event_id,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _first_severe_condition(conditions: Any) -> Optional[Mapping[str, Any]]:
    """First entry of a `weather` array whose code is in the severe set."""
    if not isinstance(conditions, list):
        return None
    for condition in conditions:
        code = condition.get("id") if isinstance(condition, Mapping) else None
        if isinstance(code, int) and is_severe_condition_code(code):
            return condition
    return None


def _as_tags(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(tag) for tag in value)


def _timezone_location(tz_name: Any) -> str:
    """
    Human label from an IANA zone name.

    >>> _timezone_location("America/New_York")
    'America, New York'
    """
    if not tz_name or not isinstance(tz_name, str):
        return "Unknown"
    return tz_name.replace("_", " ", 1).replace("/", ", ", 1)


class WeatherConditionSource:
    """Adapter deriving severe-weather events from OpenWeatherMap."""

    source = Source.OPENWEATHERMAP

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: Any = _UNSET,
        base_url: Optional[str] = None,
        thresholds: WeatherThresholds = DEFAULT_WEATHER_THRESHOLDS,
        policy: HttpPolicy = DEFAULT_HTTP_POLICY,
    ):
        self.client = client
        self.api_key: Optional[str] = (
            settings.OPENWEATHERMAP_API_KEY if api_key is _UNSET else api_key
        )
        self.base_url = (base_url or settings.OWM_BASE_URL).rstrip("/")
        self.thresholds = thresholds
        self.policy = policy

    # ── Public fetch paths ──

    async def fetch_current(self, latitude: float, longitude: float) -> List[DisasterEvent]:
        try:
            payload = await self._get("weather", latitude, longitude)
        except ConfigurationGap as gap:
            logger.warning("%s — returning no events", gap, extra={"source": self.source.value})
            return []

        events = self.analyze_current(payload)
        logger.info(
            "OpenWeatherMap current: %d severe-weather events at (%.4f, %.4f)",
            len(events), latitude, longitude,
            extra={"source": self.source.value, "event_count": len(events)},
        )
        return events

    async def fetch_forecast_with_alerts(
        self,
        latitude: float,
        longitude: float,
    ) -> List[DisasterEvent]:
        try:
            payload = await self._get(
                "onecall", latitude, longitude, exclude="minutely",
            )
        except ConfigurationGap as gap:
            logger.warning("%s — returning no events", gap, extra={"source": self.source.value})
            return []

        events = self.analyze_alerts(payload) + self.analyze_forecast(payload)
        logger.info(
            "OpenWeatherMap one-call: %d events at (%.4f, %.4f)",
            len(events), latitude, longitude,
            extra={"source": self.source.value, "event_count": len(events)},
        )
        return events

    async def _get(
        self,
        endpoint: str,
        latitude: float,
        longitude: float,
        **extra_params: str,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationGap(self.source.value, "OPENWEATHERMAP_API_KEY")

        payload = await fetch_json(
            self.client,
            self.source.value,
            f"{self.base_url}/{endpoint}",
            params={
                "lat": latitude,
                "lon": longitude,
                "appid": self.api_key,
                "units": "metric",
                **extra_params,
            },
            policy=self.policy,
        )
        if not isinstance(payload, dict):
            raise UpstreamFetchError(self.source.value, f"{endpoint} payload is not an object")
        return payload

    # ── Payload analysis ──

    def analyze_current(self, data: Mapping[str, Any]) -> List[DisasterEvent]:
        """Zero or one event from a /weather observation."""
        condition = _first_severe_condition(data.get("weather"))
        if condition is None:
            return []

        observed_at = from_epoch_s(data.get("dt"))
        if observed_at is None:
            raise UpstreamFetchError(self.source.value, "weather payload has no dt")

        wind = as_mapping(data.get("wind"))
        rain = as_mapping(data.get("rain"))
        main = as_mapping(data.get("main"))
        coord = as_mapping(data.get("coord"))
        sys_info = as_mapping(data.get("sys"))
        wind_speed = safe_float(wind.get("speed"))

        place = data.get("name") or "Unknown"
        country = sys_info.get("country")

        return [DisasterEvent(
            id=make_event_id(self.source, "current", data.get("id"), data.get("dt")),
            external_id=str(data.get("id") or ""),
            disaster_type=infer_from_condition_code(condition["id"]),
            alert_type=classify_weather_conditions(
                wind_speed, safe_float(rain.get("3h")), self.thresholds,
            ),
            title=f"Severe Weather: {condition.get('main', 'Unknown')}",
            description=(
                f"Severe weather conditions: {condition.get('description', '')} "
                f"with wind speed of {wind_speed} m/s."
            ),
            location=f"{place}, {country}" if country else str(place),
            latitude=safe_float(coord.get("lat")),
            longitude=safe_float(coord.get("lon")),
            source=self.source,
            timestamp=observed_at,
            data=DisasterData(
                temperature=safe_float(main.get("temp")),
                wind_speed=wind_speed,
                rainfall=safe_float(rain.get("1h") or rain.get("3h") or 0.0),
                pressure=safe_float(main.get("pressure")),
                humidity=safe_float(main.get("humidity")),
                weather_id=condition["id"],
            ),
        )]

    def analyze_alerts(self, data: Mapping[str, Any]) -> List[DisasterEvent]:
        """One event per entry of the one-call `alerts` array."""
        alerts = data.get("alerts")
        if not isinstance(alerts, list):
            return []
        lat = safe_float(data.get("lat"))
        lon = safe_float(data.get("lon"))
        location = _timezone_location(data.get("timezone"))

        events: List[DisasterEvent] = []
        for alert in alerts:
            if not isinstance(alert, Mapping):
                continue
            starts = from_epoch_s(alert.get("start"))
            if starts is None:
                logger.warning("Skipping OpenWeatherMap alert without start time")
                continue
            event_name = str(alert.get("event") or "Weather Alert")
            event_id = make_event_id(self.source, "alert", lat, lon, alert.get("start"))

            events.append(DisasterEvent(
                id=event_id,
                external_id=event_id,
                disaster_type=infer_from_alert_name(event_name),
                alert_type=classify_event_name(event_name),
                title=event_name,
                description=str(alert.get("description") or ""),
                location=location,
                latitude=lat,
                longitude=lon,
                source=self.source,
                timestamp=starts,
                valid_until=from_epoch_s(alert.get("end")),
                data=DisasterData(
                    extra={
                        "sender": alert.get("sender_name"),
                        "tags": _as_tags(alert.get("tags")),
                    },
                ),
            ))
        return events

    def analyze_forecast(self, data: Mapping[str, Any]) -> List[DisasterEvent]:
        """
        Zero or one condition event from the one-call current block, with
        the anticipatory escalation from the hourly forecast applied.
        """
        current = as_mapping(data.get("current"))
        condition = _first_severe_condition(current.get("weather"))
        if condition is None:
            return []

        observed_at = from_epoch_s(current.get("dt"))
        if observed_at is None:
            raise UpstreamFetchError(self.source.value, "one-call payload has no current.dt")

        rain = as_mapping(current.get("rain"))
        wind_speed = safe_float(current.get("wind_speed"))
        lat = safe_float(data.get("lat"))
        lon = safe_float(data.get("lon"))

        alert_type = classify_weather_conditions(
            wind_speed, safe_float(rain.get("3h")), self.thresholds,
        )
        if forecast_expects_heavy_rain(data.get("hourly"), self.thresholds):
            alert_type = escalate(alert_type, AlertType.WATCH)

        event_id = make_event_id(self.source, "onecall", lat, lon, current.get("dt"))
        return [DisasterEvent(
            id=event_id,
            external_id=event_id,
            disaster_type=infer_from_condition_code(condition["id"]),
            alert_type=alert_type,
            title=f"Severe Weather: {condition.get('main', 'Unknown')}",
            description=(
                f"Severe weather conditions: {condition.get('description', '')} "
                f"with wind speed of {wind_speed} m/s."
            ),
            location=_timezone_location(data.get("timezone")),
            latitude=lat,
            longitude=lon,
            source=self.source,
            timestamp=observed_at,
            data=DisasterData(
                temperature=safe_float(current.get("temp")),
                wind_speed=wind_speed,
                rainfall=safe_float(rain.get("1h") or 0.0),
                pressure=safe_float(current.get("pressure")),
                humidity=safe_float(current.get("humidity")),
                weather_id=condition["id"],
            ),
        )]
