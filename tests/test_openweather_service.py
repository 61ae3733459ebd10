"""
Tests for the OpenWeatherMap severe-weather adapter.

Covers:
    • Missing API key → [] without any HTTP call
    • Current conditions: severe-code gate, wind/rain tiers
    • One-call: native alerts, anticipatory forecast escalation
    • Alerts and condition events emitted together, not merged
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from alertwatch.app.core.errors import UpstreamFetchError
from alertwatch.app.ingestion.http import HttpPolicy
from alertwatch.app.ingestion.openweather_service import WeatherConditionSource
from alertwatch.app.models import AlertType, DisasterType, Source

BASE = "https://owm.test/data/2.5"
NO_RETRY = HttpPolicy(max_retries=0, backoff_seconds=0.0)


def _make_current(code=211, main="Thunderstorm", wind=5.0, rain=None, dt=1708617600):
    payload = {
        "coord": {"lon": -97.5, "lat": 35.4},
        "weather": [
            {"id": 801, "main": "Clouds", "description": "few clouds"},
            {"id": code, "main": main, "description": main.lower()},
        ],
        "main": {"temp": 21.5, "pressure": 1002, "humidity": 88},
        "wind": {"speed": wind},
        "dt": dt,
        "sys": {"country": "US"},
        "id": 4544349,
        "name": "Oklahoma City",
    }
    if rain is not None:
        payload["rain"] = rain
    return payload


def _make_onecall(code=211, wind=5.0, rain_3h=None, hourly_rain=(), alerts=()):
    current = {
        "dt": 1708617600,
        "temp": 21.5,
        "pressure": 1002,
        "humidity": 88,
        "wind_speed": wind,
        "weather": [{"id": code, "main": "Thunderstorm", "description": "thunderstorm"}],
    }
    if rain_3h is not None:
        current["rain"] = {"3h": rain_3h}
    return {
        "lat": 35.4,
        "lon": -97.5,
        "timezone": "America/Chicago",
        "current": current,
        "hourly": [
            {"dt": 1708617600 + (i + 1) * 3600, **({"rain": {"1h": r}} if r is not None else {})}
            for i, r in enumerate(hourly_rain)
        ],
        "alerts": list(alerts),
    }


def _make_alert(event="Flood Warning", start=1708617600, end=1708660800):
    return {
        "sender_name": "NWS Norman (Central Oklahoma)",
        "event": event,
        "start": start,
        "end": end,
        "description": "...FLOOD WARNING IN EFFECT...",
        "tags": ["Flood"],
    }


class _Recorder:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status = status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status)
        return httpx.Response(200, json=self.payload)


def _run(handler, method, api_key="test-key", lat=35.4, lon=-97.5):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = WeatherConditionSource(client, api_key=api_key, base_url=BASE, policy=NO_RETRY)
            return await getattr(source, method)(lat, lon)
    return asyncio.run(main())


# ═══════════════════════════════════════════════════════════════════════════
# Missing credentials
# ═══════════════════════════════════════════════════════════════════════════

class TestMissingApiKey:
    @pytest.mark.parametrize("method", ["fetch_current", "fetch_forecast_with_alerts"])
    @pytest.mark.parametrize("api_key", [None, ""])
    def test_returns_empty_without_request(self, method, api_key):
        recorder = _Recorder(_make_current())
        assert _run(recorder, method, api_key=api_key) == []
        assert recorder.requests == []


# ═══════════════════════════════════════════════════════════════════════════
# Current conditions
# ═══════════════════════════════════════════════════════════════════════════

class TestFetchCurrent:
    def test_request_parameters(self):
        recorder = _Recorder(_make_current())
        _run(recorder, "fetch_current")
        request = recorder.requests[0]
        assert request.url.path == "/data/2.5/weather"
        assert request.url.params["appid"] == "test-key"
        assert request.url.params["units"] == "metric"
        assert float(request.url.params["lat"]) == 35.4

    def test_non_severe_codes_emit_nothing(self):
        payload = _make_current(code=500, main="Rain")
        assert _run(_Recorder(payload), "fetch_current") == []

    def test_severe_code_emits_one_event(self):
        events = _run(_Recorder(_make_current(code=211, wind=12.0, rain={"1h": 4.0})), "fetch_current")
        assert len(events) == 1
        e = events[0]
        assert e.id == "owm-current-4544349-1708617600"
        assert e.source is Source.OPENWEATHERMAP
        assert e.disaster_type is DisasterType.STORM
        assert e.alert_type is AlertType.WATCH
        assert e.title == "Severe Weather: Thunderstorm"
        assert e.location == "Oklahoma City, US"
        assert (e.latitude, e.longitude) == (35.4, -97.5)
        assert e.data.wind_speed == 12.0
        assert e.data.rainfall == 4.0
        assert e.data.weather_id == 211
        assert e.data.humidity == 88.0

    @pytest.mark.parametrize("wind, rain, expected", [
        (17.2, None, AlertType.WARNING),
        (10.8, None, AlertType.WATCH),
        (5.0, {"3h": 50.0}, AlertType.WARNING),
        (5.0, {"3h": 10.0}, AlertType.ADVISORY),
    ])
    def test_escalation(self, wind, rain, expected):
        events = _run(_Recorder(_make_current(wind=wind, rain=rain)), "fetch_current")
        assert events[0].alert_type is expected

    def test_extreme_rain_is_flood(self):
        events = _run(_Recorder(_make_current(code=502, main="Rain")), "fetch_current")
        assert events[0].disaster_type is DisasterType.FLOOD

    def test_tornado_code(self):
        events = _run(_Recorder(_make_current(code=781, main="Tornado")), "fetch_current")
        assert events[0].disaster_type is DisasterType.STORM

    def test_http_failure_raises(self):
        with pytest.raises(UpstreamFetchError) as exc_info:
            _run(_Recorder(status=401), "fetch_current")
        assert exc_info.value.source == "OpenWeatherMap"

    def test_non_object_payload(self):
        with pytest.raises(UpstreamFetchError):
            _run(_Recorder(["not", "an", "object"]), "fetch_current")

    def test_non_object_blocks_ignored(self):
        payload = _make_current(wind=12.0)
        payload.update(wind="calm", rain=[1, 2], main=None, coord="here", sys=5, dt=1e20)
        with pytest.raises(UpstreamFetchError):
            _run(_Recorder(payload), "fetch_current")
        payload["dt"] = 1708617600
        events = _run(_Recorder(payload), "fetch_current")
        assert len(events) == 1
        assert events[0].alert_type is AlertType.ADVISORY
        assert events[0].location == "Oklahoma City"
        assert not events[0].has_coordinates


# ═══════════════════════════════════════════════════════════════════════════
# One-call: forecast + alerts
# ═══════════════════════════════════════════════════════════════════════════

class TestFetchForecastWithAlerts:
    def test_request_parameters(self):
        recorder = _Recorder(_make_onecall())
        _run(recorder, "fetch_forecast_with_alerts")
        request = recorder.requests[0]
        assert request.url.path == "/data/2.5/onecall"
        assert request.url.params["exclude"] == "minutely"

    def test_alerts_mapped(self):
        payload = _make_onecall(code=800, alerts=[
            _make_alert("Flood Warning"),
            _make_alert("Fire Weather Watch", start=1708621200),
            _make_alert("Wind Advisory", start=1708624800),
            _make_alert("Special Weather Statement", start=1708628400),
        ])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert [(e.disaster_type, e.alert_type) for e in events] == [
            (DisasterType.FLOOD, AlertType.WARNING),
            (DisasterType.WILDFIRE, AlertType.WATCH),
            (DisasterType.STORM, AlertType.ADVISORY),
            (DisasterType.STORM, AlertType.ADVISORY),
        ]
        first = events[0]
        assert first.id == "owm-alert-35.4--97.5-1708617600"
        assert first.title == "Flood Warning"
        assert first.location == "America, Chicago"
        assert first.valid_until.timestamp() == 1708660800
        assert first.data.extra["sender"] == "NWS Norman (Central Oklahoma)"
        assert first.data.extra["tags"] == ("Flood",)

    def test_alerts_independent_of_condition_codes(self):
        payload = _make_onecall(code=800, alerts=[_make_alert()])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert len(events) == 1

    def test_alert_and_condition_both_emitted(self):
        payload = _make_onecall(code=211, alerts=[_make_alert()])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert [e.id.split("-")[1] for e in events] == ["alert", "onecall"]

    def test_heavy_forecast_escalates_to_watch(self):
        payload = _make_onecall(wind=3.0, hourly_rain=[None, 1.0, 9.0])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert events[0].alert_type is AlertType.WATCH

    def test_light_forecast_no_escalation(self):
        payload = _make_onecall(wind=3.0, hourly_rain=[1.0] * 12)
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert events[0].alert_type is AlertType.ADVISORY

    def test_heavy_rain_after_twelve_hours_ignored(self):
        payload = _make_onecall(wind=3.0, hourly_rain=[None] * 12 + [30.0])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert events[0].alert_type is AlertType.ADVISORY

    def test_escalation_never_downgrades_warning(self):
        payload = _make_onecall(wind=20.0, hourly_rain=[9.0])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert events[0].alert_type is AlertType.WARNING

    def test_current_rain_3h_used(self):
        payload = _make_onecall(wind=3.0, rain_3h=55.0)
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert events[0].alert_type is AlertType.WARNING

    def test_nothing_severe(self):
        payload = _make_onecall(code=800)
        assert _run(_Recorder(payload), "fetch_forecast_with_alerts") == []

    def test_malformed_one_call_blocks(self):
        payload = _make_onecall()
        payload.update(current="oops", alerts=3, timezone=None, hourly={"dt": 1})
        assert _run(_Recorder(payload), "fetch_forecast_with_alerts") == []

    def test_malformed_alert_entries(self):
        payload = _make_onecall(code=800, alerts=[
            "oops",
            {**_make_alert(), "event": 42, "tags": "Flood"},
        ])
        events = _run(_Recorder(payload), "fetch_forecast_with_alerts")
        assert len(events) == 1
        assert events[0].title == "42"
        assert events[0].data.extra["tags"] == ()
