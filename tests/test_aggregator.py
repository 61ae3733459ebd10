"""
Tests for the aggregation engine.

Covers:
    • Source fan-out, concatenation order, weather feed skipped without a point
    • Type / alert-tier / radius filters
    • Time-range resolution passed to the seismic feed
    • PARTIAL vs STRICT failure policy, in-flight cancellation
    • Location-first lookup, lookup by id, last-updated time
    • End-to-end with real adapters over httpx.MockTransport
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from alertwatch.app.aggregation.aggregator import (
    AggregationResult,
    DisasterAggregator,
    DisasterFilter,
    FailureMode,
    apply_filters,
)
from alertwatch.app.core.config import Settings
from alertwatch.app.core.errors import AggregationError, NotFoundError, UpstreamFetchError
from alertwatch.app.ingestion.http import HttpPolicy
from alertwatch.app.ingestion.noaa_service import WeatherAlertSource
from alertwatch.app.ingestion.openweather_service import WeatherConditionSource
from alertwatch.app.ingestion.time_range import TimeRange
from alertwatch.app.ingestion.usgs_service import SeismicSource
from alertwatch.app.models import AlertType, DisasterEvent, DisasterType, Source
from alertwatch.app.spatial.radius_utils import filter_by_radius

T0 = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)


def _make_event(
    event_id: str,
    disaster_type: DisasterType = DisasterType.EARTHQUAKE,
    alert_type: AlertType = AlertType.ADVISORY,
    lat=0.0,
    lon=0.0,
    source: Source = Source.USGS,
) -> DisasterEvent:
    return DisasterEvent(
        id=event_id,
        disaster_type=disaster_type,
        alert_type=alert_type,
        title=event_id,
        description="",
        location=event_id,
        latitude=lat,
        longitude=lon,
        source=source,
        timestamp=T0,
    )


class _FakeSource:
    """Stands in for any adapter: records calls, returns events or fails."""

    filter_by_location = staticmethod(filter_by_radius)

    def __init__(self, name: str, events=(), error: Exception = None, delay: float = 0.0):
        self.name = name
        self.events = list(events)
        self.error = error
        self.delay = delay
        self.calls = []
        self.cancelled = False

    async def _respond(self, *args):
        self.calls.append(args)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def fetch(self, *args):
        return await self._respond(*args)

    async def fetch_forecast_with_alerts(self, lat, lon):
        return await self._respond(lat, lon)


def _make_aggregator(seismic=(), alerts=(), weather=(), mode=FailureMode.PARTIAL, **errors):
    sources = {
        "seismic": _FakeSource("USGS", seismic, errors.get("seismic_error"), errors.get("seismic_delay", 0.0)),
        "alerts": _FakeSource("NOAA", alerts, errors.get("alerts_error"), errors.get("alerts_delay", 0.0)),
        "weather": _FakeSource("OpenWeatherMap", weather, errors.get("weather_error"), errors.get("weather_delay", 0.0)),
    }
    return DisasterAggregator(**sources, failure_mode=mode), sources


# ═══════════════════════════════════════════════════════════════════════════
# Fan-out and merge
# ═══════════════════════════════════════════════════════════════════════════

class TestFanOut:
    def test_concatenates_in_source_order(self):
        agg, _ = _make_aggregator(
            seismic=[_make_event("q1"), _make_event("q2")],
            alerts=[_make_event("a1", source=Source.NOAA)],
            weather=[_make_event("w1", source=Source.OPENWEATHERMAP)],
        )
        events = asyncio.run(agg.get_all(DisasterFilter(latitude=10.0, longitude=10.0, radius_km=None)))
        assert [e.id for e in events] == ["q1", "q2", "a1", "w1"]

    def test_weather_skipped_without_point(self):
        agg, sources = _make_aggregator(weather=[_make_event("w1")])
        events = asyncio.run(agg.get_all(DisasterFilter()))
        assert events == []
        assert sources["weather"].calls == []

    def test_weather_skipped_with_only_latitude(self):
        agg, sources = _make_aggregator()
        asyncio.run(agg.get_all(DisasterFilter(latitude=35.0)))
        assert sources["weather"].calls == []

    def test_zero_coordinates_call_weather(self):
        agg, sources = _make_aggregator()
        asyncio.run(agg.get_all(DisasterFilter(latitude=0.0, longitude=0.0)))
        assert sources["weather"].calls == [(0.0, 0.0)]

    @pytest.mark.parametrize("token, expected", [
        (None, TimeRange.DAY),
        ("1h", TimeRange.HOUR),
        ("7d", TimeRange.WEEK),
        ("month", TimeRange.MONTH),
        ("nonsense", TimeRange.DAY),
    ])
    def test_time_range_resolved_for_seismic(self, token, expected):
        agg, sources = _make_aggregator()
        asyncio.run(agg.get_all(DisasterFilter(time_range=token)))
        assert sources["seismic"].calls == [(expected,)]

    def test_sources_run_concurrently(self):
        agg, _ = _make_aggregator(seismic_delay=0.2, alerts_delay=0.2, weather_delay=0.2)
        loop_time = []

        async def main():
            start = asyncio.get_running_loop().time()
            await agg.get_all(DisasterFilter(latitude=1.0, longitude=1.0))
            loop_time.append(asyncio.get_running_loop().time() - start)

        asyncio.run(main())
        assert loop_time[0] < 0.5


# ═══════════════════════════════════════════════════════════════════════════
# Filters
# ═══════════════════════════════════════════════════════════════════════════

class TestFilters:
    EVENTS = [
        _make_event("q1", DisasterType.EARTHQUAKE, AlertType.WARNING),
        _make_event("s1", DisasterType.STORM, AlertType.WATCH),
        _make_event("q2", DisasterType.EARTHQUAKE, AlertType.ADVISORY),
        _make_event("s2", DisasterType.STORM, AlertType.WARNING),
    ]

    def test_type_filter_keeps_relative_order(self):
        kept = apply_filters(self.EVENTS, DisasterFilter(types={DisasterType.STORM}))
        assert [e.id for e in kept] == ["s1", "s2"]

    def test_alert_type_filter(self):
        kept = apply_filters(self.EVENTS, DisasterFilter(alert_types={AlertType.WARNING}))
        assert [e.id for e in kept] == ["q1", "s2"]

    def test_combined(self):
        query = DisasterFilter(types={DisasterType.EARTHQUAKE}, alert_types={AlertType.ADVISORY, AlertType.WATCH})
        assert [e.id for e in apply_filters(self.EVENTS, query)] == ["q2"]

    def test_empty_sets_mean_everything(self):
        assert apply_filters(self.EVENTS, DisasterFilter()) == self.EVENTS

    def test_radius_excludes_and_includes(self):
        events = [_make_event("origin", lat=0.0, lon=0.0)]
        outside = DisasterFilter(latitude=0.0, longitude=0.1, radius_km=10.0)
        inside = DisasterFilter(latitude=0.0, longitude=0.1, radius_km=15.0)
        assert apply_filters(events, outside) == []
        assert apply_filters(events, inside) == events

    def test_radius_drops_unplaced(self):
        events = [_make_event("zone", lat=None, lon=None), _make_event("here")]
        kept = apply_filters(events, DisasterFilter(latitude=0.0, longitude=0.0, radius_km=50.0))
        assert [e.id for e in kept] == ["here"]

    def test_no_radius_keeps_unplaced(self):
        events = [_make_event("zone", lat=None, lon=None)]
        assert apply_filters(events, DisasterFilter(latitude=0.0, longitude=0.0)) == events

    def test_filters_applied_through_get_all(self):
        agg, _ = _make_aggregator(
            seismic=[_make_event("q1", DisasterType.EARTHQUAKE)],
            alerts=[_make_event("s1", DisasterType.STORM, source=Source.NOAA)],
        )
        events = asyncio.run(agg.get_all(DisasterFilter(types={DisasterType.STORM})))
        assert [e.id for e in events] == ["s1"]


# ═══════════════════════════════════════════════════════════════════════════
# Failure policy
# ═══════════════════════════════════════════════════════════════════════════

class TestPartialMode:
    def test_failed_source_reported(self):
        agg, _ = _make_aggregator(
            seismic=[_make_event("q1")],
            alerts_error=UpstreamFetchError("NOAA", "HTTP 503"),
        )
        result = asyncio.run(agg.collect())
        assert isinstance(result, AggregationResult)
        assert [e.id for e in result.events] == ["q1"]
        assert result.failed_sources == {"NOAA": "HTTP 503"}
        assert result.degraded

    def test_all_sources_failing_raises(self):
        agg, _ = _make_aggregator(
            seismic_error=UpstreamFetchError("USGS", "timeout"),
            alerts_error=UpstreamFetchError("NOAA", "HTTP 500"),
        )
        with pytest.raises(AggregationError) as exc_info:
            asyncio.run(agg.collect())
        assert set(exc_info.value.failed_sources) == {"USGS", "NOAA"}
        assert exc_info.value.status_code == 502

    def test_skipped_weather_does_not_count_as_success(self):
        # Only two sources are called without a point; both failing is total failure
        agg, _ = _make_aggregator(
            weather=[_make_event("w1")],
            seismic_error=UpstreamFetchError("USGS", "x"),
            alerts_error=UpstreamFetchError("NOAA", "y"),
        )
        with pytest.raises(AggregationError):
            asyncio.run(agg.collect(DisasterFilter()))

    def test_unexpected_errors_propagate(self):
        agg, _ = _make_aggregator(alerts_error=KeyError("bug"))
        with pytest.raises(KeyError):
            asyncio.run(agg.collect())


class TestStrictMode:
    def test_single_failure_fails_call(self):
        agg, _ = _make_aggregator(
            seismic=[_make_event("q1")],
            mode=FailureMode.STRICT,
            alerts_error=UpstreamFetchError("NOAA", "HTTP 503"),
        )
        with pytest.raises(AggregationError) as exc_info:
            asyncio.run(agg.collect())
        assert exc_info.value.failed_sources == {"NOAA": "HTTP 503"}

    def test_in_flight_sources_cancelled(self):
        agg, sources = _make_aggregator(
            mode=FailureMode.STRICT,
            seismic_delay=5.0,
            weather_delay=5.0,
            alerts_error=UpstreamFetchError("NOAA", "HTTP 503"),
        )
        with pytest.raises(AggregationError):
            asyncio.run(agg.collect(DisasterFilter(latitude=1.0, longitude=1.0)))
        assert sources["seismic"].cancelled
        assert sources["weather"].cancelled

    def test_success_identical_to_partial(self):
        agg, _ = _make_aggregator(seismic=[_make_event("q1")], mode=FailureMode.STRICT)
        result = asyncio.run(agg.collect())
        assert [e.id for e in result.events] == ["q1"]
        assert not result.degraded


# ═══════════════════════════════════════════════════════════════════════════
# Secondary operations
# ═══════════════════════════════════════════════════════════════════════════

class TestGetByLocation:
    def test_per_source_radius_and_weather_kept(self):
        agg, sources = _make_aggregator(
            seismic=[_make_event("q-near", lat=0.0, lon=0.0), _make_event("q-far", lat=20.0, lon=20.0)],
            alerts=[
                _make_event("a-near", lat=0.1, lon=0.1, source=Source.NOAA),
                _make_event("a-zone", lat=None, lon=None, source=Source.NOAA),
            ],
            # point weather events are not radius-filtered
            weather=[_make_event("w1", lat=None, lon=None, source=Source.OPENWEATHERMAP)],
        )
        events = asyncio.run(agg.get_by_location(0.0, 0.0, 50.0))
        assert [e.id for e in events] == ["q-near", "a-near", "w1"]
        assert sources["weather"].calls == [(0.0, 0.0)]

    def test_type_filter_applies(self):
        agg, _ = _make_aggregator(
            seismic=[_make_event("q1")],
            alerts=[_make_event("f1", DisasterType.FLOOD, source=Source.NOAA)],
        )
        query = DisasterFilter(types={DisasterType.FLOOD})
        events = asyncio.run(agg.get_by_location(0.0, 0.0, 100.0, query))
        assert [e.id for e in events] == ["f1"]


class TestFindById:
    def test_found(self):
        agg, _ = _make_aggregator(seismic=[_make_event("q1"), _make_event("q2")])
        assert asyncio.run(agg.find_by_id("q2")).id == "q2"

    def test_missing(self):
        agg, _ = _make_aggregator(seismic=[_make_event("q1")])
        with pytest.raises(NotFoundError):
            asyncio.run(agg.find_by_id("nope"))


class TestLastUpdated:
    def test_advances_after_collect(self):
        agg, _ = _make_aggregator()
        before = agg.last_updated()
        result = asyncio.run(agg.collect())
        assert agg.last_updated() == result.fetched_at
        assert agg.last_updated() >= before

    def test_not_updated_on_failure(self):
        agg, _ = _make_aggregator(
            seismic_error=UpstreamFetchError("USGS", "x"),
            alerts_error=UpstreamFetchError("NOAA", "y"),
        )
        with pytest.raises(AggregationError):
            asyncio.run(agg.collect())
        assert agg._last_updated is None


class TestFromSettings:
    def test_wires_adapters(self):
        settings = Settings(
            AGGREGATION_FAILURE_MODE="STRICT",
            HTTP_MAX_RETRIES=4,
            OPENWEATHERMAP_API_KEY="k",
            DEFAULT_TIME_RANGE="7d",
        )
        async def main():
            async with httpx.AsyncClient() as client:
                return DisasterAggregator.from_settings(client, settings)

        agg = asyncio.run(main())
        assert agg.failure_mode is FailureMode.STRICT
        assert agg.seismic.policy.max_retries == 4
        assert agg.weather.api_key == "k"
        assert agg.default_time_range == "7d"


# ═══════════════════════════════════════════════════════════════════════════
# End-to-end with real adapters
# ═══════════════════════════════════════════════════════════════════════════

def _feeds_handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "usgs.test":
        return httpx.Response(200, json={"type": "FeatureCollection", "features": [{
            "id": "ci1", "properties": {"mag": 4.5, "place": "Near Here", "time": 1708617600000,
                                         "url": "https://x", "tsunami": 0, "title": "M 4.5 - Near Here"},
            "geometry": {"type": "Point", "coordinates": [0.05, 0.0, 8.0]},
        }]})
    if host == "nws.test":
        return httpx.Response(200, json={"type": "FeatureCollection", "features": [{
            "id": "n1", "geometry": None,
            "properties": {"id": "n1", "event": "Flood Watch", "severity": "Moderate",
                           "effective": "2026-02-22T10:00:00Z", "areaDesc": "Somewhere"},
        }]})
    return httpx.Response(503)


def _real_aggregator(client, mode=FailureMode.PARTIAL):
    policy = HttpPolicy(max_retries=0, backoff_seconds=0.0)
    return DisasterAggregator(
        SeismicSource(client, feed_url="https://usgs.test/summary", policy=policy),
        WeatherAlertSource(client, alerts_url="https://nws.test/alerts/active", user_agent="t", policy=policy),
        WeatherConditionSource(client, api_key="k", base_url="https://owm.test/data/2.5", policy=policy),
        failure_mode=mode,
    )


class TestEndToEnd:
    def test_partial_result_with_failing_weather_feed(self):
        async def main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_feeds_handler)) as client:
                return await _real_aggregator(client).collect(
                    DisasterFilter(latitude=0.0, longitude=0.0, radius_km=None)
                )

        result = asyncio.run(main())
        assert [e.id for e in result.events] == ["usgs-ci1", "noaa-n1"]
        assert list(result.failed_sources) == ["OpenWeatherMap"]

    def test_radius_drops_zone_alert(self):
        async def main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_feeds_handler)) as client:
                return await _real_aggregator(client).get_all(
                    DisasterFilter(latitude=0.0, longitude=0.0, radius_km=10.0)
                )

        assert [e.id for e in asyncio.run(main())] == ["usgs-ci1"]

    def test_strict_mode_fails_whole_call(self):
        async def main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_feeds_handler)) as client:
                return await _real_aggregator(client, FailureMode.STRICT).collect(
                    DisasterFilter(latitude=0.0, longitude=0.0)
                )

        with pytest.raises(AggregationError):
            asyncio.run(main())


def _malformed_feeds_handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "usgs.test":
        return httpx.Response(200, json={"type": "FeatureCollection", "features": [
            {"id": "overflow", "properties": {"mag": 6.0, "time": 1e20},
             "geometry": {"type": "Point", "coordinates": [0.0, 0.0]}},
            {"id": "ci1", "properties": {"mag": 4.5, "place": "Near Here", "time": 1708617600000},
             "geometry": {"type": "Point", "coordinates": [0.05, 0.0, 8.0]}},
        ]})
    if host == "nws.test":
        return httpx.Response(200, json={"type": "FeatureCollection", "features": [
            {"id": "n-num", "geometry": None, "properties": {"event": 42, "effective": "2026-02-22T10:00:00Z"}},
            {"id": "n1", "geometry": None,
             "properties": {"id": "n1", "event": "Flood Watch", "severity": "Moderate",
                            "effective": "2026-02-22T10:00:00Z", "areaDesc": "Somewhere"}},
        ]})
    return httpx.Response(200, json={"lat": 0.0, "lon": 0.0, "current": "oops", "alerts": 3})


class TestMalformedPayloads:
    def test_bad_records_do_not_sink_healthy_feeds(self):
        async def main():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_malformed_feeds_handler)) as client:
                return await _real_aggregator(client).collect(
                    DisasterFilter(latitude=0.0, longitude=0.0, radius_km=None)
                )

        result = asyncio.run(main())
        assert [e.id for e in result.events] == ["usgs-ci1", "noaa-n1"]
        assert result.failed_sources == {}
