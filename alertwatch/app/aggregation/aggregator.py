"""
aggregator.py — One aggregation call: fetch every feed, merge, filter.

═══════════════════════════════════════════════════════════════════════════
ALGORITHM
═══════════════════════════════════════════════════════════════════════════

    1. Resolve the time-range token (default DEFAULT_TIME_RANGE → 1day).
    2. Start the adapters concurrently:
           SeismicSource.fetch(window)
           WeatherAlertSource.fetch()
           WeatherConditionSource.fetch_forecast_with_alerts(lat, lon)
       The weather-condition feed is keyed by a point; without lat AND lon
       it is not called at all.
    3. Concatenate in that source order, each source keeping its own
       emission order. Nothing is sorted or deduplicated.
    4. types       → keep events whose disaster_type is in the set
    5. alert_types → keep events whose alert_type is in the set
    6. lat/lon/radius all present → keep events within radius_km by
       great-circle distance; events without coordinates are dropped.

═══════════════════════════════════════════════════════════════════════════
FAILURE POLICY
═══════════════════════════════════════════════════════════════════════════

    PARTIAL (default)
        A source raising UpstreamFetchError contributes no events and is
        listed in AggregationResult.failed_sources. Only when every source
        that was called fails does the call raise AggregationError.

    STRICT
        The first UpstreamFetchError cancels the sources still in flight
        and raises AggregationError. All-or-nothing.

    Anything other than UpstreamFetchError is a bug, not an upstream
    problem, and propagates unchanged in both modes.

Usage:
    async with httpx.AsyncClient() as client:
        aggregator = DisasterAggregator.from_settings(client, settings)
        result = await aggregator.collect(
            DisasterFilter(types={DisasterType.STORM}, latitude=35.4, longitude=-97.5),
        )
        print(len(result.events), result.failed_sources)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Awaitable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import httpx

from alertwatch.app.aggregation.stats import get_stats
from alertwatch.app.core.config import Settings
from alertwatch.app.core.errors import AggregationError, NotFoundError, UpstreamFetchError
from alertwatch.app.ingestion.http import HttpPolicy
from alertwatch.app.ingestion.noaa_service import WeatherAlertSource
from alertwatch.app.ingestion.openweather_service import WeatherConditionSource
from alertwatch.app.ingestion.time_range import TimeRange, resolve_time_range
from alertwatch.app.ingestion.usgs_service import SeismicSource
from alertwatch.app.models import AlertType, DisasterEvent, DisasterType, Source
from alertwatch.app.spatial.radius_utils import filter_by_radius

logger = logging.getLogger(__name__)


class FailureMode(str, Enum):
    PARTIAL = "partial"
    STRICT  = "strict"


@dataclass(frozen=True)
class DisasterFilter:
    """Query accepted by the aggregator. Empty sets mean "no restriction"."""
    types: FrozenSet[DisasterType] = frozenset()
    alert_types: FrozenSet[AlertType] = frozenset()
    time_range: Union[str, TimeRange, None] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", frozenset(self.types))
        object.__setattr__(self, "alert_types", frozenset(self.alert_types))

    @property
    def has_center(self) -> bool:
        # 0.0 is a real coordinate (equator / prime meridian)
        return self.latitude is not None and self.longitude is not None

    @property
    def has_radius(self) -> bool:
        return self.has_center and self.radius_km is not None


@dataclass
class AggregationResult:
    """Events of one aggregation call plus what could not be fetched."""
    events: List[DisasterEvent]
    failed_sources: Dict[str, str] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def degraded(self) -> bool:
        return bool(self.failed_sources)


def apply_filters(
    events: Iterable[DisasterEvent],
    query: DisasterFilter,
    *,
    spatial: bool = True,
) -> List[DisasterEvent]:
    """
    Steps 4–6 of the algorithm. Pure; relative order is preserved.

    `spatial=False` skips the radius step for callers that already
    filtered by location per source.
    """
    selected = list(events)
    if query.types:
        selected = [e for e in selected if e.disaster_type in query.types]
    if query.alert_types:
        selected = [e for e in selected if e.alert_type in query.alert_types]
    if spatial and query.has_radius:
        selected = filter_by_radius(
            selected, query.latitude, query.longitude, query.radius_km,
        )
    return selected


class DisasterAggregator:
    """
    Fan-out over the three feed adapters.

    Holds no event state between calls; only the time of the last
    successful aggregation is remembered for `last_updated()`.
    """

    def __init__(
        self,
        seismic: SeismicSource,
        alerts: WeatherAlertSource,
        weather: WeatherConditionSource,
        *,
        failure_mode: FailureMode = FailureMode.PARTIAL,
        default_time_range: Union[str, TimeRange, None] = TimeRange.DAY,
    ):
        self.seismic = seismic
        self.alerts = alerts
        self.weather = weather
        self.failure_mode = failure_mode
        self.default_time_range = default_time_range
        self._last_updated: Optional[datetime] = None

    @classmethod
    def from_settings(
        cls,
        client: httpx.AsyncClient,
        settings: Settings,
    ) -> "DisasterAggregator":
        """Wire every adapter to one shared client and the configured policy."""
        policy = HttpPolicy.from_settings(settings)
        return cls(
            SeismicSource(client, feed_url=settings.USGS_FEED_URL, policy=policy),
            WeatherAlertSource(
                client,
                alerts_url=settings.NOAA_ALERTS_URL,
                user_agent=settings.NOAA_USER_AGENT,
                policy=policy,
            ),
            WeatherConditionSource(
                client,
                api_key=settings.OPENWEATHERMAP_API_KEY,
                base_url=settings.OWM_BASE_URL,
                policy=policy,
            ),
            failure_mode=FailureMode(settings.AGGREGATION_FAILURE_MODE.lower()),
            default_time_range=settings.DEFAULT_TIME_RANGE,
        )

    # ── Public operations ──

    async def collect(self, query: Optional[DisasterFilter] = None) -> AggregationResult:
        """Full aggregation with failure details (see module docstring)."""
        query = query or DisasterFilter()
        time_range = resolve_time_range(query.time_range or self.default_time_range)

        calls: List[Tuple[Source, Awaitable[List[DisasterEvent]]]] = [
            (Source.USGS, self.seismic.fetch(time_range)),
            (Source.NOAA, self.alerts.fetch()),
        ]
        if query.has_center:
            calls.append((
                Source.OPENWEATHERMAP,
                self.weather.fetch_forecast_with_alerts(query.latitude, query.longitude),
            ))

        return await self._run(calls, query, time_range, spatial=True)

    async def collect_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 100.0,
        query: Optional[DisasterFilter] = None,
    ) -> AggregationResult:
        """
        Location-first variant: earthquake and alert-feed events are cut to
        the radius per source, the point's weather events are kept as they
        come (they already describe this exact point).
        """
        query = query or DisasterFilter()
        time_range = resolve_time_range(query.time_range or self.default_time_range)

        calls: List[Tuple[Source, Awaitable[List[DisasterEvent]]]] = [
            (Source.USGS, self._within(
                self.seismic.fetch(time_range), self.seismic.filter_by_location,
                latitude, longitude, radius_km,
            )),
            (Source.NOAA, self._within(
                self.alerts.fetch(), self.alerts.filter_by_location,
                latitude, longitude, radius_km,
            )),
            (Source.OPENWEATHERMAP, self.weather.fetch_forecast_with_alerts(latitude, longitude)),
        ]
        return await self._run(calls, query, time_range, spatial=False)

    async def get_all(self, query: Optional[DisasterFilter] = None) -> List[DisasterEvent]:
        return (await self.collect(query)).events

    async def get_by_location(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 100.0,
        query: Optional[DisasterFilter] = None,
    ) -> List[DisasterEvent]:
        return (await self.collect_nearby(latitude, longitude, radius_km, query)).events

    async def find_by_id(
        self,
        event_id: str,
        query: Optional[DisasterFilter] = None,
    ) -> DisasterEvent:
        """Look an event up in a fresh aggregation; NotFoundError if absent."""
        for event in await self.get_all(query):
            if event.id == event_id:
                return event
        raise NotFoundError("Disaster", id=event_id)

    get_stats = staticmethod(get_stats)

    def last_updated(self) -> datetime:
        """Time of the last successful aggregation (now, before the first one)."""
        return self._last_updated or datetime.now(timezone.utc)

    # ── Internals ──

    @staticmethod
    async def _within(
        pending: Awaitable[List[DisasterEvent]],
        narrow,
        latitude: float,
        longitude: float,
        radius_km: float,
    ) -> List[DisasterEvent]:
        return narrow(await pending, latitude, longitude, radius_km)

    async def _run(
        self,
        calls: Sequence[Tuple[Source, Awaitable[List[DisasterEvent]]]],
        query: DisasterFilter,
        time_range: TimeRange,
        *,
        spatial: bool,
    ) -> AggregationResult:
        start = time.perf_counter()
        outcomes = await self._gather(calls)

        merged: List[DisasterEvent] = []
        failed: Dict[str, str] = {}
        for source, outcome in outcomes:
            if isinstance(outcome, asyncio.CancelledError):
                continue
            if isinstance(outcome, UpstreamFetchError):
                failed[source.value] = outcome.reason
                logger.warning(
                    "%s unavailable: %s", source.value, outcome.reason,
                    extra={"source": source.value},
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            merged.extend(outcome)

        if failed and (self.failure_mode is FailureMode.STRICT or len(failed) == len(calls)):
            logger.error(
                "Aggregation failed (%s mode): %s",
                self.failure_mode.value, ", ".join(sorted(failed)),
                extra={"failed_sources": sorted(failed), "time_range": time_range.value},
            )
            raise AggregationError(failed)

        events = apply_filters(merged, query, spatial=spatial)
        result = AggregationResult(events=events, failed_sources=failed)
        self._last_updated = result.fetched_at

        logger.info(
            "Aggregated %d of %d events from %d sources in %.0fms%s",
            len(events), len(merged), len(calls) - len(failed),
            (time.perf_counter() - start) * 1000,
            f" (failed: {', '.join(sorted(failed))})" if failed else "",
            extra={
                "event_count": len(events),
                "failed_sources": sorted(failed),
                "time_range": time_range.value,
                "duration_ms": (time.perf_counter() - start) * 1000,
            },
        )
        return result

    async def _gather(
        self,
        calls: Sequence[Tuple[Source, Awaitable[List[DisasterEvent]]]],
    ) -> List[Tuple[Source, object]]:
        """
        Run every call concurrently and pair each source with its list of
        events or the exception it raised. In STRICT mode the first
        upstream failure cancels the calls still running.
        """
        tasks = [asyncio.ensure_future(call) for _, call in calls]

        if self.failure_mode is FailureMode.STRICT:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            if pending:
                logger.debug("Cancelling %d in-flight feed calls", len(pending))
                for task in pending:
                    task.cancel()

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        return [(source, outcome) for (source, _), outcome in zip(calls, outcomes)]
