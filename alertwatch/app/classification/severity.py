"""
severity.py — Map feed-specific signals onto the three alert tiers.

Every record leaves its adapter with a resolved AlertType. Each feed family
gets its own rule because each speaks a different severity language:

SEISMIC (magnitude, inclusive lower bounds)
===========================================
    M ≥ 5.0        → WARNING   (damage to weak structures possible)
    4.0 ≤ M < 5.0  → WATCH     (light shaking, minor damage near epicentre)
    M < 4.0        → ADVISORY

WEATHER CONDITIONS (derived from observations, no alert feed)
=============================================================
Start at ADVISORY and escalate; the result is the most severe tier implied
by either signal, so a later weaker signal can never downgrade it.

    wind ≥ 17.2 m/s (tropical-storm force)  → WARNING
    wind ≥ 10.8 m/s (strong breeze)         → WATCH
    rain ≥ 50 mm / 3h                       → WARNING
    rain ≥ 25 mm / 3h                       → WATCH

Anticipatory rule (forecast path only): if any of the next 12 hourly
forecast slots expects ≥ 25/3 mm of rain in one hour, the tier is raised
to at least WATCH.

GOVERNMENT ALERT FEED (CAP severity keyword)
============================================
    Extreme, Severe      → WARNING
    Moderate             → WATCH
    Minor, Unknown, none → ADVISORY

COMMERCIAL ALERTS (event name keyword, first match)
===================================================
    "warning" → WARNING, "watch" → WATCH, "advisory" → ADVISORY, else ADVISORY
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from alertwatch.app.classification.rules import KeywordRule, first_keyword_match
from alertwatch.app.models import AlertType


# ═══════════════════════════════════════════════════════════════════════════
# Threshold configuration
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SeismicThresholds:
    warning_magnitude: float = 5.0
    watch_magnitude: float = 4.0


@dataclass(frozen=True)
class WeatherThresholds:
    wind_warning_ms: float = 17.2
    wind_watch_ms: float = 10.8
    rain_warning_mm_3h: float = 50.0
    rain_watch_mm_3h: float = 25.0
    forecast_window_hours: int = 12

    @property
    def hourly_rain_watch_mm(self) -> float:
        """Forecast hourly rain that anticipates a WATCH (a third of 3h)."""
        return self.rain_watch_mm_3h / 3.0


DEFAULT_SEISMIC_THRESHOLDS = SeismicThresholds()
DEFAULT_WEATHER_THRESHOLDS = WeatherThresholds()


# ═══════════════════════════════════════════════════════════════════════════
# Seismic
# ═══════════════════════════════════════════════════════════════════════════

def classify_magnitude(
    magnitude: float,
    thresholds: SeismicThresholds = DEFAULT_SEISMIC_THRESHOLDS,
) -> AlertType:
    """
    Alert tier for an earthquake magnitude.

    >>> classify_magnitude(5.0)
    <AlertType.WARNING: 'warning'>
    >>> classify_magnitude(4.9999)
    <AlertType.WATCH: 'watch'>
    >>> classify_magnitude(3.9999)
    <AlertType.ADVISORY: 'advisory'>
    """
    if magnitude >= thresholds.warning_magnitude:
        return AlertType.WARNING
    if magnitude >= thresholds.watch_magnitude:
        return AlertType.WATCH
    return AlertType.ADVISORY


# ═══════════════════════════════════════════════════════════════════════════
# Weather conditions
# ═══════════════════════════════════════════════════════════════════════════

def _wind_tier(wind_speed: Optional[float], t: WeatherThresholds) -> AlertType:
    if wind_speed is None:
        return AlertType.ADVISORY
    if wind_speed >= t.wind_warning_ms:
        return AlertType.WARNING
    if wind_speed >= t.wind_watch_ms:
        return AlertType.WATCH
    return AlertType.ADVISORY


def _rain_tier(rain_3h: Optional[float], t: WeatherThresholds) -> AlertType:
    if rain_3h is None:
        return AlertType.ADVISORY
    if rain_3h >= t.rain_warning_mm_3h:
        return AlertType.WARNING
    if rain_3h >= t.rain_watch_mm_3h:
        return AlertType.WATCH
    return AlertType.ADVISORY


def classify_weather_conditions(
    wind_speed: Optional[float],
    rain_3h: Optional[float] = None,
    thresholds: WeatherThresholds = DEFAULT_WEATHER_THRESHOLDS,
) -> AlertType:
    """
    Alert tier from observed wind speed (m/s) and 3-hour rainfall (mm).

    Wind is evaluated first, then rainfall; the most severe tier wins.

    >>> classify_weather_conditions(17.2, None)
    <AlertType.WARNING: 'warning'>
    >>> classify_weather_conditions(5.0, 50.0)
    <AlertType.WARNING: 'warning'>
    >>> classify_weather_conditions(5.0, 10.0)
    <AlertType.ADVISORY: 'advisory'>
    """
    return AlertType.most_severe([
        _wind_tier(wind_speed, thresholds),
        _rain_tier(rain_3h, thresholds),
    ])


def escalate(current: AlertType, floor: AlertType) -> AlertType:
    """Raise current to at least floor; never lowers it."""
    return AlertType.most_severe([current, floor])


def _hourly_rain(slot: Any) -> float:
    if not isinstance(slot, Mapping):
        return 0.0
    rain = slot.get("rain") or {}
    try:
        return float(rain.get("1h") or 0.0)
    except (TypeError, ValueError, AttributeError):
        return 0.0


def forecast_expects_heavy_rain(
    hourly: Optional[Sequence[Mapping[str, Any]]],
    thresholds: WeatherThresholds = DEFAULT_WEATHER_THRESHOLDS,
) -> bool:
    """
    True when any slot in the forecast window expects heavy hourly rain.

    Each slot is an hourly forecast entry shaped like
    {"dt": 1708617600, "rain": {"1h": 9.1}, ...}; slots without rain count
    as dry.
    """
    if not hourly or not isinstance(hourly, list):
        return False
    window = hourly[: thresholds.forecast_window_hours]
    return any(
        _hourly_rain(slot) >= thresholds.hourly_rain_watch_mm for slot in window
    )


# ═══════════════════════════════════════════════════════════════════════════
# Alert feeds
# ═══════════════════════════════════════════════════════════════════════════

CAP_SEVERITY_TIERS: Mapping[str, AlertType] = {
    "extreme": AlertType.WARNING,
    "severe": AlertType.WARNING,
    "moderate": AlertType.WATCH,
    "minor": AlertType.ADVISORY,
    "unknown": AlertType.ADVISORY,
}


def classify_cap_severity(severity: Any) -> AlertType:
    """Alert tier from a CAP severity keyword (Extreme/Severe/...)."""
    if not severity or not isinstance(severity, str):
        return AlertType.ADVISORY
    return CAP_SEVERITY_TIERS.get(severity.strip().casefold(), AlertType.ADVISORY)


EVENT_NAME_SEVERITY_RULES: Sequence[KeywordRule[AlertType]] = (
    KeywordRule("warning", AlertType.WARNING),
    KeywordRule("watch", AlertType.WATCH),
    KeywordRule("advisory", AlertType.ADVISORY),
)


def classify_event_name(event_name: Optional[str]) -> AlertType:
    """
    Alert tier from the wording of an alert's event name.

    >>> classify_event_name("Flood Watch")
    <AlertType.WATCH: 'watch'>
    >>> classify_event_name("Special Weather Statement")
    <AlertType.ADVISORY: 'advisory'>
    """
    tier = first_keyword_match(event_name, EVENT_NAME_SEVERITY_RULES)
    return tier if tier is not None else AlertType.ADVISORY
