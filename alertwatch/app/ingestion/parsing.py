"""
Small tolerant converters for upstream payload fields.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional


def safe_float(value: Any) -> Optional[float]:
    """Finite float or None."""
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def as_mapping(value: Any) -> Mapping[str, Any]:
    """The value when it is a JSON object, otherwise an empty mapping."""
    return value if isinstance(value, Mapping) else {}


def from_epoch_s(value: Any) -> Optional[datetime]:
    """Aware UTC datetime, or None when absent or outside the platform range."""
    s = safe_float(value)
    if s is None:
        return None
    try:
        return datetime.fromtimestamp(s, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def from_epoch_ms(value: Any) -> Optional[datetime]:
    ms = safe_float(value)
    if ms is None:
        return None
    return from_epoch_s(ms / 1000.0)


def parse_iso(value: Any) -> Optional[datetime]:
    """
    ISO-8601 string → aware datetime (naive values are taken as UTC).

    >>> parse_iso("2026-02-22T14:00:00Z").isoformat()
    '2026-02-22T14:00:00+00:00'
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
