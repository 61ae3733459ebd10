"""
disaster_type.py — Infer Earthquake / Flood / Storm / Wildfire.

Earthquakes never go through this module: the seismic feed only carries
earthquakes. Everything else is inferred from either a free-text event
name or a numeric weather condition code.

Event names (government alert feed)
===================================
Only names matching the hazard lexicon below are kept at all; "Special
Marine Warning", "Heat Advisory" and the like are dropped. The lexicon is
ordered and the first keyword contained in the name decides the type, so
"Flood" beats "Hurricane" for "Hurricane Flood Statement".

Event names (commercial alert feed)
===================================
    contains "flood" → FLOOD, contains "fire" → WILDFIRE, else STORM

Condition codes (commercial current weather)
============================================
    200–299                         → STORM     (thunderstorm group)
    502, 503, 504, 511, 522, 531    → FLOOD     (extreme / freezing rain)
    602, 622                        → STORM     (heavy snow)
    781                             → STORM     (tornado)
    anything else                   → STORM

Severe codes (the only ones that produce an event at all):
thunderstorm 200–232, the extreme-rain set, the heavy-snow set and 781.
"""

from __future__ import annotations

from typing import FrozenSet, Optional, Sequence

from alertwatch.app.classification.rules import (
    CodeRule,
    KeywordRule,
    first_code_match,
    first_keyword_match,
)
from alertwatch.app.models import DisasterType


# ── Government alert feed lexicon (declaration order is the tie-break) ──

HAZARD_EVENT_LEXICON: Sequence[KeywordRule[DisasterType]] = (
    KeywordRule("tornado", DisasterType.STORM),
    KeywordRule("severe thunderstorm", DisasterType.STORM),
    KeywordRule("flash flood", DisasterType.FLOOD),
    KeywordRule("flood", DisasterType.FLOOD),
    KeywordRule("hurricane", DisasterType.STORM),
    KeywordRule("tropical storm", DisasterType.STORM),
    KeywordRule("winter storm", DisasterType.STORM),
    KeywordRule("blizzard", DisasterType.STORM),
    KeywordRule("tsunami", DisasterType.FLOOD),
    KeywordRule("red flag", DisasterType.WILDFIRE),
    KeywordRule("fire weather", DisasterType.WILDFIRE),
    KeywordRule("fire warning", DisasterType.WILDFIRE),
    KeywordRule("wildfire", DisasterType.WILDFIRE),
)

# ── Commercial alert feed ──

ALERT_NAME_RULES: Sequence[KeywordRule[DisasterType]] = (
    KeywordRule("flood", DisasterType.FLOOD),
    KeywordRule("fire", DisasterType.WILDFIRE),
)

# ── Condition codes ──

EXTREME_RAIN_CODES: FrozenSet[int] = frozenset({502, 503, 504, 511, 522, 531})
HEAVY_SNOW_CODES: FrozenSet[int] = frozenset({602, 622})
TORNADO_CODE = 781

CONDITION_CODE_RULES: Sequence[CodeRule[DisasterType]] = (
    CodeRule("thunderstorm", lambda c: 200 <= c <= 299, DisasterType.STORM),
    CodeRule("extreme_rain", lambda c: c in EXTREME_RAIN_CODES, DisasterType.FLOOD),
    CodeRule("heavy_snow", lambda c: c in HEAVY_SNOW_CODES, DisasterType.STORM),
    CodeRule("tornado", lambda c: c == TORNADO_CODE, DisasterType.STORM),
)


def match_hazard_event(event_name: Optional[str]) -> Optional[DisasterType]:
    """
    Disaster type for a government alert event name, or None when the
    name is outside the recognised hazard lexicon.

    >>> match_hazard_event("Flash Flood Warning")
    <DisasterType.FLOOD: 'flood'>
    >>> match_hazard_event("Heat Advisory") is None
    True
    """
    return first_keyword_match(event_name, HAZARD_EVENT_LEXICON)


def infer_from_alert_name(event_name: Optional[str]) -> DisasterType:
    """
    >>> infer_from_alert_name("Red Flag Fire Danger")
    <DisasterType.WILDFIRE: 'wildfire'>
    >>> infer_from_alert_name("High Wind Warning")
    <DisasterType.STORM: 'storm'>
    """
    found = first_keyword_match(event_name, ALERT_NAME_RULES)
    return found if found is not None else DisasterType.STORM


def infer_from_condition_code(code: int) -> DisasterType:
    found = first_code_match(code, CONDITION_CODE_RULES)
    return found if found is not None else DisasterType.STORM


def is_severe_condition_code(code: int) -> bool:
    """
    >>> is_severe_condition_code(211), is_severe_condition_code(500)
    (True, False)
    """
    return (
        200 <= code <= 232
        or code in EXTREME_RAIN_CODES
        or code in HEAVY_SNOW_CODES
        or code == TORNADO_CODE
    )
