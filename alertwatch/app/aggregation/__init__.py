"""
Aggregation — concurrent fan-out over the feeds, filtering and summaries.

Modules:
    aggregator    — DisasterAggregator, DisasterFilter, failure policy
    stats         — per-tier counts and affected areas
    presentation  — display hints (relative time, colours, icons)
"""
