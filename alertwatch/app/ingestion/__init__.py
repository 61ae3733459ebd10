"""
Ingestion — one adapter per upstream feed.

Modules:
    usgs_service         — earthquakes (SeismicSource)
    noaa_service         — government weather alerts (WeatherAlertSource)
    openweather_service  — severe conditions + native alerts (WeatherConditionSource)
    http                 — shared fetch_json with timeout / retry policy
    time_range           — user time-range tokens → feed windows
    parsing              — tolerant field converters
"""
