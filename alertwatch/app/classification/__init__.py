"""
Classification — alert tier and disaster type inference.

Modules:
    rules          — ordered first-match keyword / code rules
    severity       — magnitude, weather and alert-feed severity tiers
    disaster_type  — hazard lexicon and condition-code type inference
"""
