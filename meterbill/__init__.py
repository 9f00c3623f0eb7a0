"""
Meter billing service package.

Ingests power meter readings, integrates them into kWh with the trapezoidal
rule, and serves billing, hourly breakdown and solar sizing reports. A
scheduler raises daily peak and daily summary notifications.

CHANGELOG:
- 2026-10-15: Initial creation

TODO:
- None
"""

__version__ = "0.1.0"
