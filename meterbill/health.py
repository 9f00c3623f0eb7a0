"""
Health file writer for the scheduler.

Writes a JSON health file with four fields:
- last_peak_check_ts: ISO timestamp of the most recent peak check tick.
- last_rollup_ts: ISO timestamp of the most recent daily rollup.
- peak_date: Date the in-memory peak belongs to.
- peak_power_kw: Current in-memory daily peak.

The file is rewritten on every state change so Docker HEALTHCHECK or
monitoring can see that the loops are alive.

CHANGELOG:
- 2026-10-16: Track peak state instead of spool depth
- 2026-10-15: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from meterbill.engine.peak import DailyPeakState


class SchedulerHealth:
    """Writes scheduler status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_peak_check_ts: str | None = None
        self._last_rollup_ts: str | None = None
        self._peak = DailyPeakState()

    def record_peak_check(self, state: DailyPeakState) -> None:
        """Record a peak check tick and the resulting tracker state."""
        self._last_peak_check_ts = datetime.now(tz=UTC).isoformat()
        self._peak = state
        self._write()

    def record_rollup(self) -> None:
        """Record a completed daily rollup."""
        self._last_rollup_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def snapshot(self) -> dict[str, object]:
        return {
            "last_peak_check_ts": self._last_peak_check_ts,
            "last_rollup_ts": self._last_rollup_ts,
            "peak_date": self._peak.date or None,
            "peak_power_kw": self._peak.max_power,
        }

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self.snapshot()))
