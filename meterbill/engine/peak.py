"""
Daily peak tracking.

The tracker state is an immutable value: callers pass the current
:class:`DailyPeakState` in and keep the one returned. The scheduler holds the
single long-lived instance; nothing is persisted, so a restart starts the
day's tracking from zero.

CHANGELOG:
- 2026-10-15: Initial creation
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class DailyPeakState:
    """Highest power seen on ``date`` (``YYYY-MM-DD``, empty before first tick)."""

    date: str = ""
    max_power: float = 0.0


def advance_peak(
    state: DailyPeakState,
    power: float,
    today: str,
) -> tuple[DailyPeakState, bool]:
    """Fold one power reading into the daily peak.

    The state resets to ``max_power=0`` whenever *today* differs from the
    stored date. A reading only becomes the new peak when it is strictly
    larger than the current maximum.

    Args:
        state: Current tracker state.
        power: Latest active power in kW.
        today: Current date as ``YYYY-MM-DD``.

    Returns:
        tuple: ``(new_state, is_new_peak)``.
    """
    if state.date != today:
        state = DailyPeakState(date=today, max_power=0.0)

    if power > state.max_power:
        return replace(state, max_power=power), True
    return state, False
