"""
Week-over-week trend metrics.

Metric design
-------------
pct_change
  Percent change between the two most recent periods:
  ``round(100 * (last - prev) / prev)``.  Undefined (``None``) with fewer than
  two points or when the previous period is 0.  A jump from nothing is not a
  percentage, and the division is never attempted.

average
  Arithmetic mean of all interest values, rounded.  Used as a volume proxy:
  a +50% move on an average of 3/100 is noise.  ``0`` for an empty series.

stability
  Percentage of period-to-period transitions that did not go down
  (``points[i] >= points[i-1]``).  100 means a steady climb; 0 below three
  points because one transition says nothing about a trend.

momentum_score
  ``pct_change * average/100 * stability/100``, a single number shown in the
  alert subject.  Informational only; never used to gate a send.

Rounding matches the trend dashboards users compare against: halves round
toward +infinity (``2.5 -> 3``, ``-2.5 -> -2``), not banker's rounding.

Every function here is pure and deterministic.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from trendily.models.trend import SignalSet, TrendPoint


def _round(x: float) -> int:
    return int(math.floor(x + 0.5))


def pct_change(points: Sequence[TrendPoint]) -> Optional[int]:
    """Week-over-week percent change of the last two points.

    Args:
        points: Chronological trend points.

    Returns:
        Rounded percent change, or ``None`` if there are fewer than two
        points or the previous value is zero.
    """
    if len(points) < 2:
        return None
    last = points[-1].interest
    prev = points[-2].interest
    if not prev:
        return None
    return _round(100 * (last - prev) / prev)


def average(points: Sequence[TrendPoint]) -> int:
    """Rounded mean interest; ``0`` for an empty sequence."""
    if not points:
        return 0
    return _round(sum(p.interest for p in points) / len(points))


def stability(points: Sequence[TrendPoint]) -> int:
    """Percent of non-decreasing transitions; ``0`` for fewer than 3 points."""
    if len(points) < 3:
        return 0
    up = sum(
        1 for i in range(1, len(points))
        if points[i].interest >= points[i - 1].interest
    )
    return _round(100 * up / (len(points) - 1))


def derive_signals(points: Sequence[TrendPoint]) -> SignalSet:
    """Compute all signals for one keyword's series.

    Args:
        points: Chronological trend points (may be empty).

    Returns:
        ``SignalSet`` with pct_change, average, stability and the latest
        interest value.
    """
    return SignalSet(
        pct_change=pct_change(points),
        average=average(points),
        stability=stability(points),
        last_interest=points[-1].interest if points else None,
    )


def momentum_score(signals: SignalSet) -> int:
    """Composite growth x volume x stability score, rounded."""
    pct = signals.pct_change or 0
    return _round(pct * (signals.average / 100) * (signals.stability / 100))


def weekly_deltas(points: Sequence[TrendPoint], weeks: int = 12) -> list[dict]:
    """The last ``weeks`` periods with their change against the period before.

    Returns:
        Rows ``{"label", "interest", "delta_pct"}`` in chronological order.
        ``delta_pct`` is ``None`` for the first point of the series and
        wherever the previous period is 0.
    """
    start = max(len(points) - weeks, 0)
    rows: list[dict] = []
    for i in range(start, len(points)):
        prev = points[i - 1].interest if i > 0 else 0
        delta = _round(100 * (points[i].interest - prev) / prev) if prev else None
        rows.append(
            {"label": points[i].label, "interest": points[i].interest, "delta_pct": delta}
        )
    return rows
