"""
Trend series models: raw points from a trend source and derived signals.

``TrendPoint`` is one period of search interest as returned by a trend source
(Google Trends via SerpAPI or pytrends).  Sequences are chronological, one
point per period; gaps are tolerated but never filled.

``SignalSet`` is derived, ephemeral, and computed once per (keyword, run) by
``trendily.signals.metrics.derive_signals``.  It is never persisted.

``TrendFetchResult`` is the trend source contract: a (possibly empty) point
list plus the provider's error string, which callers must surface verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TrendPoint(BaseModel):
    """Search interest for a single period.

    Attributes:
        label: Period identifier, e.g. an ISO week-start date ``"2025-03-02"``.
        interest: Bounded 0–100 intensity score from the trend source.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    interest: float

    @field_validator("interest")
    @classmethod
    def validate_interest(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"interest must be non-negative, got {v}.")
        return v


@dataclass(frozen=True)
class SignalSet:
    """Derived week-over-week signals for one keyword in one run.

    Attributes:
        pct_change: Percent change between the two latest periods, or ``None``
                    when fewer than two points exist or the previous value is 0.
        average:    Rounded mean interest (0 for an empty series).
        stability:  Percent of non-decreasing transitions (0 below three points).
        last_interest: Interest of the latest period, or ``None`` if empty.
    """

    pct_change: Optional[int]
    average: int
    stability: int
    last_interest: Optional[float] = None


@dataclass(frozen=True)
class TrendFetchResult:
    """What a trend source returns for one keyword.

    Attributes:
        keyword: The query that was fetched.
        points:  Chronological points; empty on failure.
        source:  Provider that produced ``points`` (``"serpapi"``,
                 ``"google_trends"``), or ``None`` when every provider failed.
        error:   Provider error string, verbatim; ``None`` on success.
    """

    keyword: str
    points: tuple[TrendPoint, ...] = field(default_factory=tuple)
    source: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return len(self.points) > 0
