"""
Google Trends fallback via ``pytrends``.

No credential needed, but Google rate-limits aggressively, so this source sits
after SerpAPI in the default provider order.  Labels are the ISO date of each
period start.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from pytrends.request import TrendReq

from trendily.ingestion.base import TrendSource
from trendily.models.trend import TrendFetchResult, TrendPoint


class GoogleTrendsSource(TrendSource):
    """Interest-over-time from the unofficial Google Trends API.

    Args:
        timeframe:  pytrends timeframe string, e.g. ``"today 12-m"``.
        max_points: Keep only the most recent ``max_points`` periods.
        client_factory: Builds the ``TrendReq`` session; injectable for tests.
    """

    name = "google_trends"

    def __init__(
        self,
        timeframe: str = "today 12-m",
        max_points: int = 52,
        client_factory: Callable[[], Any] = lambda: TrendReq(hl="en-US", tz=0),
    ) -> None:
        super().__init__()
        self.timeframe = timeframe
        self.max_points = max_points
        self._client_factory = client_factory

    def fetch(self, keyword: str, geo: Optional[str] = None) -> TrendFetchResult:
        try:
            client = self._client_factory()
            client.build_payload([keyword], cat=0, timeframe=self.timeframe, geo=geo or "")
            frame = client.interest_over_time()
        except Exception as exc:  # pytrends surfaces requests and pandas errors as-is
            self.logger.warning("pytrends failed | keyword=%s error=%s", keyword, exc)
            return TrendFetchResult(keyword=keyword, error=f"google_trends: {exc}")

        if frame is None or frame.empty or keyword not in frame.columns:
            return TrendFetchResult(
                keyword=keyword, error="google_trends: interest_over_time empty"
            )

        points = tuple(
            TrendPoint(label=ts.date().isoformat(), interest=max(float(value), 0.0))
            for ts, value in frame[keyword].items()
        )[-self.max_points:]
        return TrendFetchResult(keyword=keyword, points=points, source=self.name)
