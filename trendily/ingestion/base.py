"""
Trend source interface.

A ``TrendSource`` fetches the interest-over-time series for one keyword.
Implementations never raise for provider-side problems (quota, empty series,
bad status): they return a ``TrendFetchResult`` with an empty point list and
the provider's error string, which the pipeline reports verbatim.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from trendily.models.trend import TrendFetchResult


class TrendSource(ABC):
    """Base class for interest-over-time providers.

    Attributes:
        name: Short provider identifier recorded as ``TrendFetchResult.source``.
    """

    name: str = "trend_source"

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def fetch(self, keyword: str, geo: Optional[str] = None) -> TrendFetchResult:
        """Fetch the chronological series for ``keyword``.

        Args:
            keyword: Search query.
            geo:     Optional region code (e.g. ``"FR"``).

        Returns:
            ``TrendFetchResult``; ``points`` is empty and ``error`` is set on
            failure.
        """
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
