"""
Chart renderer interface.

Charts are a best-effort decoration on alert emails: a renderer returns either
an image URL or an error string, and the pipeline carries on either way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from trendily.models.trend import TrendPoint


@dataclass(frozen=True)
class ChartResult:
    """Rendered chart reference, or the reason there is none."""

    url: Optional[str] = None
    error: Optional[str] = None


class ChartRenderer(ABC):
    """Turns a trend series into a chart image reference."""

    @abstractmethod
    def render(self, keyword: str, points: Sequence[TrendPoint]) -> ChartResult:
        ...
