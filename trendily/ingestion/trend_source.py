"""
Provider fallback chain.

``FallbackTrendSource`` tries each configured provider in order and returns the
first non-empty series.  When every provider fails, the individual errors are
joined with ``" | "`` so the report shows exactly why each one failed.
"""

from __future__ import annotations

from typing import Optional, Sequence

from trendily.ingestion.base import TrendSource
from trendily.models.trend import TrendFetchResult

NO_DATA_MESSAGE = "No trend data"


class FallbackTrendSource(TrendSource):
    """Chains several ``TrendSource`` implementations."""

    name = "fallback"

    def __init__(self, providers: Sequence[TrendSource]) -> None:
        super().__init__()
        if not providers:
            raise ValueError("FallbackTrendSource needs at least one provider.")
        self.providers = tuple(providers)

    def fetch(self, keyword: str, geo: Optional[str] = None) -> TrendFetchResult:
        errors: list[str] = []
        for provider in self.providers:
            try:
                result = provider.fetch(keyword, geo)
            except Exception as exc:
                self.logger.warning(
                    "Provider raised | provider=%s keyword=%s error=%s",
                    provider.name, keyword, exc,
                )
                errors.append(f"{provider.name}: {exc}")
                continue
            if result.ok:
                if errors:
                    self.logger.info(
                        "Fell back to %s | keyword=%s earlier_errors=%s",
                        provider.name, keyword, " | ".join(errors),
                    )
                return result
            if result.error:
                errors.append(result.error)

        return TrendFetchResult(
            keyword=keyword, error=" | ".join(errors) or NO_DATA_MESSAGE
        )

    def __repr__(self) -> str:
        return f"FallbackTrendSource(providers={[p.name for p in self.providers]!r})"
