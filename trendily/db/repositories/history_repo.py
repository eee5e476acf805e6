"""
Repository for ``trend_history``.

One row per ``(keyword, label)``.  Re-fetching a keyword overwrites the
interest value of every period it returns (providers revise recent weeks),
so the table always holds the latest known value per period.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional, Sequence

from trendily.db.repositories.base import BaseRepository
from trendily.models.subscription import HistoryRow
from trendily.utils.time_utils import as_utc, parse_iso

logger = logging.getLogger(__name__)


class TrendHistoryRepository(BaseRepository):
    """Read/write access to the ``trend_history`` table."""

    def upsert_many(self, rows: Sequence[HistoryRow]) -> int:
        """Insert or refresh history rows.

        Args:
            rows: Rows to write; duplicates on ``(keyword, label)`` replace the
                stored interest, source and fetch time.

        Returns:
            Number of rows written.
        """
        if not rows:
            return 0
        self.executemany(
            """
            INSERT INTO trend_history (keyword, label, interest, source, fetched_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (keyword, label) DO UPDATE SET
                interest   = excluded.interest,
                source     = excluded.source,
                fetched_at = excluded.fetched_at;
            """,
            [
                (r.keyword, r.label, r.interest, r.source, as_utc(r.fetched_at).isoformat())
                for r in rows
            ],
        )
        logger.debug("Upserted %d trend_history rows", len(rows))
        return len(rows)

    def get_series(self, keyword: str, limit: Optional[int] = None) -> list[HistoryRow]:
        """Stored series for ``keyword`` in chronological label order.

        Args:
            keyword: Keyword as stored.
            limit: If set, only the most recent ``limit`` periods.

        Returns:
            List of ``HistoryRow`` ordered by label ascending.
        """
        if limit is None:
            rows = self.fetchall(
                "SELECT * FROM trend_history WHERE keyword = ? ORDER BY label ASC;",
                (keyword,),
            )
            return [_row_to_history(r) for r in rows]

        rows = self.fetchall(
            """
            SELECT * FROM trend_history
            WHERE keyword = ?
            ORDER BY label DESC
            LIMIT ?;
            """,
            (keyword, limit),
        )
        return [_row_to_history(r) for r in reversed(rows)]

    def list_keywords(self) -> list[str]:
        rows = self.fetchall(
            "SELECT DISTINCT keyword FROM trend_history ORDER BY keyword;"
        )
        return [r["keyword"] for r in rows]


def _row_to_history(row: sqlite3.Row) -> HistoryRow:
    return HistoryRow(
        keyword=row["keyword"],
        label=row["label"],
        interest=row["interest"],
        source=row["source"],
        fetched_at=parse_iso(row["fetched_at"]),
    )
