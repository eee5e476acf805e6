"""
Repository for ``alert_runs``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from trendily.db.repositories.base import BaseRepository
from trendily.models.meta import RunMetadata
from trendily.utils.time_utils import parse_iso

logger = logging.getLogger(__name__)


class AlertRunRepository(BaseRepository):
    """Read/write access to ``alert_runs``."""

    def insert_run(self, run: RunMetadata) -> int:
        """Insert a new run record and return its ``run_id``.

        Args:
            run: The ``RunMetadata`` to persist.

        Returns:
            The newly assigned ``run_id``.
        """
        self.execute(
            """
            INSERT INTO alert_runs (
                run_slug, triggered_by, forced, status,
                sent_count, attempt_count, errored_count,
                config_snapshot, error_message, started_at, finished_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                run.run_slug,
                run.trigger,
                int(run.forced),
                run.status,
                run.sent_count,
                run.attempt_count,
                run.errored_count,
                json.dumps(run.config_snapshot),
                run.error_message,
                run.started_at.isoformat(),
                run.finished_at.isoformat() if run.finished_at else None,
            ),
        )
        return self.last_insert_rowid()

    def update_run(self, run: RunMetadata) -> None:
        """Update the mutable fields of an existing run record.

        Raises:
            ValueError: If ``run.run_id`` is ``None``.
        """
        if run.run_id is None:
            raise ValueError("Cannot update RunMetadata without a run_id.")
        self.execute(
            """
            UPDATE alert_runs SET
                status        = ?,
                sent_count    = ?,
                attempt_count = ?,
                errored_count = ?,
                error_message = ?,
                finished_at   = ?
            WHERE run_id = ?;
            """,
            (
                run.status,
                run.sent_count,
                run.attempt_count,
                run.errored_count,
                run.error_message,
                run.finished_at.isoformat() if run.finished_at else None,
                run.run_id,
            ),
        )

    def get_run_by_slug(self, run_slug: str) -> Optional[RunMetadata]:
        row = self.fetchone("SELECT * FROM alert_runs WHERE run_slug = ?;", (run_slug,))
        return _row_to_run(row) if row else None

    def get_recent_runs(self, limit: int = 20) -> list[RunMetadata]:
        """Most recent runs first."""
        rows = self.fetchall(
            "SELECT * FROM alert_runs ORDER BY started_at DESC, run_id DESC LIMIT ?;",
            (limit,),
        )
        return [_row_to_run(r) for r in rows]


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        run_slug=row["run_slug"],
        trigger=row["triggered_by"],
        forced=bool(row["forced"]),
        status=row["status"],
        sent_count=row["sent_count"],
        attempt_count=row["attempt_count"],
        errored_count=row["errored_count"],
        config_snapshot=json.loads(row["config_snapshot"] or "{}"),
        error_message=row["error_message"],
        started_at=parse_iso(row["started_at"]),
        finished_at=parse_iso(row["finished_at"]),
    )
