"""
Store interfaces consumed by the alert pipeline, and their SQLite adapters.

The orchestrator and dispatcher only see ``SubscriptionStore`` and ``RunLog``;
neither knows about SQL.  The SQLite adapters open one short connection per
operation through ``get_connection()`` so a long run never holds a write lock
while it waits on the network.

Every ``sqlite3.Error`` raised by an adapter is re-raised as
``PersistenceError``; callers decide whether that is fatal.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence

from trendily.db.connection import get_connection
from trendily.db.repositories.history_repo import TrendHistoryRepository
from trendily.db.repositories.run_repo import AlertRunRepository
from trendily.db.repositories.subscription_repo import SubscriptionRepository
from trendily.errors import PersistenceError
from trendily.models.meta import RunMetadata
from trendily.models.subscription import HistoryRow, Subscription

logger = logging.getLogger(__name__)


class SubscriptionStore(ABC):
    """Read active subscriptions, record notifications, keep trend history."""

    @abstractmethod
    def list_active(self, limit: int) -> list[Subscription]:
        """Active subscriptions, newest first, at most ``limit``."""

    @abstractmethod
    def update_last_notified(self, subscription_id: str, notified_at: datetime) -> bool:
        """Set ``last_notified_at`` on one subscription.

        Returns:
            ``True`` if the record was updated.
        """

    @abstractmethod
    def upsert_history(self, rows: Sequence[HistoryRow]) -> int:
        """Insert or refresh trend history rows; returns the number written."""


class RunLog(ABC):
    """Audit log of alert runs."""

    @abstractmethod
    def start(self, run: RunMetadata) -> RunMetadata:
        """Persist a new run and return it with ``run_id`` set."""

    @abstractmethod
    def finish(self, run: RunMetadata) -> None:
        """Persist the final status and counters of ``run``."""


class _SqliteAdapter:
    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    def _connect(self):
        return get_connection(self.db_path, self.wal_mode, self.busy_timeout_ms)


class SqliteSubscriptionStore(_SqliteAdapter, SubscriptionStore):
    """``SubscriptionStore`` backed by the ``subscriptions`` and
    ``trend_history`` tables."""

    def list_active(self, limit: int) -> list[Subscription]:
        try:
            with self._connect() as conn:
                return SubscriptionRepository(conn).list_active(limit=limit)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to load subscriptions: {exc}") from exc

    def update_last_notified(self, subscription_id: str, notified_at: datetime) -> bool:
        try:
            with self._connect() as conn:
                return SubscriptionRepository(conn).update_last_notified(
                    subscription_id, notified_at
                )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to update last_notified_at for {subscription_id}: {exc}"
            ) from exc

    def upsert_history(self, rows: Sequence[HistoryRow]) -> int:
        if not rows:
            return 0
        try:
            with self._connect() as conn:
                return TrendHistoryRepository(conn).upsert_many(rows)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to write trend history for '{rows[0].keyword}': {exc}",
                keyword=rows[0].keyword,
            ) from exc


class SqliteRunLog(_SqliteAdapter, RunLog):
    """``RunLog`` backed by the ``alert_runs`` table."""

    def start(self, run: RunMetadata) -> RunMetadata:
        try:
            with self._connect() as conn:
                run.run_id = AlertRunRepository(conn).insert_run(run)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to record run start: {exc}") from exc
        return run

    def finish(self, run: RunMetadata) -> None:
        try:
            with self._connect() as conn:
                AlertRunRepository(conn).update_run(run)
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError(f"Failed to record run finish: {exc}") from exc

    def recent(self, limit: int = 20) -> list[RunMetadata]:
        try:
            with self._connect() as conn:
                return AlertRunRepository(conn).get_recent_runs(limit=limit)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read runs: {exc}") from exc


def init_database(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> list[str]:
    """Create the schema if needed and return the table names present."""
    from trendily.db.schema import apply_schema, get_existing_tables

    with get_connection(db_path, wal_mode, busy_timeout_ms) as conn:
        apply_schema(conn)
        return get_existing_tables(conn)
