"""
Repository for ``subscriptions``.

Subscriptions are unique per ``(email, keyword)``.  ``subscribe()`` ignores
duplicates (the existing row and its ``last_notified_at`` are left untouched)
and tells the caller whether a row was created.

``update_last_notified()`` is a single-record conditional update: it only moves
``last_notified_at`` forward, so a late write from an older run can never
rewind the cooldown clock.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional
from uuid import uuid4

from trendily.db.repositories.base import BaseRepository
from trendily.models.subscription import DEFAULT_THRESHOLD, Subscription
from trendily.utils.time_utils import as_utc, parse_iso

logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository):
    """Read/write access to the ``subscriptions`` table."""

    def subscribe(
        self,
        email: str,
        keyword: str,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> tuple[Subscription, bool]:
        """Create a subscription unless ``(email, keyword)`` already exists.

        An existing inactive subscription is re-activated (threshold kept).

        Args:
            email: Recipient address.
            keyword: Keyword to track.
            threshold: Percent-change threshold for new subscriptions.

        Returns:
            Tuple of (stored subscription, created flag).

        Raises:
            pydantic.ValidationError: If email or keyword are invalid.
        """
        candidate = Subscription(
            id=str(uuid4()), email=email, keyword=keyword, threshold=threshold
        )
        cur = self.execute(
            """
            INSERT INTO subscriptions (id, email, keyword, threshold)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (email, keyword) DO NOTHING;
            """,
            (candidate.id, candidate.email, candidate.keyword, candidate.threshold),
        )
        created = cur.rowcount == 1
        if not created:
            self.execute(
                "UPDATE subscriptions SET active = 1 WHERE email = ? AND keyword = ?;",
                (candidate.email, candidate.keyword),
            )
        stored = self.get_by_email_keyword(candidate.email, candidate.keyword)
        assert stored is not None
        return stored, created

    def get_by_id(self, subscription_id: str) -> Optional[Subscription]:
        row = self.fetchone(
            "SELECT * FROM subscriptions WHERE id = ?;", (subscription_id,)
        )
        return _row_to_subscription(row) if row else None

    def get_by_email_keyword(self, email: str, keyword: str) -> Optional[Subscription]:
        row = self.fetchone(
            "SELECT * FROM subscriptions WHERE email = ? AND keyword = ?;",
            (email.strip().lower(), keyword.strip()),
        )
        return _row_to_subscription(row) if row else None

    def list_active(self, limit: int = 200) -> list[Subscription]:
        """Active subscriptions, newest first.

        Args:
            limit: Maximum rows to return.

        Returns:
            List of ``Subscription`` ordered by ``created_at`` DESC.
        """
        rows = self.fetchall(
            """
            SELECT * FROM subscriptions
            WHERE active = 1
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?;
            """,
            (limit,),
        )
        return [_row_to_subscription(r) for r in rows]

    def list_recent(self, limit: int = 20) -> list[Subscription]:
        """All subscriptions (active or not), newest first."""
        rows = self.fetchall(
            "SELECT * FROM subscriptions ORDER BY created_at DESC, rowid DESC LIMIT ?;",
            (limit,),
        )
        return [_row_to_subscription(r) for r in rows]

    def update_last_notified(self, subscription_id: str, notified_at: datetime) -> bool:
        """Move ``last_notified_at`` forward for one subscription.

        Args:
            subscription_id: Subscription to update.
            notified_at: UTC time of the successful send.

        Returns:
            ``True`` if the row was updated; ``False`` if it does not exist or
            already holds a later timestamp.
        """
        ts = as_utc(notified_at).isoformat()
        cur = self.execute(
            """
            UPDATE subscriptions
            SET last_notified_at = ?
            WHERE id = ?
              AND (last_notified_at IS NULL OR last_notified_at < ?);
            """,
            (ts, subscription_id, ts),
        )
        return cur.rowcount == 1

    def set_active(self, email: str, keyword: str, active: bool) -> bool:
        """Activate or deactivate a subscription. Returns ``True`` if found."""
        cur = self.execute(
            "UPDATE subscriptions SET active = ? WHERE email = ? AND keyword = ?;",
            (int(active), email.strip().lower(), keyword.strip()),
        )
        return cur.rowcount == 1


def _row_to_subscription(row: sqlite3.Row) -> Subscription:
    return Subscription(
        id=row["id"],
        email=row["email"],
        keyword=row["keyword"],
        threshold=row["threshold"],
        last_notified_at=parse_iso(row["last_notified_at"]),
        created_at=parse_iso(row["created_at"]),
        active=bool(row["active"]),
    )
