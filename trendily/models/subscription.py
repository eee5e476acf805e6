"""
Subscription and trend-history models.

``Subscription`` is owned by the subscription store.  It is created when a user
subscribes to a keyword, and the only field the alert pipeline ever mutates is
``last_notified_at``, written by the dispatcher right after a confirmed send.
The pipeline never deletes subscriptions; ``active=False`` rows are simply not
returned by ``list_active()``.

``HistoryRow`` is one (keyword, period) interest value persisted for later
lookback.  History writes are best effort.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from trendily.utils.time_utils import as_utc

DEFAULT_THRESHOLD = 10.0


class Subscription(BaseModel):
    """A user's request to be alerted when a keyword trends up.

    Attributes:
        id: Store-assigned identifier (UUID4 string for the SQLite store).
        email: Recipient address, lower-cased.
        keyword: Tracked search query, whitespace-trimmed.
        threshold: Minimum week-over-week percent change that triggers an
            alert.  Zero and negative values are valid and honored literally.
        last_notified_at: UTC time of the last successful alert, or ``None``.
        created_at: UTC creation time, or ``None`` if the store does not track it.
        active: Inactive subscriptions are never evaluated.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    keyword: str
    threshold: float = DEFAULT_THRESHOLD
    last_notified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    active: bool = True

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError(f"Invalid email address '{v}'.")
        return v

    @field_validator("keyword")
    @classmethod
    def validate_keyword(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("keyword must not be empty.")
        return v

    @field_validator("last_notified_at", "created_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None


class HistoryRow(BaseModel):
    """One persisted interest value for a keyword and period.

    Attributes:
        keyword: Tracked search query.
        label: Period identifier from the trend source.
        interest: Interest score for that period.
        source: Provider that produced the value.
        fetched_at: UTC time the value was fetched.
    """

    model_config = ConfigDict(frozen=True)

    keyword: str
    label: str
    interest: float
    source: Optional[str] = None
    fetched_at: datetime

    @field_validator("fetched_at")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return as_utc(v)
