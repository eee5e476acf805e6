"""
Alert decision policy.

Rule
----
A subscription is a send-candidate when::

    forced
    OR (pct_change is not None
        AND pct_change >= subscription.threshold
        AND hours_since(last_notified_at) >= cooldown_hours)

``hours_since(None)`` is +infinity: a subscriber who was never notified always
passes the cooldown.  Thresholds are compared literally: 0 or negative
thresholds are valid and fire on flat or falling series.

Group-level short-circuits (skipped entirely when ``forced``):
  1. ``pct_change is None``    → every member Skipped ``no_signal``.
  2. ``average < volume_floor`` → every member Skipped ``low_volume``.
     Only applied when a floor is configured (disabled by default).

The engine only classifies.  It never calls the mailer and never touches the
store; send-candidates are handed to ``NotificationDispatcher``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from trendily.models.outcome import DecisionOutcome, OutcomeStatus, SkipReason
from trendily.models.subscription import Subscription
from trendily.models.trend import SignalSet


@dataclass(frozen=True)
class AlertPolicy:
    """Gating parameters shared by every subscription in a run.

    Attributes:
        cooldown_hours: Minimum hours between two alerts to one subscription.
        volume_floor:   Minimum average interest for a keyword group to be
                        evaluated; ``None`` disables the gate.
    """

    cooldown_hours: float = 24.0
    volume_floor: Optional[int] = None


@dataclass(frozen=True)
class Decision:
    """Classification of one subscription: send-candidate or skipped."""

    subscription: Subscription
    send: bool
    reason: Optional[SkipReason] = None

    def skipped_outcome(self, pct_change: Optional[int]) -> DecisionOutcome:
        """Build the ``skipped`` outcome for a non-send decision."""
        return DecisionOutcome(
            subscription_id=self.subscription.id,
            email=self.subscription.email,
            keyword=self.subscription.keyword,
            pct_change=pct_change,
            status=OutcomeStatus.SKIPPED,
            reason=self.reason,
        )


def hours_since(ts: Optional[datetime], now: datetime) -> float:
    """Hours elapsed between ``ts`` and ``now``; +inf when ``ts`` is None."""
    if ts is None:
        return math.inf
    return (now - ts).total_seconds() / 3600


def decide(
    subscription: Subscription,
    signals: SignalSet,
    policy: AlertPolicy,
    forced: bool,
    now: datetime,
) -> Decision:
    """Classify a single subscription against its keyword's signals.

    Args:
        subscription: The subscription to evaluate.
        signals:      Signals derived for the subscription's keyword.
        policy:       Cooldown and volume settings.
        forced:       Bypass threshold and cooldown.
        now:          Current UTC time.

    Returns:
        ``Decision`` with ``send=True`` or a skip reason.
    """
    if forced:
        return Decision(subscription, send=True)

    pct = signals.pct_change
    if pct is None:
        return Decision(subscription, send=False, reason=SkipReason.NO_SIGNAL)
    if pct < subscription.threshold:
        return Decision(subscription, send=False, reason=SkipReason.BELOW_THRESHOLD)
    if hours_since(subscription.last_notified_at, now) < policy.cooldown_hours:
        return Decision(subscription, send=False, reason=SkipReason.COOLDOWN)
    return Decision(subscription, send=True)


def evaluate_group(
    subscriptions: Sequence[Subscription],
    signals: SignalSet,
    policy: AlertPolicy,
    forced: bool,
    now: datetime,
) -> list[Decision]:
    """Classify every subscription of one keyword group, in order.

    Applies the group-level short-circuits first (no signal, low volume),
    then the per-subscription rule.

    Returns:
        One ``Decision`` per subscription, in input order.
    """
    if not forced:
        if signals.pct_change is None:
            return [
                Decision(s, send=False, reason=SkipReason.NO_SIGNAL)
                for s in subscriptions
            ]
        if policy.volume_floor is not None and signals.average < policy.volume_floor:
            return [
                Decision(s, send=False, reason=SkipReason.LOW_VOLUME)
                for s in subscriptions
            ]

    return [decide(s, signals, policy, forced, now) for s in subscriptions]
