"""
Per-run result types: decision outcomes, per-group results, and the run report.

All three are ephemeral.  A run produces exactly one ``DecisionOutcome`` per
evaluated subscription; each keyword group returns a ``GroupResult``; the
orchestrator folds the group results into a single ``RunReport``.

Counters are never shared mutable state.  ``RunReport.sent_count`` is derived
from the outcomes, so ``sent_count == count(status == SENT)`` cannot drift, and
``attempt_count >= sent_count`` is checked at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Iterable, Optional

from trendily.errors import RunError


class OutcomeStatus(StrEnum):
    """Final state of one subscription in one run."""

    SENT = "sent"
    SKIPPED = "skipped"
    ERRORED = "errored"


class SkipReason(StrEnum):
    """Why a subscription was not sent."""

    NO_SIGNAL = "no_signal"
    """Series too short or previous period was zero; pct_change is None."""

    LOW_VOLUME = "low_volume"
    """Average interest below the configured volume floor."""

    BELOW_THRESHOLD = "below_threshold"
    """pct_change lower than the subscription's threshold."""

    COOLDOWN = "cooldown"
    """Last alert was sent less than ``cooldown_hours`` ago."""

    RECIPIENT_RESTRICTED = "recipient_restricted"
    """Test mode is on and the recipient is not on the allow-list."""


@dataclass(frozen=True)
class DecisionOutcome:
    """What happened to one subscription in one run.

    Attributes:
        subscription_id: Store identifier of the subscription.
        email:           Recipient address.
        keyword:         Tracked keyword.
        pct_change:      Week-over-week change used for the decision.
        status:          ``sent``, ``skipped`` or ``errored``.
        reason:          Skip reason; ``None`` unless ``status == skipped``.
        error:           Error detail for ``errored`` outcomes, or a recovered
                         persistence error attached to a ``sent`` outcome.
    """

    subscription_id: str
    email: str
    keyword: str
    pct_change: Optional[int]
    status: OutcomeStatus
    reason: Optional[SkipReason] = None
    error: Optional[RunError] = None


@dataclass(frozen=True)
class GroupResult:
    """Outcome of processing one keyword group.

    Attributes:
        keyword:  The group's keyword.
        attempts: Mailer attempts made for this group.
        outcomes: One outcome per subscription in the group, in store order.
        warnings: Recovered best-effort errors (history, chart) for the group.
    """

    keyword: str
    attempts: int = 0
    outcomes: tuple[DecisionOutcome, ...] = ()
    warnings: tuple[RunError, ...] = ()


@dataclass(frozen=True)
class RunReport:
    """Aggregate result of one alert run.

    Attributes:
        run_slug:      UUID4 string identifying the run.
        forced:        Whether threshold and cooldown gating were bypassed.
        attempt_count: Total mailer attempts across all groups.
        outcomes:      Every decision outcome, in processing order.
        warnings:      Recovered errors not tied to a single subscription.
        started_at:    UTC start time.
        finished_at:   UTC finish time.
    """

    run_slug: str
    forced: bool
    attempt_count: int = 0
    outcomes: tuple[DecisionOutcome, ...] = ()
    warnings: tuple[RunError, ...] = ()
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.attempt_count < self.sent_count:
            raise ValueError(
                f"attempt_count ({self.attempt_count}) must be >= "
                f"sent_count ({self.sent_count})."
            )

    @property
    def sent_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.SENT)

    @property
    def errored_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.ERRORED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.SKIPPED)

    @classmethod
    def from_groups(
        cls,
        run_slug: str,
        forced: bool,
        groups: Iterable[GroupResult],
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        warnings: Iterable[RunError] = (),
    ) -> "RunReport":
        """Fold per-group results into one report, preserving group order."""
        attempts = 0
        outcomes: list[DecisionOutcome] = []
        all_warnings: list[RunError] = list(warnings)
        for g in groups:
            attempts += g.attempts
            outcomes.extend(g.outcomes)
            all_warnings.extend(g.warnings)
        return cls(
            run_slug=run_slug,
            forced=forced,
            attempt_count=attempts,
            outcomes=tuple(outcomes),
            warnings=tuple(all_warnings),
            started_at=started_at,
            finished_at=finished_at,
        )


@dataclass
class DispatchTally:
    """Running totals inside one dispatch loop; folded into a ``GroupResult``."""

    attempts: int = 0
    outcomes: list[DecisionOutcome] = field(default_factory=list)
