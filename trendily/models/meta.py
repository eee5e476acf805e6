"""
Run metadata: the audit record for every alert run.

``RunMetadata`` mirrors one row of the ``alert_runs`` table.  It records who
triggered the run, whether it was forced, the final counters, and a
``config_snapshot`` (the full ``AppConfig`` with secrets masked) so any run can
be explained after the fact.

``RunMetadata`` is NOT frozen: ``status``, the counters, ``error_message`` and
``finished_at`` are filled in as the run completes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_RUN_STATUSES = frozenset({"started", "success", "partial", "failed"})
VALID_TRIGGERS = frozenset({"http", "cli", "scheduler"})


class RunMetadata(BaseModel):
    """Alert run audit record.

    Attributes:
        run_id: Auto-assigned DB PK; ``None`` before insertion.
        run_slug: UUID4 string uniquely identifying this run.
        trigger: What started the run (``http``, ``cli`` or ``scheduler``).
        forced: Whether gating was bypassed.
        status: ``started`` until finished, then ``success`` (no errors),
            ``partial`` (some outcomes errored) or ``failed`` (fatal error).
        sent_count: Successful sends.
        attempt_count: Mailer attempts.
        errored_count: Outcomes with ``status == errored``.
        config_snapshot: ``AppConfig.model_dump(mode="json")`` at run start.
        error_message: Fatal error or joined per-group errors.
        started_at: UTC datetime when the run began.
        finished_at: UTC datetime when the run completed or failed.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    trigger: str = "cli"
    forced: bool = False
    status: str = "started"
    sent_count: int = 0
    attempt_count: int = 0
    errored_count: int = 0
    config_snapshot: dict[str, Any] = {}
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v

    @field_validator("trigger")
    @classmethod
    def validate_trigger(cls, v: str) -> str:
        if v not in VALID_TRIGGERS:
            raise ValueError(
                f"Unknown trigger '{v}'. Must be one of {sorted(VALID_TRIGGERS)}."
            )
        return v
