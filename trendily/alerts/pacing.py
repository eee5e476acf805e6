"""
Send pacing: a fixed-interval ticker for outbound email.

The mailer enforces a global rate ceiling, so every successful send must be
followed by at least ``interval_seconds`` before the next one.  Failed sends do
not consume the budget: only ``record_send()`` moves the ticker forward.

Usage::

    pacer = SendPacer(interval_seconds=0.3)
    for message in messages:
        pacer.wait()                 # no-op before the first send
        result = mailer.send(message)
        if result.ok:
            pacer.record_send()

One pacer is shared by every keyword group in a run; the budget is global.
``clock`` and ``sleep`` are injectable so tests never actually sleep.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SendPacer:
    """Enforces a minimum interval between successful sends.

    Args:
        interval_seconds: Minimum spacing between two successful sends.
        clock:            Monotonic clock in seconds.
        sleep:            Blocking sleep function.
    """

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {interval_seconds}.")
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_send: Optional[float] = None
        self.total_waited = 0.0

    def wait(self) -> float:
        """Block until the next send is allowed.

        Returns:
            Seconds slept (0.0 if no wait was needed).
        """
        if self._last_send is None:
            return 0.0
        remaining = self._last_send + self.interval_seconds - self._clock()
        if remaining <= 0:
            return 0.0
        logger.debug("Pacing: sleeping %.3fs before next send", remaining)
        self._sleep(remaining)
        self.total_waited += remaining
        return remaining

    def record_send(self) -> None:
        """Mark a successful send; the next ``wait()`` measures from now."""
        self._last_send = self._clock()
