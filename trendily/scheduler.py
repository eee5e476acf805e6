"""Scheduler daemon that runs ``trendily check-alerts`` on a fixed interval.

No external scheduler library is required; uses stdlib ``time``, ``signal``
and ``subprocess`` only.

Typical usage via the CLI::

    trendily start-scheduler --interval-hours 24

Or import directly::

    from trendily.scheduler import SchedulerDaemon
    daemon = SchedulerDaemon(interval_hours=24)
    daemon.start()  # blocks until Ctrl-C

Each run is a subprocess of the installed CLI, so it has its own process,
logging and exit code.  A failed run is logged and the daemon keeps going.
The alert secret is read from the environment by the child process.
"""

from __future__ import annotations

import logging
import platform
import signal
import subprocess
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

log = logging.getLogger(__name__)

RUN_TIMEOUT_SECONDS = 3600
TICK_SECONDS = 30


# ── Helpers ───────────────────────────────────────────────────────────────────


def _find_cli_exe() -> str:
    """Locate the ``trendily`` executable inside the active virtual env."""
    scripts_dir = Path(sys.executable).parent
    name = "trendily.exe" if platform.system() == "Windows" else "trendily"
    candidate = scripts_dir / name
    if candidate.exists():
        return str(candidate)
    raise RuntimeError(
        f"Could not find trendily executable in {scripts_dir}. Run: pip install -e ."
    )


# ── Daemon ────────────────────────────────────────────────────────────────────


class SchedulerDaemon:
    """Runs ``check-alerts`` every ``interval_hours``.

    Parameters
    ----------
    interval_hours:
        Hours between two runs.
    config_path:
        Optional TOML config forwarded to every run.
    skip_initial_run:
        When *True*, wait one full interval before the first run.
    cli_exe:
        Full path to the CLI executable.  Auto-detected when *None*.
    runner:
        ``subprocess.run``-compatible callable; injectable for tests.
    """

    def __init__(
        self,
        interval_hours: float = 24.0,
        config_path: Optional[str] = None,
        skip_initial_run: bool = False,
        cli_exe: Optional[str] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        if interval_hours <= 0:
            raise ValueError(f"interval_hours must be > 0, got {interval_hours}.")
        self.interval_hours = interval_hours
        self.config_path = config_path
        self.skip_initial_run = skip_initial_run
        self.cli_exe = cli_exe or _find_cli_exe()
        self._runner = runner
        self._running = False

    def build_command(self) -> list[str]:
        cmd = [self.cli_exe, "check-alerts", "--trigger", "scheduler"]
        if self.config_path:
            cmd += ["--config", self.config_path]
        return cmd

    def run_once(self) -> bool:
        """Run ``check-alerts`` once.  Returns ``True`` on exit code 0."""
        cmd = self.build_command()
        log.info("[check-alerts] Running: %s", " ".join(cmd))
        try:
            result = self._runner(cmd, timeout=RUN_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            log.error("[check-alerts] Timed out after %d s.", RUN_TIMEOUT_SECONDS)
            return False
        except Exception as exc:
            log.error("[check-alerts] Unexpected error: %s", exc, exc_info=True)
            return False
        if result.returncode == 0:
            log.info("[check-alerts] Completed successfully (exit 0).")
            return True
        log.error("[check-alerts] Exited with code %d.", result.returncode)
        return False

    # ── Main loop ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the daemon.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        interval = timedelta(hours=self.interval_hours)
        next_run = datetime.now() + interval if self.skip_initial_run else datetime.now()

        log.info(
            "Scheduler started.  interval_hours=%s  next_run=%s",
            self.interval_hours,
            next_run.isoformat(timespec="seconds"),
        )

        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received, stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        while self._running:
            if datetime.now() >= next_run:
                self.run_once()
                next_run = datetime.now() + interval
                log.info("Next run scheduled: %s", next_run.isoformat(timespec="seconds"))
            time.sleep(TICK_SECONDS)

        log.info("Scheduler stopped.")
