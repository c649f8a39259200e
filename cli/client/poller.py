"""Bounded status polling for jobs"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Generation jobs change quickly; connection status checks are cheap but slow moving
GENERATION_INTERVAL_S = 2.0
CONNECTION_STATUS_INTERVAL_S = 12.0
REFRESH_WINDOW_S = 60.0

TERMINAL_JOB_STATUSES = frozenset({"done", "failed", "canceled"})


@dataclass
class PollResult:
    """Last observed status and why polling stopped"""

    status: dict[str, Any] | None
    terminal: bool
    requests: int
    timed_out: bool


class StatusPoller:
    """
    Polls a status endpoint until the job is terminal or the window closes.

    Polling never runs unbounded: poll() stops after window_s and refresh()
    re-arms for refresh_window_s with an immediate request. Both stop early
    as soon as a terminal status is observed.
    """

    def __init__(
        self,
        fetch_status: Callable[[str], dict[str, Any]],
        interval_s: float = GENERATION_INTERVAL_S,
        window_s: float = 120.0,
        refresh_window_s: float = REFRESH_WINDOW_S,
        terminal_statuses: frozenset[str] = TERMINAL_JOB_STATUSES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if window_s < 0 or refresh_window_s < 0:
            raise ValueError("polling windows cannot be negative")

        self.fetch_status = fetch_status
        self.interval_s = interval_s
        self.window_s = window_s
        self.refresh_window_s = refresh_window_s
        self.terminal_statuses = terminal_statuses
        self.clock = clock
        self.sleep = sleep

    def is_terminal(self, status: dict[str, Any] | None) -> bool:
        return bool(status) and status.get("status") in self.terminal_statuses

    def poll(
        self,
        job_id: str,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> PollResult:
        """Poll every interval_s until terminal or window_s has elapsed."""
        return self._run(job_id, self.window_s, on_update)

    def refresh(
        self,
        job_id: str,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> PollResult:
        """Manual refresh: fetch now, then keep polling for refresh_window_s."""
        return self._run(job_id, self.refresh_window_s, on_update)

    def _run(
        self,
        job_id: str,
        window_s: float,
        on_update: Callable[[dict[str, Any]], None] | None,
    ) -> PollResult:
        deadline = self.clock() + window_s
        requests = 0

        while True:
            status = self.fetch_status(job_id)
            requests += 1
            if on_update is not None:
                on_update(status)

            if self.is_terminal(status):
                return PollResult(status, terminal=True, requests=requests, timed_out=False)

            remaining = deadline - self.clock()
            if remaining <= 0:
                return PollResult(status, terminal=False, requests=requests, timed_out=True)

            self.sleep(min(self.interval_s, remaining))
