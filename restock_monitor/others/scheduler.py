"""Runs the poll cycle immediately, then on a fixed period, one cycle at a time."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from restock_monitor.misc.logger import get_logger


class Scheduler:
    """Single-flight fixed-period loop.

    The next firing is ``start_of_previous + interval``; when a cycle
    overruns, the next one starts as soon as the previous returns. Missed
    ticks are never queued.
    """

    def __init__(
        self,
        task: Callable[[], Any],
        interval_seconds: float,
        monotonic: Callable[[], float] = time.monotonic,
        stop_event: threading.Event | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.task = task
        self.interval_seconds = float(interval_seconds)
        self.monotonic = monotonic
        self.stop_event = stop_event or threading.Event()
        self.logger = get_logger("scheduler")
        self.cycles_run = 0
        self.cycles_failed = 0

    def stop(self) -> None:
        self.stop_event.set()

    def run_once(self) -> Any:
        """Run the task, logging and swallowing anything it raises."""
        self.cycles_run += 1
        try:
            return self.task()
        except Exception:  # noqa: BLE001
            self.cycles_failed += 1
            self.logger.exception("poll cycle crashed; next tick proceeds as scheduled")
            return None

    def run_forever(self, max_cycles: int | None = None) -> None:
        self.logger.info("loop started interval=%ss", self.interval_seconds)
        completed = 0
        while not self.stop_event.is_set():
            started = self.monotonic()
            self.run_once()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break
            wait = started + self.interval_seconds - self.monotonic()
            if wait > 0 and self.stop_event.wait(wait):
                break
        self.logger.info("loop stopped cycles=%s failed=%s", self.cycles_run, self.cycles_failed)
