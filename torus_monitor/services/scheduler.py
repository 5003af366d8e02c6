# torus_monitor/services/scheduler.py

from __future__ import annotations

import time
from typing import Callable


class PollScheduler:
    """
    Fixed-cadence loop for a bounded run.

    Ticks are phase-locked to the run start: before iteration k+1 the loop
    sleeps until T0 + k * interval, so per-iteration work time never
    accumulates as drift.
    """

    def __init__(
        self,
        interval: float,
        duration: float,
        log,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self.duration = duration
        self.log = log
        self.clock = clock
        self.sleep = sleep
        self.start: float | None = None

    def elapsed(self) -> float:
        return self.clock() - self.start

    def next_tick(self, completed: int) -> float:
        return self.start + completed * self.interval

    def run(self, fn: Callable[[int], None]) -> int:
        """Call fn(iteration) until the duration is used up. Returns the iteration count."""
        self.start = self.clock()
        iteration = 0

        while self.elapsed() < self.duration:
            iteration += 1
            try:
                fn(iteration)
            except Exception as exc:
                self.log.error("Error iteration %d: %s", iteration, exc)

            if self.elapsed() < self.duration:
                wait = self.next_tick(iteration) - self.clock()
                if wait > 0:
                    self.sleep(wait)

        return iteration
