"""
Progress reporting for long pair loops.

ProgressReporter counts completed work units against a known total and logs
a status line each time completion crosses the next ``step`` fraction
(default every 10%), with elapsed time and a projection of the time left
based on throughput so far. update() is O(1) and thread-safe.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional
import logging
import threading
import time

__all__ = ["ProgressReporter", "format_duration"]

_log = logging.getLogger(__name__)


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "?"
    return str(timedelta(seconds=int(round(max(0.0, seconds)))))


class ProgressReporter:
    def __init__(
        self,
        total: int,
        *,
        step: float = 0.1,
        label: str = "rmsds",
        logger: Optional[logging.Logger] = None,
        enabled: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if total < 0:
            raise ValueError("total must be >= 0")
        if not 0.0 < step <= 1.0:
            raise ValueError("step must be in (0, 1]")
        self.total = int(total)
        self.step = float(step)
        self.label = label
        self.logger = logger or _log
        self.enabled = enabled
        self._clock = clock
        self._lock = threading.Lock()
        self._completed = 0
        self._next_trigger = self.step
        self._t0: Optional[float] = None
        self._t_end: Optional[float] = None
        self.lines_emitted = 0

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self._completed / self.total

    @property
    def finished(self) -> bool:
        return self._t_end is not None

    def start(self) -> "ProgressReporter":
        with self._lock:
            self._t0 = self._clock()
            self._t_end = None
        return self

    def elapsed(self) -> float:
        if self._t0 is None:
            return 0.0
        end = self._t_end if self._t_end is not None else self._clock()
        return max(0.0, end - self._t0)

    def remaining(self) -> Optional[float]:
        """Seconds left at the current throughput; None before any unit completes."""
        done = self._completed
        if done == 0:
            return None
        if done >= self.total:
            return 0.0
        return self.elapsed() * (self.total - done) / done

    def status_line(self) -> str:
        return (
            f"{self.label}: {self.fraction:6.1%} complete ({self._completed}/{self.total}), "
            f"elapsed {format_duration(self.elapsed())}, "
            f"remaining {format_duration(self.remaining())}"
        )

    def update(self, count: int = 1) -> None:
        """Record ``count`` completed units; raises ValueError past the total."""
        if count < 0:
            raise ValueError("count must be >= 0")
        with self._lock:
            if self._t0 is None:
                self._t0 = self._clock()
            if self._completed + count > self.total:
                raise ValueError(
                    f"progress overflow: {self._completed} + {count} > total {self.total}"
                )
            self._completed += count
            if self.fraction + 1e-12 < self._next_trigger:
                return
            # one line per update even if a large batch crosses several steps
            while self._next_trigger <= self.fraction + 1e-12:
                self._next_trigger += self.step
            line = self._take_line(self.status_line())
        self._emit(line)

    def finish(self) -> None:
        with self._lock:
            if self._t0 is None:
                self._t0 = self._clock()
            self._t_end = self._clock()
            line = self._take_line(
                f"{self.label}: done, {self._completed} of {self.total} "
                f"in {format_duration(self.elapsed())}"
            )
        self._emit(line)

    def _take_line(self, line: str) -> Optional[str]:
        # caller holds the lock
        if not self.enabled:
            return None
        self.lines_emitted += 1
        return line

    def _emit(self, line: Optional[str]) -> None:
        if line is not None:
            self.logger.info(line)
