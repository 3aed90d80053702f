"""Named stopwatches for measuring durations in milliseconds."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Duration:
    """A single stopwatch holding a start and an end time in seconds."""

    start_time: float = 0.0
    end_time: float = 0.0

    def tick(self) -> None:
        """Record the start time."""
        self.start_time = time.perf_counter()

    def tock(self) -> None:
        """Record the end time."""
        self.end_time = time.perf_counter()

    def elapsed(self) -> float:
        """Return the time between tick and tock in milliseconds."""
        diff = self.end_time - self.start_time
        if diff < 0:
            logger.warning("Elapsed time is less than 0.")
        return diff * 1000


@dataclass
class Timer:
    """A collection of stopwatches addressed by name."""

    durations: dict[str, Duration] = field(default_factory=dict)

    def tick(self, name: str) -> None:
        """Start the stopwatch called ``name``, creating it if needed."""
        self.durations.setdefault(name, Duration()).tick()

    def tock(self, name: str) -> None:
        """Stop the stopwatch called ``name``; warn if it was never started."""
        duration = self.durations.get(name)
        if duration is None:
            logger.warning("TOCK without TICK for %r", name)
            return
        duration.tock()

    def elapsed(self, name: str) -> float:
        """Return the elapsed milliseconds of ``name`` (0 for a new one)."""
        return self.durations.setdefault(name, Duration()).elapsed()

    def log(self, name: str) -> None:
        """Print the elapsed time of ``name``."""
        print(f"{name}::{self.elapsed(name):g}ms")

    def log_all(self) -> None:
        """Print the elapsed time of every stopwatch, ordered by name."""
        for name in sorted(self.durations):
            self.log(name)

    def reset(self) -> None:
        """Forget all stopwatches."""
        self.durations.clear()