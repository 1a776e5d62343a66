"""
Inter-call pacing.

Fixed delay between consecutive calls so the remote endpoint is not
hit back to back. The wait ends early when the run is asked to stop.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass


DEFAULT_INTERVAL_MS = 1000


@dataclass
class PacingStats:
    """Pacing counters for a single run."""

    waits: int = 0
    interrupted: int = 0
    total_seconds: float = 0.0


class Pacer:
    """Waits a fixed interval between items.

    Usage:
        pacer = Pacer(interval_ms=1000)
        await pacer.wait(wake_event)
    """

    def __init__(self, interval_ms: int = DEFAULT_INTERVAL_MS):
        """Initialize pacer.

        Args:
            interval_ms: Delay in milliseconds, 0 disables pacing
        """
        if interval_ms < 0:
            raise ValueError("Pacing interval must be >= 0")
        self.interval_ms = interval_ms
        self.stats = PacingStats()

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    def reset(self) -> None:
        self.stats = PacingStats()

    async def wait(self, wake: asyncio.Event | None = None) -> bool:
        """Sleep for the pacing interval.

        Args:
            wake: Event that cuts the wait short when set

        Returns:
            True if the full interval elapsed, False if woken early
        """
        if self.interval_ms == 0:
            return True

        started = time.monotonic()
        self.stats.waits += 1

        try:
            if wake is None:
                await asyncio.sleep(self.interval_seconds)
                return True

            try:
                await asyncio.wait_for(wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                return True

            self.stats.interrupted += 1
            return False
        finally:
            self.stats.total_seconds += time.monotonic() - started
