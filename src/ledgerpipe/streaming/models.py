# SPDX-License-Identifier: Apache-2.0
"""Value objects and run-state bookkeeping for the streaming engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ledgerpipe.errors import StreamerAlreadyRunningError
from ledgerpipe.metrics import STREAMER_RUNNING
from ledgerpipe.rpc.models import HealthResponse

# Ledgers added to the node's oldest retained ledger before treating it as servable
DEFAULT_SAFETY_MARGIN = 2


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class IngestionMode(str, Enum):
    LIVE = "live"
    BACKFILL = "backfill"


@dataclass(frozen=True)
class RetentionWindow:
    """Ledger range a live source can serve, as reported by one health query."""

    oldest_ledger: int
    latest_ledger: int
    safety_margin: int = DEFAULT_SAFETY_MARGIN

    @classmethod
    def from_health(
        cls, health: HealthResponse, safety_margin: int = DEFAULT_SAFETY_MARGIN
    ) -> RetentionWindow:
        return cls(health.oldest_ledger, health.latest_ledger, safety_margin)

    @property
    def oldest_available(self) -> int:
        return self.oldest_ledger + self.safety_margin

    def contains(self, ledger: int) -> bool:
        return self.oldest_available <= ledger <= self.latest_ledger


@dataclass(frozen=True)
class LivePollResult:
    next_ledger: int
    should_wait: bool
    hit_stop_ledger: bool = False


@dataclass(frozen=True)
class ModeDecision:
    mode: IngestionMode
    window: RetentionWindow
    target_ledger: Optional[int] = None


class RunControl:
    """Run state of one streamer plus the cooperative stop signal.

    ``begin``/``finish`` bracket a run. ``stop`` only raises a flag; the
    state returns to IDLE when the loop actually exits, so a new run cannot
    start while the previous one is still winding down. Pacing waits are
    interrupted by ``stop`` so the loop reaches its next checkpoint promptly.
    """

    def __init__(self) -> None:
        self._state = RunState.IDLE
        self._stop_requested = False
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    @property
    def should_continue(self) -> bool:
        """Checkpoint test used by every ingestion loop."""
        return self._state is RunState.RUNNING and not self._stop_requested

    def begin(self) -> None:
        if self._state is RunState.RUNNING:
            raise StreamerAlreadyRunningError()
        self._state = RunState.RUNNING
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        STREAMER_RUNNING.inc()

    def finish(self) -> None:
        if self._state is RunState.IDLE:
            return
        self._state = RunState.IDLE
        self._stop_requested = False
        STREAMER_RUNNING.dec()

    def stop(self) -> None:
        if self._state is not RunState.RUNNING:
            return
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    async def wait(self, interval_ms: int) -> None:
        """Sleep ``interval_ms`` unless a stop is requested in the meantime."""
        if not self.should_continue or self._wakeup is None:
            return
        if interval_ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=interval_ms / 1000)
        except asyncio.TimeoutError:
            pass


__all__ = [
    "DEFAULT_SAFETY_MARGIN",
    "RunState",
    "IngestionMode",
    "RetentionWindow",
    "LivePollResult",
    "ModeDecision",
    "RunControl",
]
