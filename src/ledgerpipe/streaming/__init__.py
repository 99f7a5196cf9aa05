# SPDX-License-Identifier: Apache-2.0
"""Streaming engine: live polling, archive backfill and the mode arbiter."""

from .arbiter import ModeArbiter
from .dedup import DEFAULT_DEDUP_CAPACITY, RecentEventIds
from .delivery import EventDelivery
from .historical import HistoricalIngestor
from .live import LiveIngestor
from .models import (
    DEFAULT_SAFETY_MARGIN,
    IngestionMode,
    LivePollResult,
    ModeDecision,
    RetentionWindow,
    RunControl,
    RunState,
)
from .streamer import EventStreamer

__all__ = [
    "EventStreamer",
    "ModeArbiter",
    "LiveIngestor",
    "HistoricalIngestor",
    "EventDelivery",
    "RecentEventIds",
    "DEFAULT_DEDUP_CAPACITY",
    "DEFAULT_SAFETY_MARGIN",
    "IngestionMode",
    "LivePollResult",
    "ModeDecision",
    "RetentionWindow",
    "RunControl",
    "RunState",
]
