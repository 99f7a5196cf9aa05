# SPDX-License-Identifier: Apache-2.0
"""Live-or-backfill decision for the combined ingestion mode."""

from __future__ import annotations

import logging
from typing import Optional

from ledgerpipe.errors import LedgerTooHighError, LedgerTooOldError, RpcNotHealthyError
from ledgerpipe.rpc.source import LedgerSource

from .delivery import source_errors
from .models import DEFAULT_SAFETY_MARGIN, IngestionMode, ModeDecision, RetentionWindow


class ModeArbiter:
    """Decides where the next ledger has to come from.

    The live node prunes old ledgers while a backfill runs, so the retention
    window is queried again on every decision and never cached.
    """

    def __init__(
        self,
        live_source: LedgerSource,
        *,
        has_archive: bool = False,
        safety_margin: int = DEFAULT_SAFETY_MARGIN,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.live_source = live_source
        self.has_archive = has_archive
        self.safety_margin = safety_margin
        self.log = logger or logging.getLogger(self.__class__.__name__)

    async def retention_window(self, *, require_healthy: bool = False) -> RetentionWindow:
        with source_errors({"method": "getHealth"}):
            health = await self.live_source.get_health()
        if require_healthy and not health.is_healthy:
            raise RpcNotHealthyError(health.status)
        return RetentionWindow.from_health(health, self.safety_margin)

    async def decide(self, current_ledger: int, stop_ledger: Optional[int] = None) -> ModeDecision:
        window = await self.retention_window()

        if current_ledger > window.latest_ledger:
            raise LedgerTooHighError(current_ledger, window.latest_ledger)

        if current_ledger >= window.oldest_available:
            return ModeDecision(IngestionMode.LIVE, window)

        if not self.has_archive:
            raise LedgerTooOldError(current_ledger, window.oldest_available)

        target = window.oldest_available - 1
        if stop_ledger is not None:
            target = min(target, stop_ledger)
        self.log.debug(
            "Ledger %d is older than the live window (oldest available %d), backfilling to %d",
            current_ledger,
            window.oldest_available,
            target,
        )
        return ModeDecision(IngestionMode.BACKFILL, window, target)


__all__ = ["ModeArbiter"]
