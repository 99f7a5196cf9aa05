# SPDX-License-Identifier: Apache-2.0
"""Sequential backfill from an archive RPC (``getLedgers``)."""

from __future__ import annotations

import logging
from typing import Optional

from ledgerpipe.events.decoder import LedgerDecoder
from ledgerpipe.metrics import CURRENT_LEDGER, LEDGERS_INGESTED
from ledgerpipe.rpc.source import LedgerSource

from .delivery import EventDelivery, source_errors
from .models import IngestionMode, RunControl


class HistoricalIngestor:
    """Fetch archived ledgers one by one and deliver the events they contain.

    Archive errors are not retried here. ``ingest`` returns the next ledger
    to process so the caller can resume or re-check the live window.
    """

    def __init__(
        self,
        source: LedgerSource,
        decoder: LedgerDecoder,
        control: RunControl,
        *,
        archival_interval_ms: int = 500,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.decoder = decoder
        self.control = control
        self.archival_interval_ms = archival_interval_ms
        self.log = logger or logging.getLogger(self.__class__.__name__)

    async def ingest(self, start_ledger: int, target_ledger: int, deliver: EventDelivery) -> int:
        current = start_ledger
        self.log.info("Backfilling ledgers %d..%d from archive", start_ledger, target_ledger)

        while self.control.should_continue and current <= target_ledger:
            with source_errors({"ledger": current, "method": "getLedgers"}):
                response = await self.source.get_ledgers(start_ledger=current, limit=1)

            for ledger in response.ledgers:
                with source_errors({"ledger": ledger.sequence, "method": "decode"}):
                    events = self.decoder.decode(ledger)
                for event in events:
                    await deliver(event, IngestionMode.BACKFILL)

            LEDGERS_INGESTED.labels(mode=IngestionMode.BACKFILL.value).inc()
            CURRENT_LEDGER.labels(mode=IngestionMode.BACKFILL.value).set(current)
            current += 1
            if current <= target_ledger:
                await self.control.wait(self.archival_interval_ms)

        self.log.debug("Backfill paused at ledger %d", current)
        return current


__all__ = ["HistoricalIngestor"]
