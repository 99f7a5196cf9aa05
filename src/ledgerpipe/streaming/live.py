# SPDX-License-Identifier: Apache-2.0
"""Live ingestion against the retained window of an RPC node (``getEvents``)."""

from __future__ import annotations

import logging
from typing import Optional

from ledgerpipe.events.models import ContractEvent
from ledgerpipe.metrics import CURRENT_LEDGER, LEDGERS_INGESTED
from ledgerpipe.rpc.models import EventsResponse
from ledgerpipe.rpc.source import LedgerSource

from .delivery import EventDelivery, source_errors
from .models import IngestionMode, LivePollResult, RunControl


class LiveIngestor:
    """Polls one ledger at a time and paces itself against the chain tip.

    Usage:
        >>> ingestor = LiveIngestor(rpc, control, page_size=10)
        >>> await ingestor.run(start_ledger, delivery, stop_ledger=None)
    """

    def __init__(
        self,
        source: LedgerSource,
        control: RunControl,
        *,
        page_size: int = 10,
        paging_interval_ms: int = 100,
        wait_ledger_interval_ms: int = 5000,
        skip_wait_if_behind: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source = source
        self.control = control
        self.page_size = page_size
        self.paging_interval_ms = paging_interval_ms
        self.wait_ledger_interval_ms = wait_ledger_interval_ms
        self.skip_wait_if_behind = skip_wait_if_behind
        self.log = logger or logging.getLogger(self.__class__.__name__)

    async def run(
        self,
        start_ledger: int,
        deliver: EventDelivery,
        stop_ledger: Optional[int] = None,
    ) -> int:
        """Ingest from ``start_ledger`` until stopped or past ``stop_ledger``.

        Returns the ledger the next run should resume from.
        """
        current = start_ledger
        while self.control.should_continue:
            if stop_ledger is not None and current > stop_ledger:
                self.log.info("Reached stop ledger %d", stop_ledger)
                break
            result = await self.step(current, deliver, stop_ledger)
            current = result.next_ledger
            if result.hit_stop_ledger:
                self.log.info("Event past stop ledger %d seen, finishing", stop_ledger)
                break
        return current

    async def step(
        self,
        ledger: int,
        deliver: EventDelivery,
        stop_ledger: Optional[int] = None,
    ) -> LivePollResult:
        """One poll followed by the ledger wait policy."""
        result = await self.ingest_ledger(ledger, deliver, stop_ledger)
        if result.hit_stop_ledger:
            return result
        if result.should_wait and (stop_ledger is None or result.next_ledger <= stop_ledger):
            await self.control.wait(self.wait_ledger_interval_ms)
        return result

    async def ingest_ledger(
        self,
        ledger: int,
        deliver: EventDelivery,
        stop_ledger: Optional[int] = None,
    ) -> LivePollResult:
        """Deliver every page of events for ``ledger`` and report the chain state."""
        cursor: Optional[str] = None

        while self.control.should_continue:
            response = await self._fetch(ledger, deliver, cursor)

            for raw in response.events:
                if stop_ledger is not None and raw.ledger > stop_ledger:
                    return LivePollResult(raw.ledger, should_wait=False, hit_stop_ledger=True)
                with source_errors({"ledger": raw.ledger, "method": "getEvents"}):
                    event = ContractEvent.from_rpc(raw)
                await deliver(event, IngestionMode.LIVE)

            if response.events and response.cursor:
                cursor = response.cursor
                await self.control.wait(self.paging_interval_ms)
                continue

            LEDGERS_INGESTED.labels(mode=IngestionMode.LIVE.value).inc()
            CURRENT_LEDGER.labels(mode=IngestionMode.LIVE.value).set(ledger)
            return self._chain_state(ledger, response.latest_ledger)

        return LivePollResult(ledger, should_wait=True)

    def _chain_state(self, ledger: int, latest_ledger: int) -> LivePollResult:
        # Node has not closed the requested ledger yet: retry it later
        if latest_ledger < ledger:
            return LivePollResult(ledger, should_wait=True)
        # At the tip: the next ledger is probably not closed yet
        if latest_ledger == ledger:
            return LivePollResult(ledger + 1, should_wait=True)
        # Catching up
        return LivePollResult(ledger + 1, should_wait=not self.skip_wait_if_behind)

    async def _fetch(
        self, ledger: int, deliver: EventDelivery, cursor: Optional[str]
    ) -> EventsResponse:
        with source_errors({"ledger": ledger, "method": "getEvents"}):
            if cursor:
                return await self.source.get_events(
                    cursor=cursor, filters=deliver.filters, limit=self.page_size
                )
            return await self.source.get_events(
                start_ledger=ledger,
                end_ledger=ledger + 1,
                filters=deliver.filters,
                limit=self.page_size,
            )


__all__ = ["LiveIngestor"]
