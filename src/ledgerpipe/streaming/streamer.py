# SPDX-License-Identifier: Apache-2.0
"""EventStreamer: live, archive and combined contract event ingestion."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Union

from pydantic import ValidationError

from ledgerpipe.config.streamer import StreamerConfig
from ledgerpipe.errors import (
    ArchiveRpcAlreadySetError,
    InvalidConfigurationError,
    InvalidIngestionRangeError,
    LedgerTooHighError,
    LedgerTooOldError,
    MissingArchiveRpcError,
    RpcAlreadySetError,
    StreamerAlreadyRunningError,
)
from ledgerpipe.events.decoder import LedgerDecoder, XdrLedgerDecoder
from ledgerpipe.events.filters import EventFilter, validate_filters
from ledgerpipe.events.models import EventHandler
from ledgerpipe.rpc.client import RpcClient
from ledgerpipe.rpc.source import LedgerSource
from ledgerpipe.security.mask import mask_url

from .arbiter import ModeArbiter
from .dedup import RecentEventIds
from .delivery import EventDelivery
from .historical import HistoricalIngestor
from .live import LiveIngestor
from .models import IngestionMode, RunControl, RunState


class EventStreamer:
    """Streams contract events to a handler.

    Three entry points share one run at a time per instance:

    * ``start_live`` polls ``getEvents`` on the live RPC; the start ledger
      must be inside its retention window.
    * ``start_archive`` replays a closed range from the archive RPC through
      ``getLedgers``.
    * ``start`` backfills from the archive while the requested ledger is
      older than the live window, re-checking the window after every
      backfill step, then continues live.

    Usage:
        >>> streamer = EventStreamer(rpc_url="https://soroban-testnet.stellar.org")
        >>> async with streamer:
        ...     await streamer.start(print, start_ledger=1_000_000)

    A second ``start*`` call while a run is active raises
    :class:`~ledgerpipe.errors.StreamerAlreadyRunningError`. ``stop()`` ends
    the active run successfully at its next checkpoint.
    """

    def __init__(
        self,
        config: Optional[StreamerConfig] = None,
        *,
        rpc: Optional[LedgerSource] = None,
        archive_rpc: Optional[LedgerSource] = None,
        decoder: Optional[LedgerDecoder] = None,
        logger: Optional[logging.Logger] = None,
        **options: Any,
    ) -> None:
        if config is None:
            try:
                config = StreamerConfig(**options)
            except ValidationError as e:
                raise InvalidConfigurationError(str(e), cause=e) from e
        elif options:
            raise InvalidConfigurationError(
                f"Pass either a StreamerConfig or keyword options, not both: {sorted(options)}"
            )

        self.config = config
        self.log = logger or logging.getLogger(self.__class__.__name__)
        self.decoder: LedgerDecoder = decoder or XdrLedgerDecoder()
        self._filters: List[EventFilter] = list(config.filters)
        self._control = RunControl()
        self._dedup = RecentEventIds(config.dedup_capacity)
        self._owned: List[RpcClient] = []

        self._rpc = rpc if rpc is not None else self._client(config.rpc_url, role="live")
        self._archive_rpc: Optional[LedgerSource] = None
        if archive_rpc is not None:
            self._archive_rpc = archive_rpc
        elif config.archive_rpc_url:
            self._archive_rpc = self._client(config.archive_rpc_url, role="archive")

    # ---------- sources ----------
    @property
    def rpc(self) -> LedgerSource:
        return self._rpc

    @rpc.setter
    def rpc(self, value: LedgerSource) -> None:
        raise RpcAlreadySetError()

    @property
    def archive_rpc(self) -> Optional[LedgerSource]:
        return self._archive_rpc

    @archive_rpc.setter
    def archive_rpc(self, value: LedgerSource) -> None:
        if self._archive_rpc is not None:
            raise ArchiveRpcAlreadySetError()
        self._archive_rpc = value

    def set_archive_rpc(self, source: Union[str, LedgerSource]) -> None:
        """Bind the archive RPC, from a URL or a ready source. Only once."""
        if self._archive_rpc is not None:
            raise ArchiveRpcAlreadySetError()
        if isinstance(source, str):
            source = self._client(source, role="archive")
        self._archive_rpc = source

    # ---------- filters ----------
    @property
    def filters(self) -> List[EventFilter]:
        return list(self._filters)

    @filters.setter
    def filters(self, value: Iterable[EventFilter]) -> None:
        self._filters = validate_filters(value)

    def set_filters(self, filters: Iterable[EventFilter]) -> None:
        """Replace the filters. A run in progress keeps the filters it started with."""
        self.filters = filters

    def clear_filters(self) -> None:
        self._filters = []

    # ---------- state ----------
    @property
    def state(self) -> RunState:
        return self._control.state

    @property
    def is_running(self) -> bool:
        return self._control.is_running

    def stop(self) -> None:
        """Ask the active run to finish. No-op when idle."""
        if self._control.is_running:
            self.log.info("Stop requested")
        self._control.stop()

    # ---------- entry points ----------
    async def start_live(
        self,
        handler: EventHandler,
        start_ledger: Optional[int] = None,
        stop_ledger: Optional[int] = None,
    ) -> None:
        """Stream from the live RPC only, from ``start_ledger`` (default: tip)."""
        self._begin()
        try:
            window = await self._arbiter().retention_window(require_healthy=True)
            current = start_ledger if start_ledger is not None else window.latest_ledger
            if current < window.oldest_available:
                raise LedgerTooOldError(current, window.oldest_available)
            if current > window.latest_ledger:
                raise LedgerTooHighError(current, window.latest_ledger)

            self.log.info(
                "Live ingestion from ledger %d%s",
                current,
                f" to {stop_ledger}" if stop_ledger is not None else "",
            )
            resume = await self._live().run(current, self._delivery(handler), stop_ledger)
            self.log.info("Live ingestion finished, next ledger %d", resume)
        finally:
            self._finish()

    async def start_archive(
        self, handler: EventHandler, start_ledger: int, stop_ledger: int
    ) -> None:
        """Replay ``start_ledger..stop_ledger`` (inclusive) from the archive RPC."""
        if self._control.is_running:
            raise StreamerAlreadyRunningError()
        if self._archive_rpc is None:
            raise MissingArchiveRpcError()
        if start_ledger > stop_ledger:
            raise InvalidIngestionRangeError(start_ledger, stop_ledger)

        self._begin()
        try:
            resume = await self._historical().ingest(
                start_ledger, stop_ledger, self._delivery(handler)
            )
            self.log.info("Archive ingestion finished, next ledger %d", resume)
        finally:
            self._finish()

    async def start(
        self,
        handler: EventHandler,
        start_ledger: Optional[int] = None,
        stop_ledger: Optional[int] = None,
    ) -> None:
        """Backfill from the archive as needed, then follow the chain live."""
        self._begin()
        try:
            arbiter = self._arbiter()
            window = await arbiter.retention_window(require_healthy=True)
            current = start_ledger if start_ledger is not None else window.latest_ledger
            deliver = self._delivery(handler)
            live = self._live()
            historical: Optional[HistoricalIngestor] = None

            while self._control.should_continue:
                if stop_ledger is not None and current > stop_ledger:
                    self.log.info("Reached stop ledger %d", stop_ledger)
                    break

                decision = await arbiter.decide(current, stop_ledger)
                if decision.mode is IngestionMode.BACKFILL:
                    historical = historical or self._historical()
                    current = await historical.ingest(current, decision.target_ledger, deliver)
                    continue

                # Inside the live window: the live loop owns the run from here
                self.log.info("Following the chain live from ledger %d", current)
                current = await live.run(current, deliver, stop_ledger)
                break
        finally:
            self._finish()

    # ---------- lifecycle ----------
    async def aclose(self) -> None:
        """Stop any run and close the HTTP clients this streamer created."""
        self.stop()
        for client in self._owned:
            await client.aclose()
        self._owned.clear()

    async def __aenter__(self) -> EventStreamer:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ---------- internals ----------
    def _client(self, url: str, *, role: str) -> RpcClient:
        self.log.debug("Creating %s RPC client for %s", role, mask_url(url))
        client = RpcClient(self.config.client_config(url), role=role)
        self._owned.append(client)
        return client

    def _begin(self) -> None:
        self._control.begin()
        self._dedup.clear()

    def _finish(self) -> None:
        self._control.finish()

    def _delivery(self, handler: EventHandler) -> EventDelivery:
        return EventDelivery(handler, self._dedup, self._filters)

    def _arbiter(self) -> ModeArbiter:
        return ModeArbiter(
            self._rpc,
            has_archive=self._archive_rpc is not None,
            safety_margin=self.config.safety_margin,
        )

    def _live(self) -> LiveIngestor:
        return LiveIngestor(
            self._rpc,
            self._control,
            page_size=self.config.page_size,
            paging_interval_ms=self.config.paging_interval_ms,
            wait_ledger_interval_ms=self.config.wait_ledger_interval_ms,
            skip_wait_if_behind=self.config.skip_wait_if_behind,
        )

    def _historical(self) -> HistoricalIngestor:
        if self._archive_rpc is None:
            raise MissingArchiveRpcError()
        return HistoricalIngestor(
            self._archive_rpc,
            self.decoder,
            self._control,
            archival_interval_ms=self.config.archival_interval_ms,
        )


__all__ = ["EventStreamer"]
