# SPDX-License-Identifier: Apache-2.0
"""Capability interface shared by the live and archive RPC sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Sequence, runtime_checkable

from .models import EventsResponse, HealthResponse, LedgersResponse

if TYPE_CHECKING:
    from ledgerpipe.events.filters import EventFilter


@runtime_checkable
class LedgerSource(Protocol):
    """Protocol for ledger data sources.

    Live and archive nodes expose the same three queries and differ only in
    how much history they retain, so the streamer treats them uniformly
    except when computing the retention boundary.
    """

    async def get_health(self) -> HealthResponse:
        """Report status and the retained ledger range."""
        ...

    async def get_events(
        self,
        *,
        start_ledger: Optional[int] = None,
        end_ledger: Optional[int] = None,
        cursor: Optional[str] = None,
        filters: Sequence[EventFilter] = (),
        limit: int = 10,
    ) -> EventsResponse:
        """Return one page of events, either from ``start_ledger`` or ``cursor``."""
        ...

    async def get_ledgers(
        self,
        *,
        start_ledger: Optional[int] = None,
        cursor: Optional[str] = None,
        limit: int = 1,
    ) -> LedgersResponse:
        """Return one page of raw ledger payloads."""
        ...


__all__ = ["LedgerSource"]
