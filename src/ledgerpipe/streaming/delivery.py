# SPDX-License-Identifier: Apache-2.0
"""Hand-off of events to the caller's handler, shared by live and archive ingestion."""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

from ledgerpipe.errors import LedgerPipeError, UnexpectedError
from ledgerpipe.events.filters import EventFilter, matches_any
from ledgerpipe.events.models import ContractEvent, EventHandler
from ledgerpipe.metrics import CURRENT_LEDGER, EVENTS_DELIVERED, EVENTS_DUPLICATE

from .dedup import RecentEventIds
from .models import IngestionMode

logger = logging.getLogger(__name__)


class EventDelivery:
    """Dedup, match and deliver events to one handler.

    An id is recorded only after the handler returned, so an event whose
    handler raised is delivered again if the caller restarts from the same
    ledger.
    """

    def __init__(
        self,
        handler: EventHandler,
        dedup: RecentEventIds,
        filters: Sequence[EventFilter] = (),
    ) -> None:
        self.handler = handler
        self.dedup = dedup
        self.filters = tuple(filters)

    async def __call__(self, event: ContractEvent, mode: IngestionMode) -> bool:
        """Deliver ``event`` unless it is a duplicate or filtered out."""
        if self.dedup.seen(event.id):
            EVENTS_DUPLICATE.labels(mode=mode.value).inc()
            logger.debug("Skipping duplicate event %s", event.id)
            return False
        if not matches_any(self.filters, event):
            return False

        result = self.handler(event)
        if inspect.isawaitable(result):
            await result

        self.dedup.record(event.id)
        EVENTS_DELIVERED.labels(mode=mode.value).inc()
        CURRENT_LEDGER.labels(mode=mode.value).set(event.ledger)
        return True


@contextmanager
def source_errors(data: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Let taxonomy errors through and wrap anything else in UnexpectedError.

    Only source and decoder calls run inside this block. Handler errors are
    never wrapped.
    """
    try:
        yield
    except LedgerPipeError:
        raise
    except Exception as exc:
        raise UnexpectedError.from_unknown(exc, data) from exc


__all__ = ["EventDelivery", "source_errors"]
