# SPDX-License-Identifier: Apache-2.0
"""Contract events: models, ids, filters and ledger decoding."""

from .decoder import LedgerDecoder, XdrLedgerDecoder
from .event_id import (
    create_event_id,
    create_event_id_from_parts,
    create_toid,
    is_event_id,
    is_toid,
    parse_event_id,
    parse_toid,
)
from .filters import EventFilter, matches_any, validate_filters
from .models import ContractEvent, EventHandler, EventType

__all__ = [
    "ContractEvent",
    "EventHandler",
    "EventType",
    "EventFilter",
    "matches_any",
    "validate_filters",
    "LedgerDecoder",
    "XdrLedgerDecoder",
    "create_event_id",
    "create_event_id_from_parts",
    "create_toid",
    "is_event_id",
    "is_toid",
    "parse_event_id",
    "parse_toid",
]
