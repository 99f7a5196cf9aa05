# SPDX-License-Identifier: Apache-2.0
"""Total order ids (SEP-35 TOIDs) and the event ids derived from them.

A TOID packs ``ledger << 32 | tx_order << 12 | (op_index - 1)`` into a signed
64-bit integer and is rendered as a 19 digit zero-padded string. An event id
appends the zero-based event index, padded to 10 digits:
``0000530242871959552-0000000000``.
"""

from __future__ import annotations

import re
from typing import NamedTuple

MAX_LEDGER_SEQUENCE = 2_147_483_647
MAX_TRANSACTION_ORDER = 1_048_575
MAX_OPERATION_INDEX = 4_095
MAX_EVENT_INDEX = 9_999_999_999
MAX_TOID = 9_223_372_036_854_775_807

_EVENT_ID_RE = re.compile(r"^\d{19}-\d{10}$")


class EventIdParts(NamedTuple):
    ledger_sequence: int
    transaction_order: int
    operation_index: int
    event_index: int


def is_toid(value: str) -> bool:
    """Return True if ``value`` is a decimal string within the signed 64-bit range."""
    if not value.isdigit():
        return False
    return 0 <= int(value) <= MAX_TOID


def create_toid(ledger_sequence: int, transaction_order: int, operation_index: int) -> str:
    """Pack ledger, transaction order (1-based) and operation index (1-based)."""
    if not 0 <= ledger_sequence <= MAX_LEDGER_SEQUENCE:
        raise ValueError(
            f"Ledger sequence out of range: {ledger_sequence} (max {MAX_LEDGER_SEQUENCE:,})"
        )
    if not 1 <= transaction_order <= MAX_TRANSACTION_ORDER:
        raise ValueError(
            f"Transaction order out of range: {transaction_order} (1-{MAX_TRANSACTION_ORDER:,})"
        )
    if not 1 <= operation_index <= MAX_OPERATION_INDEX:
        raise ValueError(
            f"Operation index out of range: {operation_index} (1-{MAX_OPERATION_INDEX:,})"
        )

    toid = (ledger_sequence << 32) | (transaction_order << 12) | (operation_index - 1)
    return str(toid).zfill(19)


def parse_toid(toid: str) -> tuple[int, int, int]:
    """Inverse of :func:`create_toid`; returns 1-based transaction and operation."""
    if not is_toid(toid):
        raise ValueError(f"Invalid TOID: {toid!r}")
    value = int(toid)
    ledger_sequence = value >> 32
    transaction_order = (value >> 12) & 0xFFFFF
    operation_index = (value & 0xFFF) + 1
    return ledger_sequence, transaction_order, operation_index


def create_event_id(toid: str, event_index: int) -> str:
    """Build an event id from a TOID and a 1-based event index."""
    if not 1 <= event_index <= MAX_EVENT_INDEX:
        raise ValueError(f"Event index out of range: {event_index} (1-{MAX_EVENT_INDEX:,})")
    return f"{toid.zfill(19)}-{event_index - 1:010d}"


def create_event_id_from_parts(
    ledger_sequence: int, transaction_order: int, operation_index: int, event_index: int
) -> str:
    return create_event_id(
        create_toid(ledger_sequence, transaction_order, operation_index), event_index
    )


def is_event_id(value: str) -> bool:
    if not _EVENT_ID_RE.match(value):
        return False
    return is_toid(value.split("-", 1)[0])


def parse_event_id(event_id: str) -> EventIdParts:
    """Split an event id back into its 1-based components."""
    if not is_event_id(event_id):
        raise ValueError(f"Invalid event id: {event_id!r}")
    toid, index = event_id.split("-", 1)
    ledger_sequence, transaction_order, operation_index = parse_toid(toid)
    return EventIdParts(ledger_sequence, transaction_order, operation_index, int(index) + 1)


__all__ = [
    "EventIdParts",
    "is_toid",
    "create_toid",
    "parse_toid",
    "create_event_id",
    "create_event_id_from_parts",
    "is_event_id",
    "parse_event_id",
]
