# SPDX-License-Identifier: Apache-2.0
"""Structured contract events delivered to streamer handlers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from ledgerpipe.rpc.models import RawEvent


class EventType(str, Enum):
    CONTRACT = "contract"
    SYSTEM = "system"
    DIAGNOSTIC = "diagnostic"


@dataclass(frozen=True)
class ContractEvent:
    """A decoded ledger event.

    ``topic`` and ``value`` hold base64 encoded XDR ``ScVal``s, the same
    representation the RPC uses on the wire, so events coming from the live
    ``getEvents`` path and from archived ledger metadata compare equal.
    """

    id: str
    ledger: int
    type: EventType
    contract_id: Optional[str] = None
    ledger_closed_at: str = ""
    tx_hash: str = ""
    transaction_index: int = 0
    operation_index: int = 0
    in_successful_contract_call: bool = True
    topic: Tuple[str, ...] = field(default_factory=tuple)
    value: str = ""

    @classmethod
    def from_rpc(cls, raw: RawEvent) -> ContractEvent:
        return cls(
            id=raw.id,
            ledger=raw.ledger,
            type=EventType(raw.type),
            contract_id=raw.contract_id or None,
            ledger_closed_at=raw.ledger_closed_at,
            tx_hash=raw.tx_hash,
            transaction_index=raw.transaction_index,
            operation_index=raw.operation_index,
            in_successful_contract_call=raw.in_successful_contract_call,
            topic=tuple(raw.topic),
            value=raw.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["topic"] = list(self.topic)
        return data


EventHandler = Callable[[ContractEvent], Union[Awaitable[None], None]]

__all__ = ["EventType", "ContractEvent", "EventHandler"]
