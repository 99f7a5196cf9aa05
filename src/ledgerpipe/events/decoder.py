# SPDX-License-Identifier: Apache-2.0
"""Decoding of archived ledger payloads into contract events."""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Protocol, runtime_checkable

from stellar_sdk import StrKey
from stellar_sdk import xdr as stellar_xdr

from ledgerpipe.errors import LedgerDecodeError
from ledgerpipe.rpc.models import LedgerInfo

from .event_id import create_event_id_from_parts
from .models import ContractEvent, EventType

logger = logging.getLogger(__name__)

_EVENT_TYPES = {0: EventType.SYSTEM, 1: EventType.CONTRACT, 2: EventType.DIAGNOSTIC}


@runtime_checkable
class LedgerDecoder(Protocol):
    """Turns one ``getLedgers`` entry into the events it contains, in order."""

    def decode(self, ledger: LedgerInfo) -> List[ContractEvent]:
        ...


class XdrLedgerDecoder:
    """Decode base64 ``LedgerCloseMeta`` (v1 and v2) with the Stellar SDK.

    Transaction, operation and event positions are counted from 1 in
    application order, which is what the event ids of ``getEvents`` encode,
    so archived events carry the same ids as their live counterparts.
    """

    def decode(self, ledger: LedgerInfo) -> List[ContractEvent]:
        try:
            meta = stellar_xdr.LedgerCloseMeta.from_xdr(ledger.metadata_xdr)
        except Exception as exc:
            raise LedgerDecodeError(
                f"metadataXdr of ledger {ledger.sequence} is not a valid LedgerCloseMeta",
                ledger=ledger.sequence,
                cause=exc,
            ) from exc

        if meta.v == 1:
            close_meta = meta.v1
        elif meta.v == 2:
            close_meta = meta.v2
        else:
            raise LedgerDecodeError(
                f"Unsupported LedgerCloseMeta version {meta.v}", ledger=ledger.sequence
            )

        try:
            return list(self._events(close_meta))
        except LedgerDecodeError:
            raise
        except Exception as exc:
            raise LedgerDecodeError(
                f"Could not walk the transactions of ledger {ledger.sequence}: {exc}",
                ledger=ledger.sequence,
                cause=exc,
            ) from exc

    def _events(self, close_meta: Any) -> Iterator[ContractEvent]:
        header = close_meta.ledger_header.header
        sequence = header.ledger_seq.uint32
        closed_at = str(header.scp_value.close_time.time_point.uint64)

        for tx_index, tx_processing in enumerate(close_meta.tx_processing, start=1):
            tx_hash = tx_processing.result.transaction_hash.hash.hex()
            successful = tx_processing.result.result.result.code in (
                stellar_xdr.TransactionResultCode.txSUCCESS,
                stellar_xdr.TransactionResultCode.txFEE_BUMP_INNER_SUCCESS,
            )

            for op_index, events in enumerate(
                _operation_events(tx_processing.tx_apply_processing), start=1
            ):
                for event_index, event in enumerate(events, start=1):
                    event_type = _EVENT_TYPES.get(event.type.value)
                    if event_type is None or event_type is EventType.DIAGNOSTIC:
                        continue
                    body = event.body.v0
                    yield ContractEvent(
                        id=create_event_id_from_parts(sequence, tx_index, op_index, event_index),
                        ledger=sequence,
                        type=event_type,
                        contract_id=_contract_address(event.contract_id),
                        ledger_closed_at=closed_at,
                        tx_hash=tx_hash,
                        transaction_index=tx_index,
                        operation_index=op_index,
                        in_successful_contract_call=successful,
                        topic=tuple(topic.to_xdr() for topic in body.topics),
                        value=body.data.to_xdr(),
                    )


def _operation_events(tx_meta: Any) -> List[List[Any]]:
    """Group the contract events of a transaction by operation."""
    if tx_meta.v == 4:
        return [list(op.events) for op in tx_meta.v4.operations]
    if tx_meta.v == 3:
        soroban_meta = tx_meta.v3.soroban_meta
        # Soroban transactions carry a single operation
        return [list(soroban_meta.events)] if soroban_meta is not None else []
    return []


def _contract_address(contract_id: Any) -> Optional[str]:
    if contract_id is None:
        return None
    # ContractID wraps a Hash from protocol 23 on, older SDK releases expose the Hash
    digest = getattr(contract_id, "contract_id", contract_id)
    return StrKey.encode_contract(digest.hash)


__all__ = ["LedgerDecoder", "XdrLedgerDecoder"]
