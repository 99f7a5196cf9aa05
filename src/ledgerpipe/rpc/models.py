# SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the JSON-RPC payloads consumed by the streamer."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClientConfig(BaseModel):
    """Configuration for RPC clients."""

    base_url: str = Field(..., description="JSON-RPC endpoint URL")
    api_key: Optional[str] = Field(None, description="Bearer token for hosted providers")
    timeout: float = 30.0
    max_retries: int = Field(0, ge=0, description="Transport retries on 429/5xx answers")
    rate_limit_per_min: Optional[int] = Field(None, description="Rate limit in requests per minute")
    burst_size: Optional[int] = Field(
        None, description="Maximum burst size (defaults to rate_limit_per_min)"
    )
    user_agent: str = "ledgerpipe/0.1"


class RpcModel(BaseModel):
    """Base for RPC results: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True
    )


class HealthResponse(RpcModel):
    status: str
    latest_ledger: int = 0
    oldest_ledger: int = 0
    ledger_retention_window: int = 0

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"


class RawEvent(RpcModel):
    """A contract event as returned by ``getEvents`` (base64 XDR values)."""

    id: str
    ledger: int
    type: str = "contract"
    contract_id: Optional[str] = None
    ledger_closed_at: str = ""
    tx_hash: str = ""
    transaction_index: int = 0
    operation_index: int = 0
    in_successful_contract_call: bool = True
    topic: List[str] = Field(default_factory=list)
    value: str = ""


class EventsResponse(RpcModel):
    events: List[RawEvent] = Field(default_factory=list)
    latest_ledger: int
    oldest_ledger: Optional[int] = None
    cursor: Optional[str] = None


class LedgerInfo(RpcModel):
    """One entry of ``getLedgers``; ``metadata_xdr`` is a base64 LedgerCloseMeta."""

    sequence: int
    hash: str = ""
    ledger_close_time: str = ""
    header_xdr: str = ""
    metadata_xdr: str = ""


class LedgersResponse(RpcModel):
    ledgers: List[LedgerInfo] = Field(default_factory=list)
    latest_ledger: int
    oldest_ledger: Optional[int] = None
    cursor: Optional[str] = None


__all__ = [
    "ClientConfig",
    "HealthResponse",
    "RawEvent",
    "EventsResponse",
    "LedgerInfo",
    "LedgersResponse",
]
