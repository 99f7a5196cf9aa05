# SPDX-License-Identifier: Apache-2.0
"""Pydantic configuration model for event streamers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledgerpipe.errors import PagingIntervalTooLongError
from ledgerpipe.events.filters import EventFilter, validate_filters
from ledgerpipe.rpc.models import ClientConfig

PathLike = Union[str, Path]

# Configuration versioning constants
CURRENT_CONFIG_VERSION = "1"
MIN_SUPPORTED_VERSION = "1"


class StreamerConfig(BaseModel):
    """Settings of one :class:`~ledgerpipe.streaming.EventStreamer`.

    Immutable once built. Loadable from YAML through
    :func:`ledgerpipe.config.loader.load_config` with snake_case or
    kebab-case keys.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    config_version: str = Field(
        default=CURRENT_CONFIG_VERSION, description="Configuration schema version"
    )
    rpc_url: str = Field(..., description="Live RPC endpoint (bounded retention)")
    archive_rpc_url: Optional[str] = Field(
        default=None, description="Archive RPC endpoint serving ledgers older than the live window"
    )
    filters: Tuple[EventFilter, ...] = Field(
        default=(), description="Event filters, at most 5, an event matching any is delivered"
    )
    page_size: int = Field(default=10, description="Events per getEvents page", ge=1, le=10000)
    wait_ledger_interval_ms: int = Field(
        default=5000, description="Pause between live polls once at the chain tip", ge=0
    )
    paging_interval_ms: int = Field(
        default=100, description="Pause between pages of the same poll", ge=0
    )
    archival_interval_ms: int = Field(
        default=500, description="Pause between archived ledgers", ge=0
    )
    skip_wait_if_behind: bool = Field(
        default=False, description="Skip the ledger wait while catching up to the tip"
    )
    safety_margin: int = Field(
        default=2, description="Ledgers added to the node's oldest ledger before polling it", ge=0
    )
    dedup_capacity: int = Field(
        default=25, description="Number of recently delivered event ids remembered", ge=1
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds", gt=0)
    max_retries: int = Field(
        default=0, description="Transport retries on 429/5xx answers", ge=0
    )
    rate_limit_per_min: Optional[int] = Field(
        default=None, description="Client side rate limit for each RPC", ge=1
    )
    burst_size: Optional[int] = Field(default=None, description="Rate limiter burst size", ge=1)

    @field_validator("rpc_url", "archive_rpc_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Only http(s) endpoints are supported."""
        if v is None:
            return v
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"RPC url must start with http:// or https://, got {v!r}")
        return v

    @field_validator("filters", mode="before")
    @classmethod
    def coerce_filters(cls, v: Any) -> Tuple[EventFilter, ...]:
        if v is None:
            return ()
        items = [EventFilter.from_dict(f) if isinstance(f, dict) else f for f in v]
        return tuple(validate_filters(items))

    @model_validator(mode="after")
    def validate_intervals(self) -> StreamerConfig:
        """A page wait longer than the ledger wait would stall live polling."""
        if self.paging_interval_ms > self.wait_ledger_interval_ms:
            raise PagingIntervalTooLongError(
                self.wait_ledger_interval_ms, self.paging_interval_ms
            )
        return self

    def client_config(self, url: str) -> ClientConfig:
        """Settings for an :class:`~ledgerpipe.rpc.RpcClient` talking to ``url``."""
        return ClientConfig(
            base_url=url,
            timeout=self.request_timeout,
            max_retries=self.max_retries,
            rate_limit_per_min=self.rate_limit_per_min,
            burst_size=self.burst_size,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data["filters"] = [f.to_rpc() for f in self.filters]
        return data

    def merge_overrides(self, **overrides: Any) -> StreamerConfig:
        """Create a new config with the non-None ``overrides`` applied."""
        current_data = {name: getattr(self, name) for name in type(self).model_fields}
        for key, value in overrides.items():
            if value is not None:
                current_data[key] = value
        return self.__class__(**current_data)


__all__ = ["StreamerConfig", "CURRENT_CONFIG_VERSION", "MIN_SUPPORTED_VERSION"]
