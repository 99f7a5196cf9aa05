# SPDX-License-Identifier: Apache-2.0
"""JSON-RPC access to live and archive ledger nodes."""

from .client import RpcClient
from .models import (
    ClientConfig,
    EventsResponse,
    HealthResponse,
    LedgerInfo,
    LedgersResponse,
    RawEvent,
)
from .rate_limit import RateLimiter, create_rate_limiter_from_config
from .source import LedgerSource

__all__ = [
    "RpcClient",
    "ClientConfig",
    "EventsResponse",
    "HealthResponse",
    "LedgerInfo",
    "LedgersResponse",
    "RawEvent",
    "RateLimiter",
    "create_rate_limiter_from_config",
    "LedgerSource",
]
