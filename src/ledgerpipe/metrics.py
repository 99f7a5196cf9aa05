# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

RATE_LIMITER_WAITS = Counter(
    "lp_rate_limiter_waits_total", "Number of times rate limiter caused wait", ["provider", "mode"]
)

# RPC transport metrics, labelled by source role (live/archive) and JSON-RPC method
RPC_REQUESTS = Counter("lp_rpc_requests_total", "RPC requests", ["source", "method"])
RPC_ERRORS = Counter("lp_rpc_errors_total", "RPC errors", ["source", "method", "code"])
RPC_LATENCY = Histogram(
    "lp_rpc_request_latency_seconds", "RPC request latency", ["source", "method"]
)

# Streaming metrics, labelled by ingestion mode (live/backfill)
EVENTS_DELIVERED = Counter(
    "lp_events_delivered_total", "Events handed to the caller handler", ["mode"]
)
EVENTS_DUPLICATE = Counter(
    "lp_events_duplicate_total", "Events skipped because they were already delivered", ["mode"]
)
LEDGERS_INGESTED = Counter("lp_ledgers_ingested_total", "Ledgers fully processed", ["mode"])
CURRENT_LEDGER = Gauge("lp_current_ledger", "Ledger the streamer is positioned on", ["mode"])
STREAMER_RUNNING = Gauge("lp_streamer_running", "Number of streamers currently running")

__all__ = [
    "RPC_REQUESTS",
    "RPC_ERRORS",
    "RPC_LATENCY",
    "EVENTS_DELIVERED",
    "EVENTS_DUPLICATE",
    "LEDGERS_INGESTED",
    "CURRENT_LEDGER",
    "STREAMER_RUNNING",
    "RATE_LIMITER_WAITS",
]
