# SPDX-License-Identifier: Apache-2.0
"""Streaming commands: ``stream`` (auto), ``live`` and ``archive``.

Every delivered event is written to stdout as one JSON line, logs go to
stderr, so the output can be piped straight into ``jq`` or a file.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from ledgerpipe.streaming import EventStreamer

from .common import (
    ArchiveRpcUrlOption,
    ConfigOption,
    ContractIdOption,
    LogLevelOption,
    MetricsPortOption,
    PageSizeOption,
    RpcUrlOption,
    build_config,
    print_event,
    run_streamer,
    setup_logging,
    start_metrics,
)


def stream(
    config: Optional[Path] = ConfigOption,
    rpc_url: Optional[str] = RpcUrlOption,
    archive_rpc_url: Optional[str] = ArchiveRpcUrlOption,
    contract_id: Optional[List[str]] = ContractIdOption,
    page_size: Optional[int] = PageSizeOption,
    start_ledger: Optional[int] = typer.Option(
        None, "--start-ledger", help="First ledger (default: live tip)"
    ),
    stop_ledger: Optional[int] = typer.Option(
        None, "--stop-ledger", help="Last ledger, inclusive (default: follow forever)"
    ),
    log_level: str = LogLevelOption,
    metrics_port: Optional[int] = MetricsPortOption,
) -> None:
    """Backfill from the archive RPC when needed, then follow the chain live."""
    setup_logging(log_level)
    cfg = build_config(config, rpc_url, archive_rpc_url, contract_id, page_size)
    start_metrics(metrics_port)

    async def _run(streamer: EventStreamer) -> None:
        await streamer.start(print_event, start_ledger=start_ledger, stop_ledger=stop_ledger)

    run_streamer(cfg, _run)


def live(
    config: Optional[Path] = ConfigOption,
    rpc_url: Optional[str] = RpcUrlOption,
    contract_id: Optional[List[str]] = ContractIdOption,
    page_size: Optional[int] = PageSizeOption,
    start_ledger: Optional[int] = typer.Option(
        None, "--start-ledger", help="First ledger, inside the RPC retention window"
    ),
    stop_ledger: Optional[int] = typer.Option(None, "--stop-ledger", help="Last ledger"),
    log_level: str = LogLevelOption,
    metrics_port: Optional[int] = MetricsPortOption,
) -> None:
    """Stream events from the live RPC only."""
    setup_logging(log_level)
    cfg = build_config(config, rpc_url, None, contract_id, page_size)
    start_metrics(metrics_port)

    async def _run(streamer: EventStreamer) -> None:
        await streamer.start_live(print_event, start_ledger=start_ledger, stop_ledger=stop_ledger)

    run_streamer(cfg, _run)


def archive(
    start_ledger: int = typer.Option(..., "--start-ledger", help="First ledger"),
    stop_ledger: int = typer.Option(..., "--stop-ledger", help="Last ledger, inclusive"),
    config: Optional[Path] = ConfigOption,
    rpc_url: Optional[str] = RpcUrlOption,
    archive_rpc_url: Optional[str] = ArchiveRpcUrlOption,
    contract_id: Optional[List[str]] = ContractIdOption,
    log_level: str = LogLevelOption,
    metrics_port: Optional[int] = MetricsPortOption,
) -> None:
    """Replay a closed ledger range from the archive RPC."""
    setup_logging(log_level)
    cfg = build_config(config, rpc_url, archive_rpc_url, contract_id)
    start_metrics(metrics_port)

    async def _run(streamer: EventStreamer) -> None:
        await streamer.start_archive(print_event, start_ledger, stop_ledger)

    run_streamer(cfg, _run)
