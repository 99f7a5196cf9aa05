# SPDX-License-Identifier: Apache-2.0
"""``ledgerpipe health``: report the retention window of the configured RPCs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from ledgerpipe.streaming import EventStreamer

from .common import (
    ArchiveRpcUrlOption,
    ConfigOption,
    LogLevelOption,
    RpcUrlOption,
    build_config,
    run_streamer,
    setup_logging,
)


def health(
    config: Optional[Path] = ConfigOption,
    rpc_url: Optional[str] = RpcUrlOption,
    archive_rpc_url: Optional[str] = ArchiveRpcUrlOption,
    log_level: str = LogLevelOption,
) -> None:
    """Print getHealth of the live (and archive) RPC as JSON."""
    setup_logging(log_level)
    cfg = build_config(config, rpc_url, archive_rpc_url)
    report: Dict[str, Any] = {}

    async def _check(streamer: EventStreamer) -> None:
        live = await streamer.rpc.get_health()
        report["live"] = live.model_dump(by_alias=True)
        report["live"]["oldestAvailable"] = live.oldest_ledger + cfg.safety_margin
        if streamer.archive_rpc is not None:
            archive = await streamer.archive_rpc.get_health()
            report["archive"] = archive.model_dump(by_alias=True)

    run_streamer(cfg, _check)
    typer.echo(json.dumps(report, indent=2))

    if report["live"]["status"] != "healthy":
        typer.echo(f"❌ Live RPC reports {report['live']['status']}", err=True)
        raise typer.Exit(1)
