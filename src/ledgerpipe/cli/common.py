# SPDX-License-Identifier: Apache-2.0
"""Helpers shared by the ledgerpipe commands."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Awaitable, Callable, List, NoReturn, Optional

import typer
from prometheus_client import start_http_server
from pydantic import ValidationError

from ledgerpipe.config import ConfigVersionError, StreamerConfig, load_config
from ledgerpipe.errors import InvalidConfigurationError, LedgerPipeError, UnexpectedError
from ledgerpipe.events.filters import EventFilter
from ledgerpipe.events.models import ContractEvent
from ledgerpipe.streaming import EventStreamer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)-5s [%(name)s] %(message)s"

# ---------------------------------------------------------------------------
# Shared typer options
# ---------------------------------------------------------------------------

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Streamer YAML config. CLI flags override its values.",
    exists=True,
    file_okay=True,
    dir_okay=False,
)
RpcUrlOption = typer.Option(None, "--rpc-url", help="Live RPC endpoint")
ArchiveRpcUrlOption = typer.Option(None, "--archive-rpc-url", help="Archive RPC endpoint")
ContractIdOption = typer.Option(
    None, "--contract-id", help="Repeatable contract id; together they form one filter"
)
PageSizeOption = typer.Option(None, "--page-size", help="Events per getEvents page", min=1)
LogLevelOption = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR")
MetricsPortOption = typer.Option(
    None, "--metrics-port", help="Expose Prometheus metrics on this port"
)


def setup_logging(log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def start_metrics(port: Optional[int]) -> None:
    if port is None:
        return
    start_http_server(port=port)
    logger.info("Prometheus metrics on :%d/metrics", port)


def fail(error: BaseException) -> NoReturn:
    """Print ``error`` the CLI way and exit with status 1."""
    if isinstance(error, LedgerPipeError):
        typer.echo(f"❌ {error.code.value} {error.message}", err=True)
        if error.details:
            typer.echo(f"   {error.details}", err=True)
        if error.diagnostic and error.diagnostic.suggestion:
            typer.echo(f"   💡 {error.diagnostic.suggestion}", err=True)
    else:
        typer.echo(f"❌ Configuration error: {error}", err=True)
    raise typer.Exit(1)


def build_config(
    config: Optional[Path],
    rpc_url: Optional[str] = None,
    archive_rpc_url: Optional[str] = None,
    contract_ids: Optional[List[str]] = None,
    page_size: Optional[int] = None,
) -> StreamerConfig:
    """Merge the YAML config (if any) with command line overrides."""
    filters = [EventFilter(contract_ids=contract_ids)] if contract_ids else None
    try:
        if config is not None:
            cfg = load_config(config)
            return cfg.merge_overrides(
                rpc_url=rpc_url,
                archive_rpc_url=archive_rpc_url,
                filters=filters,
                page_size=page_size,
            )
        if rpc_url is None:
            typer.echo("❌ Either --rpc-url or --config is required.", err=True)
            raise typer.Exit(1)
        overrides = {
            "archive_rpc_url": archive_rpc_url,
            "filters": filters,
            "page_size": page_size,
        }
        return StreamerConfig(
            rpc_url=rpc_url, **{k: v for k, v in overrides.items() if v is not None}
        )
    except ValidationError as exc:
        fail(InvalidConfigurationError(str(exc), cause=exc))
    except (ConfigVersionError, FileNotFoundError, LedgerPipeError) as exc:
        fail(exc)


def print_event(event: ContractEvent) -> None:
    typer.echo(json.dumps(event.to_dict()))


def run_streamer(
    config: StreamerConfig, action: Callable[[EventStreamer], Awaitable[None]]
) -> None:
    """Run ``action`` against a streamer; Ctrl-C stops it gracefully."""

    async def _main() -> None:
        async with EventStreamer(config) as streamer:
            loop = asyncio.get_running_loop()
            try:
                loop.add_signal_handler(signal.SIGINT, streamer.stop)
                installed = True
            except (NotImplementedError, RuntimeError):
                # Windows event loops and non-main threads
                logger.debug("SIGINT handler not installed, Ctrl-C will abort")
                installed = False
            try:
                await action(streamer)
            finally:
                if installed:
                    loop.remove_signal_handler(signal.SIGINT)

    try:
        asyncio.run(_main())
    except LedgerPipeError as exc:
        fail(exc)
    except Exception as exc:
        fail(UnexpectedError.from_unknown(exc))
