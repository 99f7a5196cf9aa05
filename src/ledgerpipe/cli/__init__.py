# SPDX-License-Identifier: Apache-2.0
"""ledgerpipe command line interface."""

from __future__ import annotations

import typer

from .health import health
from .stream import archive, live, stream

app = typer.Typer(
    add_completion=False,
    help="Stream contract events from ledger RPC nodes, live or from an archive.",
)

app.command(name="health")(health)
app.command(name="stream")(stream)
app.command(name="live")(live)
app.command(name="archive")(archive)

__all__ = ["app"]

if __name__ == "__main__":
    app()
