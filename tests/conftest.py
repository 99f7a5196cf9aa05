# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for the ledgerpipe test suite.

FIXTURES PROVIDED:
- live_source / archive_source: scripted FakeLedgerSource instances
- decoder: FakeLedgerDecoder for archive ledgers
- handler: RecordingHandler collecting delivered events
- make_streamer: factory wiring the fakes into an EventStreamer with
  millisecond intervals so loops never sleep noticeably
"""

from __future__ import annotations

from typing import Any

import pytest

from ledgerpipe.streaming import EventStreamer
from tests.fakes import FakeLedgerDecoder, FakeLedgerSource, RecordingHandler

FAST_INTERVALS = {
    "wait_ledger_interval_ms": 1,
    "paging_interval_ms": 0,
    "archival_interval_ms": 0,
}


@pytest.fixture
def live_source() -> FakeLedgerSource:
    return FakeLedgerSource(oldest_ledger=90_000, latest_ledger=100_000)


@pytest.fixture
def archive_source() -> FakeLedgerSource:
    return FakeLedgerSource(oldest_ledger=1, latest_ledger=100_000)


@pytest.fixture
def decoder() -> FakeLedgerDecoder:
    return FakeLedgerDecoder()


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def make_streamer(live_source, decoder):
    """Build an EventStreamer on the fakes; keyword options override defaults."""

    def _make(**options: Any) -> EventStreamer:
        archive = options.pop("archive_rpc", None)
        settings = {"rpc_url": "https://rpc.test", **FAST_INTERVALS, **options}
        return EventStreamer(rpc=live_source, archive_rpc=archive, decoder=decoder, **settings)

    return _make


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "fast: quick unit test without network or sleeps")
    config.addinivalue_line("markers", "config: configuration loading and validation test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
