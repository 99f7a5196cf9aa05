# SPDX-License-Identifier: Apache-2.0
"""Fake ledger sources and decoders for testing."""

from __future__ import annotations

from .sources import (
    CONTRACT_A,
    CONTRACT_B,
    FakeLedgerDecoder,
    FakeLedgerSource,
    RecordingHandler,
    make_event,
    make_raw_event,
)

__all__ = [
    "CONTRACT_A",
    "CONTRACT_B",
    "FakeLedgerDecoder",
    "FakeLedgerSource",
    "RecordingHandler",
    "make_event",
    "make_raw_event",
]
