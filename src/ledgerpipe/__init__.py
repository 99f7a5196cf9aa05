# SPDX-License-Identifier: Apache-2.0
"""ledgerpipe: contract event streaming from ledger RPC nodes."""

from .config import StreamerConfig, load_config
from .errors import ErrorKind, LedgerPipeError
from .events import ContractEvent, EventFilter, EventType
from .streaming import EventStreamer

__version__ = "0.1.0"

__all__ = [
    "EventStreamer",
    "StreamerConfig",
    "load_config",
    "ContractEvent",
    "EventFilter",
    "EventType",
    "LedgerPipeError",
    "ErrorKind",
    "__version__",
]
