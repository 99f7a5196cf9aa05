# SPDX-License-Identifier: Apache-2.0
"""Error taxonomy for the event streamer.

Every error raised by the engine carries a stable ``code`` plus a coarse
``kind`` so callers can decide whether to retry with different parameters
(widen the range, add an archive source) or surface the problem to an
operator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Coarse classification shared by all streamer errors."""

    CONFIGURATION = "configuration"
    STATE_CONFLICT = "state_conflict"
    RANGE = "range"
    SOURCE_UNAVAILABLE = "source_unavailable"
    UNEXPECTED = "unexpected"


class Code(str, Enum):
    PAGING_INTERVAL_TOO_LONG = "EVS_001"
    RPC_ALREADY_SET = "EVS_002"
    ARCHIVE_RPC_ALREADY_SET = "EVS_003"
    STREAMER_ALREADY_RUNNING = "EVS_004"
    RPC_NOT_HEALTHY = "EVS_005"
    LEDGER_TOO_OLD = "EVS_006"
    LEDGER_TOO_HIGH = "EVS_007"
    MISSING_ARCHIVE_RPC = "EVS_008"
    INVALID_INGESTION_RANGE = "EVS_009"
    INVALID_CONFIGURATION = "EVS_010"
    RPC_REQUEST_FAILED = "RPC_001"
    RPC_RESPONSE_INVALID = "RPC_002"
    INVALID_EVENT_FILTER = "EVF_001"
    LEDGER_DECODE_FAILED = "LCM_001"
    UNEXPECTED = "GEN_000"


@dataclass(frozen=True)
class Diagnostic:
    """Human oriented hint attached to an error."""

    root_cause: str
    suggestion: str


class LedgerPipeError(Exception):
    """Base class for every error raised by ledgerpipe."""

    code: Code = Code.UNEXPECTED
    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        details: str = "",
        diagnostic: Optional[Diagnostic] = None,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.diagnostic = diagnostic
        self.data: Dict[str, Any] = dict(data or {})
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code.value}] {self.message}: {self.details}"
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-safe representation of the error."""
        return {
            "name": type(self).__name__,
            "code": self.code.value,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "diagnostic": (
                {
                    "root_cause": self.diagnostic.root_cause,
                    "suggestion": self.diagnostic.suggestion,
                }
                if self.diagnostic
                else None
            ),
            "data": self.data,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class PagingIntervalTooLongError(LedgerPipeError):
    code = Code.PAGING_INTERVAL_TOO_LONG
    kind = ErrorKind.CONFIGURATION

    def __init__(self, wait_ledger_interval_ms: int, paging_interval_ms: int) -> None:
        super().__init__(
            "Paging interval is too long",
            details=(
                f"The provided paging interval of {paging_interval_ms}ms exceeds "
                f"the wait_ledger_interval_ms of {wait_ledger_interval_ms}ms."
            ),
            diagnostic=Diagnostic(
                root_cause=(
                    "Pages are fetched slower than ledgers are polled, so ingestion "
                    "would drift behind the network over time."
                ),
                suggestion="Use a paging interval lower than or equal to wait_ledger_interval_ms.",
            ),
            data={
                "wait_ledger_interval_ms": wait_ledger_interval_ms,
                "paging_interval_ms": paging_interval_ms,
            },
        )


class InvalidConfigurationError(LedgerPipeError):
    code = Code.INVALID_CONFIGURATION
    kind = ErrorKind.CONFIGURATION

    def __init__(self, details: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(
            "Invalid streamer configuration",
            details=details,
            diagnostic=Diagnostic(
                root_cause="One or more streamer options failed validation.",
                suggestion="Fix the reported options and construct the streamer again.",
            ),
            cause=cause,
        )


# ---------------------------------------------------------------------------
# State conflicts
# ---------------------------------------------------------------------------


class RpcAlreadySetError(LedgerPipeError):
    code = Code.RPC_ALREADY_SET
    kind = ErrorKind.STATE_CONFLICT

    def __init__(self) -> None:
        super().__init__(
            "RPC client is already set",
            details="The live RPC source is bound at construction and cannot be replaced.",
            diagnostic=Diagnostic(
                root_cause="A second live RPC source was assigned to the streamer.",
                suggestion="Create a new EventStreamer for a different RPC endpoint.",
            ),
        )


class ArchiveRpcAlreadySetError(LedgerPipeError):
    code = Code.ARCHIVE_RPC_ALREADY_SET
    kind = ErrorKind.STATE_CONFLICT

    def __init__(self) -> None:
        super().__init__(
            "Archive RPC client is already set",
            details="An archive RPC source has already been bound to this streamer.",
            diagnostic=Diagnostic(
                root_cause="A second archive RPC source was assigned to the streamer.",
                suggestion="Bind the archive RPC source only once per streamer.",
            ),
        )


class StreamerAlreadyRunningError(LedgerPipeError):
    code = Code.STREAMER_ALREADY_RUNNING
    kind = ErrorKind.STATE_CONFLICT

    def __init__(self) -> None:
        super().__init__(
            "Event streamer is already running",
            details="Only one start, start_live or start_archive call may run at a time.",
            diagnostic=Diagnostic(
                root_cause="A run was requested while another run was in progress.",
                suggestion="Call stop() and wait for the current run to finish first.",
            ),
        )


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class LedgerTooOldError(LedgerPipeError):
    code = Code.LEDGER_TOO_OLD
    kind = ErrorKind.RANGE

    def __init__(self, requested_ledger: int, oldest_available_ledger: int) -> None:
        super().__init__(
            "Requested ledger is older than the RPC retention period",
            details=(
                f"The requested start ledger {requested_ledger} is older than the "
                f"oldest available ledger {oldest_available_ledger} on the RPC server."
            ),
            diagnostic=Diagnostic(
                root_cause="The start ledger falls outside the live source retention window.",
                suggestion=(
                    "Choose a start ledger inside the retention window, or configure "
                    "an archive RPC for historical ingestion."
                ),
            ),
            data={
                "requested_ledger": requested_ledger,
                "oldest_available_ledger": oldest_available_ledger,
            },
        )


class LedgerTooHighError(LedgerPipeError):
    code = Code.LEDGER_TOO_HIGH
    kind = ErrorKind.RANGE

    def __init__(self, requested_ledger: int, latest_available_ledger: int) -> None:
        super().__init__(
            "Requested ledger is higher than the latest available ledger",
            details=(
                f"The requested start ledger {requested_ledger} is higher than the "
                f"latest available ledger {latest_available_ledger} on the RPC server."
            ),
            diagnostic=Diagnostic(
                root_cause="The start ledger is ahead of the network tip.",
                suggestion="Choose a start ledger lower than or equal to the latest ledger.",
            ),
            data={
                "requested_ledger": requested_ledger,
                "latest_available_ledger": latest_available_ledger,
            },
        )


class MissingArchiveRpcError(LedgerPipeError):
    code = Code.MISSING_ARCHIVE_RPC
    kind = ErrorKind.RANGE

    def __init__(self) -> None:
        super().__init__(
            "Archive RPC client is not configured",
            details="Historical ingestion requires an archive RPC source.",
            diagnostic=Diagnostic(
                root_cause="No archive RPC source has been bound to the streamer.",
                suggestion="Pass archive_rpc_url or call set_archive_rpc() first.",
            ),
        )


class InvalidIngestionRangeError(LedgerPipeError):
    code = Code.INVALID_INGESTION_RANGE
    kind = ErrorKind.RANGE

    def __init__(self, start_ledger: int, stop_ledger: int) -> None:
        super().__init__(
            "Invalid ingestion range: start_ledger is greater than stop_ledger",
            details=(
                f"The start ledger {start_ledger} is greater than the stop ledger {stop_ledger}."
            ),
            diagnostic=Diagnostic(
                root_cause="The requested start and stop ledgers do not form a range.",
                suggestion="Use a start ledger lower than or equal to the stop ledger.",
            ),
            data={"start_ledger": start_ledger, "stop_ledger": stop_ledger},
        )


# ---------------------------------------------------------------------------
# Source availability
# ---------------------------------------------------------------------------


class RpcNotHealthyError(LedgerPipeError):
    code = Code.RPC_NOT_HEALTHY
    kind = ErrorKind.SOURCE_UNAVAILABLE

    def __init__(self, status: str = "unhealthy") -> None:
        super().__init__(
            "RPC server is not healthy",
            details=f"The RPC health check reported status {status!r}.",
            diagnostic=Diagnostic(
                root_cause="The RPC server responded with an unhealthy status.",
                suggestion="Check the RPC server before starting the event streamer.",
            ),
            data={"status": status},
        )


class RpcRequestError(LedgerPipeError):
    """Transport level failure or HTTP error status talking to an RPC source."""

    code = Code.RPC_REQUEST_FAILED
    kind = ErrorKind.SOURCE_UNAVAILABLE

    def __init__(
        self,
        method: str,
        details: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"RPC request {method} failed",
            details=details,
            data={"method": method, "status_code": status_code},
            cause=cause,
        )


class RpcResponseError(LedgerPipeError):
    """The RPC answered, but with a JSON-RPC error or an unreadable body."""

    code = Code.RPC_RESPONSE_INVALID
    kind = ErrorKind.SOURCE_UNAVAILABLE

    def __init__(
        self,
        method: str,
        details: str,
        rpc_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"RPC method {method} returned an error",
            details=details,
            data={"method": method, "rpc_code": rpc_code},
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Decoding and filtering
# ---------------------------------------------------------------------------


class EventFilterError(LedgerPipeError):
    code = Code.INVALID_EVENT_FILTER
    kind = ErrorKind.CONFIGURATION

    def __init__(self, details: str, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__("Invalid event filter", details=details, data=data)


class LedgerDecodeError(LedgerPipeError):
    code = Code.LEDGER_DECODE_FAILED
    kind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        details: str,
        ledger: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            "Failed to decode ledger close meta",
            details=details,
            data={"ledger": ledger},
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Unexpected
# ---------------------------------------------------------------------------


class UnexpectedError(LedgerPipeError):
    code = Code.UNEXPECTED
    kind = ErrorKind.UNEXPECTED

    @classmethod
    def from_unknown(
        cls, error: BaseException, data: Optional[Dict[str, Any]] = None
    ) -> LedgerPipeError:
        """Wrap ``error`` unless it already belongs to the taxonomy."""
        if isinstance(error, LedgerPipeError):
            return error
        return cls(
            str(error) or type(error).__name__,
            details=f"{type(error).__name__} raised while streaming events",
            data=data,
            cause=error,
        )


__all__ = [
    "ErrorKind",
    "Code",
    "Diagnostic",
    "LedgerPipeError",
    "PagingIntervalTooLongError",
    "InvalidConfigurationError",
    "RpcAlreadySetError",
    "ArchiveRpcAlreadySetError",
    "StreamerAlreadyRunningError",
    "LedgerTooOldError",
    "LedgerTooHighError",
    "MissingArchiveRpcError",
    "InvalidIngestionRangeError",
    "RpcNotHealthyError",
    "RpcRequestError",
    "RpcResponseError",
    "EventFilterError",
    "LedgerDecodeError",
    "UnexpectedError",
]
