# SPDX-License-Identifier: Apache-2.0
"""Async JSON-RPC client for ledger nodes."""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ledgerpipe.errors import RpcRequestError, RpcResponseError
from ledgerpipe.metrics import RPC_ERRORS, RPC_LATENCY, RPC_REQUESTS
from ledgerpipe.security.mask import mask_url, safe_for_log, url_secrets

from .models import ClientConfig, EventsResponse, HealthResponse, LedgersResponse
from .rate_limit import RateLimiter, create_rate_limiter_from_config

if TYPE_CHECKING:
    from ledgerpipe.events.filters import EventFilter

ModelT = TypeVar("ModelT", bound=BaseModel)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class RpcClient:
    """JSON-RPC connector implementing :class:`~ledgerpipe.rpc.source.LedgerSource`.

    Usage:
        >>> cfg = ClientConfig(base_url="https://soroban-testnet.stellar.org")
        >>> async with RpcClient(cfg) as rpc:
        ...     health = await rpc.get_health()

    Errors are never swallowed: transport failures and HTTP error statuses
    raise :class:`RpcRequestError`, JSON-RPC error objects and unreadable
    bodies raise :class:`RpcResponseError`. Retries only happen when
    ``config.max_retries`` is positive, which it is not by default.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        role: str = "live",
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.role = role
        self.rate_limiter = rate_limiter or create_rate_limiter_from_config(
            config.rate_limit_per_min, config.burst_size, provider_name=role
        )
        self.log = logger or logging.getLogger(self.__class__.__name__)

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._ids = itertools.count(1)
        self._secrets = url_secrets(config.base_url)
        if config.api_key:
            self._secrets.append(config.api_key)

        self.log.debug("RPC client (%s) bound to %s", role, mask_url(config.base_url))

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RpcClient:
        """Shortcut for a client with default settings."""
        return cls(ClientConfig(base_url=url), **kwargs)

    @property
    def url(self) -> str:
        return self.config.base_url

    # ---------- lifecycle ----------
    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ---------- RPC methods ----------
    async def get_health(self) -> HealthResponse:
        result = await self._call("getHealth")
        return self._parse("getHealth", HealthResponse, result)

    async def get_events(
        self,
        *,
        start_ledger: Optional[int] = None,
        end_ledger: Optional[int] = None,
        cursor: Optional[str] = None,
        filters: Sequence[EventFilter] = (),
        limit: int = 10,
    ) -> EventsResponse:
        pagination: Dict[str, Any] = {"limit": limit}
        params: Dict[str, Any] = {
            "filters": [f.to_rpc() for f in filters],
            "pagination": pagination,
        }
        if cursor:
            # startLedger and cursor are mutually exclusive on the wire
            pagination["cursor"] = cursor
        else:
            if start_ledger is not None:
                params["startLedger"] = start_ledger
            if end_ledger is not None:
                params["endLedger"] = end_ledger

        result = await self._call("getEvents", params)
        return self._parse("getEvents", EventsResponse, result)

    async def get_ledgers(
        self,
        *,
        start_ledger: Optional[int] = None,
        cursor: Optional[str] = None,
        limit: int = 1,
    ) -> LedgersResponse:
        pagination: Dict[str, Any] = {"limit": limit}
        params: Dict[str, Any] = {"pagination": pagination}
        if cursor:
            pagination["cursor"] = cursor
        elif start_ledger is not None:
            params["startLedger"] = start_ledger

        result = await self._call("getLedgers", params)
        return self._parse("getLedgers", LedgersResponse, result)

    # ---------- low-level request ----------
    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = params
        self.log.debug("-> %s %s", method, params or {})

        retries = 0
        while True:
            # Every attempt takes a token, retries included
            if self.rate_limiter:
                await self.rate_limiter.acquire_async()

            start = time.perf_counter()
            try:
                r = await self._http.post(
                    self.config.base_url, json=payload, headers=self._headers()
                )
            except httpx.HTTPError as exc:
                RPC_ERRORS.labels(source=self.role, method=method, code="transport").inc()
                raise RpcRequestError(
                    method, safe_for_log(f"{type(exc).__name__}: {exc}", *self._secrets), cause=exc
                ) from exc
            finally:
                RPC_LATENCY.labels(source=self.role, method=method).observe(
                    time.perf_counter() - start
                )
            RPC_REQUESTS.labels(source=self.role, method=method).inc()

            if r.status_code >= 400:
                RPC_ERRORS.labels(source=self.role, method=method, code=str(r.status_code)).inc()

            if self.should_retry(r.status_code) and retries < self.config.max_retries:
                retries += 1
                await self._pause_before_retry(r, retries)
                continue

            if r.status_code >= 400:
                raise RpcRequestError(
                    method,
                    safe_for_log(f"HTTP {r.status_code}: {r.text[:200]}", *self._secrets),
                    status_code=r.status_code,
                )

            try:
                body = r.json()
            except ValueError as exc:
                raise RpcResponseError(
                    method, f"Response is not valid JSON: {r.text[:200]}", cause=exc
                ) from exc

            if not isinstance(body, dict):
                raise RpcResponseError(method, f"Unexpected response body: {body!r}")
            if body.get("error") is not None:
                error = body["error"]
                if isinstance(error, dict):
                    RPC_ERRORS.labels(source=self.role, method=method, code="rpc").inc()
                    raise RpcResponseError(
                        method, str(error.get("message", error)), rpc_code=error.get("code")
                    )
                raise RpcResponseError(method, str(error))
            if "result" not in body:
                raise RpcResponseError(method, "Response has neither result nor error")
            return body["result"]

    async def _pause_before_retry(self, response: httpx.Response, attempt: int) -> None:
        retry_after = response.headers.get("Retry-After")
        if response.status_code == 429 and retry_after and self.rate_limiter:
            try:
                seconds = int(retry_after)
            except (TypeError, ValueError):
                self.log.warning("Invalid Retry-After header: %s", retry_after)
            else:
                self.log.warning("Rate limited, respecting Retry-After: %ss", seconds)
                self.rate_limiter.notify_retry_after(seconds)
                return
        sleep = self._backoff(attempt)
        self.log.warning("Retry %d sleeping %.2fs", attempt, sleep)
        await asyncio.sleep(sleep)

    @staticmethod
    def _parse(method: str, model: Type[ModelT], result: Any) -> ModelT:
        try:
            return model.model_validate(result)
        except ValidationError as exc:
            raise RpcResponseError(
                method, f"Malformed {method} result: {exc.error_count()} validation error(s)", cause=exc
            ) from exc

    # ---------- helpers ----------
    @staticmethod
    def should_retry(status: int) -> bool:
        return status in _RETRYABLE_STATUS

    @staticmethod
    def _backoff(attempt: int) -> float:
        base = 1.5**attempt
        return base + random.uniform(0, 0.2 * base)


__all__ = ["RpcClient"]
