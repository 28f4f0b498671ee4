"""
HTTP JSON-RPC client (async).

- Uses httpx.AsyncClient.
- Retries idempotent RPC calls on transient transport failures and 429/5xx.
  Non-idempotent calls (extrinsic submission) are sent exactly once.
- No subscriptions: the inclusion watcher needs the websocket transport.

Example:
    from polymesh_tx.rpc.http import HttpClient

    async with HttpClient("https://testnet-rpc.polymesh.live") as rpc:
        head = await rpc.request("chain_getHeader")
        print(int(head["number"], 16))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional, Union

import httpx

from ..errors import JsonRpcCode, RpcError
from ..version import user_agent
from .jsonrpc import JSON, Params, backoff_delay, encode_request, id_counter, transport_error, unwrap_response

log = logging.getLogger(__name__)

# Gateway and rate-limit statuses put in front of public Substrate RPC nodes.
_RETRY_STATUSES = frozenset({429, 502, 503, 504})


class _Transient(Exception):
    """A failure worth retrying when the call is idempotent."""


@dataclass
class HttpClient:
    """Asynchronous JSON-RPC 2.0 client over HTTP."""

    url: str
    timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.15
    backoff_factor: float = 1.8
    backoff_jitter: float = 0.2
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    _ids: Iterator[int] = field(default_factory=id_counter)
    _client: Optional[httpx.AsyncClient] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": user_agent(),
                **dict(self.headers or {}),
            },
            transport=self.transport,
        )

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- public API ------------------------------------------------------

    async def request(
        self,
        method: str,
        params: Params = None,
        *,
        id: Optional[Union[int, str]] = None,
        idempotent: bool = True,
    ) -> JSON:
        """POST one request; return its `result` or raise RpcError."""
        body = encode_request(method, params, next(self._ids) if id is None else id)
        attempts = 1 + (self.max_retries if idempotent else 0)
        for attempt in range(1, attempts + 1):
            try:
                return await self._post(method, body)
            except _Transient as e:
                if attempt == attempts:
                    raise transport_error("RPC transport failed", method=method, cause=e) from e
                delay = backoff_delay(
                    attempt, base=self.backoff_base, factor=self.backoff_factor, jitter=self.backoff_jitter
                )
                log.debug("%s: %s, retry %d/%d in %.2fs", method, e, attempt, attempts - 1, delay)
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    # --- internals -------------------------------------------------------

    async def _post(self, method: str, body: str) -> JSON:
        if self._client is None:
            raise transport_error("HTTP client closed", method=method)
        try:
            r = await self._client.post(self.url, content=body)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise _Transient(f"{type(e).__name__}: {e}") from e
        if r.status_code in _RETRY_STATUSES:
            raise _Transient(f"HTTP {r.status_code}")
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="node returned non-JSON body",
                data=f"HTTP {r.status_code}: {r.text[:256]}",
                method=method,
            ) from e
        return unwrap_response(resp, method=method)


__all__ = ["HttpClient"]
