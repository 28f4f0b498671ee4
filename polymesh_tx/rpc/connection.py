"""
Shared chain connection.

`ChainConnection` owns the single transport every RPC-issuing component uses.
It is created once per process (or per test), opened lazily on first use and
closed explicitly:

    async with ChainConnection.from_config(cfg) as conn:
        assembler = TransactionAssembler(conn)
        watcher = InclusionWatcher(conn, registry)
        ...

The typed helpers below are the whole node surface the pipeline consumes;
exact RPC method names live here and nowhere else.
"""

from __future__ import annotations

import asyncio
import logging
from typing import (Any, Callable, Dict, List, Optional, Protocol, Union,
                    runtime_checkable)

from ..config import PipelineConfig
from ..errors import JsonRpcCode, RpcError
from .http import HttpClient
from .ws import WsClient

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]


class Transport(Protocol):
    async def request(
        self, method: str, params: Any = None, *, idempotent: bool = True
    ) -> JSON: ...

    async def close(self) -> None: ...


@runtime_checkable
class SubscriptionTransport(Protocol):
    async def subscribe(
        self, method: str, params: Any = None, *, on_event: Callable[[JSON], None]
    ) -> str: ...

    async def unsubscribe(self, method: str, sub_id: str) -> bool: ...


class ChainConnection:
    """Lazily-initialised, explicitly closed handle over one JSON-RPC transport."""

    def __init__(
        self,
        url: str,
        *,
        request_timeout: float = 30.0,
        max_retries: int = 3,
        transport_factory: Optional[Callable[[], Transport]] = None,
    ) -> None:
        self.url = url
        self._request_timeout = request_timeout
        self._max_retries = max_retries
        self._factory = transport_factory or self._default_factory
        self._transport: Optional[Transport] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, cfg: PipelineConfig) -> "ChainConnection":
        return cls(
            cfg.node_url,
            request_timeout=cfg.request_timeout,
            max_retries=cfg.max_retries,
        )

    # ------------- lifecycle -------------------

    async def __aenter__(self) -> "ChainConnection":
        await self.get()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    async def get(self) -> Transport:
        """Return the shared transport, opening it on first use."""
        if self._transport is not None:
            return self._transport
        async with self._lock:
            if self._transport is None:
                transport = self._factory()
                if isinstance(transport, WsClient):
                    await transport.connect()
                self._transport = transport
                log.info("connected to %s", self.url)
        return self._transport

    async def close(self) -> None:
        if self._transport is not None:
            transport, self._transport = self._transport, None
            await transport.close()
            log.info("disconnected from %s", self.url)

    def _default_factory(self) -> Transport:
        if self.url.lower().startswith(("ws://", "wss://")):
            return WsClient(
                self.url,
                request_timeout=self._request_timeout,
                max_retries=self._max_retries,
            )
        return HttpClient(
            self.url,
            timeout=self._request_timeout,
            max_retries=self._max_retries,
        )

    async def request(self, method: str, params: Any = None, *, idempotent: bool = True) -> JSON:
        transport = await self.get()
        return await transport.request(method, params, idempotent=idempotent)

    # ------------- chain surface ---------------

    async def get_block_hash(self, number: Optional[int] = None) -> str:
        params = [] if number is None else [number]
        return await self.request("chain_getBlockHash", params)  # type: ignore[return-value]

    async def get_header(self, block_hash: Optional[str] = None) -> Dict[str, Any]:
        params = [] if block_hash is None else [block_hash]
        return await self.request("chain_getHeader", params)  # type: ignore[return-value]

    async def get_block(self, block_hash: Optional[str] = None) -> Dict[str, Any]:
        params = [] if block_hash is None else [block_hash]
        return await self.request("chain_getBlock", params)  # type: ignore[return-value]

    async def get_metadata(self, block_hash: Optional[str] = None) -> str:
        params = [] if block_hash is None else [block_hash]
        return await self.request("state_getMetadata", params)  # type: ignore[return-value]

    async def get_runtime_version(self, block_hash: Optional[str] = None) -> Dict[str, Any]:
        params = [] if block_hash is None else [block_hash]
        return await self.request("state_getRuntimeVersion", params)  # type: ignore[return-value]

    async def account_next_index(self, address: str) -> Any:
        """Next nonce for `address` as the node returned it; callers validate it."""
        return await self.request("system_accountNextIndex", [address])

    async def get_storage(self, key: str, block_hash: Optional[str] = None) -> Optional[str]:
        params = [key] if block_hash is None else [key, block_hash]
        return await self.request("state_getStorage", params)  # type: ignore[return-value]

    async def submit_extrinsic(self, serialized: str) -> str:
        return await self.request(  # type: ignore[return-value]
            "author_submitExtrinsic", [serialized], idempotent=False
        )

    async def get_filtered_authorizations(
        self,
        signatory: Dict[str, str],
        *,
        allow_expired: bool = False,
        auth_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: List[Any] = [signatory, allow_expired]
        if auth_type is not None:
            params.append(auth_type)
        res = await self.request("identity_getFilteredAuthorizations", params)
        return list(res or [])  # type: ignore[arg-type]

    async def subscribe_new_heads(self, on_header: Callable[[JSON], None]) -> str:
        transport = await self.get()
        if not isinstance(transport, SubscriptionTransport):
            raise RpcError(
                code=JsonRpcCode.METHOD_NOT_FOUND,
                message="header subscriptions require a websocket node URL",
                method="chain_subscribeNewHeads",
            )
        return await transport.subscribe("chain_subscribeNewHeads", [], on_event=on_header)

    async def unsubscribe_new_heads(self, sub_id: str) -> bool:
        transport = self._transport
        if not isinstance(transport, SubscriptionTransport):
            return False
        return await transport.unsubscribe("chain_unsubscribeNewHeads", sub_id)


__all__ = ["ChainConnection", "Transport", "SubscriptionTransport"]
