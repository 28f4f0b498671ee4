"""
WebSocket JSON-RPC client (async) with subscription support.

- Uses the `websockets` package.
- Correlates requests by `id` and dispatches subscription notifications.
- One reader task per connection; a dropped connection fails every pending
  request and the next request reconnects lazily. Subscriptions are not
  restored on reconnect: their owners hold the subscription id and decide.

Example:
    import asyncio
    from polymesh_tx.rpc.ws import WsClient

    async def main():
        async with WsClient("wss://testnet-rpc.polymesh.live") as ws:
            sub_id = await ws.subscribe(
                "chain_subscribeNewHeads", [], on_event=lambda head: print(head["number"])
            )
            await asyncio.sleep(30)
            await ws.unsubscribe("chain_unsubscribeNewHeads", sub_id)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import RpcError
from ..version import user_agent
from .jsonrpc import JSON, Params, backoff_delay, encode_request, id_counter, transport_error, unwrap_response

log = logging.getLogger(__name__)

OnEvent = Callable[[JSON], None]

# Runtime metadata responses routinely exceed the websockets 1 MiB default.
_MAX_FRAME = 32 * 1024 * 1024
# Notifications that arrive before their subscribe response are held briefly.
_MAX_ORPHANS = 64


@dataclass
class WsClient:
    url: str
    headers: Optional[Mapping[str, str]] = None
    connect_timeout: float = 15.0
    request_timeout: float = 30.0
    ping_interval: Optional[float] = 20.0
    max_retries: int = 3
    backoff_base: float = 0.25
    backoff_factor: float = 1.8
    backoff_jitter: float = 0.25
    _ids: Iterator[int] = field(default_factory=id_counter)
    _ws: Any = field(init=False, default=None)
    _reader_task: Optional[asyncio.Task] = field(init=False, default=None)
    _pending: Dict[int, asyncio.Future] = field(init=False, default_factory=dict)
    _sub_handlers: Dict[str, OnEvent] = field(init=False, default_factory=dict)
    _orphans: Dict[str, List[JSON]] = field(init=False, default_factory=dict)
    _connect_lock: Optional[asyncio.Lock] = field(init=False, default=None)
    _closing: bool = field(init=False, default=False)

    async def __aenter__(self) -> "WsClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    # ------------- lifecycle -------------------

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """Open the socket (retrying with backoff) and start the reader task."""
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self._ws is not None:
                return
            self._closing = False
            self._ws = await self._open()
            log.debug("WS connected to %s", self.url)
            self._reader_task = asyncio.create_task(self._reader_loop(self._ws), name="WsClient.reader")

    async def _open(self) -> Any:
        headers = {"User-Agent": user_agent(), **dict(self.headers or {})}
        for attempt in range(1, self.max_retries + 2):
            try:
                return await asyncio.wait_for(
                    ws_connect(
                        self.url,
                        additional_headers=headers,
                        ping_interval=self.ping_interval,
                        max_size=_MAX_FRAME,
                    ),
                    timeout=self.connect_timeout,
                )
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                if attempt > self.max_retries:
                    raise transport_error(f"WS connect to {self.url} failed", cause=e) from e
                delay = backoff_delay(
                    attempt, base=self.backoff_base, factor=self.backoff_factor, jitter=self.backoff_jitter
                )
                log.debug("WS connect to %s failed (%s); retrying in %.2fs", self.url, e, delay)
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    async def close(self) -> None:
        """Stop the reader, close the socket and fail whatever is still pending."""
        self._closing = True
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None
        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(ConnectionClosed, OSError):
                await ws.close()
        self._fail_pending("WS closed")
        self._sub_handlers.clear()
        self._orphans.clear()

    # ------------- RPC primitives --------------

    async def request(
        self,
        method: str,
        params: Params = None,
        *,
        id: Optional[int] = None,
        idempotent: bool = True,
    ) -> JSON:
        """
        Send a JSON-RPC request and await the response.

        `idempotent` is accepted for parity with the HTTP transport; a single
        websocket send is never retried.
        """
        if self._ws is None:
            await self.connect()
        rid = next(self._ids) if id is None else id
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[rid] = fut
        try:
            try:
                await asyncio.wait_for(self._ws.send(encode_request(method, params, rid)), self.request_timeout)
            except (ConnectionClosed, OSError, asyncio.TimeoutError) as e:
                raise transport_error("WS send failed", method=method, cause=e) from e
            try:
                return await asyncio.wait_for(fut, self.request_timeout)
            except asyncio.TimeoutError as e:
                raise transport_error("WS request timed out", method=method, request_id=rid) from e
        except RpcError as e:
            if e.method is None:
                e.method = method
            raise
        finally:
            self._pending.pop(rid, None)

    # ------------- Subscriptions ----------------

    async def subscribe(self, method: str, params: Params = None, *, on_event: OnEvent) -> str:
        """
        Subscribe and route notifications for the returned id to `on_event`.

        Notifications that raced ahead of the subscribe response are replayed
        to the handler before this returns.
        """
        sub_id = str(await self.request(method, params))
        self._sub_handlers[sub_id] = on_event
        for event in self._orphans.pop(sub_id, []):
            self._dispatch(sub_id, on_event, event)
        return sub_id

    async def unsubscribe(self, method: str, sub_id: str) -> bool:
        """Remove the handler, then tell the server. No callback fires after this starts."""
        self._sub_handlers.pop(sub_id, None)
        self._orphans.pop(sub_id, None)
        if self._ws is None:
            return False
        try:
            return bool(await self.request(method, [sub_id]))
        except RpcError as e:
            log.debug("unsubscribe %s(%s) failed: %s", method, sub_id, e)
            return False

    # ------------- internals --------------------

    def _fail_pending(self, reason: str) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(transport_error(reason))
        self._pending.clear()

    def _dispatch(self, sub_id: str, handler: OnEvent, event: JSON) -> None:
        try:
            handler(event)
        except Exception:
            log.exception("subscription handler for %s raised", sub_id)

    def _on_response(self, frame: dict) -> None:
        try:
            fut = self._pending.get(int(frame["id"]))
        except (TypeError, ValueError):
            return
        if fut is None or fut.done():
            return
        try:
            fut.set_result(unwrap_response(frame))
        except RpcError as e:
            fut.set_exception(e)

    def _on_notification(self, sub_id: str, event: JSON) -> None:
        handler = self._sub_handlers.get(sub_id)
        if handler is not None:
            self._dispatch(sub_id, handler, event)
            return
        if sub_id not in self._orphans and len(self._orphans) >= _MAX_ORPHANS:
            return
        held = self._orphans.setdefault(sub_id, [])
        if len(held) < _MAX_ORPHANS:
            held.append(event)

    async def _reader_loop(self, ws: Any) -> None:
        while True:
            try:
                raw = await ws.recv()
            except ConnectionClosed as e:
                if not self._closing:
                    log.warning("WS connection to %s closed: %s", self.url, e)
                    self._ws = None
                    self._fail_pending("WS disconnected")
                return

            try:
                frame = json.loads(raw)
            except ValueError:
                log.debug("ignoring non-JSON frame")
                continue
            if not isinstance(frame, dict):
                continue

            if frame.get("id") is not None:
                self._on_response(frame)
                continue
            params = frame.get("params")
            if "method" in frame and isinstance(params, dict) and "subscription" in params:
                self._on_notification(str(params["subscription"]), params.get("result"))


__all__ = ["WsClient", "OnEvent"]
